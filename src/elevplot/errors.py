"""Error hierarchy for the elevation pipeline.

Every failure a run can hit is one of these; the UI catches ``ElevPlotError``
and shows the message instead of crashing.
"""


class ElevPlotError(Exception):
    """Base error for elevation pipeline operations."""


class InvalidInputError(ElevPlotError):
    """Latitude, longitude or radius outside the accepted range."""


class RetrievalError(ElevPlotError):
    """Tile service unreachable, rate-limited, or returned an error status."""


class NoDataError(ElevPlotError):
    """Retrieval succeeded but produced no samples for the requested bounds."""


class ShapeMismatchError(ElevPlotError):
    """Samples do not form a full matrix (count not a multiple of the row count)."""


class RenderError(ElevPlotError):
    """Renderer could not produce an image from the grid."""
