"""Data model definitions — explicit boundaries between input, compute, and render layers."""

from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

# Dense 2-D height field handed to the renderer.
ElevationGrid = NDArray[np.float64]


@dataclass(frozen=True)
class QueryInput:
    """Raw user input. Validated by compute_bounds."""

    center_lat: float  # Latitude of the center point (decimal degrees)
    center_lon: float  # Longitude of the center point (decimal degrees)
    radius_miles: float  # Half the side of the square, in miles


@dataclass(frozen=True)
class GeoBoundingBox:
    """Square (in degree space) around the query center."""

    max_lat: float
    min_lat: float
    max_lon: float
    min_lon: float

    def corners(self) -> tuple[tuple[float, float], ...]:
        """Four (x, y) corner points: NE, SE, NW, SW."""
        return (
            (self.max_lon, self.max_lat),
            (self.max_lon, self.min_lat),
            (self.min_lon, self.max_lat),
            (self.min_lon, self.min_lat),
        )


@dataclass(frozen=True, eq=False)
class ElevationRaster:
    """Elevation samples as returned by the tile collaborator.

    ``values`` rows run north to south and columns west to east.
    """

    values: NDArray[np.float64]  # shape (len(ys), len(xs)), metres
    xs: NDArray[np.float64]  # Cell-center longitude per column
    ys: NDArray[np.float64]  # Cell-center latitude per row
    prj: str  # proj4 string the coordinates are expressed in
    zoom: int  # Tile zoom level the samples came from


class RasterSamples(NamedTuple):
    """Raster cells in flattened form, as two parallel arrays."""

    row_keys: NDArray[np.float64]  # Coordinate identifying each cell's height-field row
    elevations: NDArray[np.float64]


@dataclass(frozen=True, eq=False)
class TerrainData:
    """Result of one pipeline run. The sole input to renderers."""

    query: QueryInput
    bounds: GeoBoundingBox
    grid: ElevationGrid
    zoom: int


@dataclass(frozen=True, eq=False)
class RenderSession:
    """What the UI keeps between reruns. Replaced as a whole after each run."""

    terrain: TerrainData
    image_path: Path  # Where the image was written; shared by all sessions
    image_png: bytes  # PNG as read back right after the save
