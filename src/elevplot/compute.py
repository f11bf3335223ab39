"""Elevation computation layer — bounding box, tile retrieval, and height-field reshaping."""

import logging
import math
import time
from collections.abc import Callable

import numpy as np

from elevplot.errors import InvalidInputError, NoDataError, ShapeMismatchError
from elevplot.models import (
    ElevationGrid,
    ElevationRaster,
    GeoBoundingBox,
    QueryInput,
    RasterSamples,
    TerrainData,
)
from elevplot.tiles import DEFAULT_ZOOM, PRJ_LONGLAT_WGS84, fetch_elevation_raster

logger = logging.getLogger(__name__)

# One degree of latitude, reused for longitude. Inaccurate away from the equator.
MILES_PER_DEGREE = 69.0

RasterFetcher = Callable[..., ElevationRaster]


def compute_bounds(
    center_lat: float, center_lon: float, radius_miles: float
) -> GeoBoundingBox:
    """Square bounding box (in degree space) around a center point.

    The radius is converted with a flat 69 miles/degree on both axes, so the
    box is narrower on the ground east-west than north-south away from the
    equator. A radius of 0 gives a zero-area box.

    Args:
        center_lat: Latitude in [-90, 90].
        center_lon: Longitude in [-180, 180].
        radius_miles: Non-negative half-side of the square in miles.

    Returns:
        GeoBoundingBox with max >= min on both axes.

    Raises:
        InvalidInputError: On non-finite or out-of-range input.
    """
    if not all(math.isfinite(v) for v in (center_lat, center_lon, radius_miles)):
        raise InvalidInputError(
            f"Non-finite input: lat={center_lat}, lon={center_lon}, radius={radius_miles}"
        )
    if not -90.0 <= center_lat <= 90.0:
        raise InvalidInputError(f"Latitude out of range [-90, 90]: {center_lat}")
    if not -180.0 <= center_lon <= 180.0:
        raise InvalidInputError(f"Longitude out of range [-180, 180]: {center_lon}")
    if radius_miles < 0:
        raise InvalidInputError(f"Radius must not be negative: {radius_miles}")

    delta = radius_miles / MILES_PER_DEGREE
    return GeoBoundingBox(
        max_lat=center_lat + delta,
        min_lat=center_lat - delta,
        max_lon=center_lon + delta,
        min_lon=center_lon - delta,
    )


def flatten_raster(raster: ElevationRaster) -> RasterSamples:
    """Flatten a raster into parallel (row_key, elevation) arrays in its native order.

    Cells are walked north to south, west to east within each raster row. The
    row key is the cell's x coordinate, so every raster column becomes one
    height-field row once reshaped.
    """
    n_rows, n_cols = raster.values.shape
    if len(raster.xs) != n_cols:
        raise ShapeMismatchError(
            f"Raster has {n_cols} columns but {len(raster.xs)} x coordinates"
        )
    keys = np.tile(np.asarray(raster.xs, dtype=np.float64), n_rows)
    elevations = np.asarray(raster.values, dtype=np.float64).ravel(order="C")
    return RasterSamples(row_keys=keys, elevations=elevations)


def reshape_samples(samples: RasterSamples) -> ElevationGrid:
    """Reshape flattened samples into a dense matrix, filling column by column.

    The row count is the number of distinct row keys; the first ``row_count``
    elevations form column 0, the next ``row_count`` column 1, and so on.

    Raises:
        NoDataError: If there are no samples.
        ShapeMismatchError: If the sample count is not a multiple of the row
            count, or the two arrays differ in length.
    """
    keys = np.asarray(samples.row_keys, dtype=np.float64)
    elevations = np.asarray(samples.elevations, dtype=np.float64)
    total = elevations.size
    if keys.size != total:
        raise ShapeMismatchError(f"{keys.size} row keys for {total} elevations")
    if not total:
        raise NoDataError("No elevation samples to reshape")

    row_count = int(np.unique(keys).size)
    if total % row_count:
        raise ShapeMismatchError(
            f"{total} samples cannot be split evenly into {row_count} rows"
        )
    return elevations.reshape((row_count, total // row_count), order="F")


def build_grid(
    bounds: GeoBoundingBox,
    zoom: int = DEFAULT_ZOOM,
    fetch: RasterFetcher = fetch_elevation_raster,
) -> ElevationGrid:
    """Fetch elevations for ``bounds`` and arrange them into a height field.

    Args:
        bounds: Area to fetch.
        zoom: Tile detail level. Fixed at 14 by default.
        fetch: Retrieval collaborator; takes corner points, prj, z, clip, verbose.

    Returns:
        Dense 2-D grid with no missing cells.

    Raises:
        RetrievalError: Propagated from the collaborator.
        NoDataError: If nothing (or only missing values) came back.
        ShapeMismatchError: If the samples do not form a full matrix.
    """
    raster = fetch(
        bounds.corners(), prj=PRJ_LONGLAT_WGS84, z=zoom, clip="bbox", verbose=False
    )
    grid = reshape_samples(flatten_raster(raster))
    if np.isnan(grid).any():
        raise NoDataError("Elevation grid contains missing cells")
    logger.debug("Built %dx%d elevation grid", grid.shape[0], grid.shape[1])
    return grid


def run(
    query: QueryInput,
    zoom: int | None = None,
    fetch: RasterFetcher = fetch_elevation_raster,
) -> TerrainData:
    """Top-level entry point: takes a QueryInput and returns TerrainData.

    Args:
        query: User input (center point and radius).
        zoom: Tile detail level; DEFAULT_ZOOM when None.
        fetch: Retrieval collaborator, replaceable for tests.

    Returns:
        Fully computed TerrainData.
    """
    zoom = DEFAULT_ZOOM if zoom is None else zoom
    started = time.perf_counter()
    bounds = compute_bounds(query.center_lat, query.center_lon, query.radius_miles)
    logger.info(
        "Query lat=%.6f lon=%.6f radius=%.2fmi -> lat [%.6f, %.6f], lon [%.6f, %.6f]",
        query.center_lat,
        query.center_lon,
        query.radius_miles,
        bounds.min_lat,
        bounds.max_lat,
        bounds.min_lon,
        bounds.max_lon,
    )
    grid = build_grid(bounds, zoom=zoom, fetch=fetch)
    logger.info(
        "Elevation grid %dx%d ready in %.1fs",
        grid.shape[0],
        grid.shape[1],
        time.perf_counter() - started,
    )
    return TerrainData(query=query, bounds=bounds, grid=grid, zoom=zoom)
