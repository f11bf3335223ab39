"""Terrain tile retrieval — downloads Terrarium PNG tiles and mosaics them into a raster.

Tiles follow the slippy-map scheme (Web Mercator, 256x256 pixels) and encode
elevation in metres as ``R * 256 + G + B / 256 - 32768``.
"""

import io
import logging
import math
from collections.abc import Sequence

import httpx
import numpy as np
from numpy.typing import NDArray
from PIL import Image, UnidentifiedImageError

from elevplot.config import Settings, load_settings
from elevplot.errors import NoDataError, RetrievalError
from elevplot.models import ElevationRaster

logger = logging.getLogger(__name__)

PRJ_LONGLAT_WGS84 = "+proj=longlat +ellps=WGS84 +datum=WGS84 +no_defs"
DEFAULT_ZOOM = 14
MAX_ZOOM = 15
TILE_SIZE = 256
CLIP_MODES = ("bbox", "tile")

# Web Mercator cannot represent the poles
MAX_MERCATOR_LAT = 85.0511287798

_USER_AGENT = "elevplot/0.1 (elevation relief viewer)"


def lon_to_tile_x(lon: float, z: int) -> int:
    """Tile column containing ``lon`` at zoom ``z``, clamped to the valid range."""
    n = 2**z
    x = int(math.floor((lon + 180.0) / 360.0 * n))
    return min(max(x, 0), n - 1)


def lat_to_tile_y(lat: float, z: int) -> int:
    """Tile row containing ``lat`` at zoom ``z`` (row 0 is the northern edge)."""
    n = 2**z
    lat = min(max(lat, -MAX_MERCATOR_LAT), MAX_MERCATOR_LAT)
    lat_rad = math.radians(lat)
    y = int(math.floor((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n))
    return min(max(y, 0), n - 1)


def pixel_centers_lon(first_px: int, count: int, z: int) -> NDArray[np.float64]:
    """Longitudes of ``count`` global pixel columns starting at ``first_px``."""
    world = TILE_SIZE * 2**z
    px = np.arange(first_px, first_px + count, dtype=np.float64) + 0.5
    return px / world * 360.0 - 180.0


def pixel_centers_lat(first_px: int, count: int, z: int) -> NDArray[np.float64]:
    """Latitudes of ``count`` global pixel rows starting at ``first_px`` (inverse Mercator)."""
    world = TILE_SIZE * 2**z
    py = np.arange(first_px, first_px + count, dtype=np.float64) + 0.5
    return np.degrees(np.arctan(np.sinh(np.pi * (1.0 - 2.0 * py / world))))


def decode_terrarium(content: bytes) -> NDArray[np.float64]:
    """Decode a Terrarium PNG into a 2-D array of elevations in metres.

    Raises:
        RetrievalError: If the payload is not a readable image.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.float64)
    except (UnidentifiedImageError, OSError) as exc:
        raise RetrievalError(f"Undecodable terrain tile: {exc}") from exc
    return rgb[..., 0] * 256.0 + rgb[..., 1] + rgb[..., 2] / 256.0 - 32768.0


def _fetch_tile(client: httpx.Client, url_template: str, z: int, x: int, y: int) -> bytes:
    """Single tile download. Maps HTTP failures onto the pipeline's error types."""
    url = url_template.format(z=z, x=x, y=y)
    try:
        resp = client.get(url)
    except httpx.HTTPError as exc:
        raise RetrievalError(f"Tile request failed for {url}: {exc}") from exc

    if resp.status_code == 404:
        raise NoDataError(f"No elevation coverage for tile z={z} x={x} y={y}")
    if resp.status_code == 429:
        raise RetrievalError("Elevation tile service is rate limiting requests")
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise RetrievalError(
            f"Elevation tile service returned {resp.status_code} for {url}"
        ) from exc
    return resp.content


def fetch_elevation_raster(
    locations: Sequence[tuple[float, float]],
    prj: str = PRJ_LONGLAT_WGS84,
    z: int = DEFAULT_ZOOM,
    clip: str = "bbox",
    verbose: bool = False,
    *,
    client: httpx.Client | None = None,
    settings: Settings | None = None,
) -> ElevationRaster:
    """Download the tiles covering ``locations`` and return them as one raster.

    Args:
        locations: (x, y) points whose extent defines the query region.
        prj: Projection of ``locations``; only long/lat WGS84 is supported.
        z: Tile zoom level (0-15). Higher is finer and slower.
        clip: "bbox" clips the mosaic to the extent, "tile" keeps whole tiles.
        verbose: Log per-run details at INFO instead of DEBUG. The tile count
            is always logged at INFO.
        client: Optional httpx client to reuse. A private one is opened otherwise.
        settings: Tile URL and timeout; read from the environment if None.

    Returns:
        ElevationRaster with rows north to south and columns west to east.

    Raises:
        RetrievalError: Network failure, rate limiting, or error status.
        NoDataError: No coverage, or nothing left after clipping.
        ValueError: Unsupported projection, zoom, clip mode, or empty locations.
    """
    if prj != PRJ_LONGLAT_WGS84:
        raise ValueError(f"Unsupported projection: {prj}")
    if not 0 <= z <= MAX_ZOOM:
        raise ValueError(f"Zoom must be between 0 and {MAX_ZOOM}: {z}")
    if clip not in CLIP_MODES:
        raise ValueError(f"Unknown clip mode: {clip}")
    if not locations:
        raise ValueError("At least one location is required")

    log = logger.info if verbose else logger.debug
    settings = settings or load_settings()

    lons = [p[0] for p in locations]
    lats = [p[1] for p in locations]
    min_lon, max_lon = min(lons), max(lons)
    min_lat, max_lat = min(lats), max(lats)

    x0, x1 = lon_to_tile_x(min_lon, z), lon_to_tile_x(max_lon, z)
    y0, y1 = lat_to_tile_y(max_lat, z), lat_to_tile_y(min_lat, z)
    n_tiles = (x1 - x0 + 1) * (y1 - y0 + 1)
    logger.info(
        "Fetching %d terrain tiles at z=%d (x %d-%d, y %d-%d)", n_tiles, z, x0, x1, y0, y1
    )

    own_client = client is None
    if own_client:
        client = httpx.Client(
            timeout=settings.http_timeout, headers={"User-Agent": _USER_AGENT}
        )
    assert client is not None

    try:
        rows: list[NDArray[np.float64]] = []
        for ty in range(y0, y1 + 1):
            tiles: list[NDArray[np.float64]] = []
            for tx in range(x0, x1 + 1):
                tile = decode_terrarium(_fetch_tile(client, settings.tile_url, z, tx, ty))
                if tile.shape != (TILE_SIZE, TILE_SIZE):
                    raise RetrievalError(
                        f"Unexpected tile size {tile.shape} for z={z} x={tx} y={ty}"
                    )
                tiles.append(tile)
            rows.append(np.hstack(tiles))
        mosaic = np.vstack(rows)
    finally:
        if own_client:
            client.close()

    xs = pixel_centers_lon(x0 * TILE_SIZE, mosaic.shape[1], z)
    ys = pixel_centers_lat(y0 * TILE_SIZE, mosaic.shape[0], z)

    if clip == "bbox":
        col_mask = (xs >= min_lon) & (xs <= max_lon)
        row_mask = (ys >= min_lat) & (ys <= max_lat)
        if not col_mask.any() or not row_mask.any():
            raise NoDataError(
                f"No elevation samples inside lat [{min_lat:.6f}, {max_lat:.6f}], "
                f"lon [{min_lon:.6f}, {max_lon:.6f}] at z={z}"
            )
        mosaic = mosaic[np.ix_(row_mask, col_mask)]
        xs = xs[col_mask]
        ys = ys[row_mask]

    log("Elevation raster %dx%d after %s clip", mosaic.shape[0], mosaic.shape[1], clip)
    return ElevationRaster(values=mosaic, xs=xs, ys=ys, prj=prj, zoom=z)
