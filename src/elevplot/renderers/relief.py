"""Sphere-shaded relief renderer.

Each cell's surface normal is looked up on a spherical color texture that is
rotated so its highlight faces the sun. Flat ground takes the texture's center
color, slopes facing the sun its highlight, slopes facing away its shadow.
"""

import logging
import math
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import to_rgb
from numpy.typing import NDArray

from elevplot.config import load_settings
from elevplot.errors import RenderError
from elevplot.models import ElevationGrid

logger = logging.getLogger(__name__)

DEFAULT_TEXTURE = "imhof2"
DEFAULT_SUNANGLE = 70.0
_TEXTURE_SIZE = 256

# highlight, shadow, left, right, center
TEXTURES: dict[str, tuple[str, str, str, str, str]] = {
    "imhof1": ("#fff673", "#55967a", "#8fb28a", "#55967a", "#cfe0a9"),
    "imhof2": ("#f5dfca", "#63372c", "#dfa283", "#195f67", "#c9e3c5"),
    "imhof3": ("#e9e671", "#7f3231", "#cbb387", "#607080", "#7c9695"),
    "imhof4": ("#ffe3b3", "#6a463a", "#dbaf70", "#9c9988", "#c09c7c"),
    "desert": ("#ffe3b3", "#6a463a", "#caa685", "#86584e", "#e6c89d"),
    "bw": ("#ffffff", "#000000", "#bfbfbf", "#404040", "#7f7f7f"),
    "unicorn": ("red", "green", "blue", "yellow", "white"),
}


def build_texture(name: str, size: int = _TEXTURE_SIZE) -> NDArray[np.float64]:
    """Spherical color texture for a named palette, shape (size, size, 3).

    Colors are blended by inverse squared distance from five anchors: the
    highlight at the top edge, the shadow at the bottom, left and right at the
    side edges, and the center color in the middle.
    """
    if name not in TEXTURES:
        raise RenderError(
            f"Unknown texture '{name}'. Available: {', '.join(sorted(TEXTURES))}"
        )
    colors = np.array([to_rgb(c) for c in TEXTURES[name]])
    anchors = np.array([(0.0, 1.0), (0.0, -1.0), (-1.0, 0.0), (1.0, 0.0), (0.0, 0.0)])

    axis = np.linspace(-1.0, 1.0, size)
    u, v = np.meshgrid(axis, axis[::-1])
    d2 = (u[..., None] - anchors[:, 0]) ** 2 + (v[..., None] - anchors[:, 1]) ** 2
    weights = 1.0 / (d2 + 1e-6)
    weights /= weights.sum(axis=-1, keepdims=True)
    return np.clip(weights @ colors, 0.0, 1.0)


def sphere_shade(
    grid: ElevationGrid,
    texture: str = DEFAULT_TEXTURE,
    sunangle: float = DEFAULT_SUNANGLE,
    zscale: float = 1.0,
) -> NDArray[np.float64]:
    """Shade a height field, returning an RGB image in [0, 1].

    Args:
        grid: Height field whose rows run west to east (as built by compute).
        texture: Palette name from TEXTURES.
        sunangle: Compass direction the light comes from, in degrees.
        zscale: Elevation units per horizontal cell; larger flattens relief.

    Returns:
        Array of shape (grid columns, grid rows, 3), north at the top.

    Raises:
        RenderError: On an unknown texture or a grid that cannot be shaded.
    """
    heights = np.asarray(grid, dtype=np.float64)
    if heights.ndim != 2 or min(heights.shape) < 2:
        raise RenderError(f"Need a 2-D grid of at least 2x2 cells, got {heights.shape}")
    if not np.isfinite(heights).all():
        raise RenderError("Grid contains non-finite elevations")
    if zscale <= 0:
        raise RenderError(f"zscale must be positive: {zscale}")
    tex = build_texture(texture)

    # Back to image orientation: rows north to south, columns west to east.
    heights = heights.T / zscale
    dz_drow, dz_deast = np.gradient(heights)
    dz_dnorth = -dz_drow
    norm = np.sqrt(dz_deast**2 + dz_dnorth**2 + 1.0)
    nx = -dz_deast / norm
    ny = -dz_dnorth / norm

    sun = math.radians(sunangle)
    toward_sun = nx * math.sin(sun) + ny * math.cos(sun)
    across_sun = nx * math.cos(sun) - ny * math.sin(sun)

    last = tex.shape[0] - 1
    rows = np.rint((1.0 - toward_sun) / 2.0 * last).astype(int)
    cols = np.rint((across_sun + 1.0) / 2.0 * last).astype(int)
    return tex[np.clip(rows, 0, last), np.clip(cols, 0, last)]


def save_relief(
    grid: ElevationGrid,
    output_path: Path | None = None,
    texture: str = DEFAULT_TEXTURE,
    sunangle: float = DEFAULT_SUNANGLE,
    zscale: float = 1.0,
) -> Path:
    """Shade ``grid`` and save it as a PNG file.

    Args:
        grid: Height field from compute.build_grid.
        output_path: Destination path. The configured output path if None.
        texture: Palette name from TEXTURES.
        sunangle: Compass direction the light comes from, in degrees.
        zscale: Elevation units per horizontal cell; larger flattens relief.

    Returns:
        Path to the saved file.

    Raises:
        RenderError: If shading or writing the image fails.
    """
    if output_path is None:
        output_path = load_settings().output_path

    rgb = sphere_shade(grid, texture=texture, sunangle=sunangle, zscale=zscale)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        plt.imsave(output_path, rgb)
    except (OSError, ValueError) as exc:
        raise RenderError(f"Could not write relief image to {output_path}: {exc}") from exc
    logger.info("Saved %dx%d relief to %s", rgb.shape[1], rgb.shape[0], output_path)
    return output_path
