"""
Color mapping and compositing for the density heatmap.

Responsibility:
    Map a normalized density grid onto a six-band color ramp with a
    density-dependent opacity, flatten it over a dark background and
    screen-blend the result onto an image.

Color ramp (density -> RGB, piecewise linear, channels floored):

    0.00 - 0.15   blue   -> cyan-ish    (0, 0..100, 255)
    0.15 - 0.30   cyan   -> green       (0, 100..255, 255..0)
    0.30 - 0.45   green  -> yellow      (0..255, 255, 0)
    0.45 - 0.65   yellow -> orange      (255, 255..135, 0)
    0.65 - 1.00   orange -> red         (255, 135..0, 0)

The top band is the widest so that true hotspots read as red.

Buffers handed to callers are RGBA; images coming from OpenCV are BGR
and are converted at the compositing boundary.
"""

from typing import Tuple

import cv2
import numpy as np

DEFAULT_BACKGROUND: Tuple[int, int, int] = (15, 25, 55)  # dark navy, RGB
DEFAULT_OVERLAY_OPACITY = 0.8

_BAND_EDGES = (0.15, 0.30, 0.45, 0.65)
_FADE_EDGE = 0.02
_FADE_OPACITY = 0.8
_BAND_OPACITIES = (0.8, 0.85, 0.9, 0.95)


def density_to_rgb(density: np.ndarray) -> np.ndarray:
    """Map densities in [0, 1] to uint8 RGB triples (shape ``(..., 3)``).

    Values outside [0, 1] are clipped first.
    """
    d = np.clip(np.asarray(density, dtype=np.float64), 0.0, 1.0)
    e1, e2, e3, e4 = _BAND_EDGES

    bands = [d < e1, d < e2, d < e3, d < e4]
    t1 = d / e1
    t2 = (d - e1) / (e2 - e1)
    t3 = (d - e2) / (e3 - e2)
    t4 = (d - e3) / (e4 - e3)
    t5 = (d - e4) / (1.0 - e4)

    r = np.select(bands, [0.0, 0.0, 255.0 * t3, 255.0], default=255.0)
    g = np.select(
        bands,
        [100.0 * t1, 100.0 + 155.0 * t2, 255.0, 255.0 - 120.0 * t4],
        default=135.0 * (1.0 - t5),
    )
    b = np.select(bands, [255.0, 255.0 * (1.0 - t2), 0.0, 0.0], default=0.0)

    rgb = np.stack([r, g, b], axis=-1)
    return np.floor(np.clip(rgb, 0.0, 255.0)).astype(np.uint8)


def density_to_opacity(density: np.ndarray) -> np.ndarray:
    """Map densities in [0, 1] to opacities in [0, 0.95].

    Near-zero densities fade linearly from 0 to 0.8 so the heatmap has
    no hard edge; higher bands use fixed, increasing opacities.
    """
    d = np.clip(np.asarray(density, dtype=np.float64), 0.0, 1.0)
    e1, e2, e3, _ = _BAND_EDGES
    return np.select(
        [d < _FADE_EDGE, d < e1, d < e2, d < e3],
        [(d / _FADE_EDGE) * _FADE_OPACITY, *_BAND_OPACITIES[:3]],
        default=_BAND_OPACITIES[3],
    )


def colorize(grid: np.ndarray) -> np.ndarray:
    """Map a normalized density grid to an RGBA uint8 image.

    Raises:
        ValueError: If the grid contains NaN.
    """
    grid = np.asarray(grid, dtype=np.float64)
    if np.isnan(grid).any():
        raise ValueError("Density grid contains NaN; refusing to colorize.")

    rgba = np.empty(grid.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = density_to_rgb(grid)
    rgba[..., 3] = np.floor(density_to_opacity(grid) * 255.0).astype(np.uint8)
    return rgba


def composite_over_background(
    rgba: np.ndarray,
    background: Tuple[int, int, int] = DEFAULT_BACKGROUND,
) -> np.ndarray:
    """Flatten an RGBA layer onto a solid RGB background (source-over)."""
    alpha = rgba[..., 3:4].astype(np.float64) / 255.0
    color = rgba[..., :3].astype(np.float64)
    bg = np.asarray(background, dtype=np.float64)
    flat = color * alpha + bg * (1.0 - alpha)
    return np.rint(flat).astype(np.uint8)


def render_overlay(
    grid: np.ndarray,
    background: Tuple[int, int, int] = DEFAULT_BACKGROUND,
    opacity: float = DEFAULT_OVERLAY_OPACITY,
) -> np.ndarray:
    """Render a density grid into an RGBA overlay of the same size.

    The color layer is flattened over ``background``; the alpha channel
    carries the global overlay opacity used when the overlay is applied.
    """
    overlay = np.empty(grid.shape + (4,), dtype=np.uint8)
    overlay[..., :3] = composite_over_background(colorize(grid), background)
    overlay[..., 3] = int(round(opacity * 255.0))
    return overlay


def transparent_overlay(width: int, height: int) -> np.ndarray:
    """A fully transparent RGBA overlay; applying it changes nothing."""
    return np.zeros((height, width, 4), dtype=np.uint8)


def screen_blend(base: np.ndarray, layer: np.ndarray, opacity) -> np.ndarray:
    """Screen-blend ``layer`` onto ``base`` (same channel order, uint8).

    ``opacity`` is a scalar or an array broadcastable to ``base``.
    """
    b = base.astype(np.float64)
    top = layer.astype(np.float64)
    screen = 255.0 - (255.0 - b) * (255.0 - top) / 255.0
    out = b * (1.0 - opacity) + screen * opacity
    return np.rint(np.clip(out, 0.0, 255.0)).astype(np.uint8)


def apply_overlay(image: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Composite an RGBA overlay onto a BGR image with a screen blend.

    Args:
        image: BGR image of shape (H, W, 3), as returned by OpenCV.
        overlay: RGBA overlay of shape (H, W, 4).

    Returns:
        A new BGR image. The input image is not modified.

    Raises:
        ValueError: If the overlay and image sizes differ.
    """
    if overlay.shape[:2] != image.shape[:2]:
        raise ValueError(
            f"Overlay size {overlay.shape[1]}x{overlay.shape[0]} does not match "
            f"image size {image.shape[1]}x{image.shape[0]}."
        )

    bgra = cv2.cvtColor(np.ascontiguousarray(overlay), cv2.COLOR_RGBA2BGRA)
    alpha = bgra[..., 3:4].astype(np.float64) / 255.0
    return screen_blend(image, bgra[..., :3], alpha)
