"""
Density field synthesis for the detection heatmap.

Responsibility:
    Turn a weighted batch of detections into a normalized 2-D density
    grid using kernel density estimation with one elliptical Gaussian
    kernel per detection, followed by a light separable Gaussian blur.

Pipeline (per render call, nothing is shared between calls):

    1. Allocate a float64 grid of shape (height, width).
    2. For each detection, add its elliptical kernel inside a 3-sigma
       ellipse around the box center. Overlaps add up.
    3. Blur horizontally, then vertically. Taps falling outside the
       grid are omitted (no wraparound, no reflection).
    4. Divide by the maximum, unless the grid is all zero.

Non-goals:
    - No color mapping or compositing (see colormap).
    - No caching of grids or weights across calls.
"""

import logging
import math
from typing import Sequence, Tuple

import cv2
import numpy as np

from pothole_heatmap.detection import Detection

logger = logging.getLogger(__name__)

# Kernel bandwidth as a fraction of the box size, per axis
_BANDWIDTH_SCALE = 0.6
# Influence radius in standard deviations
_RADIUS_SIGMAS = 3.0
_INTENSITY_GAIN = 2.0


def kernel_bandwidth(
    detection: Detection,
    min_bandwidth: float = 30.0,
) -> Tuple[float, float]:
    """Return the (hx, hy) kernel bandwidths for a detection."""
    hx = max(detection.width * _BANDWIDTH_SCALE, min_bandwidth)
    hy = max(detection.height * _BANDWIDTH_SCALE, min_bandwidth)
    return hx, hy


def accumulate_kde(
    grid: np.ndarray,
    detection: Detection,
    weight: float,
    min_bandwidth: float = 30.0,
) -> None:
    """Add one detection's elliptical Gaussian contribution to ``grid`` in place.

    Args:
        grid: Density grid of shape (height, width), modified in place.
        detection: Detection providing the kernel center, bandwidths and
                   confidence.
        weight: Importance weight from the weighting model.
        min_bandwidth: Lower bound on each kernel bandwidth in pixels.
    """
    height, width = grid.shape
    cx, cy = detection.center
    hx, hy = kernel_bandwidth(detection, min_bandwidth)

    norm = 1.0 / (2.0 * math.pi * hx * hy)
    radius_x = hx * _RADIUS_SIGMAS
    radius_y = hy * _RADIUS_SIGMAS

    x0 = max(0, math.floor(cx - radius_x))
    x1 = min(width - 1, math.ceil(cx + radius_x))
    y0 = max(0, math.floor(cy - radius_y))
    y1 = min(height - 1, math.ceil(cy + radius_y))
    if x1 < x0 or y1 < y0:
        return

    dx = np.arange(x0, x1 + 1, dtype=np.float64) - cx
    dy = np.arange(y0, y1 + 1, dtype=np.float64) - cy

    # Squared Mahalanobis distance; the 3-sigma ellipse is q <= 9
    q = (dy * dy / (hy * hy))[:, None] + (dx * dx / (hx * hx))[None, :]
    kernel = norm * np.exp(-0.5 * q)
    kernel[q > _RADIUS_SIGMAS * _RADIUS_SIGMAS] = 0.0

    intensity = detection.confidence * weight * _INTENSITY_GAIN
    grid[y0:y1 + 1, x0:x1 + 1] += kernel * intensity


def gaussian_kernel_1d(kernel_size: int = 9) -> np.ndarray:
    """Normalized 1-D Gaussian taps from -k//2 to k//2 with sigma = k / 3.

    Raises:
        ValueError: If kernel_size is not a positive integer.
    """
    if kernel_size < 1:
        raise ValueError(f"kernel_size must be positive, got {kernel_size}.")

    sigma = kernel_size / 3.0
    half = kernel_size // 2
    offsets = np.arange(-half, half + 1, dtype=np.float64)
    taps = np.exp(-(offsets * offsets) / (2.0 * sigma * sigma))
    return taps / taps.sum()


def separable_gaussian_blur(grid: np.ndarray, kernel_size: int = 9) -> None:
    """Blur ``grid`` in place with a horizontal then a vertical 1-D pass.

    The border is zero-padded, so taps outside the grid add nothing.
    """
    kernel = gaussian_kernel_1d(kernel_size)
    grid[...] = cv2.sepFilter2D(
        np.ascontiguousarray(grid, dtype=np.float64),
        cv2.CV_64F,
        kernel,
        kernel,
        borderType=cv2.BORDER_CONSTANT,
    )


def normalize_grid(grid: np.ndarray) -> float:
    """Scale ``grid`` in place so its maximum is 1.0.

    Returns:
        The maximum before normalization. An all-zero (or empty) grid is
        left untouched and 0.0 is returned.
    """
    peak = float(grid.max()) if grid.size else 0.0
    if peak > 0.0:
        grid /= peak
    return peak


def synthesize_density(
    detections: Sequence[Detection],
    weights: Sequence[float],
    width: int,
    height: int,
    min_bandwidth: float = 30.0,
    blur_kernel_size: int = 9,
) -> np.ndarray:
    """Build the normalized density grid for a weighted detection batch.

    Args:
        detections: Final (post-NMS) detections.
        weights: One weight per detection, in the same order.
        width: Grid width in pixels (target image width).
        height: Grid height in pixels (target image height).
        min_bandwidth: Lower bound on kernel bandwidth in pixels.
        blur_kernel_size: Size of the smoothing kernel.

    Returns:
        A float64 array of shape (height, width) with values in [0, 1].
        All zero when the batch is empty, or when no kernel reaches the
        grid (logged as a warning).

    Raises:
        ValueError: If weights and detections differ in length or the
            grid dimensions are not positive.
    """
    if len(weights) != len(detections):
        raise ValueError(
            f"Expected one weight per detection, got {len(weights)} weights "
            f"for {len(detections)} detections."
        )
    if width <= 0 or height <= 0:
        raise ValueError(
            f"Grid dimensions must be positive, got {width}x{height}."
        )

    grid = np.zeros((height, width), dtype=np.float64)
    if not detections:
        return grid

    for det, weight in zip(detections, weights):
        accumulate_kde(grid, det, weight, min_bandwidth)

    separable_gaussian_blur(grid, blur_kernel_size)
    peak = normalize_grid(grid)
    if peak == 0.0:
        logger.warning(
            "No density from %d detection(s) on the %dx%d grid: zero "
            "confidence or boxes entirely outside the image",
            len(detections), width, height,
        )

    logger.debug(
        "Density synthesized for %d detections (%dx%d), peak=%.6g",
        len(detections), width, height, peak,
    )
    return grid


def density_peak(grid: np.ndarray) -> Tuple[int, int]:
    """Return the (x, y) cell of the grid maximum (first in row-major order)."""
    row, col = np.unravel_index(int(np.argmax(grid)), grid.shape)
    return int(col), int(row)
