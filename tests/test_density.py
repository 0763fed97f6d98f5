"""
Tests for the density synthesis module.
"""

import logging
import math

import numpy as np
import pytest

from pothole_heatmap.density import (
    accumulate_kde,
    density_peak,
    gaussian_kernel_1d,
    kernel_bandwidth,
    normalize_grid,
    separable_gaussian_blur,
    synthesize_density,
)
from pothole_heatmap.detection import Detection


def _det(x, y, w, h, conf=1.0):
    return Detection(x=x, y=y, width=w, height=h, confidence=conf, label="pothole")


def test_single_detection_peak_scenario():
    """One centered detection peaks at 1.0 near its box center."""
    det = _det(75, 75, 50, 50)
    grid = synthesize_density([det], [1.0], 200, 200)

    assert grid.shape == (200, 200)
    assert grid.dtype == np.float64
    assert grid.max() == pytest.approx(1.0)

    x, y = density_peak(grid)
    assert abs(x - 100) <= 1
    assert abs(y - 100) <= 1


def test_density_range():
    """Values stay in [0, 1] and the maximum is exactly 1."""
    dets = [_det(10, 10, 40, 30, 0.7), _det(120, 60, 80, 50, 0.9), _det(30, 100, 20, 20, 0.5)]
    grid = synthesize_density(dets, [0.8, 1.1, 0.6], 240, 160)

    assert grid.min() >= 0.0
    assert grid.max() == pytest.approx(1.0)


def test_empty_batch_is_zero():
    """No detections gives an all-zero grid of the requested size."""
    grid = synthesize_density([], [], 64, 48)
    assert grid.shape == (48, 64)
    assert not grid.any()


def test_overlapping_kernels_add_up():
    """Two nearby detections form a stronger hotspot than an isolated one."""
    pair = [_det(40, 40, 20, 20), _det(50, 40, 20, 20)]
    lonely = _det(300, 40, 20, 20)
    grid = synthesize_density(pair + [lonely], [1.0, 1.0, 1.0], 400, 120)

    assert grid[50, 55] > grid[50, 310]
    x, _ = density_peak(grid)
    assert x < 200


def test_rejects_mismatched_weights():
    """There must be one weight per detection."""
    with pytest.raises(ValueError, match="weight"):
        synthesize_density([_det(0, 0, 10, 10)], [], 100, 100)


def test_rejects_bad_dimensions():
    """Grid dimensions must be positive."""
    with pytest.raises(ValueError, match="dimensions"):
        synthesize_density([], [], 0, 100)


def test_kernel_bandwidth_floor():
    """Bandwidth is 0.6 of the box size with a per-axis floor."""
    assert kernel_bandwidth(_det(0, 0, 100, 20)) == pytest.approx((60.0, 30.0))
    assert kernel_bandwidth(_det(0, 0, 10, 10), min_bandwidth=5.0) == pytest.approx((6.0, 6.0))


def test_accumulate_kde_center_value_and_support():
    """The kernel peaks at the center and vanishes outside the 3-sigma ellipse."""
    grid = np.zeros((200, 200), dtype=np.float64)
    det = _det(0, 0, 10, 10, conf=0.5)   # center (5, 5), bandwidth 30

    accumulate_kde(grid, det, weight=2.0)

    expected_center = 1.0 / (2.0 * math.pi * 30.0 * 30.0) * 0.5 * 2.0 * 2.0
    assert grid[5, 5] == pytest.approx(expected_center)
    assert grid[5, 5] == grid.max()
    # Within the bounding square but outside the ellipse
    assert grid[5 + 70, 5 + 70] == 0.0
    assert grid[5 + 89, 5] > 0.0
    assert grid[199, 199] == 0.0


def test_accumulate_kde_is_additive():
    """Adding the same detection twice doubles the field."""
    det = _det(20, 20, 30, 30, conf=0.8)
    once = np.zeros((80, 80))
    twice = np.zeros((80, 80))
    accumulate_kde(once, det, 1.0)
    accumulate_kde(twice, det, 1.0)
    accumulate_kde(twice, det, 1.0)
    np.testing.assert_allclose(twice, 2.0 * once)


@pytest.mark.parametrize("size, taps", [(1, 1), (3, 3), (4, 5), (9, 9)])
def test_gaussian_kernel_shape(size, taps):
    """Kernels are symmetric, normalized and span -k//2..k//2."""
    kernel = gaussian_kernel_1d(size)
    assert len(kernel) == taps
    assert kernel.sum() == pytest.approx(1.0)
    np.testing.assert_allclose(kernel, kernel[::-1])
    assert kernel.argmax() == taps // 2


def test_gaussian_kernel_rejects_zero():
    with pytest.raises(ValueError):
        gaussian_kernel_1d(0)


def test_blur_preserves_interior_mass():
    """An impulse away from the edges keeps its total mass."""
    grid = np.zeros((21, 21))
    grid[10, 10] = 1.0
    separable_gaussian_blur(grid, 9)

    assert grid.sum() == pytest.approx(1.0)
    assert grid[10, 10] == grid.max()
    np.testing.assert_allclose(grid, grid.T)


def test_blur_omits_out_of_bounds_taps():
    """Near the border, taps outside the grid are dropped, not mirrored."""
    grid = np.zeros((21, 21))
    grid[0, 0] = 1.0
    separable_gaussian_blur(grid, 9)

    kernel = gaussian_kernel_1d(9)
    assert grid.sum() == pytest.approx(kernel[4:].sum() ** 2)
    assert grid[20, 20] == 0.0


def test_normalize_grid():
    """Normalization scales by the max and leaves zero grids alone."""
    grid = np.array([[0.0, 2.0], [1.0, 4.0]])
    assert normalize_grid(grid) == 4.0
    np.testing.assert_allclose(grid, [[0.0, 0.5], [0.25, 1.0]])

    zeros = np.zeros((3, 3))
    assert normalize_grid(zeros) == 0.0
    assert not zeros.any()


def test_density_peak_returns_x_then_y():
    grid = np.zeros((10, 20))
    grid[3, 17] = 1.0
    assert density_peak(grid) == (17, 3)


def test_blur_on_grid_smaller_than_kernel():
    """A kernel wider than the grid keeps only the in-bounds taps."""
    grid = np.zeros((3, 3))
    grid[1, 1] = 1.0
    separable_gaussian_blur(grid, 9)

    kernel = gaussian_kernel_1d(9)
    assert grid.sum() == pytest.approx(kernel[3:6].sum() ** 2)
    assert grid[1, 1] == pytest.approx(kernel[4] ** 2)


def test_detections_outside_grid_warn(caplog):
    """Boxes far outside the image leave the grid empty and log a warning."""
    with caplog.at_level(logging.WARNING, logger="pothole_heatmap.density"):
        grid = synthesize_density([_det(5000, 5000, 50, 50)], [1.0], 200, 200)

    assert not grid.any()
    assert "No density from 1 detection(s)" in caplog.text
