"""
Tests for the box geometry module.
"""

import itertools

import pytest

from pothole_heatmap.detection import Detection
from pothole_heatmap.geometry import Box, center_distance, intersection_over_union

_BOXES = [
    Box(0, 0, 100, 100),
    Box(25, 0, 100, 100),
    Box(50, 50, 10, 10),
    Box(200, 200, 30, 60),
    Box(0.1, 0.2, 0.3, 0.7),
    Box(90, 90, 40, 40),
    Box(5, 5, 0, 0),
]


def test_iou_known_value():
    """Two 100x100 boxes offset by 25 px overlap with IoU 0.6."""
    assert intersection_over_union(Box(0, 0, 100, 100), Box(25, 0, 100, 100)) == pytest.approx(0.6)


def test_iou_identity():
    """A non-degenerate box has IoU exactly 1 with itself."""
    for box in _BOXES[:-1]:
        assert intersection_over_union(box, box) == 1.0


def test_iou_symmetry_and_bounds():
    """IoU is symmetric and stays within [0, 1] for every pair."""
    for a, b in itertools.product(_BOXES, repeat=2):
        forward = intersection_over_union(a, b)
        assert forward == intersection_over_union(b, a)
        assert 0.0 <= forward <= 1.0


def test_iou_disjoint_and_touching():
    """Disjoint or edge-touching boxes do not overlap."""
    assert intersection_over_union(Box(0, 0, 10, 10), Box(50, 50, 10, 10)) == 0.0
    assert intersection_over_union(Box(0, 0, 10, 10), Box(10, 0, 10, 10)) == 0.0


def test_iou_degenerate_boxes():
    """Zero-area boxes yield 0 instead of dividing by zero."""
    zero = Box(5, 5, 0, 0)
    assert intersection_over_union(zero, zero) == 0.0
    assert intersection_over_union(zero, Box(0, 0, 10, 10)) == 0.0


def test_iou_contained_box():
    """A box inside another has IoU equal to the area ratio."""
    outer = Box(0, 0, 100, 100)
    inner = Box(25, 25, 50, 50)
    assert intersection_over_union(outer, inner) == pytest.approx(0.25)


def test_iou_accepts_detections():
    """Detections work wherever boxes do."""
    a = Detection(x=0, y=0, width=100, height=100, confidence=0.9, label="pothole")
    b = Detection(x=25, y=0, width=100, height=100, confidence=0.8, label="pothole")
    assert intersection_over_union(a, b) == pytest.approx(0.6)
    assert intersection_over_union(a, Box(0, 0, 100, 100)) == 1.0


def test_center_distance():
    """Distance is measured between box centers."""
    assert center_distance(Box(0, 0, 10, 10), Box(30, 40, 10, 10)) == pytest.approx(50.0)
    assert center_distance(Box(0, 0, 10, 10), Box(0, 0, 10, 10)) == 0.0
