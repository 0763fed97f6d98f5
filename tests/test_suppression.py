"""
Tests for the non-maximum suppression module.
"""

import pytest

from pothole_heatmap.detection import Detection
from pothole_heatmap.suppression import non_max_suppression


def _det(x, y, w, h, conf):
    return Detection(x=x, y=y, width=w, height=h, confidence=conf, label="pothole")


def _fan_out_candidates():
    """One dominant box plus boxes overlapping it by IoU 0.5, 0.4 and 0."""
    return [
        _det(0, 0, 100, 100, 0.9),
        _det(0, 0, 50, 100, 0.8),     # IoU 0.5 with the first
        _det(60, 0, 40, 100, 0.7),    # IoU 0.4 with the first
        _det(300, 0, 100, 100, 0.6),  # disjoint
    ]


def test_nms_overlap_threshold_scenario():
    """Boxes with IoU 0.6: one survives at 0.4, both survive at 0.7."""
    high = _det(0, 0, 100, 100, 0.9)
    low = _det(25, 0, 100, 100, 0.8)

    assert non_max_suppression([low, high], iou_threshold=0.4) == [high]
    assert non_max_suppression([low, high], iou_threshold=0.7) == [high, low]


def test_nms_output_sorted_by_confidence():
    """Accepted detections come out in descending confidence order."""
    candidates = [
        _det(0, 0, 10, 10, 0.55),
        _det(100, 0, 10, 10, 0.95),
        _det(200, 0, 10, 10, 0.75),
    ]
    kept = non_max_suppression(candidates, iou_threshold=0.4)
    assert [d.confidence for d in kept] == [0.95, 0.75, 0.55]


def test_nms_ties_keep_first_seen():
    """Equal confidences are resolved in input order."""
    first = _det(0, 0, 50, 50, 0.7)
    second = _det(10, 0, 50, 50, 0.7)   # IoU 2/3 with first
    far = _det(500, 500, 50, 50, 0.7)

    assert non_max_suppression([first, second, far], 0.4) == [first, far]
    assert non_max_suppression([second, first, far], 0.4) == [second, far]


def test_nms_suppressed_box_does_not_suppress():
    """Only accepted boxes suppress others."""
    a = _det(0, 0, 100, 100, 0.9)
    b = _det(40, 0, 100, 100, 0.8)   # IoU(a, b) = 60/140 ~ 0.43
    c = _det(80, 0, 100, 100, 0.7)   # IoU(a, c) = 20/180, IoU(b, c) ~ 0.43

    assert non_max_suppression([a, b, c], iou_threshold=0.4) == [a, c]


def test_nms_idempotent():
    """Running NMS on its own output changes nothing."""
    candidates = _fan_out_candidates() + [
        _det(5, 5, 100, 100, 0.85),
        _det(290, 10, 100, 100, 0.65),
    ]
    for threshold in (0.3, 0.45, 0.6):
        once = non_max_suppression(candidates, threshold)
        assert non_max_suppression(once, threshold) == once


def test_nms_monotonic_in_threshold():
    """Raising the IoU threshold never lowers the number of survivors."""
    candidates = _fan_out_candidates()
    counts = [
        len(non_max_suppression(candidates, t))
        for t in (0.1, 0.3, 0.45, 0.55, 0.7, 0.9)
    ]
    assert counts == sorted(counts)
    assert counts[1] == 2
    assert counts[2] == 3
    assert counts[3] == 4


def test_nms_empty_and_single():
    """Empty input gives empty output; a single box always survives."""
    assert non_max_suppression([], 0.4) == []
    only = _det(1, 2, 3, 4, 0.1)
    assert non_max_suppression([only], 0.0) == [only]


def test_nms_does_not_modify_input():
    """The candidate list keeps its order and contents."""
    candidates = _fan_out_candidates()[::-1]
    snapshot = list(candidates)
    non_max_suppression(candidates, 0.4)
    assert candidates == snapshot


@pytest.mark.parametrize("threshold", [0.0, 0.4, 1.0])
def test_nms_disjoint_boxes_all_survive(threshold):
    """Boxes that do not overlap are never suppressed."""
    candidates = [_det(i * 100, 0, 50, 50, 0.5 + i * 0.1) for i in range(4)]
    assert len(non_max_suppression(candidates, threshold)) == 4
