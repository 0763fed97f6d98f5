"""
Tests for the rule-based detection describer.
"""

import pytest

from pothole_heatmap.describer import describe_detection, short_description, summarize_detection
from pothole_heatmap.detection import Detection


def _det(x, y, w, h, conf=0.9, label="pothole"):
    return Detection(x=x, y=y, width=w, height=h, confidence=conf, label=label)


def test_summary_critical_large_detection():
    """A big, confident box in the lane center close to the camera."""
    det = _det(350, 650, 300, 300, conf=0.9)
    summary = summarize_detection(det, [det], 1000, 1000)

    assert summary.confidence_level == "very_high"
    assert summary.size_category == "large"
    assert summary.shape == "regular"
    assert summary.position == "critical"
    assert summary.context is None
    assert summary.area_percent == pytest.approx(9.0)


def test_summary_small_elongated_off_center():
    det = _det(75, 90, 50, 20, conf=0.4)
    summary = summarize_detection(det, [det], 1000, 1000)

    assert summary.confidence_level == "low"
    assert summary.size_category == "small"
    assert summary.shape == "elongated"
    assert summary.position is None


@pytest.mark.parametrize(
    "conf, level",
    [(0.95, "very_high"), (0.85, "very_high"), (0.8, "high"), (0.7, "high"),
     (0.6, "medium"), (0.5, "medium"), (0.49, "low")],
)
def test_confidence_levels(conf, level):
    det = _det(0, 0, 10, 10, conf=conf)
    assert summarize_detection(det, [det], 100, 100).confidence_level == level


def test_size_and_shape_categories():
    medium = _det(0, 0, 200, 150)       # 3% of 1000x1000
    vertical = _det(0, 0, 20, 50)
    assert summarize_detection(medium, [medium], 1000, 1000).size_category == "medium"
    assert summarize_detection(vertical, [vertical], 1000, 1000).shape == "vertical"


def test_position_categories():
    center_far = _det(450, 100, 100, 100)   # cx 500, cy 150
    side_near = _det(50, 800, 100, 100)     # cx 100, cy 850
    assert summarize_detection(center_far, [center_far], 1000, 1000).position == "center"
    assert summarize_detection(side_near, [side_near], 1000, 1000).position == "near"


def test_context_from_batch_size():
    batch = [_det(i * 100, 0, 50, 50) for i in range(4)]
    assert summarize_detection(batch[0], batch[:2], 1000, 1000).context == "multiple"
    assert summarize_detection(batch[0], batch[:3], 1000, 1000).context == "multiple"
    assert summarize_detection(batch[0], batch, 1000, 1000).context == "widespread"


def test_describe_detection_lines():
    """One line per aspect; position and context lines only when they apply."""
    lone = _det(75, 90, 50, 20, conf=0.9, label="crack")
    text = describe_detection(lone, [lone], 1000, 1000)
    lines = text.split("\n")

    assert len(lines) == 3
    assert "crack" in lines[0]

    batch = [_det(350, 650, 300, 300), _det(0, 0, 50, 50)]
    assert len(describe_detection(batch[0], batch, 1000, 1000).split("\n")) == 5


@pytest.mark.parametrize(
    "det, expected",
    [
        (_det(0, 0, 300, 300, conf=0.9), "Large • High confidence"),
        (_det(0, 0, 200, 150, conf=0.6), "Medium • Medium confidence"),
        (_det(0, 0, 10, 10, conf=0.3), "Small • Needs verification"),
    ],
)
def test_short_description(det, expected):
    assert short_description(det, 1000, 1000) == expected


def test_summary_to_dict():
    det = _det(0, 0, 100, 100)
    payload = summarize_detection(det, [det], 1000, 1000).to_dict()
    assert payload["size_category"] == "small"
    assert payload["area_percent"] == 1.0
    assert set(payload) == {
        "confidence_level", "size_category", "shape", "position", "context", "area_percent",
    }
