"""
Tests for JSON/CSV export and detection loading.
"""

import csv
import json

import pytest

from pothole_heatmap.detection import Detection
from pothole_heatmap.serializer import FrameRecord, load_detections, save_csv, save_json


def _det(x, y, w, h, conf, label="pothole"):
    return Detection(x=x, y=y, width=w, height=h, confidence=conf, label=label)


@pytest.fixture
def records():
    return [
        FrameRecord(1, "road_002", 640, 480, [_det(10, 20, 30, 40, 0.8)]),
        FrameRecord(0, "road_001", 640, 480, [
            _det(300, 300, 200, 150, 0.95),
            _det(5, 5, 20, 20, 0.55),
        ]),
        FrameRecord(2, "road_003", 640, 480, []),
    ]


def test_save_json(tmp_path, records):
    """JSON output lists frames in frame order with totals and descriptions."""
    out = tmp_path / "nested" / "detections.json"
    save_json(records, str(out))

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["total_frames"] == 3
    assert payload["total_detections"] == 3
    assert [f["name"] for f in payload["frames"]] == ["road_001", "road_002", "road_003"]

    first = payload["frames"][0]["detections"][0]
    assert first["confidence"] == 0.95
    assert first["label"] == "pothole"
    assert first["description"] == "Large • High confidence"
    assert first["summary"]["context"] == "multiple"


def test_save_csv(tmp_path, records):
    """CSV output has one row per detection."""
    out = tmp_path / "detections.csv"
    save_csv(records, str(out))

    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert len(rows) == 3
    assert list(rows[0]) == ["frame_id", "name", "x", "y", "width", "height", "confidence", "label"]
    assert rows[0]["name"] == "road_001"
    assert float(rows[2]["x"]) == 10.0


def test_load_detections_list(tmp_path):
    path = tmp_path / "dets.json"
    path.write_text(json.dumps([
        {"x": 1, "y": 2, "width": 3, "height": 4, "confidence": 0.7, "label": "crack"},
        {"x": 10, "y": 20, "width": 30, "height": 40, "confidence": 0.9},
    ]), encoding="utf-8")

    detections = load_detections(str(path), default_label="pothole")

    assert [d.label for d in detections] == ["crack", "pothole"]
    assert detections[1].area == 1200.0


def test_load_detections_object(tmp_path):
    path = tmp_path / "dets.json"
    det = _det(1, 2, 3, 4, 0.5)
    path.write_text(json.dumps({"detections": [det.to_dict()]}), encoding="utf-8")

    assert load_detections(str(path)) == [det]


@pytest.mark.parametrize(
    "payload",
    [
        {"frames": []},
        "not a list",
        [{"x": 1, "y": 2, "width": 3, "confidence": 0.5, "label": "p"}],
        [42],
        [{"x": 1, "y": 2, "width": 3, "height": 4, "confidence": 0.5}],
    ],
)
def test_load_detections_invalid(tmp_path, payload):
    """Bad structure, missing fields or labels raise ValueError."""
    path = tmp_path / "dets.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError):
        load_detections(str(path))
