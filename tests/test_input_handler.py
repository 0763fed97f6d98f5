"""
Tests for the batch input handler.
"""

import json

import cv2
import numpy as np
import pytest

from pothole_heatmap.input_handler import InputHandler


def _write_image(path, width=64, height=48):
    image = np.full((height, width, 3), 127, dtype=np.uint8)
    assert cv2.imwrite(str(path), image)


def _tensor():
    return np.array([[[32.0], [24.0], [20.0], [20.0], [0.9]]], dtype=np.float32)


@pytest.fixture
def capture_dir(tmp_path):
    """Directory with a tensor payload, a detections payload and an orphan."""
    _write_image(tmp_path / "a.png")
    np.save(tmp_path / "a.npy", _tensor())

    _write_image(tmp_path / "b.png", width=80, height=60)
    (tmp_path / "b.json").write_text(json.dumps([
        {"x": 1, "y": 2, "width": 10, "height": 10, "confidence": 0.8},
    ]), encoding="utf-8")

    _write_image(tmp_path / "c.png")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    return tmp_path


def test_directory_pairs_payloads(capture_dir):
    handler = InputHandler(str(capture_dir), default_label="pothole")
    items = list(handler)

    assert len(handler) == 3
    assert [item.name for item in items] == ["a", "b"]
    assert [item.frame_id for item in items] == [0, 1]

    a, b = items
    assert a.tensor is not None and a.detections is None
    assert a.tensor.shape == (1, 5, 1)
    assert (a.width, a.height) == (64, 48)

    assert b.tensor is None
    assert b.detections[0].label == "pothole"
    assert (b.width, b.height) == (80, 60)


def test_tensor_preferred_over_detections(tmp_path):
    _write_image(tmp_path / "road.jpg")
    np.save(tmp_path / "road.npy", _tensor())
    (tmp_path / "road.json").write_text("[]", encoding="utf-8")

    (item,) = list(InputHandler(str(tmp_path / "road.jpg")))
    assert item.tensor is not None
    assert item.detections is None


def test_broken_payload_skipped(tmp_path):
    _write_image(tmp_path / "a.png")
    (tmp_path / "a.json").write_text("{not json", encoding="utf-8")
    _write_image(tmp_path / "b.png")
    (tmp_path / "b.json").write_text("[]", encoding="utf-8")

    items = list(InputHandler(str(tmp_path)))
    assert [item.name for item in items] == ["b"]
    assert items[0].detections == []


def test_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        InputHandler(str(tmp_path / "missing"))


def test_unsupported_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00")
    with pytest.raises(ValueError, match="extension"):
        InputHandler(str(path))


def test_empty_directory(tmp_path):
    with pytest.raises(ValueError, match="No image files"):
        InputHandler(str(tmp_path))
