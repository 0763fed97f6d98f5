"""
Serialization for the detection pipeline.

Responsibility:
    Export detection results to structured file formats (JSON, CSV)
    for downstream consumption or offline analysis, and read
    pre-decoded detections back from JSON.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output: writes complete files on finalize.
"""

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pothole_heatmap.describer import short_description, summarize_detection
from pothole_heatmap.detection import Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameRecord:
    """Final detections of one input image, plus what is needed to describe them."""

    frame_id: int
    name: str
    image_width: int
    image_height: int
    detections: List[Detection]


def save_json(records: Sequence[FrameRecord], output_path: str) -> None:
    """Export all detections to a JSON file.

    Output schema:
        {
            "frames": [
                {
                    "frame_id": 0,
                    "name": "road_001",
                    "image_width": 1280,
                    "image_height": 720,
                    "detections": [
                        {"x": ..., "y": ..., "width": ..., "height": ...,
                         "confidence": ..., "label": ...,
                         "description": "Large • High confidence",
                         "summary": {...}}
                    ]
                }
            ],
            "total_frames": N,
            "total_detections": M
        }

    Args:
        records: One record per processed image.
        output_path: Path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    frames = []
    total_detections = 0

    for record in sorted(records, key=lambda r: r.frame_id):
        w, h = record.image_width, record.image_height
        total_detections += len(record.detections)
        frames.append({
            "frame_id": record.frame_id,
            "name": record.name,
            "image_width": w,
            "image_height": h,
            "detections": [
                {
                    **d.to_dict(),
                    "description": short_description(d, w, h),
                    "summary": summarize_detection(d, record.detections, w, h).to_dict(),
                }
                for d in record.detections
            ],
        })

    payload = {
        "frames": frames,
        "total_frames": len(frames),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.info(
        "JSON output saved: %s (%d frames, %d detections)",
        output_path, len(frames), total_detections,
    )


def save_csv(records: Sequence[FrameRecord], output_path: str) -> None:
    """Export all detections to a CSV file.

    Columns: frame_id, name, x, y, width, height, confidence, label

    Args:
        records: One record per processed image.
        output_path: Path to the output CSV file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    fieldnames = ["frame_id", "name", "x", "y", "width", "height", "confidence", "label"]

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for record in sorted(records, key=lambda r: r.frame_id):
            for det in record.detections:
                writer.writerow({
                    "frame_id": record.frame_id,
                    "name": record.name,
                    **det.to_dict(),
                })
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def load_detections(path: str, default_label: Optional[str] = None) -> List[Detection]:
    """Read pre-decoded detections from a JSON file.

    Accepts either a plain list of detection dicts or an object with a
    ``"detections"`` list. Each dict needs x, y, width, height and
    confidence; a missing label falls back to ``default_label``.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the structure or a detection is invalid.
    """
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    if isinstance(payload, dict):
        payload = payload.get("detections")
    if not isinstance(payload, list):
        raise ValueError(
            f"Expected a list of detections or an object with a 'detections' "
            f"list in {path}."
        )

    try:
        return [Detection.from_dict(item, default_label) for item in payload]
    except (AttributeError, KeyError, TypeError) as e:
        raise ValueError(f"Invalid detection entry in {path}: {e}") from e


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
