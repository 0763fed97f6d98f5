"""
Rule-based descriptions of detections.

Responsibility:
    Classify a detection by confidence, size, shape, position in the
    frame and how many other detections share the frame, and turn that
    classification into short human-readable text for reports.

All rules are deterministic thresholds on the detection geometry; no
model output beyond the final detections is consulted.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from pothole_heatmap.detection import Detection

# Thresholds, evaluated top-down
_CONFIDENCE_LEVELS = ((0.85, "very_high"), (0.7, "high"), (0.5, "medium"))
_LARGE_PERCENT = 5.0  # of image area
_MEDIUM_PERCENT = 2.0
_ELONGATED_RATIO = 1.5
_VERTICAL_RATIO = 0.67
_CENTER_BAND = (0.3, 0.7)  # fraction of image width
_NEAR_EDGE = 0.6  # fraction of image height
_WIDESPREAD_COUNT = 3

_CONFIDENCE_TEXT = {
    "very_high": "Very high confidence: the region closely matches the typical appearance of a {label}.",
    "high": "High confidence: a clear {label} pattern was identified.",
    "medium": "Medium confidence: a possible {label}, visual verification is recommended.",
    "low": "Low confidence: the region only loosely resembles a {label}.",
}
_SIZE_TEXT = {
    "large": "Large: the affected area is wide enough to be a hazard.",
    "medium": "Medium: a moderately sized area that should be repaired.",
    "small": "Small: a small area that still needs attention.",
}
_SHAPE_TEXT = {
    "elongated": "Elongated shape, typical of cracks or stretched damage.",
    "vertical": "Vertically stretched shape.",
    "regular": "Round or square shape.",
}
_POSITION_TEXT = {
    "critical": "Critical position: in the middle of the lane, close to the camera.",
    "center": "Central position: in the area most traffic passes over.",
    "near": "Near position: close to where the image was taken.",
}
_CONTEXT_TEXT = {
    "widespread": "Many detections in this frame: the surface likely needs extensive repair.",
    "multiple": "Several detections in this frame.",
}


@dataclass(frozen=True)
class DetectionSummary:
    """Categorical description of one detection within its frame.

    Attributes:
        confidence_level: 'very_high', 'high', 'medium' or 'low'.
        size_category: 'large', 'medium' or 'small'.
        shape: 'elongated', 'vertical' or 'regular'.
        position: 'critical', 'center', 'near' or None.
        context: 'widespread', 'multiple' or None (single detection).
        area_percent: Box area as a percentage of the image area.
    """

    confidence_level: str
    size_category: str
    shape: str
    position: Optional[str]
    context: Optional[str]
    area_percent: float

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "confidence_level": self.confidence_level,
            "size_category": self.size_category,
            "shape": self.shape,
            "position": self.position,
            "context": self.context,
            "area_percent": round(self.area_percent, 4),
        }


def _area_percent(detection: Detection, image_width: int, image_height: int) -> float:
    image_area = image_width * image_height
    if image_area <= 0:
        return 0.0
    return detection.area / image_area * 100.0


def _first_match(value: float, table, fallback: str) -> str:
    for threshold, name in table:
        if value >= threshold:
            return name
    return fallback


def summarize_detection(
    detection: Detection,
    batch: Sequence[Detection],
    image_width: int,
    image_height: int,
) -> DetectionSummary:
    """Classify a detection within its frame."""
    area_percent = _area_percent(detection, image_width, image_height)

    confidence_level = _first_match(detection.confidence, _CONFIDENCE_LEVELS, "low")

    if area_percent > _LARGE_PERCENT:
        size_category = "large"
    elif area_percent > _MEDIUM_PERCENT:
        size_category = "medium"
    else:
        size_category = "small"

    aspect = detection.width / detection.height
    if aspect > _ELONGATED_RATIO:
        shape = "elongated"
    elif aspect < _VERTICAL_RATIO:
        shape = "vertical"
    else:
        shape = "regular"

    cx, cy = detection.center
    is_center = image_width * _CENTER_BAND[0] < cx < image_width * _CENTER_BAND[1]
    is_near = cy > image_height * _NEAR_EDGE
    if is_center and is_near:
        position = "critical"
    elif is_center:
        position = "center"
    elif is_near:
        position = "near"
    else:
        position = None

    if len(batch) > _WIDESPREAD_COUNT:
        context = "widespread"
    elif len(batch) > 1:
        context = "multiple"
    else:
        context = None

    return DetectionSummary(
        confidence_level=confidence_level,
        size_category=size_category,
        shape=shape,
        position=position,
        context=context,
        area_percent=area_percent,
    )


def describe_detection(
    detection: Detection,
    batch: Sequence[Detection],
    image_width: int,
    image_height: int,
) -> str:
    """Full multi-sentence description of a detection, one line per aspect."""
    summary = summarize_detection(detection, batch, image_width, image_height)

    lines: List[str] = [
        _CONFIDENCE_TEXT[summary.confidence_level].format(label=detection.label),
        _SIZE_TEXT[summary.size_category],
        _SHAPE_TEXT[summary.shape],
    ]
    if summary.position is not None:
        lines.append(_POSITION_TEXT[summary.position])
    if summary.context is not None:
        lines.append(_CONTEXT_TEXT[summary.context])

    return "\n".join(lines)


def short_description(detection: Detection, image_width: int, image_height: int) -> str:
    """One-line summary such as ``"Large • High confidence"``."""
    area_percent = _area_percent(detection, image_width, image_height)
    if area_percent > _LARGE_PERCENT:
        size = "Large"
    elif area_percent > _MEDIUM_PERCENT:
        size = "Medium"
    else:
        size = "Small"

    if detection.confidence >= 0.7:
        confidence = "High confidence"
    elif detection.confidence >= 0.5:
        confidence = "Medium confidence"
    else:
        confidence = "Needs verification"

    return f"{size} • {confidence}"
