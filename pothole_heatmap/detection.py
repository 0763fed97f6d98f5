"""
Data transfer objects for the detection pipeline.

This module defines the two records that cross the package boundary:

    - Detection: a single post-processed bounding box. Frozen, validated
      at construction, serializable.
    - RawOutputTensor: the materialized output of an external inference
      call (flat buffer + shape), as handed to the decoder.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation (that belongs in postprocessor).
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from pothole_heatmap.errors import InvalidGeometryError


@dataclass(frozen=True, slots=True)
class Detection:
    """A single detected object with bounding box and confidence score.

    Attributes:
        x: Top-left x coordinate (pixels, original image space).
        y: Top-left y coordinate (pixels, original image space).
        width: Box width in pixels. Must be positive.
        height: Box height in pixels. Must be positive.
        confidence: Detection confidence, clamped into [0.0, 1.0].
        label: Class identifier of the detected object.

    Raises:
        InvalidGeometryError: If any coordinate is not finite or the
            width/height is not positive.
        ValueError: If confidence is NaN.
    """

    x: float
    y: float
    width: float
    height: float
    confidence: float
    label: str

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise InvalidGeometryError(
                    f"Detection.{name} must be finite, got {value}."
                )
            object.__setattr__(self, name, value)

        if self.width <= 0 or self.height <= 0:
            raise InvalidGeometryError(
                f"Detection width and height must be positive, "
                f"got {self.width}x{self.height}."
            )

        confidence = float(self.confidence)
        if math.isnan(confidence):
            raise ValueError("Detection.confidence must not be NaN.")
        object.__setattr__(self, "confidence", min(1.0, max(0.0, confidence)))

    @property
    def x2(self) -> float:
        """Bottom-right x coordinate in pixels."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom-right y coordinate in pixels."""
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        """Bounding box center (cx, cy) in pixels."""
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def area(self) -> float:
        """Bounding box area in square pixels."""
        return self.width * self.height

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x": round(self.x, 4),
            "y": round(self.y, 4),
            "width": round(self.width, 4),
            "height": round(self.height, 4),
            "confidence": round(self.confidence, 4),
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, raw: dict, default_label: Optional[str] = None) -> "Detection":
        """Build a Detection from a dict produced by to_dict() or a client.

        Raises:
            KeyError: If a geometry field or the confidence is missing.
            ValueError: If no label is present and no default is given.
        """
        label = raw.get("label", default_label)
        if label is None:
            raise ValueError(
                f"Detection dict has no 'label' and no default label was given: {raw}"
            )
        return cls(
            x=raw["x"],
            y=raw["y"],
            width=raw["width"],
            height=raw["height"],
            confidence=raw["confidence"],
            label=str(label),
        )


@dataclass(frozen=True, eq=False)
class RawOutputTensor:
    """Raw detector output as produced by an external inference session.

    Attributes:
        data: Flat numeric buffer in row-major (C) order.
        shape: Declared tensor shape, expected [batch, channels, candidates].

    The record is not validated here; the decoder owns that contract and
    raises MalformedTensorError on a bad shape.
    """

    data: np.ndarray
    shape: Tuple[int, ...]

    @classmethod
    def from_array(cls, array) -> "RawOutputTensor":
        """Wrap an already-materialized array, keeping its shape."""
        arr = np.asarray(array)
        return cls(data=arr.reshape(-1), shape=tuple(int(d) for d in arr.shape))
