"""
Postprocessing for the detection pipeline.

Responsibility:
    Parse the raw single-stage detector output tensor into a list of
    candidate Detection objects. Apply confidence thresholding,
    center-to-corner conversion, rescaling to the original image and
    boundary clamping.

Non-goals:
    - No suppression of overlapping boxes (see suppression).
    - No drawing, saving, or display logic.
    - No model loading or inference.

Hard-coded:
    - Output tensor layout: [1, C, N] with C >= 5, channel-major, i.e.
      all N center-x values, then all N center-y values, then widths,
      heights and objectness. Coordinates are in the square model input
      space (input_size x input_size), not normalized.
"""

import logging
from typing import List

import numpy as np

from pothole_heatmap.detection import Detection, RawOutputTensor
from pothole_heatmap.errors import MalformedTensorError

logger = logging.getLogger(__name__)

# Channel indices within the feature axis
_CX, _CY, _W, _H, _CONF = range(5)
_MIN_CHANNELS = 5


def decode_output(
    tensor: RawOutputTensor,
    image_width: int,
    image_height: int,
    confidence_threshold: float = 0.5,
    input_size: int = 640,
    min_box_size: float = 5.0,
    label: str = "pothole",
) -> List[Detection]:
    """Decode a raw output tensor into candidate detections.

    Args:
        tensor: Raw network output with shape [1, C, N].
        image_width: Original image width in pixels (for coordinate mapping).
        image_height: Original image height in pixels (for coordinate mapping).
        confidence_threshold: Minimum confidence to accept a candidate.
        input_size: Side length of the square model input space.
        min_box_size: Minimum clamped width/height in pixels; smaller
                      boxes are treated as noise.
        label: Label attached to every emitted detection.

    Returns:
        Candidate detections in tensor order. Empty list if nothing
        survives the thresholds.

    Raises:
        MalformedTensorError: If the tensor is not rank 3, has a batch
            other than 1, fewer than 5 channels, or a buffer whose size
            does not match its shape.
        ValueError: If image dimensions or input_size are not positive.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(
            f"Image dimensions must be positive, got {image_width}x{image_height}."
        )
    if input_size <= 0:
        raise ValueError(f"input_size must be positive, got {input_size}.")

    planes = _channel_planes(tensor)
    num_candidates = planes.shape[1]

    cx = planes[_CX]
    cy = planes[_CY]
    w = planes[_W]
    h = planes[_H]
    conf = planes[_CONF]

    # NaN confidences compare False and are dropped here
    keep = conf >= confidence_threshold
    above_threshold = int(np.count_nonzero(keep))

    scale_x = image_width / input_size
    scale_y = image_height / input_size

    x1 = np.clip((cx - w / 2) * scale_x, 0.0, image_width)
    y1 = np.clip((cy - h / 2) * scale_y, 0.0, image_height)
    x2 = np.clip((cx + w / 2) * scale_x, 0.0, image_width)
    y2 = np.clip((cy + h / 2) * scale_y, 0.0, image_height)

    box_w = x2 - x1
    box_h = y2 - y1
    # A side exactly min_box_size long survives
    keep &= (box_w >= min_box_size) & (box_h >= min_box_size)

    detections = [
        Detection(
            x=float(x1[i]),
            y=float(y1[i]),
            width=float(box_w[i]),
            height=float(box_h[i]),
            confidence=float(conf[i]),
            label=label,
        )
        for i in np.flatnonzero(keep)
    ]

    logger.debug(
        "Decoded %d candidates: %d above confidence %.2f, %d after size filter",
        num_candidates, above_threshold, confidence_threshold, len(detections),
    )
    return detections


def _channel_planes(tensor: RawOutputTensor) -> np.ndarray:
    """Validate the tensor layout and return its (C, N) channel planes."""
    shape = tuple(tensor.shape)
    if len(shape) != 3:
        raise MalformedTensorError(
            f"Expected a rank-3 output tensor [batch, channels, candidates], "
            f"got rank {len(shape)} with shape {list(shape)}."
        )

    batch, channels, num_candidates = shape
    if batch != 1:
        raise MalformedTensorError(
            f"Only batch size 1 is supported, got batch={batch}."
        )
    if channels < _MIN_CHANNELS:
        raise MalformedTensorError(
            f"Expected at least {_MIN_CHANNELS} channels "
            f"(cx, cy, w, h, confidence), got {channels}."
        )

    data = np.asarray(tensor.data, dtype=np.float64).reshape(-1)
    expected = batch * channels * num_candidates
    if data.size != expected:
        raise MalformedTensorError(
            f"Tensor buffer holds {data.size} values but shape {list(shape)} "
            f"requires {expected}."
        )

    return data.reshape(channels, num_candidates)
