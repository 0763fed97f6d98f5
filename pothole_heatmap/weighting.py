"""
Per-detection importance weights for the density heatmap.

A weight blends three terms:

    weight = 0.4 * confidence + 0.3 * size + 0.3 * proximity

    - confidence: the detection's own score, already in [0, 1].
    - size: bounding-box area relative to the image, saturating at 20%
      of the image and floored at 0.3.
    - proximity: a step function of the distance to the nearest other
      detection, so clustered detections count for more.

Weights are a pure function of one batch snapshot. They are recomputed
for every render and never stored on the detections.
"""

from typing import List, Sequence

import numpy as np

from pothole_heatmap.detection import Detection
from pothole_heatmap.geometry import center_distance

_CONFIDENCE_SHARE = 0.4
_SIZE_SHARE = 0.3
_PROXIMITY_SHARE = 0.3

_SIZE_SATURATION_RATIO = 0.2
_SIZE_FLOOR = 0.3

# (distance upper bound in pixels, factor), checked in order
_PROXIMITY_STEPS = ((100.0, 1.5), (300.0, 1.2), (500.0, 1.0))
_PROXIMITY_FAR = 0.7
_PROXIMITY_ALONE = 1.0


def size_weight(detection: Detection, image_width: int, image_height: int) -> float:
    """Area ratio scaled so 20% of the image saturates at 1.0, floored at 0.3."""
    image_area = image_width * image_height
    if image_area <= 0:
        return _SIZE_FLOOR
    ratio = detection.area / image_area
    return min(1.0, max(_SIZE_FLOOR, ratio / _SIZE_SATURATION_RATIO))


def proximity_factor(min_distance: float) -> float:
    """Map the distance to the nearest neighbour onto the proximity step."""
    for bound, factor in _PROXIMITY_STEPS:
        if min_distance < bound:
            return factor
    return _PROXIMITY_FAR


def proximity_weight(detection: Detection, batch: Sequence[Detection]) -> float:
    """Proximity factor of ``detection`` relative to the rest of ``batch``.

    Other detections are identified by object identity, so an equal but
    distinct detection elsewhere in the batch still counts as a neighbour.
    A batch with no other detection yields 1.0.
    """
    if len(batch) <= 1:
        return _PROXIMITY_ALONE

    distances = [
        center_distance(detection, other)
        for other in batch
        if other is not detection
    ]
    if not distances:
        return _PROXIMITY_ALONE
    return proximity_factor(min(distances))


def combine_weight(confidence: float, size: float, proximity: float) -> float:
    """Weighted sum of the three terms."""
    return (
        _CONFIDENCE_SHARE * confidence
        + _SIZE_SHARE * size
        + _PROXIMITY_SHARE * proximity
    )


def detection_weight(
    detection: Detection,
    batch: Sequence[Detection],
    image_width: int,
    image_height: int,
) -> float:
    """Importance weight of one detection within its batch."""
    return combine_weight(
        detection.confidence,
        size_weight(detection, image_width, image_height),
        proximity_weight(detection, batch),
    )


def compute_weights(
    batch: Sequence[Detection],
    image_width: int,
    image_height: int,
) -> List[float]:
    """Weights for every detection in ``batch``, in batch order.

    Neighbours are excluded by position rather than identity, which
    makes the result independent of how the batch was assembled.
    """
    if not batch:
        return []

    if len(batch) == 1:
        nearest = [None]
    else:
        centers = np.array([d.center for d in batch], dtype=np.float64)
        deltas = centers[:, None, :] - centers[None, :, :]
        distances = np.hypot(deltas[..., 0], deltas[..., 1])
        np.fill_diagonal(distances, np.inf)
        nearest = distances.min(axis=1).tolist()

    weights = []
    for det, min_distance in zip(batch, nearest):
        proximity = (
            _PROXIMITY_ALONE if min_distance is None
            else proximity_factor(min_distance)
        )
        weights.append(combine_weight(
            det.confidence,
            size_weight(det, image_width, image_height),
            proximity,
        ))
    return weights
