"""
Non-maximum suppression for decoded candidates.

Responsibility:
    Remove lower-confidence boxes that overlap an already accepted,
    higher-confidence box by more than the IoU threshold.

Non-goals:
    - No class-aware grouping (single label domain).
    - No soft-NMS or score decay.
"""

import logging
from typing import List, Sequence

import numpy as np

from pothole_heatmap.detection import Detection
from pothole_heatmap.geometry import intersection_over_union

logger = logging.getLogger(__name__)


def non_max_suppression(
    candidates: Sequence[Detection],
    iou_threshold: float = 0.4,
) -> List[Detection]:
    """Greedy, confidence-sorted non-maximum suppression.

    Candidates are visited in descending confidence order (ties keep
    their input order). Each visited, not-yet-suppressed candidate is
    accepted and suppresses every later candidate whose IoU with it is
    strictly greater than ``iou_threshold``.

    Args:
        candidates: Candidate detections. Not modified.
        iou_threshold: Overlap above which a later candidate is dropped.

    Returns:
        Accepted detections in descending confidence order.
    """
    # sorted() is stable, also with reverse=True
    order = sorted(
        range(len(candidates)),
        key=lambda i: candidates[i].confidence,
        reverse=True,
    )
    ranked = [candidates[i] for i in order]
    alive = np.ones(len(ranked), dtype=bool)

    accepted: List[Detection] = []
    for rank, best in enumerate(ranked):
        if not alive[rank]:
            continue
        accepted.append(best)

        for later in range(rank + 1, len(ranked)):
            if not alive[later]:
                continue
            if intersection_over_union(best, ranked[later]) > iou_threshold:
                alive[later] = False

    logger.debug(
        "NMS (iou_threshold=%.2f): %d candidates -> %d detections",
        iou_threshold, len(ranked), len(accepted),
    )
    return accepted
