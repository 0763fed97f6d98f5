"""
Axis-aligned box geometry.

Pure functions over anything exposing ``x, y, width, height`` (a Box or
a Detection). No validation beyond numeric guards: degenerate input
yields 0, never an exception or NaN.
"""

import math
from typing import NamedTuple


class Box(NamedTuple):
    """Plain top-left/size box, used where no Detection is needed."""

    x: float
    y: float
    width: float
    height: float


def intersection_over_union(a, b) -> float:
    """Return the overlap area of two boxes divided by their union area.

    Symmetric in its arguments and bounded to [0.0, 1.0]. Returns 0.0
    when the boxes do not overlap or the union area is not positive.
    """
    a_x2 = a.x + a.width
    a_y2 = a.y + a.height
    b_x2 = b.x + b.width
    b_y2 = b.y + b.height

    # Areas use the same corner differences as the intersection so that
    # IoU(a, a) is exactly 1.0.
    area_a = max(0.0, a_x2 - a.x) * max(0.0, a_y2 - a.y)
    area_b = max(0.0, b_x2 - b.x) * max(0.0, b_y2 - b.y)

    inter_w = max(0.0, min(a_x2, b_x2) - max(a.x, b.x))
    inter_h = max(0.0, min(a_y2, b_y2) - max(a.y, b.y))
    intersection = inter_w * inter_h

    union = area_a + area_b - intersection
    if union <= 0.0 or intersection <= 0.0:
        return 0.0

    return min(1.0, intersection / union)


def center_distance(a, b) -> float:
    """Euclidean distance between the centers of two boxes."""
    dx = (b.x + b.width / 2) - (a.x + a.width / 2)
    dy = (b.y + b.height / 2) - (a.y + a.height / 2)
    return math.hypot(dx, dy)
