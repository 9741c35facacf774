"""Reading Order Stage - Sort detections top-to-bottom, left-to-right.

Detections whose top edges lie within a small band of each other are treated
as the same row and ordered by x. This is a single-column heuristic.
"""

from functools import cmp_to_key
from typing import Sequence

from acrodetect.models import Detection

# Normalized vertical distance under which two boxes share a row
ROW_EPSILON = 0.01


def _compare(a: Detection, b: Detection) -> int:
    dy = a.bbox.y - b.bbox.y
    if abs(dy) > ROW_EPSILON:
        return -1 if dy < 0 else 1
    dx = a.bbox.x - b.bbox.x
    if dx < 0:
        return -1
    if dx > 0:
        return 1
    return 0


def sort_reading_order(detections: Sequence[Detection]) -> list[Detection]:
    """Return detections in reading order (stable for equal keys)."""
    return sorted(detections, key=cmp_to_key(_compare))
