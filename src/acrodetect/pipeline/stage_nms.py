"""Non-Maximum Suppression Stage - Drop duplicate same-class candidates.

Greedy suppression: candidates are visited in descending confidence order
(ties keep their original order) and every remaining candidate of the same
class that overlaps a kept one by more than the IoU threshold is discarded.
Overlaps across classes are never suppressed.
"""

from typing import Optional, Sequence

from acrodetect.config import settings
from acrodetect.models import Candidate

Box = tuple[float, float, float, float]


def center_to_corners(box: Box) -> Box:
    """(cx, cy, w, h) -> (x1, y1, x2, y2)."""
    cx, cy, w, h = box
    return (cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)


def iou(box_a: Box, box_b: Box) -> float:
    """Intersection over union of two center-format boxes."""
    ax1, ay1, ax2, ay2 = center_to_corners(box_a)
    bx1, by1, bx2, by2 = center_to_corners(box_b)

    inter_w = min(ax2, bx2) - max(ax1, bx1)
    inter_h = min(ay2, by2) - max(ay1, by1)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    intersection = inter_w * inter_h
    union = (ax2 - ax1) * (ay2 - ay1) + (bx2 - bx1) * (by2 - by1) - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def non_max_suppression(
    candidates: Sequence[Candidate],
    iou_threshold: Optional[float] = None,
) -> list[Candidate]:
    """Greedy per-class NMS.

    Args:
        candidates: Thresholded candidates in decoder order
        iou_threshold: Overlap above which a same-class candidate is dropped

    Returns:
        Kept candidates, highest confidence first
    """
    threshold = settings.iou_threshold if iou_threshold is None else iou_threshold

    # sorted() is stable, so equal confidences keep decoder order
    remaining = sorted(candidates, key=lambda c: c.confidence, reverse=True)
    kept: list[Candidate] = []

    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [
            c for c in remaining
            if c.class_id != best.class_id or iou(best.box, c.box) <= threshold
        ]

    return kept
