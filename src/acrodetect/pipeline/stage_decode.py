"""Detection Decoding Stage - Raw model output to detections.

The model emits a tensor of shape [1, 4 + num_classes, num_anchors]. Each
anchor column holds (cx, cy, w, h) in canvas pixels followed by one score per
class. Decoding picks the best class per anchor, keeps anchors whose score is
strictly above the confidence threshold and normalizes boxes to [0, 1].
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np

from acrodetect.config import settings
from acrodetect.models import CLASS_NAMES, BoundingBox, Candidate, Detection, FieldType

logger = logging.getLogger(__name__)

# Scales the detected box height when converting to corner format; the box
# stays anchored at its bottom edge.
ADJUSTED_HEIGHT_FACTOR = 1.0

BOX_ROWS = 4


def class_label(class_id: int) -> Union[FieldType, str]:
    """FieldType for a known class index, ``class_{id}`` otherwise."""
    if 0 <= class_id < len(CLASS_NAMES):
        return CLASS_NAMES[class_id]
    return f"class_{class_id}"


def decode_predictions(
    output: np.ndarray,
    confidence_threshold: Optional[float] = None,
    target_size: Optional[int] = None,
) -> list[Candidate]:
    """Decode raw model output into thresholded candidates.

    Args:
        output: Model output, shape [1, 4 + C, N] or [4 + C, N]
        confidence_threshold: Minimum score, exclusive (default from settings)
        target_size: Canvas side used to normalize boxes (default from settings)

    Returns:
        Candidates in anchor order

    Raises:
        ValueError: If the output does not have at least one class row.
    """
    threshold = settings.confidence_threshold if confidence_threshold is None else confidence_threshold
    size = target_size or settings.target_size

    predictions = np.asarray(output, dtype=np.float32)
    if predictions.ndim == 3:
        predictions = predictions[0]
    if predictions.ndim != 2 or predictions.shape[0] <= BOX_ROWS:
        raise ValueError(f"Unexpected model output shape {np.shape(output)}")

    scores = predictions[BOX_ROWS:]
    # np.argmax returns the first index on ties
    class_ids = np.argmax(scores, axis=0)
    confidences = scores[class_ids, np.arange(scores.shape[1])]
    keep = np.flatnonzero(confidences > threshold)

    candidates = []
    for anchor in keep:
        cx, cy, w, h = (float(v) / size for v in predictions[:BOX_ROWS, anchor])
        candidates.append(
            Candidate(
                box=(cx, cy, w, h),
                class_id=int(class_ids[anchor]),
                confidence=float(confidences[anchor]),
            )
        )

    logger.debug(
        "Decoded %d candidates from %d anchors (%d classes)",
        len(candidates), scores.shape[1], scores.shape[0],
    )
    return candidates


def to_detection(candidate: Candidate) -> Detection:
    """Convert a center-format candidate into a corner-format Detection."""
    cx, cy, w, h = candidate.box
    adjusted_h = h * ADJUSTED_HEIGHT_FACTOR
    return Detection(
        field_type=class_label(candidate.class_id),
        bbox=BoundingBox(
            x=cx - w / 2,
            y=cy + h / 2 - adjusted_h,
            width=w,
            height=adjusted_h,
        ),
        confidence=min(max(candidate.confidence, 0.0), 1.0),
    )


def to_detections(candidates: Sequence[Candidate]) -> list[Detection]:
    return [to_detection(c) for c in candidates]
