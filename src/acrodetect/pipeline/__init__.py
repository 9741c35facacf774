"""Pipeline stages for form field detection and synthesis.

Stages, in processing order:
1. stage_validate - Pre-flight checks (opens, not encrypted, existing fields)
2. stage_render - Letterbox each page into a 1216x1216 canvas
3. stage_encode - RGBA pixels to a [1, 3, S, S] float32 tensor
4. stage_session - Model resolution and ONNX session cache
5. stage_decode - Raw model output to thresholded candidates
6. stage_nms - Per-class non-maximum suppression
7. stage_order - Reading order (rows top-to-bottom, then left-to-right)
8. stage_map - Canvas coordinates to PDF user space
9. stage_preview - Detections drawn over the page as PNG
10. stage_synth - Form field widgets written into the PDF

Inference (stages 3-7) runs behind the InferenceWorker; the orchestrator
sequences everything per page.
"""

from .orchestrator import PipelineOrchestrator, StatusCallback
from .stage_decode import decode_predictions, to_detection, to_detections
from .stage_encode import encode_buffer
from .stage_map import to_canvas, to_pdf
from .stage_nms import iou, non_max_suppression
from .stage_order import sort_reading_order
from .stage_preview import draw_detections, render_preview
from .stage_render import PageRasterizer, open_pdf
from .stage_session import MODEL_REGISTRY, ModelSpec, SessionCache, resolve_model_path
from .stage_synth import FieldSynthesizer, HeightRatioPolicy, MultilinePolicy
from .stage_validate import ensure_valid_pdf
from .worker import InferenceRequest, InferenceWorker, run_inference

__all__ = [
    # Orchestration
    "PipelineOrchestrator",
    "StatusCallback",
    "InferenceRequest",
    "InferenceWorker",
    "run_inference",
    # Validate / Render
    "ensure_valid_pdf",
    "open_pdf",
    "PageRasterizer",
    # Inference
    "encode_buffer",
    "MODEL_REGISTRY",
    "ModelSpec",
    "SessionCache",
    "resolve_model_path",
    "decode_predictions",
    "to_detection",
    "to_detections",
    "iou",
    "non_max_suppression",
    "sort_reading_order",
    # Mapping / Output
    "to_canvas",
    "to_pdf",
    "draw_detections",
    "render_preview",
    "FieldSynthesizer",
    "HeightRatioPolicy",
    "MultilinePolicy",
]
