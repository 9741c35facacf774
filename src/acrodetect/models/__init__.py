"""Models for the form field detection pipeline.

Pydantic models describe everything that leaves a pipeline stage (detections,
page results, reports). Per-page buffers that hold numpy arrays are frozen
dataclasses and never leave the page loop.

Model hierarchy:
- DetectionReport -> PageResult -> Detection
- SynthesisResult -> SynthesizedField
"""

from .base import (
    CLASS_NAMES,
    BoundingBox,
    FieldType,
    ProcessingStatus,
)
from .detection import (
    Candidate,
    Detection,
    MappedRect,
    SynthesizedField,
)
from .document import (
    DetectionReport,
    ProcessingResult,
    SynthesisResult,
    ValidationReport,
    ValidationWarning,
)
from .page import (
    PageResult,
    PageTransform,
    RasterFrame,
)
from .result import (
    Err,
    ErrorCode,
    Ok,
    PipelineError,
    Result,
)

__all__ = [
    # Base types
    "CLASS_NAMES",
    "BoundingBox",
    "FieldType",
    "ProcessingStatus",
    # Detection
    "Candidate",
    "Detection",
    "MappedRect",
    "SynthesizedField",
    # Page
    "PageResult",
    "PageTransform",
    "RasterFrame",
    # Document
    "DetectionReport",
    "ProcessingResult",
    "SynthesisResult",
    "ValidationReport",
    "ValidationWarning",
    # Results
    "Err",
    "ErrorCode",
    "Ok",
    "PipelineError",
    "Result",
]
