"""Document-level models."""

from typing import Optional

from pydantic import BaseModel, Field

from .detection import SynthesizedField
from .page import PageResult


class DetectionReport(BaseModel):
    """Detections for every processed page of one document."""

    pages: list[PageResult] = Field(default_factory=list)
    page_count: int = Field(..., ge=0, description="Pages in the source document")
    total_processing_time_ms: float = Field(default=0.0, ge=0.0)
    model_identifier: str
    confidence_threshold: float = Field(..., ge=0.0, le=1.0)

    class Config:
        protected_namespaces = ()

    @property
    def total_fields(self) -> int:
        return sum(len(p.detections) for p in self.pages)

    @property
    def model_info(self) -> str:
        """Human-readable summary of the run."""
        return (
            f"Model: {self.model_identifier}\n"
            f"Detected Fields: {self.total_fields}\n"
            f"Confidence Threshold: {self.confidence_threshold}"
        )

    def counts_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for page in self.pages:
            for det in page.detections:
                counts[det.label] = counts.get(det.label, 0) + 1
        return counts


class SynthesisResult(BaseModel):
    """Output of field synthesis: the new PDF plus what was written into it."""

    pdf_bytes: bytes
    fields: list[SynthesizedField] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list, description="Type labels that were not synthesized"
    )
    flattened_existing: bool = False


class ValidationWarning(BaseModel):
    """Non-fatal finding about the source document."""

    code: str = Field(..., description="e.g. 'pdf_has_acrofields'")
    fields_count: int = Field(default=0, ge=0)


class ValidationReport(BaseModel):
    """Result of the pre-flight document check."""

    page_count: int = Field(..., ge=0)
    warning: Optional[ValidationWarning] = None

    @property
    def has_existing_fields(self) -> bool:
        return self.warning is not None and self.warning.code == "pdf_has_acrofields"


class ProcessingResult(BaseModel):
    """Everything produced by one full pipeline run."""

    validation: ValidationReport
    detection: DetectionReport
    synthesis: SynthesisResult
