"""Tagged success/error results passed between pipeline components.

Every component boundary returns ``Ok(data)`` or ``Err(code, message)``.
Inside a component, failures are raised as :class:`PipelineError` and converted
with :meth:`Err.from_exception` where the component hands its result back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Failure kinds surfaced by the pipeline."""

    PDF_LOAD_FAILED = "pdf_load_failed"
    PDF_ENCRYPTED_OR_MALFORMED = "pdf_encrypted_or_malformed"
    PDF_PROCESSING_FAILED = "pdf_processing_failed"
    CANVAS_RENDER_FAILED = "canvas_render_failed"
    MODEL_LOAD_FAILED = "model_load_failed"
    INFERENCE_FAILED = "inference_failed"
    INVALID_DETECTION_RESULT = "invalid_detection_result"
    FIELD_CREATION_FAILED = "field_creation_failed"
    PDF_SAVE_FAILED = "pdf_save_failed"
    UNKNOWN_ERROR = "unknown_error"


class PipelineError(Exception):
    """A failure raised inside a component, tagged with its error code."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying ``data``."""

    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed result carrying an error code and a diagnostic message."""

    code: ErrorCode
    message: str

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_exception(cls, exc: BaseException, context: str = "") -> "Err":
        """Convert an exception into an ``Err``.

        ``PipelineError`` keeps its own code; anything else becomes
        ``unknown_error`` with the exception type and message.
        """
        if isinstance(exc, PipelineError):
            return cls(code=exc.code, message=exc.message)
        prefix = f"{context}: " if context else ""
        return cls(
            code=ErrorCode.UNKNOWN_ERROR,
            message=f"{prefix}{type(exc).__name__}: {exc}",
        )

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}


Result = Union[Ok[T], Err]
