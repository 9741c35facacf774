"""Validation Stage - Pre-flight checks on the source PDF.

Makes sure the document opens, is not password protected and survives a
save round trip. Existing form fields are reported as a warning, since new
fields will be added alongside them unless they are flattened.
"""

import logging

from acrodetect.models import (
    Err,
    ErrorCode,
    Ok,
    PipelineError,
    Result,
    ValidationReport,
    ValidationWarning,
)
from acrodetect.pipeline.stage_render import open_pdf
from acrodetect.pipeline.stage_synth import count_existing_fields

logger = logging.getLogger(__name__)

HAS_ACROFIELDS = "pdf_has_acrofields"


def ensure_valid_pdf(pdf_bytes: bytes) -> Result[ValidationReport]:
    """Validate a PDF held in memory.

    Returns:
        ``Ok(ValidationReport)``; ``Err`` with ``pdf_encrypted_or_malformed``
        when the document cannot be opened and ``pdf_processing_failed`` when
        it cannot be re-serialized.
    """
    try:
        pdf_doc = open_pdf(pdf_bytes)
    except PipelineError as exc:
        return Err(ErrorCode.PDF_ENCRYPTED_OR_MALFORMED, exc.message)

    try:
        pdf_doc.tobytes()
        fields_count = count_existing_fields(pdf_doc)
        page_count = pdf_doc.page_count
    except Exception as exc:
        return Err(ErrorCode.PDF_PROCESSING_FAILED, f"{type(exc).__name__}: {exc}")
    finally:
        pdf_doc.close()

    warning = None
    if fields_count > 0:
        logger.warning("PDF already contains %d form fields", fields_count)
        warning = ValidationWarning(code=HAS_ACROFIELDS, fields_count=fields_count)

    return Ok(ValidationReport(page_count=page_count, warning=warning))
