"""Field Synthesis Stage - Write interactive form fields into the PDF.

For every detection a PyMuPDF widget is created at the mapped location:
- TextBox -> text field, multiline when much taller than its neighbours
- ChoiceButton -> checkbox
- Signature -> single-line text field

Field names are ``{type}_{index}`` with one counter per type for the whole
document, so names stay unique across pages.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import fitz  # PyMuPDF

from acrodetect.config import settings
from acrodetect.models import (
    DetectionReport,
    Err,
    ErrorCode,
    FieldType,
    MappedRect,
    Ok,
    PageResult,
    PipelineError,
    Result,
    SynthesisResult,
    SynthesizedField,
)
from acrodetect.pipeline.stage_map import to_page_rect, to_pdf
from acrodetect.pipeline.stage_render import open_pdf

logger = logging.getLogger(__name__)

FONT_SIZE_MULTIPLIER = 1.0
MULTILINE_HEIGHT_THRESHOLD = 2.0
TEXT_COLOR = (0, 0, 0)


class MultilinePolicy(Protocol):
    """Decides whether a text box should accept multiple lines."""

    def is_multiline(self, height_ratio: float) -> bool:
        ...


@dataclass(frozen=True)
class HeightRatioPolicy:
    """Multiline when a box is at least ``threshold`` times the page's mean height."""

    threshold: float = MULTILINE_HEIGHT_THRESHOLD

    def is_multiline(self, height_ratio: float) -> bool:
        return height_ratio >= self.threshold


def field_name(field_type: FieldType, index: int) -> str:
    return f"{field_type.value.lower()}_{index}"


def count_existing_fields(pdf_doc: fitz.Document) -> int:
    return sum(1 for page in pdf_doc for _ in page.widgets())


class FieldSynthesizer:
    """Creates form field widgets from a detection report."""

    def __init__(
        self,
        strip_existing: Optional[bool] = None,
        multiline_policy: Optional[MultilinePolicy] = None,
    ):
        """Initialize synthesizer.

        Args:
            strip_existing: Flatten pre-existing form fields before adding new ones
            multiline_policy: Decides multiline text boxes (default: HeightRatioPolicy)
        """
        self.strip_existing = (
            settings.strip_existing_acro_fields if strip_existing is None else strip_existing
        )
        self.multiline_policy = multiline_policy or HeightRatioPolicy()

    def synthesize(
        self,
        pdf_bytes: bytes,
        detection: Union[DetectionReport, Result[DetectionReport]],
    ) -> Result[SynthesisResult]:
        """Add one widget per supported detection and return the new PDF.

        Args:
            pdf_bytes: The source document
            detection: A report, or the result of a detection run

        Returns:
            ``Ok(SynthesisResult)`` or ``Err``; no partial document is returned
        """
        if isinstance(detection, Err):
            return Err(
                ErrorCode.INVALID_DETECTION_RESULT,
                f"Detection result was not successful: {detection.message}",
            )
        report = detection.data if isinstance(detection, Ok) else detection

        try:
            pdf_doc = open_pdf(pdf_bytes)
        except PipelineError as exc:
            return Err(ErrorCode.PDF_LOAD_FAILED, exc.message)

        try:
            return Ok(self._apply(pdf_doc, report))
        except PipelineError as exc:
            return Err.from_exception(exc)
        except Exception as exc:
            return Err.from_exception(exc, context="Failed to apply form fields")
        finally:
            pdf_doc.close()

    def _apply(self, pdf_doc: fitz.Document, report: DetectionReport) -> SynthesisResult:
        flattened = self.strip_existing and self._flatten_existing(pdf_doc)

        counters: dict[FieldType, int] = {}
        fields: list[SynthesizedField] = []
        skipped: list[str] = []

        for page_result in report.pages:
            if not page_result.detections:
                continue
            if not 0 <= page_result.page_index < pdf_doc.page_count:
                raise PipelineError(
                    ErrorCode.INVALID_DETECTION_RESULT,
                    f"Detection refers to page {page_result.page_index}, "
                    f"document has {pdf_doc.page_count} pages",
                )
            page = pdf_doc[page_result.page_index]
            fields.extend(self._apply_page(pdf_doc, page, page_result, counters, skipped))

        try:
            output = pdf_doc.tobytes(garbage=1, deflate=True)
        except Exception as exc:
            raise PipelineError(
                ErrorCode.PDF_SAVE_FAILED,
                f"Failed to save PDF: {type(exc).__name__}: {exc}",
            ) from exc

        logger.info(
            "Synthesized %d fields (%d skipped)%s",
            len(fields), len(skipped), ", existing fields flattened" if flattened else "",
        )
        return SynthesisResult(
            pdf_bytes=output,
            fields=fields,
            skipped=skipped,
            flattened_existing=flattened,
        )

    def _apply_page(
        self,
        pdf_doc: fitz.Document,
        page: fitz.Page,
        page_result: PageResult,
        counters: dict[FieldType, int],
        skipped: list[str],
    ) -> list[SynthesizedField]:
        mean_height = page_result.mean_height
        page_height = page.rect.height
        created = []

        for detection in page_result.detections:
            if not detection.is_supported:
                logger.warning("Unsupported field type: %s", detection.label)
                skipped.append(detection.label)
                continue

            field_type = FieldType(detection.field_type)
            index = counters.get(field_type, 0)
            counters[field_type] = index + 1
            name = field_name(field_type, index)

            rect = to_pdf(detection.bbox, page_result.transform, page_height)
            height_ratio = detection.bbox.height / mean_height if mean_height > 0 else 1.0

            multiline = False
            if field_type is FieldType.TEXT_BOX:
                multiline = self.multiline_policy.is_multiline(height_ratio)
                font_size = rect.height / height_ratio if multiline else rect.height
            elif field_type is FieldType.SIGNATURE:
                font_size = rect.height
            else:
                font_size = 0.0
            font_size *= FONT_SIZE_MULTIPLIER

            try:
                self._add_widget(pdf_doc, page, name, field_type, rect, font_size, multiline)
            except Exception as exc:
                raise PipelineError(
                    ErrorCode.FIELD_CREATION_FAILED,
                    f"Failed to create field {name}: {type(exc).__name__}: {exc}",
                ) from exc

            created.append(
                SynthesizedField(
                    name=name,
                    field_type=field_type,
                    page_index=page_result.page_index,
                    rect=rect,
                    font_size=font_size,
                    multiline=multiline,
                    confidence=detection.confidence,
                )
            )

        return created

    def _add_widget(
        self,
        pdf_doc: fitz.Document,
        page: fitz.Page,
        name: str,
        field_type: FieldType,
        rect: MappedRect,
        font_size: float,
        multiline: bool,
    ) -> None:
        widget = fitz.Widget()
        widget.field_name = name
        widget.rect = to_page_rect(rect, page)
        widget.border_width = 0

        if field_type is FieldType.CHOICE_BUTTON:
            widget.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
        else:
            widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
            widget.text_fontsize = font_size
            widget.text_color = TEXT_COLOR
            if multiline:
                widget.field_flags |= fitz.PDF_TX_FIELD_IS_MULTILINE

        annot = page.add_widget(widget)
        # Empty appearance characteristics: no border or background colour
        pdf_doc.xref_set_key(annot.xref, "MK", "<<>>")

    def _flatten_existing(self, pdf_doc: fitz.Document) -> bool:
        """Bake existing form fields into page content; failures only log."""
        try:
            existing = count_existing_fields(pdf_doc)
            if existing == 0:
                return False
            pdf_doc.bake(annots=False, widgets=True)
        except Exception as exc:
            logger.warning(
                "Failed to flatten existing form fields: %s: %s", type(exc).__name__, exc
            )
            return False
        logger.info("Flattened %d existing form fields", existing)
        return True
