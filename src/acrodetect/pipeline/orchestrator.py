"""Pipeline Orchestrator - Sequences the stages for one document.

validate -> render -> infer (worker) -> preview -> synthesize

Pages are processed one at a time. ``iter_pages`` yields each page's result
as soon as it is ready so a caller can stop early; ``detect`` collects them
into a DetectionReport and ``run`` does the whole job.
"""

import logging
import time
from typing import Callable, Generator, Optional

import fitz  # PyMuPDF

from acrodetect.config import settings
from acrodetect.models import (
    DetectionReport,
    Err,
    Ok,
    PageResult,
    PipelineError,
    ProcessingResult,
    ProcessingStatus,
    Result,
    SynthesisResult,
    ValidationReport,
)
from acrodetect.pipeline.stage_preview import render_preview
from acrodetect.pipeline.stage_render import PageRasterizer, open_pdf
from acrodetect.pipeline.stage_session import SessionCache
from acrodetect.pipeline.stage_synth import FieldSynthesizer, MultilinePolicy
from acrodetect.pipeline.stage_validate import ensure_valid_pdf
from acrodetect.pipeline.worker import InferenceRequest, InferenceWorker, run_inference

logger = logging.getLogger(__name__)

# (status, page_index, page_count); page values are None outside the page loop
StatusCallback = Callable[[ProcessingStatus, Optional[int], Optional[int]], None]


class PipelineOrchestrator:
    """Runs form field detection and synthesis over a PDF."""

    def __init__(
        self,
        model_path: Optional[str] = None,
        confidence_threshold: Optional[float] = None,
        iou_threshold: Optional[float] = None,
        target_size: Optional[int] = None,
        strip_existing: Optional[bool] = None,
        use_worker: Optional[bool] = None,
        render_previews: Optional[bool] = None,
        session_cache: Optional[SessionCache] = None,
        multiline_policy: Optional[MultilinePolicy] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        """Initialize orchestrator.

        Any argument left as None falls back to the matching setting.

        Args:
            model_path: Registry alias, local .onnx path or URL
            confidence_threshold: Minimum detection score, in [0.1, 1.0]
            iou_threshold: NMS overlap threshold
            target_size: Side of the square model canvas
            strip_existing: Flatten pre-existing form fields before synthesis
            use_worker: Run inference on a background worker thread
            render_previews: Attach a PNG preview to each PageResult
            session_cache: Shared session cache (one is created if omitted)
            multiline_policy: Multiline decision for text boxes
            on_status: Progress callback
        """
        self.model_path = model_path or settings.model_path
        self.confidence_threshold = (
            settings.confidence_threshold if confidence_threshold is None else confidence_threshold
        )
        if not 0.1 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0.1, 1.0]")
        self.iou_threshold = settings.iou_threshold if iou_threshold is None else iou_threshold
        self.use_worker = settings.use_worker if use_worker is None else use_worker
        self.render_previews = (
            settings.render_previews if render_previews is None else render_previews
        )
        self.cache = session_cache or SessionCache()
        self.rasterizer = PageRasterizer(target_size)
        self.synthesizer = FieldSynthesizer(strip_existing, multiline_policy)
        self.on_status = on_status

    def _notify(
        self,
        status: ProcessingStatus,
        page_index: Optional[int] = None,
        page_count: Optional[int] = None,
    ) -> None:
        if page_index is None:
            logger.info("Status: %s", status.value)
        else:
            logger.info("Status: %s (page %d/%d)", status.value, page_index + 1, page_count)
        if self.on_status is not None:
            self.on_status(status, page_index, page_count)

    def validate(self, pdf_bytes: bytes) -> Result[ValidationReport]:
        self._notify(ProcessingStatus.VALIDATING)
        return ensure_valid_pdf(pdf_bytes)

    def _process_page(
        self,
        page: fitz.Page,
        page_count: int,
        worker: Optional[InferenceWorker],
    ) -> Result[PageResult]:
        index = page.number
        self._notify(ProcessingStatus.RENDERING, index, page_count)
        rendered = self.rasterizer.render_page(page)
        if not rendered.ok:
            return rendered
        frame = rendered.data

        self._notify(ProcessingStatus.DETECTING, index, page_count)
        request = InferenceRequest.from_frame(
            frame,
            model_path=self.model_path,
            confidence_threshold=self.confidence_threshold,
            is_first_page=index == 0,
        )
        if worker is not None:
            inferred = worker.infer(request)
        else:
            inferred = run_inference(request, self.cache, self.iou_threshold)
        if not inferred.ok:
            return inferred

        preview = render_preview(frame, inferred.data) if self.render_previews else None
        return Ok(
            PageResult(
                page_index=index,
                detections=inferred.data,
                rendered_preview_image=preview,
                transform=frame.transform,
            )
        )

    def iter_pages(self, pdf_bytes: bytes) -> Generator[Result[PageResult], None, None]:
        """Detect fields page by page.

        Yields one result per page and stops after the first ``Err``. Closing
        the generator early stops the loop once the current page is done.
        """
        try:
            pdf_doc = open_pdf(pdf_bytes)
        except PipelineError as exc:
            yield Err.from_exception(exc)
            return

        worker = InferenceWorker(self.cache, self.iou_threshold) if self.use_worker else None
        page_count = pdf_doc.page_count
        try:
            for page in pdf_doc:
                try:
                    result = self._process_page(page, page_count, worker)
                except Exception as exc:
                    result = Err.from_exception(exc, context=f"Page {page.number}")
                yield result
                if not result.ok:
                    return
        finally:
            if worker is not None:
                worker.close()
            pdf_doc.close()

    def detect(self, pdf_bytes: bytes) -> Result[DetectionReport]:
        """Run detection over every page and aggregate the results."""
        start = time.perf_counter()
        pages: list[PageResult] = []
        for result in self.iter_pages(pdf_bytes):
            if not result.ok:
                self._notify(ProcessingStatus.FAILED)
                return result
            pages.append(result.data)

        elapsed_ms = (time.perf_counter() - start) * 1000
        report = DetectionReport(
            pages=pages,
            page_count=len(pages),
            total_processing_time_ms=elapsed_ms,
            model_identifier=self.model_path,
            confidence_threshold=self.confidence_threshold,
        )
        logger.info(
            "Detected %d fields on %d pages in %.0f ms",
            report.total_fields, report.page_count, elapsed_ms,
        )
        return Ok(report)

    def apply_fields(
        self,
        pdf_bytes: bytes,
        detection: Result[DetectionReport],
    ) -> Result[SynthesisResult]:
        self._notify(ProcessingStatus.SYNTHESIZING)
        return self.synthesizer.synthesize(pdf_bytes, detection)

    def run(self, pdf_bytes: bytes) -> Result[ProcessingResult]:
        """Validate, detect and synthesize in one call."""
        self._notify(ProcessingStatus.PENDING)

        validation = self.validate(pdf_bytes)
        if not validation.ok:
            self._notify(ProcessingStatus.FAILED)
            return validation

        detection = self.detect(pdf_bytes)
        if not detection.ok:
            return detection

        synthesis = self.apply_fields(pdf_bytes, detection)
        if not synthesis.ok:
            self._notify(ProcessingStatus.FAILED)
            return synthesis

        self._notify(ProcessingStatus.COMPLETE)
        return Ok(
            ProcessingResult(
                validation=validation.data,
                detection=detection.data,
                synthesis=synthesis.data,
            )
        )
