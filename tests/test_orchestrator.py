"""End-to-end tests for the pipeline orchestrator."""

import fitz
import pytest
from pymupdf import mupdf

from acrodetect.models import ErrorCode, ProcessingStatus
from acrodetect.pipeline.orchestrator import PipelineOrchestrator
from conftest import TEST_CANVAS


@pytest.fixture
def make_orchestrator(session_cache, model_file):
    def build(**kwargs):
        options = dict(
            model_path=str(model_file),
            confidence_threshold=0.4,
            target_size=TEST_CANVAS,
            strip_existing=False,
            use_worker=True,
            render_previews=False,
            session_cache=session_cache,
        )
        options.update(kwargs)
        return PipelineOrchestrator(**options)
    return build


class TestDetect:
    """Tests for detection over whole documents."""

    @pytest.mark.parametrize("use_worker", [True, False])
    def test_single_page(self, make_orchestrator, pdf_bytes, use_worker):
        result = make_orchestrator(use_worker=use_worker).detect(pdf_bytes)

        assert result.ok
        report = result.data
        assert report.page_count == 1
        assert [d.label for d in report.pages[0].detections] == [
            "TextBox", "ChoiceButton", "Signature",
        ]
        assert report.pages[0].transform.canvas_size == TEST_CANVAS
        assert report.total_processing_time_ms > 0
        assert "Detected Fields: 3" in report.model_info

    def test_session_created_once_per_document(self, make_orchestrator, two_page_pdf_bytes, session_cache):
        orchestrator = make_orchestrator()
        orchestrator.detect(two_page_pdf_bytes)
        assert session_cache.factory_mock.call_count == 1

        orchestrator.detect(two_page_pdf_bytes)
        assert session_cache.factory_mock.call_count == 2

    def test_previews(self, make_orchestrator, pdf_bytes):
        result = make_orchestrator(render_previews=True).detect(pdf_bytes)
        assert result.data.pages[0].rendered_preview_image.startswith(b"\x89PNG")

    def test_model_load_failure(self, make_orchestrator, pdf_bytes, session_cache):
        session_cache.factory_mock.side_effect = RuntimeError("not an onnx file")
        result = make_orchestrator().detect(pdf_bytes)
        assert result.code is ErrorCode.MODEL_LOAD_FAILED

    def test_unreadable_pdf(self, make_orchestrator):
        result = make_orchestrator().detect(b"not a pdf")
        assert result.code is ErrorCode.PDF_LOAD_FAILED

    def test_invalid_threshold(self, make_orchestrator):
        with pytest.raises(ValueError):
            make_orchestrator(confidence_threshold=0.05)


class TestIterPages:
    """Tests for streaming page results."""

    def test_yields_each_page(self, make_orchestrator, two_page_pdf_bytes):
        results = list(make_orchestrator().iter_pages(two_page_pdf_bytes))
        assert [r.data.page_index for r in results] == [0, 1]

    def test_stop_early(self, make_orchestrator, two_page_pdf_bytes, mock_session):
        pages = make_orchestrator().iter_pages(two_page_pdf_bytes)
        first = next(pages)
        pages.close()

        assert first.ok
        assert mock_session.run.call_count == 1

    def test_status_callback(self, make_orchestrator, two_page_pdf_bytes):
        events = []
        orchestrator = make_orchestrator(
            on_status=lambda status, page, count: events.append((status, page, count))
        )
        orchestrator.detect(two_page_pdf_bytes)

        assert events == [
            (ProcessingStatus.RENDERING, 0, 2),
            (ProcessingStatus.DETECTING, 0, 2),
            (ProcessingStatus.RENDERING, 1, 2),
            (ProcessingStatus.DETECTING, 1, 2),
        ]

    def test_mupdf_render_error(self, make_orchestrator, pdf_bytes, monkeypatch):
        def broken_pixmap(*args, **kwargs):
            raise mupdf.FzErrorFormat("syntax error in content stream")

        monkeypatch.setattr(fitz.Page, "get_pixmap", broken_pixmap)
        result = make_orchestrator().detect(pdf_bytes)

        assert not result.ok
        assert result.code is ErrorCode.CANVAS_RENDER_FAILED

    def test_unexpected_page_error(self, make_orchestrator, two_page_pdf_bytes, monkeypatch):
        """An unexpected exception ends the stream with one Err."""
        def explode(*args, **kwargs):
            raise KeyError("missing resource")

        monkeypatch.setattr(PipelineOrchestrator, "_process_page", explode)
        results = list(make_orchestrator().iter_pages(two_page_pdf_bytes))

        assert len(results) == 1
        assert results[0].code is ErrorCode.UNKNOWN_ERROR
        assert results[0].message.startswith("Page 0: KeyError")


class TestRun:
    """Tests for the full validate -> detect -> synthesize run."""

    def test_end_to_end(self, make_orchestrator, pdf_bytes):
        statuses = []
        orchestrator = make_orchestrator(on_status=lambda status, *_: statuses.append(status))

        result = orchestrator.run(pdf_bytes)

        assert result.ok
        synthesis = result.data.synthesis
        assert [f.name for f in synthesis.fields] == ["textbox_0", "choicebutton_0", "signature_0"]

        pdf_doc = fitz.open(stream=synthesis.pdf_bytes, filetype="pdf")
        names = sorted(w.field_name for page in pdf_doc for w in page.widgets())
        pdf_doc.close()
        assert names == ["choicebutton_0", "signature_0", "textbox_0"]

        assert statuses[0] is ProcessingStatus.PENDING
        assert ProcessingStatus.SYNTHESIZING in statuses
        assert statuses[-1] is ProcessingStatus.COMPLETE

    def test_validation_failure(self, make_orchestrator, encrypted_pdf_bytes):
        result = make_orchestrator().run(encrypted_pdf_bytes)
        assert result.code is ErrorCode.PDF_ENCRYPTED_OR_MALFORMED

    def test_existing_fields_reported(self, make_orchestrator, form_pdf_bytes):
        result = make_orchestrator(strip_existing=True).run(form_pdf_bytes)
        assert result.data.validation.warning.fields_count == 1
        assert result.data.synthesis.flattened_existing

    def test_inference_failure(self, make_orchestrator, pdf_bytes, mock_session):
        mock_session.run.side_effect = RuntimeError("boom")
        result = make_orchestrator().run(pdf_bytes)
        assert result.code is ErrorCode.INFERENCE_FAILED
