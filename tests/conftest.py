"""Pytest configuration and fixtures."""

from unittest.mock import MagicMock

import fitz
import numpy as np
import pytest

from acrodetect.models import BoundingBox, Detection, FieldType, PageResult, PageTransform
from acrodetect.pipeline.stage_session import SessionCache

# Small canvas keeps rendering and encoding fast in tests
TEST_CANVAS = 320


def build_pdf(sizes=((612, 792),), with_field=False) -> bytes:
    """Create an in-memory PDF with one page per (width, height)."""
    pdf_doc = fitz.open()
    for width, height in sizes:
        page = pdf_doc.new_page(width=width, height=height)
        page.insert_text((72, 72), "Name:", fontsize=12)
        if with_field:
            widget = fitz.Widget()
            widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
            widget.field_name = "existing_name"
            widget.rect = fitz.Rect(120, 60, 300, 80)
            page.add_widget(widget)
    data = pdf_doc.tobytes()
    pdf_doc.close()
    return data


def make_output(predictions, num_classes=3):
    """Build a raw model output tensor.

    ``predictions`` is a list of (cx, cy, w, h, class_id, score) in canvas pixels.
    """
    output = np.zeros((1, 4 + num_classes, max(len(predictions), 1)), dtype=np.float32)
    for i, (cx, cy, w, h, class_id, score) in enumerate(predictions):
        output[0, :4, i] = (cx, cy, w, h)
        output[0, 4 + class_id, i] = score
    return output


def make_detection(field_type, x, y, w, h, confidence=0.9):
    return Detection(
        field_type=field_type,
        bbox=BoundingBox(x=x, y=y, width=w, height=h),
        confidence=confidence,
    )


@pytest.fixture
def pdf_bytes():
    """A single US Letter page."""
    return build_pdf()


@pytest.fixture
def two_page_pdf_bytes():
    return build_pdf(sizes=((612, 792), (842, 595)))


@pytest.fixture
def form_pdf_bytes():
    """A page that already carries one text field."""
    return build_pdf(with_field=True)


@pytest.fixture
def encrypted_pdf_bytes():
    pdf_doc = fitz.open()
    pdf_doc.new_page()
    data = pdf_doc.tobytes(
        encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user"
    )
    pdf_doc.close()
    return data


@pytest.fixture
def letter_transform():
    """Letterbox transform of a 612x792 page into the test canvas."""
    content_width = 612 * TEST_CANVAS / 792
    return PageTransform(
        original_width=612,
        original_height=792,
        canvas_size=TEST_CANVAS,
        offset_x=(TEST_CANVAS - content_width) / 2,
        offset_y=0,
    )


@pytest.fixture
def three_field_predictions():
    """Non-overlapping TextBox, ChoiceButton and Signature, top to bottom."""
    return [
        (100, 60, 120, 20, 0, 0.92),
        (60, 160, 16, 16, 1, 0.81),
        (200, 260, 120, 30, 2, 0.77),
    ]


@pytest.fixture
def mock_session(three_field_predictions):
    """Inference session stub returning three predictions."""
    session = MagicMock()
    session.run.return_value = [make_output(three_field_predictions)]
    return session


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "detector.onnx"
    path.write_bytes(b"onnx")
    return path


@pytest.fixture
def session_cache(mock_session, tmp_path):
    """SessionCache whose factory hands out ``mock_session``."""
    factory = MagicMock(return_value=mock_session)
    cache = SessionCache(
        providers=["CPUExecutionProvider"],
        cache_dir=tmp_path / "models",
        session_factory=factory,
    )
    cache.factory_mock = factory
    return cache


@pytest.fixture
def page_result(letter_transform):
    """One page with a text box, a checkbox and a signature."""
    return PageResult(
        page_index=0,
        transform=letter_transform,
        detections=[
            make_detection(FieldType.TEXT_BOX, 0.15, 0.15, 0.35, 0.05),
            make_detection(FieldType.CHOICE_BUTTON, 0.2, 0.4, 0.05, 0.05),
            make_detection(FieldType.SIGNATURE, 0.45, 0.75, 0.35, 0.08),
        ],
    )
