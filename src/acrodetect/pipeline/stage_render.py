"""PDF Rendering Stage - Letterbox PDF pages into the square model canvas.

This is the first stage of the detection pipeline. Uses PyMuPDF (fitz) to
render each page at the largest scale that fits inside the canvas, then
centers the result on a white square with Pillow. The scale/offset metadata
recorded here is what the coordinate mapper later inverts.
"""

import logging
from typing import Optional

import fitz  # PyMuPDF
import numpy as np
from PIL import Image

from acrodetect.config import settings
from acrodetect.models import (
    Err,
    ErrorCode,
    Ok,
    PageTransform,
    PipelineError,
    RasterFrame,
    Result,
)

logger = logging.getLogger(__name__)

BACKGROUND = (255, 255, 255, 255)


def open_pdf(pdf_bytes: bytes) -> fitz.Document:
    """Open a PDF held in memory.

    Raises:
        PipelineError: ``pdf_load_failed`` when the bytes cannot be parsed,
            ``pdf_encrypted_or_malformed`` when the document needs a password.
    """
    try:
        pdf_doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise PipelineError(
            ErrorCode.PDF_LOAD_FAILED,
            f"Failed to load PDF: {type(exc).__name__}: {exc}",
        ) from exc

    if pdf_doc.needs_pass:
        pdf_doc.close()
        raise PipelineError(
            ErrorCode.PDF_ENCRYPTED_OR_MALFORMED,
            "PDF is encrypted and cannot be processed",
        )
    if pdf_doc.page_count == 0:
        pdf_doc.close()
        raise PipelineError(ErrorCode.PDF_LOAD_FAILED, "PDF has no pages")
    return pdf_doc


def letterbox_scale(page_width: float, page_height: float, target_size: int) -> float:
    """Largest scale at which the page fits inside a ``target_size`` square."""
    return min(target_size / page_width, target_size / page_height)


class PageRasterizer:
    """Renders PDF pages into fixed-size, letterboxed RGBA frames."""

    def __init__(self, target_size: Optional[int] = None):
        """Initialize rasterizer.

        Args:
            target_size: Side of the square canvas in pixels (default from settings)
        """
        self.target_size = target_size or settings.target_size

    def rasterize(self, page: fitz.Page) -> RasterFrame:
        """Render one page into a letterboxed frame.

        Raises:
            PipelineError: ``canvas_render_failed`` if MuPDF cannot render the page.
        """
        size = self.target_size
        page_width = page.rect.width
        page_height = page.rect.height
        if page_width <= 0 or page_height <= 0:
            raise PipelineError(
                ErrorCode.CANVAS_RENDER_FAILED,
                f"Page {page.number} has an empty page box",
            )

        scale = letterbox_scale(page_width, page_height, size)
        try:
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            rendered = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
        except Exception as exc:
            raise PipelineError(
                ErrorCode.CANVAS_RENDER_FAILED,
                f"Failed to render page {page.number}: {type(exc).__name__}: {exc}",
            ) from exc

        # MuPDF rounds the pixmap outward, so its last row/column is only partly
        # covered. Drop it when needed so the padding is whole pixels on both sides.
        width = min(rendered.width, size)
        height = min(rendered.height, size)
        width -= (size - width) % 2
        height -= (size - height) % 2
        if (width, height) != rendered.size:
            rendered = rendered.crop((0, 0, width, height))

        offset_x = (size - width) // 2
        offset_y = (size - height) // 2

        canvas = Image.new("RGBA", (size, size), BACKGROUND)
        canvas.paste(rendered, (offset_x, offset_y))

        pixels = np.array(canvas, dtype=np.uint8)
        pixels.flags.writeable = False

        transform = PageTransform(
            original_width=page_width,
            original_height=page_height,
            canvas_size=size,
            offset_x=float(offset_x),
            offset_y=float(offset_y),
        )
        logger.debug(
            "Rendered page %d at scale %.4f (offset %d, %d)",
            page.number, scale, offset_x, offset_y,
        )
        return RasterFrame(page_index=page.number, pixels=pixels, transform=transform)

    def render_page(self, page: fitz.Page) -> Result[RasterFrame]:
        """Render one page, returning ``Ok(frame)`` or ``Err``."""
        try:
            return Ok(self.rasterize(page))
        except PipelineError as exc:
            return Err.from_exception(exc)
