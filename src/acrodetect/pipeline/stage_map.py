"""Coordinate Mapping Stage - Canvas space to PDF user space and back.

Detections are normalized to the square letterboxed canvas with the origin at
the top-left. PDF user space uses points with the origin at the bottom-left.
The mapping removes the letterbox padding, rescales to the page size and
flips the Y axis.
"""

from typing import Optional

import fitz  # PyMuPDF

from acrodetect.models import BoundingBox, MappedRect, PageTransform


def to_pdf(
    bbox: BoundingBox,
    transform: PageTransform,
    page_height: Optional[float] = None,
) -> MappedRect:
    """Map a normalized canvas box to a PDF user-space rectangle.

    Args:
        bbox: Normalized corner-format box
        transform: Letterbox metadata recorded when the page was rendered
        page_height: Height used for the Y flip (defaults to the original height)
    """
    size = transform.canvas_size
    content_w = transform.content_width
    content_h = transform.content_height

    pdf_x = (bbox.x * size - transform.offset_x) / content_w * transform.original_width
    pdf_y = (bbox.y * size - transform.offset_y) / content_h * transform.original_height
    pdf_w = bbox.width * size / content_w * transform.original_width
    pdf_h = bbox.height * size / content_h * transform.original_height

    flip_height = transform.original_height if page_height is None else page_height
    return MappedRect(
        x=pdf_x,
        y=flip_height - (pdf_y + pdf_h),
        width=pdf_w,
        height=pdf_h,
    )


def to_canvas(
    rect: MappedRect,
    transform: PageTransform,
    page_height: Optional[float] = None,
) -> BoundingBox:
    """Inverse of :func:`to_pdf`."""
    size = transform.canvas_size
    content_w = transform.content_width
    content_h = transform.content_height
    flip_height = transform.original_height if page_height is None else page_height

    pdf_y = flip_height - rect.y - rect.height
    canvas_x = rect.x / transform.original_width * content_w + transform.offset_x
    canvas_y = pdf_y / transform.original_height * content_h + transform.offset_y
    canvas_w = rect.width / transform.original_width * content_w
    canvas_h = rect.height / transform.original_height * content_h

    return BoundingBox(
        x=canvas_x / size,
        y=canvas_y / size,
        width=canvas_w / size,
        height=canvas_h / size,
    )


def to_page_rect(rect: MappedRect, page: fitz.Page) -> fitz.Rect:
    """Convert a user-space rectangle into PyMuPDF page coordinates (top-left origin)."""
    user_rect = fitz.Rect(rect.x, rect.y, rect.x2, rect.y2)
    return user_rect * page.transformation_matrix
