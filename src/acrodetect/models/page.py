"""Page-level models: letterbox transform, raster frame and per-page result."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from pydantic import BaseModel, Field

from .detection import Detection


class PageTransform(BaseModel):
    """How a PDF page was scaled and centered into the square model canvas."""

    original_width: float = Field(..., gt=0, description="Page width in PDF points")
    original_height: float = Field(..., gt=0, description="Page height in PDF points")
    canvas_size: int = Field(..., gt=0, description="Side of the square canvas in pixels")
    offset_x: float = Field(..., ge=0, description="Horizontal padding on each side")
    offset_y: float = Field(..., ge=0, description="Vertical padding on each side")

    class Config:
        frozen = True

    @property
    def content_width(self) -> float:
        """Width of the rendered page inside the canvas, in pixels."""
        return self.canvas_size - 2 * self.offset_x

    @property
    def content_height(self) -> float:
        """Height of the rendered page inside the canvas, in pixels."""
        return self.canvas_size - 2 * self.offset_y


@dataclass(frozen=True)
class RasterFrame:
    """A letterboxed page: ``canvas_size`` x ``canvas_size`` RGBA pixels.

    ``pixels`` has shape (S, S, 4) and dtype uint8.
    """

    page_index: int
    pixels: np.ndarray
    transform: PageTransform

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class PageResult(BaseModel):
    """Detections for one page plus what is needed to map them back."""

    page_index: int = Field(..., ge=0, description="0-indexed page number")
    detections: list[Detection] = Field(default_factory=list)
    rendered_preview_image: Optional[bytes] = Field(
        None, description="PNG of the canvas with detections drawn on it"
    )
    transform: PageTransform

    @property
    def mean_height(self) -> float:
        """Mean normalized height of this page's detections (0 when empty)."""
        if not self.detections:
            return 0.0
        return sum(d.bbox.height for d in self.detections) / len(self.detections)
