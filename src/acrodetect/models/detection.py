"""Detection-level models, from raw candidates to synthesized fields."""

from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, Field

from .base import BoundingBox, FieldType


@dataclass(frozen=True)
class Candidate:
    """A thresholded anchor before suppression.

    ``box`` is (cx, cy, w, h), normalized to the canvas size.
    """

    box: tuple[float, float, float, float]
    class_id: int
    confidence: float


class Detection(BaseModel):
    """One detected form field on a page, in corner format."""

    field_type: Union[FieldType, str] = Field(
        ...,
        union_mode="left_to_right",
        description="Model class; a plain string for classes outside FieldType",
    )
    bbox: BoundingBox
    confidence: float = Field(..., ge=0.0, le=1.0)

    class Config:
        frozen = True

    @property
    def label(self) -> str:
        """Type label as a plain string ("TextBox", "ChoiceButton", ...)."""
        if isinstance(self.field_type, FieldType):
            return self.field_type.value
        return str(self.field_type)

    @property
    def is_supported(self) -> bool:
        return isinstance(self.field_type, FieldType)


class MappedRect(BaseModel):
    """Rectangle in PDF user space (origin bottom-left, units are points)."""

    x: float
    y: float
    width: float
    height: float

    class Config:
        frozen = True

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height


class SynthesizedField(BaseModel):
    """An interactive field that was written into the output PDF."""

    name: str = Field(..., description="Unique field name, e.g. textbox_0")
    field_type: FieldType
    page_index: int = Field(..., ge=0)
    rect: MappedRect
    font_size: float = Field(default=0.0, ge=0.0)
    multiline: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
