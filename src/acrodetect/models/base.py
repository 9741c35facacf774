"""Base models and common types for form field detection."""

from enum import Enum

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    """Field classes emitted by the detection model, in model class-index order."""

    TEXT_BOX = "TextBox"
    CHOICE_BUTTON = "ChoiceButton"
    SIGNATURE = "Signature"


# Class index -> FieldType. The order is fixed by the model's training labels.
CLASS_NAMES: tuple[FieldType, ...] = (
    FieldType.TEXT_BOX,
    FieldType.CHOICE_BUTTON,
    FieldType.SIGNATURE,
)


class ProcessingStatus(str, Enum):
    """Stage reported by the orchestrator while a document is processed."""

    PENDING = "pending"
    VALIDATING = "validating"
    RENDERING = "rendering"
    DETECTING = "detecting"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    FAILED = "failed"


class BoundingBox(BaseModel):
    """Corner-format box: top-left x/y plus width/height.

    Coordinates are normalized to [0, 1] of the square model canvas unless
    ``unit`` says otherwise. Y grows downward.
    """

    x: float = Field(..., description="Left edge X coordinate")
    y: float = Field(..., description="Top edge Y coordinate")
    width: float = Field(..., description="Box width")
    height: float = Field(..., description="Box height")
    unit: str = Field(default="normalized", description="'normalized' (0-1) or 'pixels'")

    class Config:
        frozen = True

    @property
    def x2(self) -> float:
        """Right edge X coordinate."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge Y coordinate."""
        return self.y + self.height

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def to_pixels(self, canvas_size: int) -> "BoundingBox":
        """Scale a normalized box onto a square canvas of ``canvas_size`` pixels."""
        if self.unit == "pixels":
            return self
        return BoundingBox(
            x=self.x * canvas_size,
            y=self.y * canvas_size,
            width=self.width * canvas_size,
            height=self.height * canvas_size,
            unit="pixels",
        )
