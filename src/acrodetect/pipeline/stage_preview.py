"""Preview Stage - Draw detections over the rendered page.

Each detection gets a translucent fill and a coloured label bar above it
showing the field type and confidence. The result is PNG-encoded so it can
be stored on the PageResult or written to disk.
"""

import io
from typing import Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from acrodetect.models import Detection, FieldType, RasterFrame

FILL_COLOR = (164, 220, 248, 145)
LABEL_COLORS = {
    FieldType.TEXT_BOX: (59, 130, 246, 255),
    FieldType.CHOICE_BUTTON: (16, 185, 129, 255),
    FieldType.SIGNATURE: (245, 158, 11, 255),
}
UNKNOWN_LABEL_COLOR = (107, 114, 128, 255)
LABEL_TEXT_COLOR = (255, 255, 255, 255)

LABEL_BAR_HEIGHT = 12.5
LABEL_PADDING_X = 3
LABEL_PADDING_Y = 3


def label_text(detection: Detection) -> str:
    return f"{detection.label} ({detection.confidence * 100:.0f}%)"


def draw_detections(image: Image.Image, detections: Sequence[Detection]) -> Image.Image:
    """Return a copy of ``image`` with the detections drawn on it."""
    base = image.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default()
    # Preview images are the square model canvas
    canvas_size = base.width

    for det in detections:
        box = det.bbox.to_pixels(canvas_size)
        x0, y0, x1, y1 = box.x, box.y, box.x2, box.y2
        label_color = LABEL_COLORS.get(det.field_type, UNKNOWN_LABEL_COLOR)

        draw.rectangle([x0, y0, x1, y1], fill=FILL_COLOR)
        draw.rectangle([x0, y0 - LABEL_BAR_HEIGHT, x1, y0], fill=label_color)
        draw.text(
            (x0 + LABEL_PADDING_X, y0 - LABEL_BAR_HEIGHT + 1),
            label_text(det),
            fill=LABEL_TEXT_COLOR,
            font=font,
        )

    return Image.alpha_composite(base, overlay)


def render_preview(frame: RasterFrame, detections: Sequence[Detection]) -> bytes:
    """Draw detections on a raster frame and encode the result as PNG."""
    image = Image.fromarray(np.asarray(frame.pixels, dtype=np.uint8))
    buffer = io.BytesIO()
    draw_detections(image, detections).save(buffer, format="PNG")
    return buffer.getvalue()
