"""Tensor Encoding Stage - Pixel buffer to model input tensor.

Converts interleaved RGBA bytes into the planar float32 layout the
detection model expects: shape [1, 3, H, W], values in [0, 1], alpha dropped.
"""

from typing import Union

import numpy as np

CHANNELS = 4


def encode_buffer(buffer: Union[bytes, np.ndarray], width: int, height: int) -> np.ndarray:
    """Encode a flat RGBA buffer of ``width * height * 4`` bytes.

    Raises:
        ValueError: If the buffer size does not match the given dimensions.
    """
    data = np.frombuffer(buffer, dtype=np.uint8) if isinstance(buffer, (bytes, bytearray)) else buffer
    expected = width * height * CHANNELS
    if data.size != expected:
        raise ValueError(
            f"Pixel buffer holds {data.size} bytes, expected {expected} "
            f"for a {width}x{height} RGBA image"
        )
    pixels = data.reshape(height, width, CHANNELS)
    rgb = pixels[..., :3].astype(np.float32) / 255.0
    return np.ascontiguousarray(rgb.transpose(2, 0, 1)[np.newaxis, ...])
