"""Image processing utilities for cortexview.

Shared image decoding, encoding, and reduction functions used by the
capture, detection, and analysis modules. Captures travel through the
pipeline as encoded PNG bytes; these helpers convert at the edges.
"""

from __future__ import annotations

import base64
import io
import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# Luminosity weights applied to (R, G, B).
LUMA_WEIGHTS = np.array([0.3, 0.59, 0.11], dtype=np.float64)


def decode_image_bytes(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) to a BGR numpy array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Failed to decode image bytes")
    return image


def encode_png(image: np.ndarray) -> bytes:
    """Encode a numpy image array (BGR, OpenCV format) to PNG bytes."""
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image to PNG")
    return buffer.tobytes()


def pil_to_png_bytes(image: Image.Image) -> bytes:
    """Encode a PIL Image to PNG bytes."""
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def downsample_to_grayscale(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Shrink a BGR image to ``width`` x ``height`` luminance cells.

    Uses area interpolation so every source pixel contributes to its
    cell, then applies the 0.3/0.59/0.11 luminosity weighting.

    Returns:
        A ``(height, width)`` uint8 array.
    """
    resized = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    rgb = resized[:, :, ::-1].astype(np.float64)
    gray = rgb @ LUMA_WEIGHTS
    return np.clip(gray, 0, 255).astype(np.uint8)
