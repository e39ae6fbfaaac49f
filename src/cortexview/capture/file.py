"""File-based capture source.

Re-reads an image file on every capture, so editing or replacing the
file between captures simulates a changing window. Useful for headless
runs and for exercising the pipeline without a display.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import cv2

from cortexview.capture.base import CaptureError, WindowCaptureSource
from cortexview.domain.models import WindowRect
from cortexview.utils.imaging import decode_image_bytes, encode_png

logger = logging.getLogger(__name__)


class ImageFileCapture(WindowCaptureSource):
    """Serves the contents of an image file as the "window" capture.

    The window handle is ignored. Non-PNG files are re-encoded to PNG.
    """

    def __init__(self, image_path: Path | str) -> None:
        super().__init__()
        self._image_path = Path(image_path)

    @property
    def image_path(self) -> Path:
        return self._image_path

    async def capture_window(self, window_handle: int) -> bytes:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read_sync)
        self._capture_count += 1
        return data

    def get_window_rect(self, window_handle: int) -> WindowRect:
        image = cv2.imread(str(self._image_path), cv2.IMREAD_COLOR)
        if image is None:
            raise CaptureError(f"Cannot read image file {self._image_path}")
        height, width = image.shape[:2]
        return WindowRect(x=0, y=0, width=width, height=height)

    def _read_sync(self) -> bytes:
        try:
            data = self._image_path.read_bytes()
        except OSError as e:
            raise CaptureError(f"Cannot read image file {self._image_path}: {e}") from e

        if self._image_path.suffix.lower() == ".png":
            return data
        try:
            return encode_png(decode_image_bytes(data))
        except ValueError as e:
            raise CaptureError(f"Unsupported image file {self._image_path}: {e}") from e
