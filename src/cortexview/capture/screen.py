"""Live window capture using Win32 window geometry and Pillow.

The window rectangle comes from ``user32.GetWindowRect`` and the pixels
from :func:`PIL.ImageGrab.grab` over that rectangle, so whatever is
on screen at those coordinates is captured (overlapping windows
included).
"""

from __future__ import annotations

import asyncio
import ctypes
import logging
import os

from PIL import ImageGrab

from cortexview.capture.base import CaptureError, WindowCaptureSource
from cortexview.domain.models import WindowRect
from cortexview.utils.imaging import pil_to_png_bytes

logger = logging.getLogger(__name__)


class ScreenWindowCapture(WindowCaptureSource):
    """Captures a top-level window by grabbing its screen rectangle.

    Only supported on Windows; other platforms raise :class:`CaptureError`
    from every call.
    """

    async def capture_window(self, window_handle: int) -> bytes:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._capture_sync, window_handle)
        self._capture_count += 1
        return data

    def get_window_rect(self, window_handle: int) -> WindowRect:
        if os.name != "nt":
            raise CaptureError("Window capture is only supported on Windows")
        from ctypes import wintypes

        user32 = ctypes.windll.user32
        rect = wintypes.RECT()
        if not user32.GetWindowRect(wintypes.HWND(window_handle), ctypes.byref(rect)):
            raise CaptureError("Failed to get window rectangle. Invalid window handle.")

        return WindowRect(
            x=rect.left,
            y=rect.top,
            width=rect.right - rect.left,
            height=rect.bottom - rect.top,
        )

    def _capture_sync(self, window_handle: int) -> bytes:
        """Synchronous grab (runs in thread pool)."""
        rect = self.get_window_rect(window_handle)
        if rect.is_empty:
            raise CaptureError(f"Invalid window dimensions: {rect.width}x{rect.height}")

        bbox = (rect.x, rect.y, rect.x + rect.width, rect.y + rect.height)
        try:
            screenshot = ImageGrab.grab(bbox=bbox, all_screens=True)
        except OSError as e:
            raise CaptureError(f"Screen grab failed: {e}") from e

        logger.debug("Captured window %s (%dx%d)", window_handle, rect.width, rect.height)
        return pil_to_png_bytes(screenshot)
