"""Abstract base class for window capture sources.

All capture implementations must conform to this interface, enabling
the pipeline to swap between live screen capture and file-based test
sources without changing the rest of the code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from cortexview.domain.models import WindowRect

logger = logging.getLogger(__name__)


class WindowCaptureSource(ABC):
    """Abstract interface for capturing a single window as PNG bytes.

    Window handles are platform-specific integers (an ``HWND`` on
    Windows). Implementations run any blocking grab in an executor so
    the event loop stays responsive and the call can be cancelled.

    Example usage::

        capture = ScreenWindowCapture()
        png_bytes = await capture.capture_window(hwnd)
    """

    def __init__(self) -> None:
        self._capture_count: int = 0

    @property
    def capture_count(self) -> int:
        """Number of successful captures made by this source."""
        return self._capture_count

    @abstractmethod
    async def capture_window(self, window_handle: int) -> bytes:
        """Capture the window's current contents.

        Returns:
            PNG-encoded image bytes.

        Raises:
            CaptureError: If the handle is invalid or the window has
                no visible area.
        """
        ...

    @abstractmethod
    def get_window_rect(self, window_handle: int) -> WindowRect:
        """Return the window's screen rectangle.

        Raises:
            CaptureError: If the handle is invalid.
        """
        ...


class CaptureError(Exception):
    """Raised when window capture fails."""
