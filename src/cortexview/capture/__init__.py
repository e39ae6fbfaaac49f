"""Window Capture module for cortexview.

Provides capture of a tracked window as PNG bytes. The abstract base
class allows alternative capture implementations (e.g., file-based
testing).

Public API:
    WindowCaptureSource -- Abstract base class
    ScreenWindowCapture -- Win32 + Pillow screen grab
    ImageFileCapture -- Re-reads an image file per capture
"""

from cortexview.capture.base import CaptureError, WindowCaptureSource

__all__ = ["CaptureError", "ImageFileCapture", "ScreenWindowCapture", "WindowCaptureSource"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ScreenWindowCapture":
        from cortexview.capture.screen import ScreenWindowCapture
        return ScreenWindowCapture
    if name == "ImageFileCapture":
        from cortexview.capture.file import ImageFileCapture
        return ImageFileCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
