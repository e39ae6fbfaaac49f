"""Change detection module for cortexview.

Decides whether a capture differs enough from the previous one to be
worth analyzing, and hosts the OCR extension point.

Public API:
    ChangeDetector -- Stateful capture comparator
    is_significant_change -- Pure threshold test
"""

from cortexview.detection.change import (
    ChangeDetector,
    DetectorInputError,
    OcrEngine,
    is_significant_change,
)

__all__ = ["ChangeDetector", "DetectorInputError", "OcrEngine", "is_significant_change"]
