"""Capture change detection.

Provides a cheap local check that decides whether a new window capture
differs enough from the previous one to justify an analysis call.

The detector keeps a :class:`DetectorState` between calls: the SHA-256
digest of the previous capture's bytes (so byte-identical captures are
recognized without decoding) and a 64x36 grayscale grid of the previous
capture (so the changed fraction does not depend on capture resolution).
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

import cv2
import numpy as np

from cortexview.domain.models import DetectorState
from cortexview.utils.imaging import decode_image_bytes, downsample_to_grayscale

logger = logging.getLogger(__name__)

GRID_WIDTH = 64
GRID_HEIGHT = 36
# Per-cell brightness difference (0-255) treated as encoder/render jitter.
NOISE_THRESHOLD = 10


class DetectorInputError(ValueError):
    """Raised when the detector is given no image data."""


class OcrEngine(Protocol):
    """Anything that can pull text out of encoded image bytes."""

    def extract_text(self, image_data: bytes) -> str | None: ...


def is_significant_change(changed_fraction: float, threshold: float) -> bool:
    """Whether a changed fraction reaches the sensitivity threshold.

    Equality counts as significant.
    """
    return changed_fraction >= threshold


class ChangeDetector:
    """Reports how much each capture changed relative to the previous one.

    Not safe for concurrent use: callers must ensure a single writer
    (the orchestrator serializes access with its run lock).

    Example usage::

        detector = ChangeDetector()
        fraction = detector.compute_changed_fraction(png_bytes)
        if detector.is_significant_change(fraction, 0.10):
            ...
    """

    def __init__(
        self,
        grid_size: tuple[int, int] = (GRID_WIDTH, GRID_HEIGHT),
        noise_threshold: int = NOISE_THRESHOLD,
        ocr_engine: OcrEngine | None = None,
    ) -> None:
        self._grid_width, self._grid_height = grid_size
        self._noise_threshold = noise_threshold
        self._ocr_engine = ocr_engine
        self._state = DetectorState()

    @property
    def state(self) -> DetectorState:
        """Snapshot of the detector's memory (immutable)."""
        return self._state

    def compute_changed_fraction(self, image_data: bytes | None) -> float:
        """Return the fraction of grid cells that changed since the last call.

        The first call on a fresh detector returns 1.0. A call with bytes
        identical to the previous call returns 0.0 without decoding.

        Raises:
            DetectorInputError: If ``image_data`` is None or empty.
        """
        if not image_data:
            raise DetectorInputError("image_data must be non-empty")

        digest = hashlib.sha256(image_data).digest()
        previous = self._state

        if previous.last_hash is not None and previous.last_hash == digest:
            return 0.0

        grid = self._downsample(image_data)
        self._state = DetectorState(last_hash=digest, last_grid=grid)

        if previous.last_grid is None:
            return 1.0

        return self._fraction_changed(previous.last_grid, grid)

    def is_significant_change(self, changed_fraction: float, threshold: float) -> bool:
        return is_significant_change(changed_fraction, threshold)

    def try_extract_ocr_text(self, image_data: bytes) -> str | None:
        """Best-effort OCR. Returns None when no engine is configured or it fails."""
        if self._ocr_engine is None:
            return None
        try:
            return self._ocr_engine.extract_text(image_data) or None
        except Exception as e:
            logger.warning("OCR extraction failed: %s", e)
            return None

    def _downsample(self, image_data: bytes) -> np.ndarray:
        try:
            image = decode_image_bytes(image_data)
        except ValueError:
            # Undecodable captures yield an empty grid; only the hash
            # fast-path can compare them.
            logger.warning(
                "Could not decode %d-byte capture for pixel comparison", len(image_data)
            )
            return np.zeros((0, 0), dtype=np.uint8)
        return downsample_to_grayscale(image, self._grid_width, self._grid_height)

    def _fraction_changed(self, prev_grid: np.ndarray, curr_grid: np.ndarray) -> float:
        total = curr_grid.size
        if total == 0:
            return 0.0
        if prev_grid.shape != curr_grid.shape:
            return 1.0
        diff = cv2.absdiff(prev_grid, curr_grid)
        changed = np.count_nonzero(diff > self._noise_threshold)
        return changed / total
