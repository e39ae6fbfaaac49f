"""Shared test fixtures for the cortexview test suite.

Provides common fixtures used across unit tests: encoded sample
captures, personas, and mock collaborators for the orchestrator.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np
import pytest

from cortexview.detection.change import ChangeDetector
from cortexview.domain.models import AnalysisResponse, Persona


def encode(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


# ---------------------------------------------------------------------------
# Image Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def black_png() -> bytes:
    """A 320x180 black PNG."""
    return encode(np.zeros((180, 320, 3), dtype=np.uint8))


@pytest.fixture
def white_png() -> bytes:
    """A 320x180 white PNG."""
    return encode(np.full((180, 320, 3), 255, dtype=np.uint8))


@pytest.fixture
def small_change_png() -> bytes:
    """A black 320x180 PNG with a small white square in one corner."""
    image = np.zeros((180, 320, 3), dtype=np.uint8)
    image[0:20, 0:20] = 255
    return encode(image)


# ---------------------------------------------------------------------------
# Persona Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_persona() -> Persona:
    """A valid persona for pipeline runs."""
    return Persona(
        name="Code Reviewer",
        system_prompt="You review code shown in the window.",
        temperature=0.3,
        top_p=0.9,
        max_tokens=512,
    )


# ---------------------------------------------------------------------------
# Mock Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_capture(black_png: bytes) -> MagicMock:
    """A capture source whose capture_window returns a black PNG."""
    mock = MagicMock()
    mock.capture_window = AsyncMock(return_value=black_png)
    return mock


@pytest.fixture
def mock_analyzer() -> MagicMock:
    """An analysis provider that always succeeds."""
    mock = MagicMock()
    mock.name = "mock"
    mock.analyze_image = AsyncMock(
        return_value=AnalysisResponse.success("Looks good.", token_usage=7)
    )
    return mock


@pytest.fixture
def mock_storage() -> MagicMock:
    """A storage collaborator that reports a stored path."""
    mock = MagicMock()
    mock.save_screenshot = AsyncMock(return_value="/captures/shot.png")
    mock.cleanup_old_files = AsyncMock(return_value=0)
    mock.purge_all = AsyncMock()
    return mock


@pytest.fixture
def mock_audit() -> MagicMock:
    mock = MagicMock()
    mock.log_interaction = AsyncMock()
    return mock


@pytest.fixture
def detector() -> ChangeDetector:
    return ChangeDetector()
