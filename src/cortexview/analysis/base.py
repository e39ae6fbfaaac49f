"""Abstract base class for image analysis providers.

All provider implementations must conform to this interface, enabling
the system to swap between backends (a local mock, OpenAI-compatible
endpoints, Anthropic directly or through AWS Bedrock) without changing
the rest of the pipeline.

Providers report backend failures as failed :class:`AnalysisResponse`
values rather than raising, so the orchestrator sees one uniform result
type. Cancellation is not a backend failure and always propagates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from cortexview.domain.models import AnalysisRequest, AnalysisResponse
from cortexview.utils.imaging import bytes_to_base64

logger = logging.getLogger(__name__)


class AnalysisProvider(ABC):
    """Abstract interface for multimodal analysis backends."""

    name: str = "base"

    def __init__(self, model: str) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    async def analyze_image(self, request: AnalysisRequest) -> AnalysisResponse:
        """Analyze a captured window image.

        Returns:
            A successful response with the suggestion text and token
            usage, or a failed response carrying the backend's error.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is reachable and authenticated."""
        return True

    def _encode_image(self, request: AnalysisRequest) -> str:
        return bytes_to_base64(request.image_data)

    def _failure(self, error: Exception) -> AnalysisResponse:
        logger.error("%s analysis failed: %s", self.name, error)
        return AnalysisResponse.failure(f"{self.name} error: {error}")


def build_user_message(request: AnalysisRequest) -> str:
    """Text accompanying the image in the user turn."""
    lines = [
        f"Window Title: {request.window_title}",
        f"Context: {request.user_prompt}",
    ]
    if request.ocr_text.strip():
        lines.append(f"Extracted Text: {request.ocr_text}")
    return "\n".join(lines) + "\n"


class AnalysisError(Exception):
    """Raised by providers for malformed backend responses."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider
