"""Mock analysis provider for development and tests.

Returns a simulated markdown analysis without contacting any backend,
after an optional artificial delay that honors cancellation.
"""

from __future__ import annotations

import asyncio
import logging

from cortexview.analysis.base import AnalysisProvider
from cortexview.domain.models import AnalysisRequest, AnalysisResponse

logger = logging.getLogger(__name__)

MOCK_TOKEN_USAGE = 42


class MockAnalysisProvider(AnalysisProvider):
    """Simulated provider; never sends data anywhere."""

    name = "mock"

    def __init__(self, delay_seconds: float = 2.0) -> None:
        super().__init__(model="mock")
        self._delay = delay_seconds

    async def analyze_image(self, request: AnalysisRequest) -> AnalysisResponse:
        if self._delay > 0:
            await asyncio.sleep(self._delay)

        lines = [
            f"### Analysis of '{request.window_title}'",
            "",
            "I see you are looking at a window. Here is a simulated analysis "
            "based on the screenshot provided:",
            "",
            f"* **Window Title:** {request.window_title}",
            "* **Content Detected:** Standard user interface elements.",
            f"* **OCR Text Length:** {len(request.ocr_text)} chars",
            f"* **Image Size:** {len(request.image_data) // 1024} KB",
            "",
            "> **Note:** This is a mock response. No data was sent to a backend.",
        ]
        logger.debug("Mock analysis for %r", request.window_title)
        return AnalysisResponse.success("\n".join(lines), token_usage=MOCK_TOKEN_USAGE)
