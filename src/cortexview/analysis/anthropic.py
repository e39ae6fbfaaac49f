"""Anthropic Claude analysis provider implementation.

Uses the Anthropic Python SDK to send window captures to Claude models
with vision capability. The same provider can talk to AWS Bedrock by
passing ``aws_region``, in which case the SDK's Bedrock client is used
with the default AWS credential chain.
"""

from __future__ import annotations

import logging

from cortexview.analysis.base import AnalysisError, AnalysisProvider, build_user_message
from cortexview.domain.models import AnalysisRequest, AnalysisResponse

logger = logging.getLogger(__name__)


class AnthropicProvider(AnalysisProvider):
    """Analysis provider using Anthropic's Messages API.

    Example usage::

        provider = AnthropicProvider(
            api_key="sk-ant-...",
            model="claude-sonnet-4-20250514",
        )
        response = await provider.analyze_image(request)

        bedrock = AnthropicProvider(
            model="anthropic.claude-3-sonnet-20240229-v1:0",
            aws_region="us-east-1",
        )
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-20250514",
        aws_region: str | None = None,
    ) -> None:
        """Initialize the Anthropic provider.

        Args:
            api_key: Anthropic API key. Ignored when ``aws_region`` is set.
            model: Model identifier (must support vision).
            aws_region: Route requests through AWS Bedrock in this region.
        """
        super().__init__(model=model)
        self._api_key = api_key
        self._aws_region = aws_region
        self._client = None  # anthropic.AsyncAnthropic or AsyncAnthropicBedrock
        self.name = "bedrock" if aws_region else "anthropic"

    async def _ensure_client(self) -> None:
        """Lazily initialize the Anthropic async client."""
        if self._client is not None:
            return
        if self._aws_region:
            from anthropic import AsyncAnthropicBedrock
            self._client = AsyncAnthropicBedrock(aws_region=self._aws_region)
        else:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self._api_key)
        logger.info("Initialized %s client (model=%s)", self.name, self._model)

    async def analyze_image(self, request: AnalysisRequest) -> AnalysisResponse:
        """Analyze a window capture using Claude's vision API."""
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": request.media_type,
                    "data": self._encode_image(request),
                },
            },
            {"type": "text", "text": build_user_message(request)},
        ]

        try:
            await self._ensure_client()
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                top_p=request.top_p,
                system=request.system_prompt,
                messages=[{"role": "user", "content": content}],
            )
            text_blocks = [block.text for block in response.content if block.type == "text"]
            if not text_blocks:
                raise AnalysisError("No text content returned", provider=self.name)
            usage = response.usage
            tokens = (usage.input_tokens + usage.output_tokens) if usage else 0
            return AnalysisResponse.success("".join(text_blocks), token_usage=tokens)
        except Exception as e:
            return self._failure(e)

    async def health_check(self) -> bool:
        """Send a minimal text-only message to verify credentials."""
        try:
            await self._ensure_client()
            await self._client.messages.create(
                model=self._model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False
