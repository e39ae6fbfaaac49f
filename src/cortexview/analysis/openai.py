"""OpenAI-compatible analysis provider implementation.

Works with OpenAI, OpenRouter, and any OpenAI-compatible API
by setting a custom base_url.
"""

from __future__ import annotations

import logging

from cortexview.analysis.base import AnalysisError, AnalysisProvider, build_user_message
from cortexview.domain.models import AnalysisRequest, AnalysisResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(AnalysisProvider):
    """Analysis provider using OpenAI's chat completions API.

    Also works with OpenRouter and other OpenAI-compatible endpoints.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
    ) -> None:
        super().__init__(model=model)
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI
        kwargs = {"api_key": self._api_key}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    async def analyze_image(self, request: AnalysisRequest) -> AnalysisResponse:
        """Analyze a window capture using the vision API."""
        b64_image = self._encode_image(request)

        messages = [
            {"role": "system", "content": request.system_prompt},
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:{request.media_type};base64,{b64_image}",
                            "detail": "high",
                        },
                    },
                    {
                        "type": "text",
                        "text": build_user_message(request),
                    },
                ],
            },
        ]

        try:
            await self._ensure_client()
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                top_p=request.top_p,
                messages=messages,
            )
            if not response.choices:
                raise AnalysisError("No choices returned", provider=self.name)
            raw_text = response.choices[0].message.content or "No content returned."
            tokens = response.usage.total_tokens if response.usage else 0
            logger.debug("Analysis raw response: %s", raw_text[:200])
            return AnalysisResponse.success(raw_text, token_usage=tokens)
        except Exception as e:
            return self._failure(e)

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            await self._ensure_client()
            await self._client.models.list()
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False
