"""Image Analysis module for cortexview.

Provides a provider-agnostic interface for sending window captures
to multimodal LLMs and receiving their suggestions.

Public API:
    AnalysisProvider -- Abstract base class
    MockAnalysisProvider -- Offline simulated provider
    AnthropicProvider -- Claude API implementation (direct or Bedrock)
    OpenAIProvider -- OpenAI / OpenRouter implementation
"""

from cortexview.analysis.base import AnalysisError, AnalysisProvider
from cortexview.analysis.mock import MockAnalysisProvider

__all__ = [
    "AnalysisError",
    "AnalysisProvider",
    "AnthropicProvider",
    "MockAnalysisProvider",
    "OpenAIProvider",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "AnthropicProvider":
        from cortexview.analysis.anthropic import AnthropicProvider
        return AnthropicProvider
    if name == "OpenAIProvider":
        from cortexview.analysis.openai import OpenAIProvider
        return OpenAIProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
