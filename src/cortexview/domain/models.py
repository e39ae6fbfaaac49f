"""Core domain models for the cortexview system.

These models represent the data flowing through one pipeline run:
the tracked window's geometry, the persona that shapes the analysis,
the request sent to the analysis backend, the response coming back,
and the audit record written once a response has been stored.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


FAILED_SUGGESTION_TEXT = "Analysis failed."

# Prepended to every analysis so the backend looks at the window content
# rather than the browser/editor chrome around it.
CONTEXT_PREAMBLE = (
    "This is a public technical image. "
    "Ignore browser address bars, interface buttons, and file paths. "
    "They are irrelevant context. "
    "Focus STRICTLY on the content/code and perform the task defined in the System Prompt."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_unit_range(value: float) -> bool:
    return 0.0 <= value <= 1.0


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PipelineStage(str, enum.Enum):
    """Stage of a single orchestrator invocation."""

    IDLE = "idle"
    CAPTURING = "capturing"
    GATE_CHECK = "gate_check"
    BUILDING = "building"
    ANALYZING = "analyzing"
    PERSISTING = "persisting"
    DONE = "done"  # Terminal: analysis succeeded
    FAILED = "failed"  # Terminal: any failure response


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class WindowRect(BaseModel):
    """Screen rectangle occupied by a window, origin at top-left."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(description="Left edge in screen pixels")
    y: int = Field(description="Top edge in screen pixels")
    width: int = Field(description="Width in pixels (may be <= 0 for minimized windows)")
    height: int = Field(description="Height in pixels (may be <= 0 for minimized windows)")

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class DetectorState(BaseModel):
    """Memory the change detector keeps between captures.

    Replaced wholesale after every comparison; never mutated in place.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    last_hash: bytes | None = Field(
        default=None, description="SHA-256 digest of the previous capture's bytes"
    )
    last_grid: np.ndarray | None = Field(
        default=None, description="Downsampled grayscale grid of the previous capture"
    )


# ---------------------------------------------------------------------------
# Persona / Analysis Models
# ---------------------------------------------------------------------------


class Persona(BaseModel):
    """A named system prompt plus the sampling parameters that go with it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Display name, also used in stored filenames")
    system_prompt: str = Field(description="System prompt defining the analyzer's behavior")
    temperature: float = Field(default=0.5, description="Sampling temperature (0-1)")
    top_p: float = Field(default=1.0, description="Nucleus sampling cutoff (0-1)")
    max_tokens: int = Field(default=1000, description="Maximum tokens in the response")

    def is_valid(self) -> bool:
        return (
            bool(self.name.strip())
            and bool(self.system_prompt.strip())
            and _in_unit_range(self.temperature)
            and _in_unit_range(self.top_p)
            and self.max_tokens > 0
        )

    def __str__(self) -> str:
        return self.name


class AnalysisRequest(BaseModel):
    """Everything the analysis backend needs to look at one capture."""

    model_config = ConfigDict(frozen=True)

    image_data: bytes = Field(description="Encoded image bytes")
    image_format: str = Field(default="PNG", description="Image encoding, e.g. PNG or JPEG")
    window_title: str = Field(description="Title of the captured window")
    system_prompt: str = Field(description="Persona system prompt")
    user_prompt: str = Field(default=CONTEXT_PREAMBLE, description="Context preamble for the user turn")
    ocr_text: str = Field(default="", description="OCR text extracted from the image, if any")
    temperature: float = Field(default=0.5)
    top_p: float = Field(default=1.0)
    max_tokens: int = Field(default=1000)

    @classmethod
    def for_persona(
        cls,
        image_data: bytes,
        window_title: str,
        persona: Persona,
        ocr_text: str | None = None,
        image_format: str = "PNG",
    ) -> AnalysisRequest:
        """Build a request carrying the persona's prompt and sampling parameters."""
        return cls(
            image_data=image_data,
            image_format=image_format,
            window_title=window_title,
            system_prompt=persona.system_prompt,
            user_prompt=CONTEXT_PREAMBLE,
            ocr_text=ocr_text or "",
            temperature=persona.temperature,
            top_p=persona.top_p,
            max_tokens=persona.max_tokens,
        )

    @property
    def media_type(self) -> str:
        return f"image/{self.image_format.lower()}"

    def is_valid(self) -> bool:
        return (
            len(self.image_data) > 0
            and bool(self.window_title.strip())
            and bool(self.system_prompt.strip())
            and _in_unit_range(self.temperature)
            and _in_unit_range(self.top_p)
            and self.max_tokens > 0
        )


class AnalysisResponse(BaseModel):
    """Outcome of one analysis attempt.

    Successful responses carry the suggestion text and no error message;
    failed responses carry an error message and a fixed placeholder text.
    Use :meth:`success` and :meth:`failure` rather than the constructor.
    """

    model_config = ConfigDict(frozen=True)

    is_success: bool
    suggestion_text: str
    error_message: str | None = None
    token_usage: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)
    image_path: str | None = Field(
        default=None, description="Where the analyzed capture was stored, if it was"
    )

    @classmethod
    def success(cls, suggestion_text: str, token_usage: int = 0) -> AnalysisResponse:
        return cls(
            is_success=True,
            suggestion_text=suggestion_text,
            token_usage=token_usage,
        )

    @classmethod
    def failure(cls, error_message: str) -> AnalysisResponse:
        return cls(
            is_success=False,
            suggestion_text=FAILED_SUGGESTION_TEXT,
            error_message=error_message,
        )

    def with_image_path(self, image_path: str | None) -> AnalysisResponse:
        if image_path is None:
            return self
        return self.model_copy(update={"image_path": image_path})


# ---------------------------------------------------------------------------
# Audit Models
# ---------------------------------------------------------------------------


class AuditEntry(BaseModel):
    """One line of the audit log, written after a stored analysis."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    persona: str = Field(description="Name of the persona used")
    image_path: str | None = Field(default=None, description="Stored capture path, if stored")
    token_usage: int = Field(default=0, ge=0)
    request_context: str = Field(default="", description="Window title or similar context")
