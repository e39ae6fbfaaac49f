"""Domain models for cortexview.

This package contains the core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from cortexview.domain.models import (
    CONTEXT_PREAMBLE,
    AnalysisRequest,
    AnalysisResponse,
    AuditEntry,
    DetectorState,
    Persona,
    PipelineStage,
    WindowRect,
)

__all__ = [
    "CONTEXT_PREAMBLE",
    "AnalysisRequest",
    "AnalysisResponse",
    "AuditEntry",
    "DetectorState",
    "Persona",
    "PipelineStage",
    "WindowRect",
]
