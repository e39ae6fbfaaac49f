"""Persona prompts for cortexview.

Public API:
    PersonaLibrary -- Loads personas from a directory of markdown files
"""

from cortexview.prompts.library import (
    FALLBACK_PERSONA,
    PersonaError,
    PersonaLibrary,
    parse_persona_file,
)

__all__ = ["FALLBACK_PERSONA", "PersonaError", "PersonaLibrary", "parse_persona_file"]
