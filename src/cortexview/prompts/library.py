"""Persona loading from markdown prompt files.

Each ``*.md`` file in the prompts directory defines one persona. An
optional YAML frontmatter block sets the name and sampling parameters::

    ---
    Name: Code Reviewer
    Temperature: 0.3
    TopP: 0.9
    MaxTokens: 2048
    ---
    You are a meticulous code reviewer...

Without frontmatter, a leading ``# Heading`` line names the persona and
the rest of the file is the system prompt; otherwise the file stem is
the name and the whole file is the prompt.

Frontmatter values need no YAML quoting: where a line does not parse as
YAML (``Name: Reviewer: strict``) or YAML reads the value as a comment
(``Name: #1 Helper``), the text after the first colon is used as is.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from cortexview.domain.models import Persona

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 0.9
DEFAULT_MAX_TOKENS = 1024

FALLBACK_PERSONA = Persona(
    name="Generic Assistant (Default)",
    system_prompt="You are a helpful AI assistant. Analyze the interface shown.",
    temperature=0.5,
    max_tokens=1000,
)

_FRONTMATTER_DELIMITER = "---"


class PersonaError(Exception):
    """Raised when a prompt file cannot be turned into a valid persona."""


class PersonaLibrary:
    """Read-only source of personas backed by a directory of prompt files."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def load_personas(self) -> list[Persona]:
        """Load every persona, sorted by name.

        Never returns an empty list: falls back to a generic persona when
        the directory is missing or nothing in it loads.
        """
        if not self._directory.is_dir():
            logger.warning("Prompts directory %s not found, using fallback persona", self._directory)
            return [FALLBACK_PERSONA]

        personas: list[Persona] = []
        for path in sorted(self._directory.glob("*.md")):
            try:
                personas.append(parse_persona_file(path))
            except (OSError, ValueError, PersonaError) as e:
                logger.warning("Skipping prompt file %s: %s", path.name, e)

        if not personas:
            return [FALLBACK_PERSONA]
        return sorted(personas, key=lambda p: p.name)

    def get(self, name: str) -> Persona | None:
        for persona in self.load_personas():
            if persona.name.lower() == name.lower():
                return persona
        return None


def parse_persona_file(path: Path) -> Persona:
    """Parse a single markdown prompt file into a :class:`Persona`."""
    text = path.read_text(encoding="utf-8-sig")
    return parse_persona_text(text, default_name=path.stem)


def parse_persona_text(text: str, default_name: str) -> Persona:
    lines = text.splitlines()
    meta: dict = {}
    body_lines = lines
    has_frontmatter = False

    if lines and lines[0].strip() == _FRONTMATTER_DELIMITER:
        end = next(
            (i for i in range(1, len(lines)) if lines[i].strip() == _FRONTMATTER_DELIMITER),
            None,
        )
        if end is not None:
            meta = _parse_frontmatter("\n".join(lines[1:end]))
            body_lines = lines[end + 1:]
            has_frontmatter = True

    name = str(meta.get("name") or default_name).strip()
    if not has_frontmatter and body_lines and body_lines[0].startswith("#"):
        name = body_lines[0].lstrip("# ").strip() or name
        body_lines = body_lines[1:]

    persona = Persona(
        name=name,
        system_prompt="\n".join(body_lines).strip(),
        temperature=_as_float(meta.get("temperature"), DEFAULT_TEMPERATURE),
        top_p=_as_float(meta.get("topp"), DEFAULT_TOP_P),
        max_tokens=_as_int(meta.get("maxtokens"), DEFAULT_MAX_TOKENS),
    )
    if not persona.is_valid():
        raise PersonaError(f"persona {persona.name!r} has an empty prompt or out-of-range parameters")
    return persona


def _parse_frontmatter(block: str) -> dict:
    raw = _split_frontmatter_lines(block)
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.debug("Frontmatter is not valid YAML, reading it line by line: %s", e)
        return raw
    if not isinstance(data, dict):
        return raw

    meta = {_normalize_key(k): v for k, v in data.items()}
    for key, value in raw.items():
        if meta.get(key) is None and value:
            meta[key] = value
    return meta


def _split_frontmatter_lines(block: str) -> dict:
    """``Key: value`` pairs split on the first colon of each line."""
    meta = {}
    for line in block.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            meta[_normalize_key(key)] = value.strip()
    return meta


def _normalize_key(key: object) -> str:
    # Keys are matched case-insensitively, ignoring underscores (TopP, top_p).
    return str(key).strip().replace("_", "").lower()


def _as_float(value: object, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_int(value: object, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
