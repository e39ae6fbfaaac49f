"""Append-only audit log of stored analyses.

One JSON object per line (NDJSON), one file per calendar day:
``audit_YYYY-MM-DD.json`` in the storage directory.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from pathlib import Path

from cortexview.domain.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes :class:`AuditEntry` records; never reads them back."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def log_path(self, day: date | None = None) -> Path:
        day = day or date.today()
        return self._directory / f"audit_{day:%Y-%m-%d}.json"

    async def log_interaction(self, entry: AuditEntry) -> None:
        """Append one entry. Failures are logged, never raised."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._append_sync, entry)

    def _append_sync(self, entry: AuditEntry) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(self.log_path(), "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.warning("Failed to write audit entry: %s", e)
