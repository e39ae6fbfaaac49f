"""Local file-system storage for analyzed captures.

Every operation is best-effort: file-system errors are logged and
swallowed so that storage problems never affect an analysis result.
Blocking file I/O runs in the default executor.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import time
from datetime import datetime
from pathlib import Path

from cortexview.config.settings import DEFAULT_STORAGE_PATH

logger = logging.getLogger(__name__)

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_SECONDS_PER_DAY = 86400


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in file names with underscores."""
    return _INVALID_FILENAME_CHARS.sub("_", name)


class LocalStorage:
    """Stores captures as PNG files in a single directory.

    Files are named ``YYYY-MM-DD_HH-MM-SS_<persona>.png``. When storage
    is disabled, saving returns None and cleanup does nothing; purging
    always runs because it is an explicit user request.
    """

    def __init__(
        self,
        directory: Path | str | None = None,
        enabled: bool = True,
        retention_days: int = 7,
    ) -> None:
        self._directory = Path(directory) if directory else DEFAULT_STORAGE_PATH
        self._enabled = enabled
        self._retention_days = retention_days

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def save_screenshot(self, image_data: bytes, persona_name: str) -> str | None:
        """Write the capture to disk.

        Returns:
            The stored file's path, or None if storage is disabled or
            the write failed.
        """
        if not self._enabled:
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._save_sync, image_data, persona_name)

    async def cleanup_old_files(self) -> int:
        """Delete stored files older than the retention period.

        Returns:
            Number of files deleted.
        """
        if not self._enabled:
            return 0
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._cleanup_sync)

    async def purge_all(self) -> None:
        """Delete every stored file (captures and audit logs)."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._purge_sync)

    def _save_sync(self, image_data: bytes, persona_name: str) -> str | None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            path = self._directory / f"{stamp}_{sanitize_filename(persona_name)}.png"
            path.write_bytes(image_data)
            logger.debug("Stored capture at %s", path)
            return str(path)
        except OSError as e:
            logger.warning("Failed to store capture for persona %r: %s", persona_name, e)
            return None

    def _cleanup_sync(self) -> int:
        if not self._directory.is_dir():
            return 0
        cutoff = time.time() - self._retention_days * _SECONDS_PER_DAY
        removed = 0
        try:
            for path in self._directory.iterdir():
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
        except OSError as e:
            logger.warning("Cleanup of %s stopped early: %s", self._directory, e)
        if removed:
            logger.info("Removed %d file(s) older than %d day(s)", removed, self._retention_days)
        return removed

    def _purge_sync(self) -> None:
        try:
            if self._directory.exists():
                shutil.rmtree(self._directory)
                self._directory.mkdir(parents=True, exist_ok=True)
                logger.info("Purged storage directory %s", self._directory)
        except OSError as e:
            logger.warning("Failed to purge %s: %s", self._directory, e)
