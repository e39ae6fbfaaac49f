"""Logging setup utilities for cortexview.

Configures logging for the entire application based on the logging
configuration settings.
"""

from __future__ import annotations

import logging
import sys

from cortexview.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None, level: str | None = None) -> None:
    """Configure logging for the cortexview application.

    Sets up the package logger with the specified level, format, and
    optional file handler. Calling it again replaces the handlers it
    installed earlier rather than stacking duplicates.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
        level: Optional level overriding ``config.level`` (e.g. from
               a ``--verbose`` flag).
    """
    if config is None:
        config = LoggingConfig()
    effective_level = (level or config.level).upper()

    root_logger = logging.getLogger("cortexview")
    root_logger.setLevel(getattr(logging, effective_level, logging.INFO))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.info("Logging initialized at %s level", effective_level)
