"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from cellwall.utils.config import get_settings


_LOGGER_INITIALIZED = False
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Records always go to stdout. When ``CELLWALL_LOG_FILE`` is set they are
    also appended to that file; if it cannot be opened, stdout stays the only
    sink and a warning is logged.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error: OSError | None = None
    if settings.log_file is not None:
        try:
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
        except OSError as exc:
            file_error = exc

    logging.basicConfig(
        level=resolved_level,
        format=_LOG_FORMAT,
        handlers=handlers,
    )
    _LOGGER_INITIALIZED = True

    if file_error is not None:
        logging.getLogger(__name__).warning(
            "Log file unavailable, logging to stdout only | path=%s | error=%s",
            settings.log_file,
            file_error,
        )


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
