"""Centralized logging configuration for Study Desk."""

from __future__ import annotations

import logging
import os
from logging import Logger
from pathlib import Path
from typing import Iterable, List, Optional


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "STUDYDESK_LOG_LEVEL"

_MANAGED_ATTRIBUTE = "_studydesk_managed"


def resolve_log_level(value: Optional[str]) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""

    if not value:
        return logging.INFO
    candidate = value.strip()
    if candidate.isdigit():
        return int(candidate)
    level = logging.getLevelName(candidate.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    level: Optional[int] = None, *, handlers: Iterable[logging.Handler] | None = None
) -> Logger:
    """Configure the root logger, replacing handlers installed by earlier calls."""

    logger = logging.getLogger()
    if level is None:
        level = resolve_log_level(os.environ.get(LOG_LEVEL_ENV))
    logger.setLevel(level)

    for existing in list(logger.handlers):
        if getattr(existing, _MANAGED_ATTRIBUTE, False):
            logger.removeHandler(existing)
            existing.close()

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handlers = [stream_handler]

    for handler in handlers:
        setattr(handler, _MANAGED_ATTRIBUTE, True)
        logger.addHandler(handler)

    return logger


def get_log_file_path(storage_root: Path) -> Path:
    """Return the default path for the application log file."""

    return storage_root / "studydesk.log"


def build_handlers(storage_root: Path) -> List[logging.Handler]:
    """Return a file handler under *storage_root* plus a console handler."""

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    file_handler = logging.FileHandler(get_log_file_path(storage_root), encoding="utf-8")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    return [file_handler, stream_handler]


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "LOG_LEVEL_ENV",
    "build_handlers",
    "configure_logging",
    "get_log_file_path",
    "resolve_log_level",
]
