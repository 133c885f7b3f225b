"""One-line structured log events for requests and database calls."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

EVENT_LOGGER = logging.getLogger("studydesk.events")

_Logger = Union[logging.Logger, logging.LoggerAdapter]


def _compact(fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {key: value for key, value in (fields or {}).items() if value is not None and value != ""}


def emit_event(
    kind: str,
    message: str,
    *,
    fields: Optional[Mapping[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: _Logger = EVENT_LOGGER,
) -> None:
    """Log ``[kind] message (key=value, ...)`` and attach the fields to the record.

    Empty field values are left out. The record carries ``event``,
    ``event_type`` and ``event_fields`` for handlers that want them.
    """

    details = _compact(fields)
    if duration_ms is not None:
        details["duration_ms"] = round(float(duration_ms), 2)
    suffix = " (" + ", ".join(f"{key}={value}" for key, value in details.items()) + ")" if details else ""
    logger.log(
        level,
        "[%s] %s%s",
        kind,
        message,
        suffix,
        extra={"event": message, "event_type": kind, "event_fields": details},
    )


def emit_db_event(
    action: str,
    *,
    payload: Optional[Mapping[str, Any]] = None,
    duration_ms: Optional[float] = None,
    logger: _Logger = EVENT_LOGGER,
) -> None:
    emit_event("DB_QUERY", action, fields=payload, duration_ms=duration_ms, level=logging.DEBUG, logger=logger)


__all__ = ["EVENT_LOGGER", "emit_db_event", "emit_event"]
