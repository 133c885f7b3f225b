"""Persistence helpers backed by SQLite."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..config import AppConfig


@dataclass
class ProgressRecord:
    subject_name: str
    table_type: str
    current_progress: int
    total_pdfs: int


@dataclass
class DailyTimeRecord:
    date: str
    weekday: str
    minutes: int


LOGGER = logging.getLogger(__name__)

_PROGRESS_COLUMNS = "subject_name, table_type, current_progress, total_pdfs"


class ProgressRepository:
    """Counters per ``(subject, category)`` and minutes studied per day."""

    def __init__(
        self,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        self._db_path = config.database_file
        self._event_emitter: Optional[Callable[..., None]] = event_emitter

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        """Register the callable responsible for emitting debug events."""

        self._event_emitter = emitter

    @contextlib.contextmanager
    def _track_db_event(self, action: str, **payload: Any) -> Iterator[Dict[str, Any]]:
        """Emit a structured event capturing execution time for a DB action."""

        if self._event_emitter is None:
            yield payload
            return

        start = time.perf_counter()
        event_payload: Dict[str, Any] = dict(payload)
        try:
            yield event_payload
        except Exception as exc:
            event_payload.setdefault("status", "error")
            event_payload.setdefault("error", f"{exc.__class__.__name__}: {exc}")
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            event_payload.setdefault("status", "ok")
            filtered = {key: value for key, value in event_payload.items() if value is not None}
            self._event_emitter("DB_QUERY", action, payload=filtered, duration_ms=duration_ms)

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        LOGGER.debug("Opening SQLite connection to %s", self._db_path)
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        try:
            with connection:
                yield connection
        finally:
            connection.close()

    @staticmethod
    def _execute(
        connection: sqlite3.Connection,
        statement: str,
        parameters: Sequence[Any] | Tuple[Any, ...] = (),
    ) -> sqlite3.Cursor:
        LOGGER.debug("Executing %s", " ".join(statement.split())[:180])
        return connection.execute(statement, tuple(parameters))

    @staticmethod
    def _to_progress(row: Optional[sqlite3.Row]) -> Optional[ProgressRecord]:
        return ProgressRecord(**dict(row)) if row else None

    # ---------------------------------------------------------------------
    # Progress counters
    # ---------------------------------------------------------------------
    def get_progress(self, subject: str, table_type: str) -> Optional[ProgressRecord]:
        with self._connect() as connection:
            cursor = self._execute(
                connection,
                f"SELECT {_PROGRESS_COLUMNS} FROM progress WHERE subject_name = ? AND table_type = ?",
                (subject, table_type),
            )
            return self._to_progress(cursor.fetchone())

    def list_progress(self) -> List[ProgressRecord]:
        with self._track_db_event("progress.list", table="progress") as event:
            with self._connect() as connection:
                cursor = self._execute(
                    connection,
                    f"SELECT {_PROGRESS_COLUMNS} FROM progress ORDER BY subject_name, table_type",
                )
                records = [ProgressRecord(**dict(row)) for row in cursor.fetchall()]
            event["rowcount"] = len(records)
            return records

    def mark(self, subject: str, table_type: str, checked: bool) -> Optional[ProgressRecord]:
        """Count one more finished document; unchecking is ignored here."""

        if not checked:
            return None
        with self._track_db_event("progress.mark", table="progress", subject=subject):
            with self._connect() as connection:
                self._execute(
                    connection,
                    """
                    INSERT INTO progress (subject_name, table_type, current_progress, total_pdfs)
                    VALUES (?, ?, 1, 0)
                    ON CONFLICT (subject_name, table_type)
                    DO UPDATE SET current_progress = MIN(progress.current_progress + 1, progress.total_pdfs)
                    """,
                    (subject, table_type),
                )
        LOGGER.debug("Marked progress for %s/%s", subject, table_type)
        return self.get_progress(subject, table_type)

    def adjust(self, subject: str, table_type: str, delta: int) -> Optional[ProgressRecord]:
        """Shift the counter by *delta*, clamped into ``[0, total_pdfs]``."""

        with self._track_db_event(
            "progress.adjust", table="progress", subject=subject, delta=delta
        ) as event:
            with self._connect() as connection:
                cursor = self._execute(
                    connection,
                    """
                    UPDATE progress
                    SET current_progress = MIN(total_pdfs, MAX(0, current_progress + ?))
                    WHERE subject_name = ? AND table_type = ?
                    """,
                    (delta, subject, table_type),
                )
                event["rowcount"] = cursor.rowcount
        return self.get_progress(subject, table_type)

    def sync_totals(self, counts: Mapping[Tuple[str, str], int]) -> List[ProgressRecord]:
        """Upsert ``total_pdfs`` for every ``(subject, table_type)`` in *counts*."""

        results: List[ProgressRecord] = []
        with self._track_db_event("progress.sync_totals", table="progress", pairs=len(counts)):
            with self._connect() as connection:
                for (subject, table_type), total in sorted(counts.items()):
                    self._execute(
                        connection,
                        """
                        INSERT INTO progress (subject_name, table_type, current_progress, total_pdfs)
                        VALUES (?, ?, 0, ?)
                        ON CONFLICT (subject_name, table_type)
                        DO UPDATE SET total_pdfs = excluded.total_pdfs
                        """,
                        (subject, table_type, int(total)),
                    )
                    cursor = self._execute(
                        connection,
                        f"SELECT {_PROGRESS_COLUMNS} FROM progress WHERE subject_name = ? AND table_type = ?",
                        (subject, table_type),
                    )
                    record = self._to_progress(cursor.fetchone())
                    if record is not None:
                        results.append(record)
        LOGGER.info("Synchronised totals for %s subject categor%s", len(results), "y" if len(results) == 1 else "ies")
        return results

    # ---------------------------------------------------------------------
    # Daily time
    # ---------------------------------------------------------------------
    def record_time(self, day: str, weekday: str, minutes: int) -> DailyTimeRecord:
        """Store *minutes* for *day*, replacing any earlier value."""

        normalized_day = date.fromisoformat(day).isoformat()
        with self._track_db_event("daily_time.upsert", table="daily_time", date=normalized_day):
            with self._connect() as connection:
                self._execute(
                    connection,
                    """
                    INSERT INTO daily_time (date, weekday, minutes)
                    VALUES (?, ?, ?)
                    ON CONFLICT (date) DO UPDATE SET weekday = excluded.weekday, minutes = excluded.minutes
                    """,
                    (normalized_day, weekday, int(minutes)),
                )
        return DailyTimeRecord(date=normalized_day, weekday=weekday, minutes=int(minutes))

    def list_time(self, limit: Optional[int] = None) -> List[DailyTimeRecord]:
        query = "SELECT date, weekday, minutes FROM daily_time ORDER BY date DESC"
        params: List[Any] = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._connect() as connection:
            cursor = self._execute(connection, query, params)
            return [DailyTimeRecord(**dict(row)) for row in cursor.fetchall()]


__all__ = ["DailyTimeRecord", "ProgressRecord", "ProgressRepository"]
