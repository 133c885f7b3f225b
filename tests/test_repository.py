from __future__ import annotations

import pytest

from studydesk.config import AppConfig
from studydesk.services.storage import DailyTimeRecord, ProgressRecord, ProgressRepository


def test_sync_totals_then_mark_is_clamped(temp_config: AppConfig) -> None:
    repository = ProgressRepository(temp_config)

    records = repository.sync_totals({("Math", "theory"): 2, ("Math", "practice"): 1})
    assert records == [
        ProgressRecord("Math", "practice", 0, 1),
        ProgressRecord("Math", "theory", 0, 2),
    ]

    repository.mark("Math", "theory", True)
    repository.mark("Math", "theory", True)
    record = repository.mark("Math", "theory", True)

    assert record == ProgressRecord("Math", "theory", 2, 2)
    assert repository.mark("Math", "theory", False) is None


def test_mark_creates_missing_row(temp_config: AppConfig) -> None:
    repository = ProgressRepository(temp_config)

    record = repository.mark("Art", "practice", True)

    assert record == ProgressRecord("Art", "practice", 1, 0)


def test_adjust_clamps_between_zero_and_total(temp_config: AppConfig) -> None:
    repository = ProgressRepository(temp_config)
    repository.sync_totals({("Math", "theory"): 3})

    assert repository.adjust("Math", "theory", 5).current_progress == 3
    assert repository.adjust("Math", "theory", -10).current_progress == 0
    assert repository.adjust("Unknown", "theory", 1) is None


def test_sync_totals_keeps_existing_progress(temp_config: AppConfig) -> None:
    repository = ProgressRepository(temp_config)
    repository.sync_totals({("Math", "theory"): 3})
    repository.adjust("Math", "theory", 2)

    (record,) = repository.sync_totals({("Math", "theory"): 4})

    assert record == ProgressRecord("Math", "theory", 2, 4)
    assert repository.list_progress() == [record]


def test_daily_time_upserts_and_orders_newest_first(temp_config: AppConfig) -> None:
    repository = ProgressRepository(temp_config)

    repository.record_time("2024-06-03", "lunes", 30)
    repository.record_time("2024-06-04", "martes", 15)
    repository.record_time("2024-06-03", "lunes", 45)

    assert repository.list_time() == [
        DailyTimeRecord("2024-06-04", "martes", 15),
        DailyTimeRecord("2024-06-03", "lunes", 45),
    ]
    assert repository.list_time(limit=1) == [DailyTimeRecord("2024-06-04", "martes", 15)]

    with pytest.raises(ValueError):
        repository.record_time("yesterday", "lunes", 10)


def test_event_emitter_receives_db_events(temp_config: AppConfig) -> None:
    events = []
    repository = ProgressRepository(
        temp_config,
        event_emitter=lambda event_type, action, **kwargs: events.append((event_type, action, kwargs)),
    )

    repository.sync_totals({("Math", "theory"): 1})

    event_type, action, kwargs = events[-1]
    assert event_type == "DB_QUERY"
    assert action == "progress.sync_totals"
    assert kwargs["payload"]["status"] == "ok"
    assert kwargs["duration_ms"] >= 0
