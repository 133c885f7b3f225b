"""Shared helpers for building overview snapshots of the study queue."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..config import AppConfig
from ..services.catalog import build_tree, scan_materials
from ..services.metadata import ensure_entries
from ..services.queue import QueueSnapshot, build_queue
from ..services.schedule import js_weekday, subject_urgency
from ..services.state import StateStore
from ..services.storage import ProgressRecord, ProgressRepository


WEEKDAY_LABELS: Dict[int, str] = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}


@dataclass
class SubjectOverview:
    subject: str
    urgency: int
    pending: int
    theory_day: Optional[int]
    practice_day: Optional[int]


@dataclass
class OverviewSnapshot:
    materials_root: Path
    today: int
    total_items: int
    completed_items: int
    queue: QueueSnapshot
    subjects: List[SubjectOverview]
    progress: List[ProgressRecord]


def collect_overview(
    config: AppConfig,
    repository: ProgressRepository,
    *,
    today: Optional[int] = None,
) -> OverviewSnapshot:
    """Aggregate state, materials and counters into a snapshot for UIs."""

    state = StateStore(config).load()
    materials_root = Path(state.base_path).expanduser() if state.base_path else config.materials_root
    weekday = js_weekday() if today is None else today

    items = scan_materials(materials_root, state.metadata)
    queue = build_queue(
        build_tree(items),
        state.completed,
        state.schedule,
        weekday,
        metadata=ensure_entries(state.metadata, items),
        last_opened=state.last_opened,
    )

    pending = {group.subject: group.pending for group in queue.groups}
    subjects: List[SubjectOverview] = []
    for subject in sorted({item.subject for item in items}):
        assigned = state.schedule.assigned_days(subject)
        subjects.append(
            SubjectOverview(
                subject=subject,
                urgency=subject_urgency(subject, state.schedule, weekday),
                pending=pending.get(subject, 0),
                theory_day=assigned.get("theory"),
                practice_day=assigned.get("practice"),
            )
        )
    subjects.sort(key=lambda entry: (entry.urgency, -entry.pending, entry.subject))

    known_paths = {item.path for item in items}
    completed_items = sum(1 for path, flag in state.completed.items() if flag and path in known_paths)

    return OverviewSnapshot(
        materials_root=materials_root,
        today=weekday,
        total_items=len(items),
        completed_items=completed_items,
        queue=queue,
        subjects=subjects,
        progress=repository.list_progress(),
    )


def weekday_label(day: Optional[int]) -> str:
    if day is None:
        return "-"
    return WEEKDAY_LABELS.get(day, str(day))


__all__ = [
    "OverviewSnapshot",
    "SubjectOverview",
    "WEEKDAY_LABELS",
    "collect_overview",
    "weekday_label",
]
