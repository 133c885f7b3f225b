"""Plain console listing of the study queue."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..config import AppConfig
from ..services.storage import ProgressRepository
from .overview import OverviewSnapshot, collect_overview, weekday_label


@dataclass
class ConsoleSection:
    title: str
    entries: Iterable[str]


class ConsoleUI:
    """Minimal console UI that prints the queue grouped by subject."""

    def __init__(
        self,
        config: AppConfig,
        repository: ProgressRepository,
        *,
        today: Optional[int] = None,
    ) -> None:
        self._config = config
        self._repository = repository
        self._today = today

    def run(self) -> None:
        """Render the pending queue and the weekly schedule to stdout."""

        snapshot = collect_overview(self._config, self._repository, today=self._today)
        print(f"Study Desk – Queue for {weekday_label(snapshot.today)}")
        print("=" * 40)
        print(f"{len(snapshot.queue)} pending of {snapshot.total_items} document(s)")
        print()
        for section in self._build_sections(snapshot):
            print(section.title)
            print("-" * len(section.title))
            has_entries = False
            for entry in section.entries:
                has_entries = True
                print(entry)
            if not has_entries:
                print("(empty)")
            print()

    def _build_sections(self, snapshot: OverviewSnapshot) -> Iterable[ConsoleSection]:
        yield ConsoleSection(title="Queue", entries=self._format_queue(snapshot))
        yield ConsoleSection(title="Schedule", entries=self._format_schedule(snapshot))

    @staticmethod
    def _format_queue(snapshot: OverviewSnapshot) -> Iterable[str]:
        queue = snapshot.queue
        for index, item in enumerate(queue.items):
            marker = ">" if index == queue.position else " "
            yield f"{marker} [{item.subject}] sem{item.week} {item.name} ({item.tag})"

    @staticmethod
    def _format_schedule(snapshot: OverviewSnapshot) -> Iterable[str]:
        for entry in snapshot.subjects:
            yield (
                f"  {entry.subject}: theory {weekday_label(entry.theory_day)}, "
                f"practice {weekday_label(entry.practice_day)}, "
                f"next in {entry.urgency} day(s), {entry.pending} pending"
            )


__all__ = ["ConsoleUI"]
