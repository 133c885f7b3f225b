"""A Rich-powered console front-end for the study queue."""

from __future__ import annotations

from typing import Iterable, List, Optional

from rich import box
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ..config import AppConfig
from ..services.catalog import TAG_PRACTICE, TAG_THEORY
from ..services.storage import ProgressRecord, ProgressRepository
from .overview import OverviewSnapshot, SubjectOverview, collect_overview, weekday_label


TAG_STYLES = {
    TAG_THEORY: "cyan",
    TAG_PRACTICE: "green",
}

QUEUE_PREVIEW_LIMIT = 15


class ModernUI:
    """Render the queue, schedule and counters using Rich widgets."""

    def __init__(
        self,
        config: AppConfig,
        repository: ProgressRepository,
        *,
        console: Optional[Console] = None,
        today: Optional[int] = None,
    ) -> None:
        self._config = config
        self._repository = repository
        self._console = console or Console()
        self._today = today

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> None:
        snapshot = collect_overview(self._config, self._repository, today=self._today)
        console = self._console

        console.rule(f"[bold magenta]Study Desk · {weekday_label(snapshot.today)}")

        if snapshot.total_items == 0:
            console.print(
                Panel(
                    f"No PDFs were found under [bold]{snapshot.materials_root}[/bold].\n"
                    "Lay materials out as [bold]<subject>/semN/*.pdf[/bold] and try again.",
                    border_style="yellow",
                    box=box.ROUNDED,
                )
            )
            return

        queue_panel = Panel(
            self._build_queue_tree(snapshot),
            title="Up next",
            border_style="cyan",
            box=box.ROUNDED,
        )
        stats_panel = self._build_stats_panel(snapshot)

        console.print(Columns([queue_panel, stats_panel], expand=True, equal=True))
        console.print(self._build_schedule_table(snapshot.subjects))
        if snapshot.progress:
            console.print(self._build_progress_table(snapshot.progress))
        console.print()
        console.print(
            Text(
                "Tip: pass --style console for a plain text listing.",
                style="dim",
            ),
            justify="center",
        )

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def _build_queue_tree(self, snapshot: OverviewSnapshot) -> Tree:
        tree = Tree("[bold cyan]Queue", guide_style="cyan")
        queue = snapshot.queue
        if not len(queue):
            tree.add("[green]Everything is done")
            return tree

        urgency = {group.subject: group.urgency for group in queue.groups}
        subject_nodes = {}
        for index, item in enumerate(queue.items[:QUEUE_PREVIEW_LIMIT]):
            node = subject_nodes.get(item.subject)
            if node is None:
                node = tree.add(
                    Text(f"{item.subject}  ", style="bold").append(
                        f"in {urgency.get(item.subject, 7)}d", style="dim"
                    )
                )
                subject_nodes[item.subject] = node
            node.add(self._build_item_label(item, current=index == queue.position))

        remaining = len(queue) - QUEUE_PREVIEW_LIMIT
        if remaining > 0:
            tree.add(f"[dim]… {remaining} more")
        return tree

    @staticmethod
    def _build_item_label(item, *, current: bool) -> Text:
        label = Text("▶ " if current else "  ", style="bold yellow")
        label.append(item.name, style="bold white" if current else "white")
        label.append(f"  sem{item.week}", style="dim")
        if item.tag in TAG_STYLES:
            label.append(f"  {item.tag}", style=TAG_STYLES[item.tag])
        if item.pages:
            label.append(f"  {item.pages}p", style="dim")
        return label

    def _build_stats_panel(self, snapshot: OverviewSnapshot) -> Panel:
        metrics = Table.grid(expand=True, padding=(0, 1))
        metrics.add_column(style="dim")
        metrics.add_column(justify="right", style="bold")
        metrics.add_row("Documents", str(snapshot.total_items))
        metrics.add_row("Completed", str(snapshot.completed_items))
        metrics.add_row("Pending", str(len(snapshot.queue)))

        current = snapshot.queue.current
        focus = Text(current.path if current else "Nothing pending", style="yellow")

        body = Group(metrics, Rule(style="magenta"), focus)
        return Panel(body, title="At a glance", border_style="magenta", box=box.ROUNDED)

    @staticmethod
    def _build_schedule_table(subjects: Iterable[SubjectOverview]) -> Table:
        table = Table(title="Schedule", box=box.SIMPLE_HEAVY, expand=True)
        table.add_column("Subject", style="bold")
        table.add_column("Theory")
        table.add_column("Practice")
        table.add_column("Days left", justify="right")
        table.add_column("Pending", justify="right")
        for entry in subjects:
            table.add_row(
                entry.subject,
                weekday_label(entry.theory_day),
                weekday_label(entry.practice_day),
                str(entry.urgency),
                str(entry.pending),
            )
        return table

    @staticmethod
    def _build_progress_table(records: List[ProgressRecord]) -> Table:
        table = Table(title="Progress", box=box.SIMPLE_HEAVY, expand=True)
        table.add_column("Subject", style="bold")
        table.add_column("Category")
        table.add_column("Done", justify="right")
        for record in records:
            table.add_row(
                record.subject_name,
                Text(record.table_type, style=TAG_STYLES.get(record.table_type, "")),
                f"{record.current_progress}/{record.total_pdfs}",
            )
        return table


__all__ = ["ModernUI"]
