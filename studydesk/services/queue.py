"""Derivation of the ordered study queue.

The queue is a pure function of the material tree, the completion flags, the
weekday schedule, the metadata ranks and the current weekday. Subjects whose
next session is closer come first; on equal urgency the subject with more
pending items wins. Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .catalog import StudyItem
from .metadata import MetadataEntry, order_key
from .schedule import Schedule, subject_urgency


@dataclass(frozen=True)
class SubjectGroup:
    subject: str
    urgency: int
    pending: int


@dataclass(frozen=True)
class QueueSnapshot:
    """An ordered queue of pending items plus the navigation cursor."""

    items: Tuple[StudyItem, ...] = ()
    position: Optional[int] = None
    groups: Tuple[SubjectGroup, ...] = field(default_factory=tuple)

    @property
    def current(self) -> Optional[StudyItem]:
        if self.position is None:
            return None
        return self.items[self.position]

    @property
    def has_previous(self) -> bool:
        return self.position is not None and self.position > 0

    @property
    def has_next(self) -> bool:
        return self.position is not None and self.position < len(self.items) - 1

    def __len__(self) -> int:
        return len(self.items)

    def index_of(self, path: Optional[str]) -> Optional[int]:
        if path is None:
            return None
        for index, item in enumerate(self.items):
            if item.path == path:
                return index
        return None

    def step(self, offset: int) -> "QueueSnapshot":
        """Move the cursor by *offset*, clamped to the queue bounds."""

        if self.position is None:
            return self
        target = max(0, min(len(self.items) - 1, self.position + offset))
        return replace(self, position=target)

    def select(self, path: str) -> "QueueSnapshot":
        """Point the cursor at *path*; unknown paths leave the cursor in place."""

        index = self.index_of(path)
        if index is None:
            return self
        return replace(self, position=index)

    def to_dict(self) -> Dict[str, object]:
        current = self.current
        return {
            "items": [item.to_dict() for item in self.items],
            "position": self.position,
            "current": current.to_dict() if current is not None else None,
            "hasPrevious": self.has_previous,
            "hasNext": self.has_next,
            "size": len(self.items),
            "groups": [
                {"subject": group.subject, "urgency": group.urgency, "pending": group.pending}
                for group in self.groups
            ],
        }


def _pending_by_subject(
    tree: Mapping[int, Mapping[str, Iterable[StudyItem]]],
    completed: Mapping[str, bool],
) -> Dict[str, List[StudyItem]]:
    pending: Dict[str, List[StudyItem]] = {}
    for subjects in tree.values():
        for subject, bucket in subjects.items():
            for item in bucket:
                if completed.get(item.path):
                    continue
                pending.setdefault(subject, []).append(item)
    return pending


def build_queue(
    tree: Mapping[int, Mapping[str, Iterable[StudyItem]]],
    completed: Mapping[str, bool],
    schedule: Schedule,
    today: int,
    *,
    metadata: Optional[Mapping[str, MetadataEntry]] = None,
    session_current: Optional[str] = None,
    last_opened: Optional[str] = None,
) -> QueueSnapshot:
    """Return the queue of incomplete items and the cursor position.

    The cursor prefers *session_current*, then *last_opened*, then the head
    of the queue, ignoring candidates that are no longer pending.
    """

    metadata = metadata or {}
    pending = _pending_by_subject(tree, completed)

    groups = [
        SubjectGroup(
            subject=subject,
            urgency=subject_urgency(subject, schedule, today),
            pending=len(items),
        )
        for subject, items in pending.items()
    ]
    groups.sort(key=lambda group: (group.urgency, -group.pending, group.subject))

    ordered: List[StudyItem] = []
    for group in groups:
        ordered.extend(
            sorted(
                pending[group.subject],
                key=lambda item: (item.week, *order_key(metadata, item)),
            )
        )

    snapshot = QueueSnapshot(items=tuple(ordered), groups=tuple(groups))
    if not ordered:
        return snapshot

    for candidate in (session_current, last_opened):
        index = snapshot.index_of(candidate)
        if index is not None:
            return replace(snapshot, position=index)
    return replace(snapshot, position=0)


__all__ = ["QueueSnapshot", "SubjectGroup", "build_queue"]
