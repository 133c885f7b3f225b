"""Per-item ordering and classification metadata.

Every helper here is a reducer: it receives the current mapping and returns a
new one, leaving the input untouched. Callers persist the result through
:class:`~studydesk.services.state.StateStore`.

``rank`` and ``tag`` stay ``None`` until the user sets them. Unranked items
sort by name inside their subject/week group, and an unset ``tag`` lets the
folder layout decide the classification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Literal, Mapping, Optional, Sequence, Tuple

from .catalog import TAG_OPTIONS, StudyItem

LOGGER = logging.getLogger(__name__)

Direction = Literal["up", "down"]


@dataclass(frozen=True)
class MetadataEntry:
    rank: Optional[int] = None
    tag: Optional[str] = None
    pages: int = 0
    last_page: int = 0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "MetadataEntry":
        tag = mapping.get("tag")
        return cls(
            rank=_as_optional_int(mapping.get("rank")),
            tag=tag if tag in TAG_OPTIONS else None,
            pages=max(0, _as_int(mapping.get("pages"))),
            last_page=max(0, _as_int(mapping.get("lastPage", mapping.get("last_page")))),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "tag": self.tag,
            "pages": self.pages,
            "lastPage": self.last_page,
        }


def _as_int(value: Any) -> int:
    return _as_optional_int(value) or 0


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


MetadataMap = Dict[str, MetadataEntry]


def get_entry(metadata: Mapping[str, MetadataEntry], path: str) -> MetadataEntry:
    """Return the entry for *path*, or a default one when none exists."""

    return metadata.get(path) or MetadataEntry()


def order_key(
    metadata: Mapping[str, MetadataEntry], item: StudyItem
) -> Tuple[bool, int, str, str]:
    """Sort key of *item* inside its subject/week group.

    Items the user placed come first by rank; the rest follow by name.
    """

    entry = metadata.get(item.path)
    rank = entry.rank if entry is not None else None
    return (rank is None, rank or 0, item.name, item.path)


def ensure_entries(
    metadata: Mapping[str, MetadataEntry], items: Iterable[StudyItem]
) -> MetadataMap:
    """Create entries for newly discovered *items* and cache their page counts."""

    updated: MetadataMap = dict(metadata)
    created = 0
    for item in items:
        entry = updated.get(item.path)
        if entry is None:
            updated[item.path] = MetadataEntry(pages=item.pages)
            created += 1
        elif item.pages and entry.pages != item.pages:
            updated[item.path] = replace(entry, pages=item.pages)
    if created:
        LOGGER.debug("Created %s metadata entr%s", created, "y" if created == 1 else "ies")
    return updated


def set_tag(metadata: Mapping[str, MetadataEntry], path: str, tag: str) -> MetadataMap:
    if tag not in TAG_OPTIONS:
        raise ValueError(f"Unknown classification tag: {tag!r}")
    updated: MetadataMap = dict(metadata)
    updated[path] = replace(get_entry(updated, path), tag=tag)
    return updated


def set_last_page(metadata: Mapping[str, MetadataEntry], path: str, page: int) -> MetadataMap:
    if page < 0:
        raise ValueError("Page numbers cannot be negative")
    updated: MetadataMap = dict(metadata)
    updated[path] = replace(get_entry(updated, path), last_page=page)
    return updated


def move_item(
    metadata: Mapping[str, MetadataEntry],
    items: Sequence[StudyItem],
    path: str,
    direction: Direction,
) -> MetadataMap:
    """Swap *path* with its neighbour inside its subject/week group.

    The whole group is ranked in its current order first, so the move keeps
    every other item where the user saw it. Returns the input unchanged (as a
    copy) when the item is unknown or has no neighbour in *direction*.
    """

    if direction not in ("up", "down"):
        raise ValueError(f"Unknown direction: {direction!r}")

    target = next((item for item in items if item.path == path), None)
    if target is None:
        return dict(metadata)

    group = sorted(
        (item for item in items if item.subject == target.subject and item.week == target.week),
        key=lambda item: order_key(metadata, item),
    )
    index = next(i for i, item in enumerate(group) if item.path == path)
    neighbour_index = index - 1 if direction == "up" else index + 1
    if neighbour_index < 0 or neighbour_index >= len(group):
        return dict(metadata)

    group[index], group[neighbour_index] = group[neighbour_index], group[index]
    updated: MetadataMap = dict(metadata)
    for rank, item in enumerate(group):
        updated[item.path] = replace(get_entry(updated, item.path), rank=rank)
    LOGGER.debug("Moved %s %s past %s", path, direction, group[index].path)
    return updated


def prune(metadata: Mapping[str, MetadataEntry], valid_paths: Iterable[str]) -> MetadataMap:
    """Drop entries whose files are no longer present."""

    keep = set(valid_paths)
    return {path: entry for path, entry in metadata.items() if path in keep}


__all__ = [
    "Direction",
    "MetadataEntry",
    "MetadataMap",
    "ensure_entries",
    "get_entry",
    "move_item",
    "order_key",
    "prune",
    "set_last_page",
    "set_tag",
]
