"""Discovery of study materials laid out as ``<subject>/<semN>/**.pdf``."""

from __future__ import annotations

import logging
import re
import unicodedata
from collections import Counter
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import PdfInspectionError
from ..processing import get_pdf_page_count

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .metadata import MetadataEntry

LOGGER = logging.getLogger(__name__)

TAG_THEORY = "theory"
TAG_PRACTICE = "practice"
TAG_UNSET = "unset"
TAG_OPTIONS: Tuple[str, ...] = (TAG_THEORY, TAG_PRACTICE, TAG_UNSET)

_WEEK_PATTERN = re.compile(r"sem(\d+)", re.IGNORECASE)
_THEORY_SEGMENTS = {"teoria", "theory"}
_PRACTICE_SEGMENTS = {"practica", "practice"}
_SKIPPED_SEGMENTS = {"system"}

PageCounter = Callable[[Path], int]


@dataclass(frozen=True)
class StudyItem:
    path: str
    name: str
    week: int
    subject: str
    pages: int = 0
    tag: str = TAG_UNSET

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


StudyTree = Dict[int, Dict[str, List[StudyItem]]]


def _normalize_segment(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).lower()


def _is_skipped(segment: str) -> bool:
    return segment.startswith(".") or segment.lower() in _SKIPPED_SEGMENTS


def parse_week(folder_name: str) -> Optional[int]:
    """Return the week number encoded as ``semN`` in *folder_name*."""

    match = _WEEK_PATTERN.search(folder_name)
    return int(match.group(1)) if match else None


def infer_tag(segments: Iterable[str]) -> str:
    """Classify by the nearest theory/practice folder, scanning from the file upwards."""

    for segment in reversed(list(segments)):
        normalized = _normalize_segment(segment)
        if normalized in _PRACTICE_SEGMENTS:
            return TAG_PRACTICE
        if normalized in _THEORY_SEGMENTS:
            return TAG_THEORY
    return TAG_UNSET


def _count_pages(counter: PageCounter, target: Path) -> int:
    try:
        return counter(target)
    except PdfInspectionError as error:
        LOGGER.warning("Could not count pages of '%s': %s", target, error)
        return 0


def scan_materials(
    root: Path,
    metadata: Optional[Mapping[str, "MetadataEntry"]] = None,
    *,
    page_counter: PageCounter = get_pdf_page_count,
) -> List[StudyItem]:
    """Return every PDF below *root* in discovery order.

    Discovery order is subject name, then week folder name, then the file's
    relative path. A missing or unreadable root yields an empty list.
    """

    metadata = metadata or {}
    if not root.is_dir():
        LOGGER.debug("Materials root '%s' is missing; nothing to scan", root)
        return []

    items: List[StudyItem] = []
    try:
        subject_dirs = sorted(
            (entry for entry in root.iterdir() if entry.is_dir() and not _is_skipped(entry.name)),
            key=lambda entry: entry.name.lower(),
        )
    except OSError as error:
        LOGGER.warning("Unable to list materials root '%s': %s", root, error)
        return []

    for subject_dir in subject_dirs:
        try:
            week_dirs = sorted(subject_dir.iterdir(), key=lambda entry: entry.name.lower())
        except OSError as error:
            LOGGER.warning("Skipping subject '%s': %s", subject_dir.name, error)
            continue
        for week_dir in week_dirs:
            if not week_dir.is_dir() or _is_skipped(week_dir.name):
                continue
            week = parse_week(week_dir.name)
            if week is None:
                continue
            try:
                candidates = sorted(week_dir.rglob("*"))
            except OSError as error:
                LOGGER.warning("Skipping week folder '%s': %s", week_dir, error)
                continue
            for candidate in candidates:
                if not candidate.is_file() or candidate.suffix.lower() != ".pdf":
                    continue
                relative_parts = candidate.relative_to(week_dir).parts
                if any(_is_skipped(part) for part in relative_parts):
                    continue
                relative = candidate.relative_to(root).as_posix()
                entry = metadata.get(relative)
                if entry is not None and entry.pages > 0:
                    pages = entry.pages
                else:
                    pages = _count_pages(page_counter, candidate)
                if entry is not None and entry.tag is not None:
                    tag = entry.tag
                else:
                    tag = infer_tag((week_dir.name, *relative_parts[:-1]))
                items.append(
                    StudyItem(
                        path=relative,
                        name=candidate.name,
                        week=week,
                        subject=subject_dir.name,
                        pages=pages,
                        tag=tag,
                    )
                )

    LOGGER.info("Scanned %s PDF(s) under %s", len(items), root)
    return items


def build_tree(items: Iterable[StudyItem]) -> StudyTree:
    """Group *items* as ``week -> subject -> [items]`` sorted by name."""

    tree: StudyTree = {}
    for item in items:
        tree.setdefault(item.week, {}).setdefault(item.subject, []).append(item)
    for subjects in tree.values():
        for bucket in subjects.values():
            bucket.sort(key=lambda item: (item.name.lower(), item.path))
    return {week: tree[week] for week in sorted(tree)}


def flatten_tree(tree: Mapping[int, Mapping[str, Iterable[StudyItem]]]) -> List[StudyItem]:
    return [item for subjects in tree.values() for bucket in subjects.values() for item in bucket]


def serialize_tree(tree: StudyTree) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
    return {
        str(week): {
            subject: [item.to_dict() for item in bucket]
            for subject, bucket in subjects.items()
        }
        for week, subjects in tree.items()
    }


def count_by_category(items: Iterable[StudyItem]) -> Dict[Tuple[str, str], int]:
    """Count classified items per ``(subject, tag)``; unclassified ones are skipped."""

    counts: Counter[Tuple[str, str]] = Counter()
    for item in items:
        if item.tag in (TAG_THEORY, TAG_PRACTICE):
            counts[(item.subject, item.tag)] += 1
    return dict(counts)


__all__ = [
    "PageCounter",
    "StudyItem",
    "StudyTree",
    "TAG_OPTIONS",
    "TAG_PRACTICE",
    "TAG_THEORY",
    "TAG_UNSET",
    "build_tree",
    "count_by_category",
    "flatten_tree",
    "infer_tag",
    "parse_week",
    "scan_materials",
    "serialize_tree",
]
