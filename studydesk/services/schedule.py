"""Weekday arithmetic used to rank subjects by their next scheduled session.

Weekdays follow the ``0=Sunday .. 6=Saturday`` convention throughout. A
subject assigned to today's weekday is treated as a full week away: the
session is happening now, so the material is the least urgent to prepare.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping, Optional

DAYS_IN_WEEK = 7
DEFAULT_URGENCY = DAYS_IN_WEEK

_DAY_NAMES: Dict[str, int] = {
    "domingo": 0,
    "lunes": 1,
    "martes": 2,
    "miercoles": 3,
    "jueves": 4,
    "viernes": 5,
    "sabado": 6,
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def parse_weekday(value: Any) -> Optional[int]:
    """Return the weekday number for *value* or ``None`` when unrecognised."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value < DAYS_IN_WEEK else None
    if isinstance(value, str):
        folded = _fold(value)
        if not folded:
            return None
        if folded.isdigit():
            return parse_weekday(int(folded))
        return _DAY_NAMES.get(folded)
    return None


def js_weekday(moment: Optional[date] = None) -> int:
    """Return the weekday of *moment* (default: today) with Sunday as 0."""

    moment = moment or date.today()
    return moment.isoweekday() % DAYS_IN_WEEK


def days_until(assigned: int, today: int) -> int:
    diff = assigned - today
    if diff < 0:
        diff += DAYS_IN_WEEK
    if diff == 0:
        diff = DAYS_IN_WEEK
    return diff


@dataclass
class Schedule:
    """Weekday assignments per subject, kept separately for theory and practice."""

    theory: Dict[str, Any] = field(default_factory=dict)
    practice: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "Schedule":
        mapping = mapping or {}
        theory = mapping.get("theory") or {}
        practice = mapping.get("practice") or {}
        return cls(
            theory=dict(theory) if isinstance(theory, Mapping) else {},
            practice=dict(practice) if isinstance(practice, Mapping) else {},
        )

    def to_mapping(self) -> Dict[str, Dict[str, Any]]:
        return {"theory": dict(self.theory), "practice": dict(self.practice)}

    def assigned_days(self, subject: str) -> Dict[str, int]:
        """Return the parsed weekdays assigned to *subject* keyed by category."""

        days: Dict[str, int] = {}
        for category, table in (("theory", self.theory), ("practice", self.practice)):
            parsed = parse_weekday(table.get(subject))
            if parsed is not None:
                days[category] = parsed
        return days


def subject_urgency(subject: str, schedule: Schedule, today: int) -> int:
    """Return the number of days until *subject*'s next session, in ``[1, 7]``."""

    days = schedule.assigned_days(subject)
    if not days:
        return DEFAULT_URGENCY
    return min(days_until(assigned, today) for assigned in days.values())


__all__ = [
    "DAYS_IN_WEEK",
    "DEFAULT_URGENCY",
    "Schedule",
    "days_until",
    "js_weekday",
    "parse_weekday",
    "subject_urgency",
]
