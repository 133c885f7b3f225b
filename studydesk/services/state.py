"""Persistence for the application state blob.

The blob lives in a single JSON file. Writes are serialised through a lock,
land in a temporary file first and are then moved into place. Every save bumps
``version``; callers that pass ``expected_version`` get a
:class:`~studydesk.errors.StaleStateError` instead of silently overwriting a
newer write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from ..config import AppConfig
from ..errors import StaleStateError
from .metadata import MetadataEntry, MetadataMap
from .schedule import Schedule

LOGGER = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "version",
    "completed",
    "theory",
    "practice",
    "metadata",
    "lastOpened",
    "basePath",
}


@dataclass
class AppState:
    """Explicit representation of everything the client persists."""

    version: int = 0
    completed: Dict[str, bool] = field(default_factory=dict)
    schedule: Schedule = field(default_factory=Schedule)
    metadata: MetadataMap = field(default_factory=dict)
    last_opened: Optional[str] = None
    base_path: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "AppState":
        mapping = mapping or {}
        completed_raw = mapping.get("completed") or {}
        metadata_raw = mapping.get("metadata") or {}
        last_opened = mapping.get("lastOpened")
        base_path = mapping.get("basePath")
        version = mapping.get("version")
        return cls(
            version=version if isinstance(version, int) and not isinstance(version, bool) else 0,
            completed={
                str(path): bool(flag)
                for path, flag in completed_raw.items()
            }
            if isinstance(completed_raw, Mapping)
            else {},
            schedule=Schedule.from_mapping(mapping),
            metadata={
                str(path): MetadataEntry.from_mapping(entry)
                for path, entry in metadata_raw.items()
                if isinstance(entry, Mapping)
            }
            if isinstance(metadata_raw, Mapping)
            else {},
            last_opened=last_opened if isinstance(last_opened, str) and last_opened else None,
            base_path=base_path if isinstance(base_path, str) and base_path else None,
            extra={key: value for key, value in mapping.items() if key not in _KNOWN_KEYS},
        )

    def to_mapping(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "version": self.version,
                "completed": dict(self.completed),
                "theory": dict(self.schedule.theory),
                "practice": dict(self.schedule.practice),
                "metadata": {path: entry.to_mapping() for path, entry in self.metadata.items()},
                "lastOpened": self.last_opened,
                "basePath": self.base_path,
            }
        )
        return payload

    def completed_count(self) -> int:
        return sum(1 for flag in self.completed.values() if flag)


class StateStore:
    """Load and save :class:`AppState` with a single-writer discipline."""

    def __init__(self, config: AppConfig) -> None:
        self._path = config.state_file
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppState:
        with self._lock:
            return self._read()

    def _read(self) -> AppState:
        if not self._path.exists():
            return AppState()
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Ignoring unreadable state file '%s': %s", self._path, error)
            return AppState()
        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring state file '%s' with a non-object payload", self._path)
            return AppState()
        return AppState.from_mapping(payload)

    def save(self, state: AppState, *, expected_version: Optional[int] = None) -> AppState:
        """Persist *state* and return it with the new version stamp."""

        with self._lock:
            current = self._read()
            if expected_version is not None and expected_version != current.version:
                raise StaleStateError(expected_version, current.version)
            stored = replace(state, version=current.version + 1)
            self._write(stored.to_mapping())
            LOGGER.debug("Saved state version %s to %s", stored.version, self._path)
            return stored

    def update(self, mutate: Callable[[AppState], AppState]) -> AppState:
        """Apply *mutate* to the latest state and persist the result atomically."""

        with self._lock:
            current = self._read()
            return self.save(mutate(current), expected_version=current.version)

    def _write(self, payload: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        descriptor, temp_name = tempfile.mkstemp(
            prefix=".config-", suffix=".json", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise


__all__ = ["AppState", "StateStore"]
