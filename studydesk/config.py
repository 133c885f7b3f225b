"""Configuration loading utilities for Study Desk."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence


LOGGER = logging.getLogger(__name__)


_CONFIG_ENV = "STUDYDESK_CONFIG"
_MATERIALS_ENV = "STUDYDESK_MATERIALS_ROOT"


def _prepare_directory(path: Path) -> bool:
    """Create *path* if needed and report whether files can be written there."""

    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=path):
            pass
    except OSError:
        return False
    return True


def _first_usable(candidates: Sequence[Path], *, label: str) -> Path:
    """Return the first candidate directory that :func:`_prepare_directory` accepts.

    Falls back to the first candidate so bootstrap can report the failure.
    """

    for index, candidate in enumerate(candidates):
        if _prepare_directory(candidate):
            if index:
                LOGGER.warning("Using %s directory '%s' instead of '%s'.", label, candidate, candidates[0])
            return candidate
    LOGGER.warning("No writable %s directory among: %s", label, ", ".join(map(str, candidates)))
    return candidates[0]


@dataclass(frozen=True)
class AppConfig:
    """Runtime paths for the application."""

    storage_root: Path
    database_file: Path
    materials_root: Path
    shortcuts_root: Path

    @property
    def notes_root(self) -> Path:
        """Directory holding the state blob and free-form note files."""

        return (self.storage_root / "notes").resolve()

    @property
    def state_file(self) -> Path:
        return self.notes_root / "config.json"

    @property
    def last_folder_file(self) -> Path:
        return (self.storage_root / "last-folders.json").resolve()

    @property
    def videos_file(self) -> Path:
        return (self.storage_root / "videos.json").resolve()

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_root = _first_usable(
            (preferred_storage, (Path.home() / ".studydesk" / "storage").resolve()),
            label="storage",
        )

        database_file = (base_path / mapping["database_file"]).resolve()
        if storage_root != preferred_storage and database_file.is_relative_to(preferred_storage):
            database_file = storage_root / database_file.relative_to(preferred_storage)
        if not _prepare_directory(database_file.parent):
            database_file = _first_usable((database_file.parent, storage_root), label="database") / database_file.name

        # Materials are only read, so no writability check applies.
        materials_value = os.environ.get(_MATERIALS_ENV) or mapping.get("materials_root", "materials")
        materials_root = (base_path / materials_value).resolve()
        shortcuts_root = (base_path / mapping.get("shortcuts_root", "shortcuts")).resolve()

        return cls(
            storage_root=storage_root,
            database_file=database_file,
            materials_root=materials_root,
            shortcuts_root=shortcuts_root,
        )


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load configuration from ``config/default.json`` unless told otherwise."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        override = os.environ.get(_CONFIG_ENV)
        config_path = Path(override) if override else base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "load_config"]
