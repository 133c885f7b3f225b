"""Named JSON documents stored next to the state blob."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_NOTES_FILE = "prompts.json"


class NoteStore:
    """Read and write arbitrary JSON documents under the notes directory."""

    def __init__(self, config: AppConfig) -> None:
        self._root = config.notes_root

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, name: Optional[str]) -> Path:
        """Return the file backing *name*, refusing names that leave the directory."""

        candidate_name = (name or DEFAULT_NOTES_FILE).strip()
        if not candidate_name:
            raise ValueError("Note name is required")
        target = (self._root / candidate_name).resolve()
        try:
            target.relative_to(self._root.resolve())
        except ValueError as error:
            raise ValueError(f"Invalid note name: {candidate_name!r}") from error
        if target == self._root.resolve():
            raise ValueError(f"Invalid note name: {candidate_name!r}")
        return target

    def read(self, name: Optional[str] = None) -> Any:
        target = self.resolve(name)
        if not target.exists():
            return {}
        try:
            return json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Could not read note '%s': %s", target, error)
            return {}

    def write(self, name: Optional[str], data: Any) -> Path:
        target = self.resolve(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        LOGGER.debug("Stored note %s", target.name)
        return target


__all__ = ["DEFAULT_NOTES_FILE", "NoteStore"]
