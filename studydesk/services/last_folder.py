"""Remembers the folder each client last browsed, for a limited number of recalls."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

RECALL_LIMIT = 10


class LastFolderStore:
    def __init__(self, config: AppConfig, *, recall_limit: int = RECALL_LIMIT) -> None:
        self._path = config.last_folder_file
        self._recall_limit = recall_limit
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Dict[str, object]]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Resetting unreadable last-folder store '%s': %s", self._path, error)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, store: Dict[str, Dict[str, object]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(store, indent=2), encoding="utf-8")

    def remember(self, client: str, folder: str) -> None:
        if not folder:
            raise ValueError("Folder path is required")
        with self._lock:
            store = self._read()
            store[client] = {"path": folder, "count": self._recall_limit}
            self._write(store)

    def recall(self, client: str) -> Optional[str]:
        """Return the remembered folder and use up one recall."""

        with self._lock:
            store = self._read()
            entry = store.get(client)
            if not isinstance(entry, dict):
                return None
            count = entry.get("count")
            folder = entry.get("path")
            if not isinstance(count, int) or count <= 0 or not isinstance(folder, str):
                return None
            count -= 1
            if count <= 0:
                del store[client]
            else:
                entry["count"] = count
            self._write(store)
            return folder


__all__ = ["LastFolderStore", "RECALL_LIMIT"]
