from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studydesk.bootstrap import Bootstrapper
from studydesk.config import AppConfig


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "default.json"
    config_file.write_text(
        """
        {
            \"storage_root\": \"storage\",
            \"database_file\": \"storage/studydesk.db\",
            \"materials_root\": \"gestor\",
            \"shortcuts_root\": \"shortcuts\"
        }
        """,
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("STUDYDESK_MATERIALS_ROOT", raising=False)

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "database_file": "storage/studydesk.db",
            "materials_root": "gestor",
            "shortcuts_root": "shortcuts",
        },
        base_path=tmp_path,
    )

    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def make_material(temp_config: AppConfig) -> Callable[[str], Path]:
    """Create an (unparseable) PDF placeholder under the materials root."""

    def _make(relative: str, payload: bytes = b"%PDF-1.4 placeholder") -> Path:
        target = temp_config.materials_root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
        return target

    return _make
