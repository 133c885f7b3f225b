import sqlite3
from pathlib import Path

import pytest

import studydesk.config as config_module
from studydesk.bootstrap import BootstrapError, Bootstrapper
from studydesk.config import AppConfig


def _config(tmp_path: Path) -> AppConfig:
    storage_root = tmp_path / "storage"
    return AppConfig(
        storage_root=storage_root,
        database_file=storage_root / "studydesk.db",
        materials_root=tmp_path / "gestor",
        shortcuts_root=tmp_path / "shortcuts",
    )


def test_bootstrapper_creates_directories_and_schema(tmp_path: Path) -> None:
    config = _config(tmp_path)

    Bootstrapper(config).initialize()

    assert config.notes_root.is_dir()
    connection = sqlite3.connect(config.database_file)
    try:
        tables = {
            row[0]
            for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
    finally:
        connection.close()
    assert {"progress", "daily_time"} <= tables


def test_bootstrapper_raises_when_storage_directory_unwritable(
    tmp_path: Path, monkeypatch
) -> None:
    config = _config(tmp_path)
    storage_root = config.storage_root

    original_prepare = config_module._prepare_directory

    def fake_prepare(path: Path) -> bool:
        if path.resolve() == storage_root.resolve():
            return False
        return original_prepare(path)

    monkeypatch.setattr(config_module, "_prepare_directory", fake_prepare)

    bootstrapper = Bootstrapper(config)

    with pytest.raises(BootstrapError) as excinfo:
        bootstrapper.initialize()

    assert "storage" in str(excinfo.value).lower()
