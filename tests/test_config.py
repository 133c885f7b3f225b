import json
from pathlib import Path

import studydesk.config as config_module
from studydesk.config import AppConfig, load_config


def _mapping() -> dict:
    return {
        "storage_root": "storage",
        "database_file": "storage/studydesk.db",
        "materials_root": "gestor",
        "shortcuts_root": "shortcuts",
    }


def test_paths_are_resolved_against_base_path(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("STUDYDESK_MATERIALS_ROOT", raising=False)

    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    storage = (tmp_path / "storage").resolve()
    assert config.storage_root == storage
    assert config.database_file == storage / "studydesk.db"
    assert config.materials_root == (tmp_path / "gestor").resolve()
    assert config.shortcuts_root == (tmp_path / "shortcuts").resolve()
    assert config.state_file == storage / "notes" / "config.json"


def test_materials_root_can_be_overridden_from_environment(tmp_path: Path, monkeypatch) -> None:
    materials = tmp_path / "elsewhere"
    monkeypatch.setenv("STUDYDESK_MATERIALS_ROOT", str(materials))

    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    assert config.materials_root == materials.resolve()


def test_storage_root_falls_back_when_preferred_is_unusable(
    tmp_path: Path, monkeypatch
) -> None:
    home_dir = tmp_path / "home"
    monkeypatch.setattr(config_module.Path, "home", lambda: home_dir)

    preferred_storage = tmp_path / "storage"
    preferred_storage.write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    expected_storage = (home_dir / ".studydesk" / "storage").resolve()
    assert config.storage_root == expected_storage
    assert config.database_file == (expected_storage / "studydesk.db").resolve()
    assert expected_storage.exists()


def test_load_config_honours_environment_path(tmp_path: Path, monkeypatch) -> None:
    config_file = tmp_path / "custom.json"
    config_file.write_text(json.dumps({**_mapping(), "materials_root": "pdfs"}), encoding="utf-8")
    monkeypatch.setenv("STUDYDESK_CONFIG", str(config_file))
    monkeypatch.delenv("STUDYDESK_MATERIALS_ROOT", raising=False)
    monkeypatch.setattr(config_module, "_prepare_directory", lambda path: True)

    config = load_config()

    assert config.materials_root.name == "pdfs"


def test_database_moves_into_storage_when_its_directory_is_unusable(
    tmp_path: Path, monkeypatch
) -> None:
    monkeypatch.delenv("STUDYDESK_MATERIALS_ROOT", raising=False)
    (tmp_path / "blocked").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(
        {**_mapping(), "database_file": "blocked/progress.db"}, base_path=tmp_path
    )

    assert config.database_file == (tmp_path / "storage").resolve() / "progress.db"
