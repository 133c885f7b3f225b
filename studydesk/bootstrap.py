"""Bootstrap logic that prepares runtime directories and the SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from . import config as config_module
from .config import AppConfig, load_config
from .errors import BootstrapError

LOGGER = logging.getLogger(__name__)


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        """Run all bootstrap tasks."""

        LOGGER.debug("Starting bootstrap sequence")
        self._ensure_directories()
        self._ensure_database()
        LOGGER.info("Bootstrap completed successfully")

    def _ensure_directories(self) -> None:
        for label, path in (
            ("storage", self._config.storage_root),
            ("notes", self._config.notes_root),
        ):
            if not config_module._prepare_directory(path):
                raise BootstrapError(f"The {label} directory '{path}' is not writable")
            LOGGER.debug("Ensured directory exists: %s", path)

        if not self._config.materials_root.is_dir():
            LOGGER.warning(
                "Materials directory '%s' does not exist yet; the catalog will be empty.",
                self._config.materials_root,
            )

    def _ensure_database(self) -> None:
        LOGGER.debug("Ensuring database schema at %s", self._config.database_file)
        try:
            connection = sqlite3.connect(self._config.database_file)
        except sqlite3.Error as error:
            raise BootstrapError(
                f"Unable to open database '{self._config.database_file}': {error}"
            ) from error
        try:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS progress (
                    subject_name TEXT NOT NULL,
                    table_type TEXT NOT NULL,
                    current_progress INTEGER NOT NULL DEFAULT 0,
                    total_pdfs INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY(subject_name, table_type)
                );

                CREATE TABLE IF NOT EXISTS daily_time (
                    date TEXT PRIMARY KEY,
                    weekday TEXT NOT NULL,
                    minutes INTEGER NOT NULL DEFAULT 0
                );
                """
            )
            connection.commit()
        finally:
            connection.close()


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Convenience helper that loads configuration and runs initialization."""

    config = load_config(config_path=config_path)
    bootstrapper = Bootstrapper(config)
    bootstrapper.initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]
