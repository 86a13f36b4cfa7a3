"""Database initialisation from Rapport settings.

Usage::

    from rapport.config import RapportConfig
    from rapport.db.init import init_database

    settings = RapportConfig.load("rapport.yaml").settings
    db = init_database(settings.database)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from rapport.config.settings import DatabaseSettings

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    return DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def init_database(settings: DatabaseSettings) -> Database:
    """Return the connected :class:`Database`, creating the pool on first use.

    When ``auto_setup`` is enabled the bundled ``schema.sql`` is applied,
    which creates the reminders, contacts and run_history tables if
    they do not exist yet.
    """
    if Database.is_initialized():
        log.debug("Database already initialised, reusing pool")
        return Database.get_instance()

    log.info(
        "Connecting to reminder store: %s@%s:%s/%s",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
    )

    db = Database.init(
        config=_settings_to_config(settings),
        schema_path=SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )

    log.info("Reminder store ready")
    return db
