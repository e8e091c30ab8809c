"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from clinicsplit.config import DB_PATH_ENV, Settings, default_database_path
from clinicsplit.database.sqlalchemy_db import SQLAlchemyDatabase

MEMORY_PATH = ":memory:"


def resolve_database_path(
    database_path: Optional[str] = None, settings: Optional[Settings] = None
) -> str:
    """Pick the SQLite file to open.

    Precedence: explicit path, settings.db_path, CLINICSPLIT_DB_PATH, then
    ~/.clinicsplit/clinicsplit.db.
    """
    if database_path:
        return database_path
    if settings is not None and settings.db_path:
        return settings.db_path
    return os.environ.get(DB_PATH_ENV) or default_database_path()


def create_sqlite_database(
    database_path: Optional[str] = None, settings: Optional[Settings] = None
) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file, or ":memory:" for a
            private in-memory database
        settings: Settings whose db_path is used when database_path is None

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    path = resolve_database_path(database_path, settings)
    if path == MEMORY_PATH:
        return SQLAlchemyDatabase("sqlite://")
    return SQLAlchemyDatabase(f"sqlite:///{Path(path).expanduser()}")
