"""Database layer for clinicsplit application."""

from clinicsplit.database.base import Database
from clinicsplit.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
