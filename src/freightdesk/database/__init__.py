"""Database layer for freightdesk application."""

from freightdesk.database.base import Database
from freightdesk.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
