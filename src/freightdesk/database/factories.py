"""Database factory functions for creating database instances."""

import logging
import os
from pathlib import Path
from typing import Optional

from freightdesk.database.sqlalchemy_db import SQLAlchemyDatabase

logger = logging.getLogger(__name__)

DB_URL_ENV = "FREIGHTDESK_DB_URL"
DB_PATH_ENV = "FREIGHTDESK_DB_PATH"


def default_database_path() -> str:
    """Return ~/.freightdesk/freightdesk.db, creating the directory."""
    db_dir = Path.home() / ".freightdesk"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "freightdesk.db")


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks
            FREIGHTDESK_DB_PATH, then defaults to ~/.freightdesk/freightdesk.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get(DB_PATH_ENV) or default_database_path()

    db = SQLAlchemyDatabase(f"sqlite:///{database_path}")
    db.database_path = database_path
    return db


def create_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create the application database.

    A path, given directly or through FREIGHTDESK_DB_PATH, always means
    SQLite. FREIGHTDESK_DB_URL is used only when no path is set, and the
    default file when neither is.
    """
    if database_path is None:
        database_path = os.environ.get(DB_PATH_ENV) or None
    if database_path is None:
        database_url = os.environ.get(DB_URL_ENV)
        if database_url:
            logger.debug("Using database URL from %s", DB_URL_ENV)
            return SQLAlchemyDatabase(database_url)
    return create_sqlite_database(database_path)
