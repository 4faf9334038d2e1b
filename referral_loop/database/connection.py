"""Database connection manager for SQLite."""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

from referral_loop import config

from .schema import SCHEMA, TABLES

_connection: sqlite3.Connection | None = None
_lock = threading.RLock()


def get_connection() -> sqlite3.Connection:
    """Get the shared database connection, opening it on first use."""
    global _connection
    with _lock:
        if _connection is None:
            _connection = sqlite3.connect(config.DB_PATH, check_same_thread=False)
            _connection.row_factory = sqlite3.Row
            _connection.execute("PRAGMA foreign_keys = ON")
        return _connection


@contextmanager
def transaction() -> Iterator[sqlite3.Cursor]:
    """Serialized cursor; commits on success and rolls back on error."""
    with _lock:
        conn = get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()


def init_database() -> None:
    """Initialize the database with schema."""
    with _lock:
        conn = get_connection()
        conn.executescript(SCHEMA)
        conn.commit()


def reset_database() -> None:
    """Delete every row from every table."""
    with transaction() as cursor:
        for table in TABLES:
            cursor.execute(f"DELETE FROM {table}")

