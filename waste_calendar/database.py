"""
This module provides database utilities for the waste calendar.

It includes a context manager for handling SQLite database connections to ensure
they are consistently managed and closed. Every block run inside it is a single
transaction: it is committed when the block finishes and rolled back otherwise.
"""
import sqlite3
from contextlib import contextmanager

from .config import DB_BUSY_TIMEOUT_SECONDS
from .exceptions import StoreError


@contextmanager
def get_db_connection(db_path: str):
    """
    A context manager for SQLite database connections.

    Foreign keys are switched on for every connection so that deleting a user
    or a location cascades to the rows that depend on it.

    Args:
        db_path: The path to the SQLite database file.

    Yields:
        A tuple containing the connection and cursor objects.

    Raises:
        StoreError: If the connection or any statement fails.
    """
    conn = None
    try:
        conn = sqlite3.connect(db_path, timeout=DB_BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn, conn.cursor()
        conn.commit()
    except sqlite3.Error as e:
        if conn:
            conn.rollback()
        raise StoreError(f"Database error: {e}") from e
    except BaseException:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()
