"""Read-only SQLite access for the web process."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Generator
from urllib.parse import quote

# Readers wait briefly while the crawler checkpoints the WAL
_READ_TIMEOUT = 5.0


def _casefold(value: object) -> object:
    return value.casefold() if isinstance(value, str) else value


def readonly_uri(database_path: str) -> str:
    """Build a read-only SQLite URI, escaping characters URIs reserve."""
    return f"file:{quote(database_path)}?mode=ro"


@contextmanager
def get_readonly_connection(database_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Open a read-only connection to the crawler's database.

    The URI ``mode=ro`` refuses writes at open time and ``query_only`` refuses
    them per statement. Queries can call ``casefold()``, which folds case the
    way Python does. A missing database file raises
    ``sqlite3.OperationalError`` instead of creating an empty one.
    """
    conn = sqlite3.connect(readonly_uri(database_path), uri=True, timeout=_READ_TIMEOUT)
    conn.execute("PRAGMA query_only=ON")
    # SQLite's own lower() only folds ASCII
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
