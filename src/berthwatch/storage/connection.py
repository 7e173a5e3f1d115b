"""SQLite connection management."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Generator

# Seconds a writer waits on a lock held by another scheduler process
_BUSY_TIMEOUT = 30.0


@contextmanager
def get_connection(
    database_path: str,
    *,
    immediate: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Open a SQLite connection with WAL mode and foreign keys enabled.

    Everything executed inside the block is one transaction: it commits on
    clean exit, rolls back on exception, and the connection always closes.
    With ``immediate`` the write lock is taken when the block starts rather
    than at the first write, so a read-then-write sequence cannot interleave
    with another process writing the same database.
    """
    conn = sqlite3.connect(database_path, timeout=_BUSY_TIMEOUT)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
