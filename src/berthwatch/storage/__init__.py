"""Storage layer: SQLite database access, schema, and the schedule store."""

from berthwatch.storage.connection import get_connection
from berthwatch.storage.schema import init_db
from berthwatch.storage.store import PersistenceError, ScheduleStore

__all__ = ["PersistenceError", "ScheduleStore", "get_connection", "init_db"]
