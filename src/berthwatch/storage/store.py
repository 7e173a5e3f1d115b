"""Schedule store: the persistence contract the crawl core reads and writes through."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

from berthwatch.ingestion.normalize import Terminal, VesselRecord
from berthwatch.ingestion.status import Status
from berthwatch.merge.diff import ScheduleChangeEvent
from berthwatch.storage.connection import get_connection
from berthwatch.storage.schema import init_db

logger = logging.getLogger(__name__)

_INSERT_BATCH = 500
_UNKNOWN_PORT_RANK = 999

_RECORD_COLUMNS = (
    "source_id, source_name, source_url, carrier_code, vessel_name, voyage, "
    "mother_voyage, arrival, departure, cutoff, status"
)


class PersistenceError(Exception):
    """Raised when a store write fails."""


def _row_to_record(row: sqlite3.Row) -> VesselRecord:
    return VesselRecord(
        source_id=row["source_id"],
        source_name=row["source_name"],
        source_url=row["source_url"],
        carrier_code=row["carrier_code"],
        vessel_name=row["vessel_name"],
        voyage=row["voyage"],
        mother_voyage=row["mother_voyage"],
        arrival=row["arrival"],
        departure=row["departure"],
        cutoff=row["cutoff"],
        status=Status(row["status"]),
    )


def _parse_stamp(value: str | None) -> datetime | None:
    if not value:
        return None
    stamp = datetime.fromisoformat(value)
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


class ScheduleStore:
    """SQLite-backed store for terminal schedules and their change log.

    Constructed explicitly and passed to the components that need it; each
    method opens its own connection, so one instance can be shared between
    the scheduler thread and the web process.
    """

    def __init__(self, database_path: str) -> None:
        self.database_path = database_path

    def init(self) -> None:
        """Create the schema if needed."""
        init_db(self.database_path)

    # -- catalog ----------------------------------------------------------

    def register_terminals(self, terminals: list[Terminal], port_order: list[str]) -> None:
        """Upsert the terminal catalog with each terminal's port ranking."""
        ranks = {port: i for i, port in enumerate(port_order)}
        with get_connection(self.database_path) as conn:
            conn.executemany(
                "INSERT INTO terminals (code, name, url, port, port_rank) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(code) DO UPDATE SET "
                "name = excluded.name, url = excluded.url, "
                "port = excluded.port, port_rank = excluded.port_rank",
                [
                    (t.code, t.name, t.url, t.port, ranks.get(t.port, _UNKNOWN_PORT_RANK))
                    for t in terminals
                ],
            )

    # -- reads ------------------------------------------------------------

    def select_by_source(self, source_id: str) -> tuple[list[VesselRecord], datetime | None]:
        """Return a source's persisted records (in insertion order) and their write time."""
        with get_connection(self.database_path) as conn:
            rows = conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM vessel_records "  # noqa: S608
                "WHERE source_id = ? ORDER BY id",
                (source_id,),
            ).fetchall()
            updated_at = self._written_at(conn, source_id)
        return [_row_to_record(r) for r in rows], updated_at

    def source_updated_at(self, source_id: str) -> datetime | None:
        """Return the last time a snapshot was written for a source, or None.

        The stamp outlives the rows, so a source cleared by an empty
        snapshot still counts as freshly written.
        """
        with get_connection(self.database_path) as conn:
            return self._written_at(conn, source_id)

    @staticmethod
    def _written_at(conn: sqlite3.Connection, source_id: str) -> datetime | None:
        row = conn.execute(
            "SELECT written_at FROM source_writes WHERE source_id = ?", (source_id,)
        ).fetchone()
        return _parse_stamp(row["written_at"]) if row else None

    def count_records(self, source_id: str | None = None) -> int:
        with get_connection(self.database_path) as conn:
            if source_id is None:
                return conn.execute("SELECT COUNT(*) FROM vessel_records").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM vessel_records WHERE source_id = ?", (source_id,)
            ).fetchone()[0]

    # -- writes -----------------------------------------------------------

    @staticmethod
    def _delete(conn: sqlite3.Connection, source_id: str) -> int:
        return conn.execute(
            "DELETE FROM vessel_records WHERE source_id = ?", (source_id,)
        ).rowcount

    @staticmethod
    def _insert(conn: sqlite3.Connection, records: list[VesselRecord], written_at: str) -> int:
        rows = [
            (
                r.source_id, r.source_name, r.source_url, r.carrier_code, r.vessel_name,
                r.voyage, r.mother_voyage, r.arrival, r.departure, r.cutoff,
                Status(r.status).value, written_at,
            )
            for r in records
        ]
        for i in range(0, len(rows), _INSERT_BATCH):
            conn.executemany(
                f"INSERT INTO vessel_records ({_RECORD_COLUMNS}, updated_at) "  # noqa: S608
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows[i : i + _INSERT_BATCH],
            )
        return len(rows)

    @staticmethod
    def _stamp(conn: sqlite3.Connection, source_ids: set[str], written_at: str) -> None:
        conn.executemany(
            "INSERT INTO source_writes (source_id, written_at) VALUES (?, ?) "
            "ON CONFLICT(source_id) DO UPDATE SET written_at = excluded.written_at",
            [(source_id, written_at) for source_id in sorted(source_ids)],
        )

    def delete_by_source(self, source_id: str) -> int:
        """Delete every record of a source. Returns the number deleted."""
        try:
            with get_connection(self.database_path) as conn:
                return self._delete(conn, source_id)
        except sqlite3.Error as exc:
            raise PersistenceError(f"delete failed for {source_id}: {exc}") from exc

    def bulk_insert(self, records: list[VesselRecord], written_at: datetime | None = None) -> int:
        """Insert records stamped with the write time. Returns the number inserted."""
        stamp = (written_at or datetime.now(timezone.utc)).isoformat()
        try:
            with get_connection(self.database_path) as conn:
                self._stamp(conn, {r.source_id for r in records}, stamp)
                return self._insert(conn, records, stamp)
        except sqlite3.Error as exc:
            raise PersistenceError(f"insert failed: {exc}") from exc

    def replace_source(
        self,
        source_id: str,
        records: list[VesselRecord],
        written_at: datetime | None = None,
    ) -> int:
        """Swap a source's record set for a new one in a single transaction.

        A failure rolls back to the previous set. The source's write stamp is
        updated in the same transaction, even when ``records`` is empty.
        Returns the number of records deleted.
        """
        stamp = (written_at or datetime.now(timezone.utc)).isoformat()
        try:
            with get_connection(self.database_path, immediate=True) as conn:
                deleted = self._delete(conn, source_id)
                self._insert(conn, records, stamp)
                self._stamp(conn, {source_id}, stamp)
        except sqlite3.Error as exc:
            raise PersistenceError(f"replace failed for {source_id}: {exc}") from exc
        return deleted

    def append_change_events(self, events: list[ScheduleChangeEvent]) -> int:
        """Append change events to the audit log. Returns the number written."""
        if not events:
            return 0
        try:
            with get_connection(self.database_path) as conn:
                conn.executemany(
                    "INSERT INTO schedule_changes "
                    "(source_id, vessel_name, voyage, field_name, old_value, new_value, "
                    "delay_minutes, detected_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            e.source_id, e.vessel_name, e.voyage, e.field_name,
                            e.old_value, e.new_value, e.delay_minutes, e.detected_at,
                        )
                        for e in events
                    ],
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"change log append failed: {exc}") from exc
        return len(events)

    def update_global_status(self, last_updated: str, total_count: int) -> None:
        try:
            with get_connection(self.database_path) as conn:
                conn.execute(
                    "UPDATE crawl_status SET last_updated = ?, total_records = ? WHERE id = 1",
                    (last_updated, total_count),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"status update failed: {exc}") from exc

    def refresh_global_status(self, last_updated: str) -> int:
        """Recount all records and store them with the given update time."""
        total = self.count_records()
        self.update_global_status(last_updated, total)
        return total
