"""Tests for berthwatch.storage.store: the schedule store."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from berthwatch.ingestion.normalize import Terminal, VesselRecord
from berthwatch.ingestion.status import Status
from berthwatch.merge.diff import ScheduleChangeEvent
from berthwatch.storage.connection import get_connection
from berthwatch.storage.store import PersistenceError, ScheduleStore

WRITTEN = datetime(2024, 1, 10, 3, 0, tzinfo=timezone.utc)


def _record(source_id="PNC", vessel="VESSEL", voyage="001", **overrides) -> VesselRecord:
    fields = {
        "source_id": source_id,
        "source_name": f"{source_id} Terminal",
        "source_url": f"https://{source_id.lower()}.example",
        "carrier_code": "HMM",
        "vessel_name": vessel,
        "voyage": voyage,
        "mother_voyage": "",
        "arrival": "2024-01-10 08:00",
        "departure": "2024-01-11 08:00",
        "cutoff": "",
        "status": Status.PLANNED,
    }
    fields.update(overrides)
    return VesselRecord(**fields)


def _records(source_id: str, n: int) -> list[VesselRecord]:
    return [_record(source_id, vessel=f"{source_id} VESSEL {i}", voyage=f"{i:03d}") for i in range(n)]


@pytest.fixture()
def store(tmp_path):
    s = ScheduleStore(str(tmp_path / "test.db"))
    s.init()
    return s


class TestReplaceSource:
    def test_round_trip(self, store):
        records = _records("PNC", 3)
        store.replace_source("PNC", records, written_at=WRITTEN)

        stored, updated_at = store.select_by_source("PNC")
        assert stored == records
        assert updated_at == WRITTEN

    def test_replaces_previous_set(self, store):
        store.replace_source("PNC", _records("PNC", 5), written_at=WRITTEN)
        deleted = store.replace_source("PNC", _records("PNC", 2), written_at=WRITTEN)

        assert deleted == 5
        assert store.count_records("PNC") == 2

    def test_other_sources_untouched(self, store):
        bct = _records("BCT", 4)
        store.replace_source("BCT", bct, written_at=WRITTEN)
        store.replace_source("PNC", _records("PNC", 3), written_at=WRITTEN)
        store.replace_source("PNC", _records("PNC", 1), written_at=WRITTEN)

        stored, _ = store.select_by_source("BCT")
        assert stored == bct
        assert store.count_records() == 5

    def test_empty_set_clears_source(self, store):
        store.replace_source("PNC", _records("PNC", 3), written_at=WRITTEN)
        store.replace_source("PNC", [], written_at=WRITTEN)
        assert store.count_records("PNC") == 0

    def test_failed_insert_keeps_previous_set(self, store):
        original = _records("PNC", 3)
        store.replace_source("PNC", original, written_at=WRITTEN)

        with patch.object(
            ScheduleStore, "_insert", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            with pytest.raises(PersistenceError, match="PNC"):
                store.replace_source("PNC", _records("PNC", 7))

        stored, _ = store.select_by_source("PNC")
        assert stored == original

    def test_large_batches(self, store):
        store.replace_source("PNC", _records("PNC", 1201), written_at=WRITTEN)
        assert store.count_records("PNC") == 1201

    def test_status_stored_as_value(self, store):
        store.replace_source("PNC", [_record(status=Status.DEPARTED)], written_at=WRITTEN)
        with get_connection(store.database_path) as conn:
            status = conn.execute("SELECT status FROM vessel_records").fetchone()["status"]
        assert status == "DEPARTED"


class TestReads:
    def test_select_unknown_source(self, store):
        assert store.select_by_source("NOPE") == ([], None)

    def test_source_updated_at(self, store):
        assert store.source_updated_at("PNC") is None
        store.replace_source("PNC", _records("PNC", 1), written_at=WRITTEN)
        assert store.source_updated_at("PNC") == WRITTEN

    def test_write_time_kept_after_empty_replace(self, store):
        store.replace_source("PNC", _records("PNC", 2), written_at=WRITTEN)
        later = WRITTEN.replace(hour=4)
        store.replace_source("PNC", [], written_at=later)

        assert store.count_records("PNC") == 0
        assert store.source_updated_at("PNC") == later
        assert store.select_by_source("PNC") == ([], later)

    def test_failed_replace_keeps_write_time(self, store):
        store.replace_source("PNC", _records("PNC", 1), written_at=WRITTEN)
        with patch.object(ScheduleStore, "_insert", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(PersistenceError):
                store.replace_source("PNC", _records("PNC", 2), written_at=WRITTEN.replace(hour=5))
        assert store.source_updated_at("PNC") == WRITTEN

    def test_preserves_insertion_order(self, store):
        records = [_record(vessel="ZULU"), _record(vessel="ALPHA"), _record(vessel="MIKE")]
        store.replace_source("PNC", records, written_at=WRITTEN)
        stored, _ = store.select_by_source("PNC")
        assert [r.vessel_name for r in stored] == ["ZULU", "ALPHA", "MIKE"]


class TestDeleteAndInsert:
    def test_delete_by_source(self, store):
        store.bulk_insert(_records("PNC", 2) + _records("BCT", 3), written_at=WRITTEN)
        assert store.delete_by_source("PNC") == 2
        assert store.count_records() == 3

    def test_bulk_insert_returns_count(self, store):
        assert store.bulk_insert(_records("PNC", 4)) == 4
        assert store.source_updated_at("PNC") is not None


class TestTerminals:
    def test_register_terminals_ranks_ports(self, store):
        terminals = [
            Terminal("PNC", "부산신항만(PNC)", "https://svc.pncport.com", "부산신항"),
            Terminal("PCTC", "BPT 감만(PCTC)", "http://www.pctc21.com", "부산"),
            Terminal("XYZ", "Somewhere", "https://xyz.example", "목포"),
        ]
        store.register_terminals(terminals, ["부산", "부산신항", "인천"])

        with get_connection(store.database_path) as conn:
            rows = conn.execute("SELECT code, port_rank FROM terminals").fetchall()
        ranks = {r["code"]: r["port_rank"] for r in rows}
        assert ranks == {"PCTC": 0, "PNC": 1, "XYZ": 999}

    def test_register_terminals_updates(self, store):
        store.register_terminals([Terminal("PNC", "Old", "https://old", "부산신항")], [])
        store.register_terminals([Terminal("PNC", "New", "https://new", "부산신항")], [])
        with get_connection(store.database_path) as conn:
            rows = conn.execute("SELECT name, url FROM terminals").fetchall()
        assert [(r["name"], r["url"]) for r in rows] == [("New", "https://new")]


class TestChangeLogAndStatus:
    def test_append_change_events(self, store):
        event = ScheduleChangeEvent(
            source_id="PNC", vessel_name="HANJIN BUSAN", voyage="001E",
            field_name="arrival", old_value="2024-01-10 08:00",
            new_value="2024-01-10 10:05", delay_minutes=125,
            detected_at=WRITTEN.isoformat(),
        )
        assert store.append_change_events([event]) == 1
        assert store.append_change_events([]) == 0

        with get_connection(store.database_path) as conn:
            row = conn.execute("SELECT * FROM schedule_changes").fetchone()
        assert row["delay_minutes"] == 125
        assert row["field_name"] == "arrival"

    def test_refresh_global_status(self, store):
        store.bulk_insert(_records("PNC", 3) + _records("BCT", 2))
        total = store.refresh_global_status("2024-01-10T12:00:00+09:00")

        assert total == 5
        with get_connection(store.database_path) as conn:
            row = conn.execute("SELECT * FROM crawl_status WHERE id = 1").fetchone()
        assert row["last_updated"] == "2024-01-10T12:00:00+09:00"
        assert row["total_records"] == 5
