"""Database schema definition and initialization."""

from __future__ import annotations

import logging

from berthwatch.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- Terminal catalog, refreshed from the sources config on every cycle
CREATE TABLE IF NOT EXISTS terminals (
    code        TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    url         TEXT NOT NULL,
    port        TEXT NOT NULL DEFAULT '',
    port_rank   INTEGER NOT NULL DEFAULT 999
);

-- Current berth schedule snapshot, replaced per source on each successful crawl
CREATE TABLE IF NOT EXISTS vessel_records (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id           TEXT NOT NULL,
    source_name         TEXT NOT NULL,
    source_url          TEXT NOT NULL,
    carrier_code        TEXT NOT NULL,
    vessel_name         TEXT NOT NULL,
    voyage              TEXT NOT NULL DEFAULT '',
    mother_voyage       TEXT NOT NULL DEFAULT '',
    arrival             TEXT NOT NULL DEFAULT '',
    departure           TEXT NOT NULL DEFAULT '',
    cutoff              TEXT NOT NULL DEFAULT '',
    status              TEXT NOT NULL CHECK (status IN ('PLANNED', 'ARRIVED', 'DEPARTED')),
    updated_at          TEXT NOT NULL
);

-- Last snapshot write per source, kept when a write leaves no rows
CREATE TABLE IF NOT EXISTS source_writes (
    source_id   TEXT PRIMARY KEY,
    written_at  TEXT NOT NULL
);

-- Append-only log of meaningful schedule slips
CREATE TABLE IF NOT EXISTS schedule_changes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id       TEXT NOT NULL,
    vessel_name     TEXT NOT NULL,
    voyage          TEXT NOT NULL,
    field_name      TEXT NOT NULL CHECK (field_name IN ('arrival', 'departure', 'cutoff')),
    old_value       TEXT NOT NULL,
    new_value       TEXT NOT NULL,
    delay_minutes   INTEGER NOT NULL,
    detected_at     TEXT NOT NULL
);

-- Global dataset status (single row)
CREATE TABLE IF NOT EXISTS crawl_status (
    id              INTEGER PRIMARY KEY CHECK (id = 1),
    last_updated    TEXT,
    total_records   INTEGER NOT NULL DEFAULT 0
);
INSERT OR IGNORE INTO crawl_status (id, last_updated, total_records) VALUES (1, NULL, 0);

-- Consecutive fetch failures per source
CREATE TABLE IF NOT EXISTS source_errors (
    source_id               TEXT PRIMARY KEY,
    consecutive_failures    INTEGER NOT NULL DEFAULT 0,
    last_error              TEXT,
    last_failed_at          TEXT,
    last_succeeded_at       TEXT
);

-- Crawl cycle tracking
CREATE TABLE IF NOT EXISTS pipeline_runs (
    id          TEXT PRIMARY KEY,
    run_type    TEXT NOT NULL CHECK (run_type IN ('crawl')),
    started_at  TEXT NOT NULL,
    finished_at TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('success', 'error', 'skipped')),
    result      TEXT NOT NULL,   -- JSON
    error       TEXT
);

-- Indexes: vessel_records
CREATE INDEX IF NOT EXISTS idx_vessel_records_source_id ON vessel_records(source_id);
CREATE INDEX IF NOT EXISTS idx_vessel_records_updated_at ON vessel_records(source_id, updated_at);

-- Indexes: schedule_changes
CREATE INDEX IF NOT EXISTS idx_schedule_changes_source_id ON schedule_changes(source_id);
CREATE INDEX IF NOT EXISTS idx_schedule_changes_detected_at ON schedule_changes(detected_at);

-- Indexes: pipeline_runs
CREATE INDEX IF NOT EXISTS idx_pipeline_runs_started_at ON pipeline_runs(started_at);
"""


def init_db(database_path: str) -> None:
    """Create all tables and indexes if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
    logger.info("Database initialized at %s", database_path)
