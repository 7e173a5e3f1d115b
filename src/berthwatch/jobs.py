"""Scheduled job functions: the crawl cycle."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from berthwatch.config import Config, SourcesCatalog, load_sources
import berthwatch.ingestion  # noqa: F401 registers adapters
from berthwatch.ingestion.adapter import SourceAdapter
from berthwatch.ingestion.normalize import CrawlWindow
from berthwatch.ingestion.orchestrator import CycleResult, run_all
from berthwatch.ingestion.registry import build_adapter
from berthwatch.merge.engine import MergeEngine, MergeResult
from berthwatch.storage.connection import get_connection
from berthwatch.storage.store import ScheduleStore

logger = logging.getLogger(__name__)

# Held for the whole cycle; a trigger arriving while it is held is skipped
_cycle_lock = threading.Lock()


def _record_run(
    database_path: str,
    run_type: str,
    started_at: str,
    result: dict,
    status: str = "success",
    error: str | None = None,
) -> None:
    """Insert a pipeline run record into the pipeline_runs table."""
    finished_at = datetime.now(timezone.utc).isoformat()
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO pipeline_runs "
            "(id, run_type, started_at, finished_at, status, result, error) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                str(uuid.uuid4()),
                run_type,
                started_at,
                finished_at,
                status,
                json.dumps(result),
                error,
            ),
        )


def _record_source_failure(database_path: str, source_id: str, error_msg: str) -> int:
    """Record a source fetch failure. Returns updated consecutive_failures count."""
    now = datetime.now(timezone.utc).isoformat()
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO source_errors "
            "(source_id, consecutive_failures, last_error, last_failed_at) "
            "VALUES (?, 1, ?, ?) "
            "ON CONFLICT(source_id) DO UPDATE SET "
            "consecutive_failures = consecutive_failures + 1, "
            "last_error = excluded.last_error, last_failed_at = excluded.last_failed_at",
            (source_id, error_msg, now),
        )
        row = conn.execute(
            "SELECT consecutive_failures FROM source_errors WHERE source_id = ?",
            (source_id,),
        ).fetchone()
    return row["consecutive_failures"] if row else 1


def _record_source_success(database_path: str, source_id: str) -> None:
    """Reset the consecutive failure count for a source after a successful fetch."""
    now = datetime.now(timezone.utc).isoformat()
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO source_errors "
            "(source_id, consecutive_failures, last_succeeded_at) "
            "VALUES (?, 0, ?) "
            "ON CONFLICT(source_id) DO UPDATE SET "
            "consecutive_failures = 0, last_succeeded_at = excluded.last_succeeded_at",
            (source_id, now),
        )


def build_adapters(catalog: SourcesCatalog, config: Config) -> list[SourceAdapter]:
    """Instantiate adapters for every enabled source. Misconfigured sources are skipped."""
    adapters: list[SourceAdapter] = []
    for source in catalog.sources:
        if not source.enabled:
            continue
        try:
            adapter = build_adapter(
                source.type,
                source.terminal,
                source.options,
                timeout=config.fetch_timeout_seconds,
                timezone=config.source_timezone,
            )
        except ValueError:
            logger.exception("Source '%s' is misconfigured, skipping", source.terminal.code)
            continue
        if adapter is None:
            logger.warning(
                "Unknown adapter type '%s' for source '%s', skipping",
                source.type, source.terminal.code,
            )
            continue
        adapters.append(adapter)
    return adapters


def _track_outcomes(config: Config, cycle: CycleResult) -> None:
    """Update per-source failure counters from a cycle's fetch outcomes.

    An empty result from a source that opted into overwrite_on_empty is
    applied like any snapshot, so it counts as a success.
    """
    for outcome in cycle.outcomes:
        if outcome.status == "ok" or outcome.source_id in cycle.records_by_source:
            _record_source_success(config.database_path, outcome.source_id)
            continue
        consecutive = _record_source_failure(
            config.database_path,
            outcome.source_id,
            outcome.error or "returned 0 records",
        )
        if consecutive >= config.source_failure_warn_threshold:
            logger.warning(
                "Source '%s' has failed %d consecutive cycle(s); last error: %s",
                outcome.source_id, consecutive, outcome.error or "returned 0 records",
            )


def _summarize(cycle: CycleResult, merges: list[MergeResult], total: int, elapsed: float) -> dict:
    return {
        "sources": len(cycle.outcomes),
        "fetched": {o.source_id: o.record_count for o in cycle.outcomes if o.status == "ok"},
        "empty": cycle.empty,
        "failed": cycle.failed,
        "merged": [m.source_id for m in merges if m.status == "merged"],
        "skipped_fresh": [m.source_id for m in merges if m.status == "skipped"],
        "merge_failed": [m.source_id for m in merges if m.status == "failed"],
        "change_events": sum(m.events for m in merges),
        "total_records": total,
        "elapsed_seconds": round(elapsed, 1),
    }


def crawl_cycle(config: Config, store: ScheduleStore | None = None) -> dict:
    """Fetch every enabled source, then merge the successful ones one by one.

    Source-level failures are absorbed; errors loading the sources file or
    reaching the store propagate. Returns a summary of the cycle.
    """
    started = time.monotonic()
    store = store or ScheduleStore(config.database_path)

    catalog = load_sources(config.sources_config_path)
    store.register_terminals(catalog.terminals, catalog.port_order)
    adapters = build_adapters(catalog, config)

    today = datetime.now(ZoneInfo(config.source_timezone)).date()
    window = CrawlWindow.around(today, config.window_past_days, config.window_future_days)
    logger.info(
        "Crawl starting: %d source(s), window %s..%s", len(adapters), window.start, window.end
    )

    cycle = run_all(adapters, window, max_workers=config.max_fetch_workers)
    _track_outcomes(config, cycle)

    engine = MergeEngine(
        store,
        staleness=timedelta(minutes=config.staleness_minutes),
        delay_threshold_minutes=config.delay_threshold_minutes,
        status_timezone=config.source_timezone,
    )
    merges = engine.merge_all(cycle.records_by_source)

    total = store.count_records()
    summary = _summarize(cycle, merges, total, time.monotonic() - started)
    logger.info(
        "Crawl complete: %d records (%d/%d updated) (%.1fs) [%s]",
        total,
        len(summary["merged"]),
        len(adapters),
        summary["elapsed_seconds"],
        " ".join(f"{k}:{v}" for k, v in summary["fetched"].items()),
    )
    return summary


def run_crawl(config: Config, *, raise_on_error: bool = False) -> dict | None:
    """Run one crawl cycle unless another is already in progress.

    Failures are logged and recorded in pipeline_runs. With
    ``raise_on_error`` the exception is re-raised after recording, which the
    startup bootstrap uses to abort the process.
    """
    started_at = datetime.now(timezone.utc).isoformat()
    if not _cycle_lock.acquire(blocking=False):
        logger.warning("Previous crawl still running; skipping this trigger")
        _record_run(config.database_path, "crawl", started_at, {}, status="skipped")
        return None

    try:
        try:
            summary = crawl_cycle(config)
        except Exception as exc:
            logger.exception("Crawl failed")
            _record_run(
                config.database_path, "crawl", started_at, {},
                status="error", error=f"Crawl failed: {exc}",
            )
            if raise_on_error:
                raise
            return None

        _record_run(config.database_path, "crawl", started_at, summary)
        return summary
    finally:
        _cycle_lock.release()
