"""Concurrent fetch fan-out across all configured sources."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from berthwatch.ingestion.adapter import SourceAdapter
from berthwatch.ingestion.normalize import CrawlWindow, VesselRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class SourceOutcome:
    """How one source's fetch settled."""

    source_id: str
    status: str  # "ok", "empty" or "failed"
    record_count: int = 0
    error: str | None = None
    elapsed_seconds: float = 0.0


@dataclass
class CycleResult:
    """Settled results of one fetch cycle."""

    records_by_source: dict[str, list[VesselRecord]] = field(default_factory=dict)
    outcomes: list[SourceOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        return [o.source_id for o in self.outcomes if o.status == "failed"]

    @property
    def empty(self) -> list[str]:
        return [o.source_id for o in self.outcomes if o.status == "empty"]


def _timed_fetch(adapter: SourceAdapter, window: CrawlWindow) -> tuple[list[VesselRecord], float]:
    started = time.monotonic()
    records = adapter.fetch(window)
    return list(records), time.monotonic() - started


def run_all(
    adapters: list[SourceAdapter],
    window: CrawlWindow,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> CycleResult:
    """Fetch every source concurrently and wait for all of them to settle.

    A failing source never cancels or delays the others; its exception is
    captured on its own future and reported in the outcome list. Only sources
    that returned records (or that opted into overwrite_on_empty) appear in
    ``records_by_source``; everything else is left untouched downstream.
    """
    result = CycleResult()
    if not adapters:
        return result

    workers = max(1, min(max_workers, len(adapters)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch") as executor:
        futures: dict[Future, SourceAdapter] = {
            executor.submit(_timed_fetch, adapter, window): adapter for adapter in adapters
        }
        wait(futures)

    for future, adapter in futures.items():
        source_id = adapter.name
        exc = future.exception()
        if exc is not None:
            logger.warning("Source '%s' fetch failed: %s", source_id, exc)
            result.outcomes.append(
                SourceOutcome(source_id=source_id, status="failed", error=str(exc) or type(exc).__name__)
            )
            continue

        records, elapsed = future.result()
        mismatched = {r.source_id for r in records} - {source_id}
        if mismatched:
            logger.warning(
                "Source '%s' returned records tagged %s; dropping them",
                source_id, ", ".join(sorted(mismatched)),
            )
            records = [r for r in records if r.source_id == source_id]

        if not records:
            if adapter.overwrite_on_empty:
                logger.warning("Source '%s' returned 0 records; clearing its data", source_id)
                result.records_by_source[source_id] = []
            else:
                logger.warning("Source '%s' returned 0 records; keeping previous data", source_id)
            result.outcomes.append(
                SourceOutcome(source_id=source_id, status="empty", elapsed_seconds=elapsed)
            )
            continue

        result.records_by_source[source_id] = records
        result.outcomes.append(
            SourceOutcome(
                source_id=source_id,
                status="ok",
                record_count=len(records),
                elapsed_seconds=elapsed,
            )
        )

    return result
