"""Merge freshly fetched snapshots into the schedule store."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from berthwatch.ingestion.normalize import VesselRecord
from berthwatch.merge.diff import DEFAULT_DELAY_THRESHOLD_MINUTES, diff_records
from berthwatch.storage.store import PersistenceError, ScheduleStore

logger = logging.getLogger(__name__)

DEFAULT_STALENESS = timedelta(minutes=5)


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging one source."""

    source_id: str
    status: str  # "merged", "skipped" or "failed"
    deleted: int = 0
    inserted: int = 0
    events: int = 0
    error: str | None = None


class MergeEngine:
    """Apply the staleness guard, diff, change log and replace for each source.

    Sources are merged one at a time. The staleness guard is advisory: two
    scheduler processes can both pass the check, in which case the later one
    simply rewrites the same snapshot.
    """

    def __init__(
        self,
        store: ScheduleStore,
        *,
        staleness: timedelta = DEFAULT_STALENESS,
        delay_threshold_minutes: int = DEFAULT_DELAY_THRESHOLD_MINUTES,
        status_timezone: str = "Asia/Seoul",
    ) -> None:
        self.store = store
        self.staleness = staleness
        self.delay_threshold_minutes = delay_threshold_minutes
        self._tz = ZoneInfo(status_timezone)

    def is_fresh(self, source_id: str, now: datetime) -> bool:
        """True when the source was written less than one staleness window ago."""
        updated_at = self.store.source_updated_at(source_id)
        if updated_at is None:
            return False
        return now - updated_at < self.staleness

    def merge(
        self,
        source_id: str,
        records: list[VesselRecord],
        now: datetime | None = None,
    ) -> MergeResult:
        """Replace a source's snapshot, logging meaningful schedule slips first.

        Raises PersistenceError if a store write fails.
        """
        now = now or datetime.now(timezone.utc)

        if self.is_fresh(source_id, now):
            logger.info(
                "Skipping merge for %s: updated less than %d min ago",
                source_id, self.staleness.total_seconds() // 60,
            )
            return MergeResult(source_id=source_id, status="skipped")

        old_records, _ = self.store.select_by_source(source_id)
        events = diff_records(
            old_records,
            records,
            threshold_minutes=self.delay_threshold_minutes,
            detected_at=now,
        )
        for e in events:
            logger.info(
                "Schedule change %s %s/%s %s: %s -> %s (%+d min)",
                source_id, e.vessel_name, e.voyage or "-", e.field_name,
                e.old_value, e.new_value, e.delay_minutes,
            )
        self.store.append_change_events(events)

        deleted = self.store.replace_source(source_id, records, written_at=now)
        total = self.store.refresh_global_status(
            now.astimezone(self._tz).isoformat(timespec="seconds")
        )

        logger.info(
            "Merged %s: %d -> %d records, %d change events (%d total records)",
            source_id, deleted, len(records), len(events), total,
        )
        return MergeResult(
            source_id=source_id,
            status="merged",
            deleted=deleted,
            inserted=len(records),
            events=len(events),
        )

    def merge_all(
        self,
        records_by_source: dict[str, list[VesselRecord]],
        now: datetime | None = None,
    ) -> list[MergeResult]:
        """Merge each source in turn. A store failure on one source does not stop the rest."""
        results: list[MergeResult] = []
        for source_id, records in records_by_source.items():
            try:
                results.append(self.merge(source_id, records, now=now))
            except (PersistenceError, sqlite3.Error) as exc:
                logger.exception("Merge failed for %s", source_id)
                results.append(MergeResult(source_id=source_id, status="failed", error=str(exc)))
        return results
