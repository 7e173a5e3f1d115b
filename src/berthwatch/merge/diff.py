"""Schedule change detection between two snapshots of one source."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from berthwatch.ingestion.normalize import VesselRecord, is_empty_value, parse_timestamp

DEFAULT_DELAY_THRESHOLD_MINUTES = 60

TRACKED_FIELDS = ("arrival", "departure", "cutoff")


@dataclass(frozen=True)
class ScheduleChangeEvent:
    """A meaningful shift of one timestamp of one vessel call."""

    source_id: str
    vessel_name: str
    voyage: str
    field_name: str
    old_value: str
    new_value: str
    delay_minutes: int
    detected_at: str


def delay_minutes(old_value: str, new_value: str) -> int | None:
    """Signed minutes from old to new, or None when either side does not parse."""
    old = parse_timestamp(old_value)
    new = parse_timestamp(new_value)
    if old is None or new is None:
        return None
    # Halves round toward +inf
    return math.floor((new - old).total_seconds() / 60 + 0.5)


def diff_records(
    old_records: list[VesselRecord],
    new_records: list[VesselRecord],
    *,
    threshold_minutes: int = DEFAULT_DELAY_THRESHOLD_MINUTES,
    detected_at: datetime | None = None,
) -> list[ScheduleChangeEvent]:
    """Compare a source's previous schedule with its new one.

    Records are matched on (vessel_name, voyage); when the old snapshot holds
    duplicates the last one wins. Calls that only appear on one side produce
    nothing. Shifts smaller than ``threshold_minutes`` are treated as noise.
    """
    stamp = (detected_at or datetime.now(timezone.utc)).isoformat()
    previous = {r.diff_key: r for r in old_records}

    events: list[ScheduleChangeEvent] = []
    for new in new_records:
        old = previous.get(new.diff_key)
        if old is None:
            continue
        for field_name in TRACKED_FIELDS:
            old_value = getattr(old, field_name)
            new_value = getattr(new, field_name)
            if is_empty_value(old_value) and is_empty_value(new_value):
                continue
            if old_value == new_value:
                continue
            delta = delay_minutes(old_value, new_value)
            if delta is None or abs(delta) < threshold_minutes:
                continue
            events.append(
                ScheduleChangeEvent(
                    source_id=new.source_id,
                    vessel_name=new.vessel_name,
                    voyage=new.voyage,
                    field_name=field_name,
                    old_value=old_value,
                    new_value=new_value,
                    delay_minutes=delta,
                    detected_at=stamp,
                )
            )
    return events
