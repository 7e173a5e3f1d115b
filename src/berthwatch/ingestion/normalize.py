"""Record normalization: timestamps, terminal identity, VesselRecord construction."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from berthwatch.ingestion.status import Status, StatusSignalMap, resolve_status

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

# Values terminals publish in place of a missing timestamp
EMPTY_VALUES = frozenset({"", "-", "--", "/"})

_PARSE_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
    "%Y%m%d%H%M",
    "%Y%m%d %H:%M",
    "%Y-%m-%d",
    "%Y%m%d",
)

_STRIP_RE = re.compile(r"[()\[\]]")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Terminal:
    """One external terminal system publishing a berth schedule."""

    code: str
    name: str
    url: str
    port: str = ""


@dataclass(frozen=True)
class CrawlWindow:
    """Date window requested from every source in one cycle."""

    start: date
    end: date

    @classmethod
    def around(cls, today: date, past_days: int = 7, future_days: int = 30) -> CrawlWindow:
        return cls(start=today - timedelta(days=past_days), end=today + timedelta(days=future_days))


@dataclass(frozen=True)
class VesselRecord:
    """One berth-schedule entry for one vessel call at one terminal."""

    source_id: str
    source_name: str
    source_url: str
    carrier_code: str
    vessel_name: str
    voyage: str
    mother_voyage: str
    arrival: str
    departure: str
    cutoff: str
    status: Status

    @property
    def diff_key(self) -> tuple[str, str]:
        return (self.vessel_name, self.voyage)


def is_empty_value(value: str | None) -> bool:
    """Return True for the placeholders terminals use when a value is unknown."""
    return value is None or value.strip() in EMPTY_VALUES


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a normalized (or lightly formatted) timestamp. Returns None on failure."""
    if is_empty_value(value):
        return None
    text = _SPACE_RE.sub(" ", value.strip())
    for fmt in _PARSE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # Local wall-clock time; offsets are not meaningful across terminals
    return parsed.replace(tzinfo=None, second=0, microsecond=0)


def normalize_datetime(raw: str | None) -> str:
    """Normalize a terminal-published timestamp to ``YYYY-MM-DD HH:MM``.

    Slashes and dots become dashes, brackets are dropped, and anything past
    minute precision (seconds, weekday suffixes) is cut off. Unknown or
    unparseable input yields an empty string rather than an error.
    """
    if is_empty_value(raw):
        return ""
    cleaned = _STRIP_RE.sub("", raw).replace("/", "-").replace(".", "-")
    cleaned = _SPACE_RE.sub(" ", cleaned).strip()
    if cleaned.isdigit():
        cleaned = cleaned[:12]
    elif len(cleaned) > 16:
        cleaned = cleaned[:16]
    parsed = parse_timestamp(cleaned)
    if parsed is None:
        return ""
    return parsed.strftime(TIMESTAMP_FORMAT)


def make_record(
    terminal: Terminal,
    *,
    vessel_name: str,
    voyage: str = "",
    mother_voyage: str = "",
    carrier_code: str = "",
    arrival: str = "",
    departure: str = "",
    cutoff: str = "",
    status_signal: str | None = None,
    signal_map: StatusSignalMap | None = None,
    now: datetime | None = None,
) -> VesselRecord:
    """Build a VesselRecord stamped with the terminal identity.

    Timestamps are normalized here, so adapters may pass raw cell text.
    Raises ValueError when the vessel name is missing.
    """
    vessel_name = (vessel_name or "").strip()
    if not vessel_name:
        raise ValueError("vessel_name is required and must be non-empty")

    arrival = normalize_datetime(arrival)
    departure = normalize_datetime(departure)
    cutoff = normalize_datetime(cutoff)

    return VesselRecord(
        source_id=terminal.code,
        source_name=terminal.name,
        source_url=terminal.url,
        carrier_code=(carrier_code or "").strip() or "-",
        vessel_name=vessel_name,
        voyage=(voyage or "").strip(),
        mother_voyage=(mother_voyage or "").strip(),
        arrival=arrival,
        departure=departure,
        cutoff=cutoff,
        status=resolve_status(
            status_signal,
            arrival=parse_timestamp(arrival),
            departure=parse_timestamp(departure),
            now=now,
            signal_map=signal_map,
        ),
    )
