"""Vessel call status resolution.

An explicit signal published by the terminal (a code, keyword or CSS marker)
always wins. Without one, status is derived from the berthing timestamps
relative to the terminal's local "now".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Status(str, Enum):
    PLANNED = "PLANNED"
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"


@dataclass(frozen=True)
class StatusSignalMap:
    """Per-source table mapping raw status signals to a Status.

    Keywords are compared case-insensitively. With ``match="exact"`` the whole
    signal must equal a keyword; with ``match="contains"`` the keyword may
    appear anywhere in it (useful for CSS class lists). Departed keywords are
    checked before arrived ones, so a row marked both is reported as departed.
    """

    departed: tuple[str, ...] = ()
    arrived: tuple[str, ...] = ()
    planned: tuple[str, ...] = ()
    match: str = "exact"

    @classmethod
    def from_config(cls, config: dict | None) -> StatusSignalMap:
        """Build a map from a source's ``status_map`` block; none gives the defaults."""
        if not config:
            return DEFAULT_SIGNAL_MAP
        match = config.get("match", "exact")
        if match not in ("exact", "contains"):
            raise ValueError(f"status_map match must be 'exact' or 'contains', got '{match}'")
        return cls(
            departed=tuple(config.get("departed", ())),
            arrived=tuple(config.get("arrived", ())),
            planned=tuple(config.get("planned", ())),
            match=match,
        )

    def _matches(self, signal: str, keywords: tuple[str, ...]) -> bool:
        for keyword in keywords:
            kw = keyword.strip().lower()
            if not kw:
                continue
            if self.match == "contains" and kw in signal:
                return True
            if kw == signal:
                return True
        return False

    def recognizes(self, signal: str) -> bool:
        """True when the signal matches any keyword in the table."""
        normalized = signal.strip().lower()
        return any(
            self._matches(normalized, keywords)
            for keywords in (self.departed, self.arrived, self.planned)
        )

    def lookup(self, signal: str) -> Status:
        """Map a present signal to a Status. Unrecognized signals are PLANNED."""
        normalized = signal.strip().lower()
        if self._matches(normalized, self.departed):
            return Status.DEPARTED
        if self._matches(normalized, self.arrived):
            return Status.ARRIVED
        return Status.PLANNED


DEFAULT_SIGNAL_MAP = StatusSignalMap(
    departed=("departed", "dep", "atd", "end"),
    arrived=("arrived", "working", "work", "atb", "berthed"),
    planned=("planned", "plan", "etb"),
)


def derive_status(
    arrival: datetime | None,
    departure: datetime | None,
    now: datetime,
) -> Status:
    """Derive status from timestamps alone."""
    if departure is not None and departure < now:
        return Status.DEPARTED
    if arrival is not None and arrival < now:
        return Status.ARRIVED
    return Status.PLANNED


def resolve_status(
    signal: str | None,
    *,
    arrival: datetime | None,
    departure: datetime | None,
    now: datetime | None = None,
    signal_map: StatusSignalMap | None = None,
) -> Status:
    """Resolve a record's status, preferring an explicit terminal signal."""
    if signal is not None and signal.strip():
        return (signal_map or DEFAULT_SIGNAL_MAP).lookup(signal)
    return derive_status(arrival, departure, now or datetime.now())
