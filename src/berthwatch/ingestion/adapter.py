"""Source adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from zoneinfo import ZoneInfo

from berthwatch.ingestion.normalize import CrawlWindow, Terminal, VesselRecord

DEFAULT_TIMEOUT_SECONDS = 30.0

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class FetchError(Exception):
    """Raised when a source cannot be fetched or its response cannot be parsed."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"[{source_id}] {message}")
        self.source_id = source_id


class SourceAdapter(ABC):
    """Abstract base class for terminal schedule adapters.

    Every adapter knows how to fetch and parse the berth schedule of one
    terminal and hand back complete, normalized VesselRecords. Adapters apply
    their own request timeout and never retry; a failed fetch raises
    FetchError and the next scheduled cycle is the retry.
    """

    def __init__(
        self,
        terminal: Terminal,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        timezone: str = "Asia/Seoul",
    ) -> None:
        self.terminal = terminal
        self.timeout = timeout
        self._tz = ZoneInfo(timezone)
        self.overwrite_on_empty = False

    @property
    def name(self) -> str:
        """Source id of the terminal this adapter serves."""
        return self.terminal.code

    def local_now(self) -> datetime:
        """Terminal-local wall-clock time, naive, for status derivation."""
        return datetime.now(self._tz).replace(tzinfo=None)

    def configure(self, config: dict) -> None:
        """Accept adapter-specific configuration."""
        self.overwrite_on_empty = bool(config.get("overwrite_on_empty", False))

    @abstractmethod
    def fetch(self, window: CrawlWindow) -> list[VesselRecord]:
        """Fetch the terminal's complete current schedule for the window.

        Raises FetchError on network, protocol or parse failure.
        """


def render_template(template: dict | None, window: CrawlWindow, date_format: str) -> dict | None:
    """Fill ``{start}``/``{end}`` placeholders in request parameter values."""
    if template is None:
        return None
    start = window.start.strftime(date_format)
    end = window.end.strftime(date_format)
    return {
        key: value.format(start=start, end=end) if isinstance(value, str) else value
        for key, value in template.items()
    }
