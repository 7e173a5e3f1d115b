"""Configuration loading and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from berthwatch.ingestion.normalize import Terminal


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    database_path: str

    # Optional: Sources
    sources_config_path: str = "./config/sources.json"
    source_timezone: str = "Asia/Seoul"

    # Optional: Crawling
    crawl_interval_minutes: int = 10
    fetch_timeout_seconds: float = 30.0
    max_fetch_workers: int = 8
    window_past_days: int = 7
    window_future_days: int = 30
    source_failure_warn_threshold: int = 3

    # Optional: Merge
    staleness_minutes: int = 5
    delay_threshold_minutes: int = 60

    # Optional: Application
    log_level: str = "INFO"
    log_format: str = "json"
    app_env: str = "production"


_REQUIRED_VARS = [
    "DATABASE_PATH",
]


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ValueError listing any
    missing variables.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        # Required
        database_path=os.environ["DATABASE_PATH"],
        # Optional: Sources
        sources_config_path=os.environ.get("SOURCES_CONFIG_PATH", "./config/sources.json"),
        source_timezone=os.environ.get("SOURCE_TIMEZONE", "Asia/Seoul"),
        # Optional: Crawling
        crawl_interval_minutes=int(os.environ.get("CRAWL_INTERVAL_MINUTES", "10")),
        fetch_timeout_seconds=float(os.environ.get("FETCH_TIMEOUT_SECONDS", "30")),
        max_fetch_workers=int(os.environ.get("MAX_FETCH_WORKERS", "8")),
        window_past_days=int(os.environ.get("WINDOW_PAST_DAYS", "7")),
        window_future_days=int(os.environ.get("WINDOW_FUTURE_DAYS", "30")),
        source_failure_warn_threshold=int(
            os.environ.get("SOURCE_FAILURE_WARN_THRESHOLD", "3")
        ),
        # Optional: Merge
        staleness_minutes=int(os.environ.get("STALENESS_MINUTES", "5")),
        delay_threshold_minutes=int(os.environ.get("DELAY_THRESHOLD_MINUTES", "60")),
        # Optional: Application
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
        app_env=os.environ.get("APP_ENV", "production"),
    )


@dataclass(frozen=True)
class SourceConfig:
    """One terminal entry from the sources file, with its adapter options."""

    terminal: Terminal
    type: str
    enabled: bool = True
    options: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SourcesCatalog:
    """Parsed sources file."""

    sources: list[SourceConfig]
    port_order: list[str] = field(default_factory=list)

    @property
    def terminals(self) -> list[Terminal]:
        return [s.terminal for s in self.sources]


def load_sources(path: str | Path) -> SourcesCatalog:
    """Load the terminal catalog and adapter options from a JSON file.

    Raises ValueError for entries missing a code or type, or for duplicate codes.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    sources: list[SourceConfig] = []
    seen: set[str] = set()
    for i, entry in enumerate(data.get("sources", [])):
        code = str(entry.get("code", "")).strip().upper()
        if not code:
            raise ValueError(f"sources[{i}]: 'code' is required")
        if not entry.get("type"):
            raise ValueError(f"sources[{i}] ({code}): 'type' is required")
        if code in seen:
            raise ValueError(f"Duplicate source code '{code}'")
        seen.add(code)

        terminal = Terminal(
            code=code,
            name=entry.get("name") or code,
            url=entry.get("url", ""),
            port=entry.get("port", ""),
        )
        sources.append(
            SourceConfig(
                terminal=terminal,
                type=entry["type"],
                enabled=entry.get("enabled", True),
                options=entry,
            )
        )

    return SourcesCatalog(sources=sources, port_order=list(data.get("port_order", [])))
