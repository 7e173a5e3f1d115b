"""Web-specific configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class WebConfig:
    """Settings for the HTTP API. Shares DATABASE_PATH with the crawler."""

    # Required
    database_path: str

    # Optional
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    cors_origins: tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def load_web_config(env_path: str | Path | None = None) -> WebConfig:
    """Load web configuration from environment variables.

    Loads a .env file if present (for local development). Raises ValueError
    if DATABASE_PATH is missing or WEB_PORT is not a valid TCP port.
    """
    load_dotenv(dotenv_path=env_path)

    if not os.environ.get("DATABASE_PATH"):
        raise ValueError("Missing required environment variable: DATABASE_PATH")

    port = int(os.environ.get("WEB_PORT", "8080"))
    if not 0 < port < 65536:
        raise ValueError(f"WEB_PORT must be between 1 and 65535, got {port}")

    return WebConfig(
        database_path=os.environ["DATABASE_PATH"],
        web_host=os.environ.get("WEB_HOST", "0.0.0.0"),
        web_port=port,
        cors_origins=_split_csv(os.environ.get("CORS_ORIGINS", "")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
