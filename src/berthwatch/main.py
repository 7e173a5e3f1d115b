"""Application entry point: runs the crawl scheduler and web server in a single process."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from berthwatch.config import Config, load_config
from berthwatch.jobs import run_crawl
from berthwatch.storage import ScheduleStore
from berthwatch.web.app import create_app
from berthwatch.web.config import load_web_config

logger = logging.getLogger("berthwatch")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "thread": "%(threadName)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def _build_scheduler(config: Config) -> BackgroundScheduler:
    """Create a BackgroundScheduler running the crawl cycle on an interval.

    max_instances=1 and coalesce=True drop triggers that fire while a cycle
    is still running instead of queueing them.
    """
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_crawl,
        trigger=IntervalTrigger(minutes=config.crawl_interval_minutes),
        args=[config],
        id="crawl",
        name="Terminal schedule crawl",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def _bootstrap(config: Config) -> None:
    """Initialize the store and complete the first crawl, or exit the process."""
    try:
        ScheduleStore(config.database_path).init()
        logger.info("Running initial crawl")
        run_crawl(config, raise_on_error=True)
    except Exception:
        logger.exception("Bootstrap failed; exiting")
        sys.exit(1)


def main() -> None:
    """Load config, set up logging, run the first crawl, then serve."""
    config = load_config()
    web_config = load_web_config()

    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "Berthwatch starting (env=%s, db=%s, sources=%s, interval=%dm)",
        config.app_env,
        config.database_path,
        config.sources_config_path,
        config.crawl_interval_minutes,
    )

    _bootstrap(config)

    scheduler = _build_scheduler(config)

    @asynccontextmanager
    async def lifespan(app):
        logger.info("Scheduler starting")
        scheduler.start()
        yield
        logger.info("Scheduler shutting down")
        scheduler.shutdown(wait=False)

    app = create_app(web_config, lifespan=lifespan)

    uvicorn.run(app, host=web_config.web_host, port=web_config.web_port)


if __name__ == "__main__":
    main()
