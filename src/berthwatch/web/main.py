"""Entry point for a read-only web server.

Serves the query API against a database maintained by a crawler running
elsewhere (another process, or another host sharing the file).
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import uvicorn

from berthwatch.web.app import create_app
from berthwatch.web.config import load_web_config

logger = logging.getLogger("berthwatch.web")


def main() -> None:
    """Load config, check the database exists, and run the API via uvicorn."""
    config = load_web_config()

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )

    if not Path(config.database_path).is_file():
        logger.error(
            "Database %s does not exist; start the crawler first", config.database_path
        )
        sys.exit(1)

    app = create_app(config)
    uvicorn.run(app, host=config.web_host, port=config.web_port)


if __name__ == "__main__":
    main()
