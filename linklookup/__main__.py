"""linklookup entry point: load the CSV, then start the aiohttp server."""

import logging
import sys

from linklookup.config import ConfigError, load_config
from linklookup.server import create_app
from linklookup.table import LoadError

log = logging.getLogger("linklookup")


def main() -> None:
    from aiohttp import web

    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config["logging"]["level"].upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        app = create_app(config)
    except LoadError as exc:
        log.error("Failed to load CSV: %s", exc)
        sys.exit(1)
    except ConfigError as exc:
        log.error("Invalid configuration: %s", exc)
        sys.exit(1)

    host = config["server"]["host"]
    port = config["server"]["port"]
    log.info("Lookup API running on http://localhost:%s", port)
    log.info("  GET  /lookup?email=user@example.com")
    log.info('  POST /lookup  { "email": "user@example.com" }')
    log.info('  POST /reload  { "path": "/path/to/file.csv" }')
    web.run_app(app, host=host, port=port, print=None)


if __name__ == "__main__":
    main()
