"""Command that serves a Hello World page."""

from __future__ import annotations

import argparse
import logging
import time

from .demo import HelloWorldHandler
from .listener import HttpListener
from .settings import Settings

logger = logging.getLogger(__name__)


def default_settings(port: int = 8080) -> Settings:
    """The built-in server settings, listening on the given port."""
    return Settings(
        {
            "port": str(port),
            "minThreads": "4",
            "maxThreads": "100",
            "cleanupInterval": "60000",
            "readTimeout": "60000",
            "maxRequestSize": "16000",
            "maxMultiPartSize": "10000000",
        }
    )


def main(argv: list[str] | None = None) -> int:
    """Run the server until interrupted."""
    parser = argparse.ArgumentParser(prog="webapp", description="Serve a Hello World page over HTTP.")
    parser.add_argument("--host", default="", help="address to bind to (default: all interfaces)")
    parser.add_argument("--port", type=int, default=8080, help="port to listen on (default: 8080)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    settings = default_settings(args.port)
    if args.host:
        settings["host"] = args.host

    with HttpListener(settings, HelloWorldHandler()):
        logger.warning("Application has started")
        try:
            while True:
                time.sleep(3600)
        except KeyboardInterrupt:
            pass
    logger.warning("Application has stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())