"""Relaybot — Main entry point."""

import logging
from typing import Optional

import uvicorn

from .config import RelaySettings, load_settings
from .server import create_app

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("relaybot")


def setup_logging(debug: bool = False, log_file: Optional[str] = None):
    """Log to stderr, plus ``log_file`` when given."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers)
    if debug:
        logging.getLogger("relaybot").setLevel(logging.DEBUG)


def run(settings: Optional[RelaySettings] = None, host: Optional[str] = None, port: Optional[int] = None):
    """Serve the webhook until interrupted."""
    settings = settings or load_settings()
    setup_logging(settings.debug, settings.log_file)

    missing = settings.missing_required()
    if missing:
        logger.error(f"Missing {missing} environment variable; every request will fail until it is set.")

    app = create_app(settings)
    logger.info(f"Relaybot listening on {host or settings.host}:{port or settings.port}")
    uvicorn.run(app, host=host or settings.host, port=port or settings.port, log_config=None)


def main():
    """Entry point."""
    run()


if __name__ == "__main__":
    main()
