"""
Logging setup shared by the webhook app, the relay poller and the CLI.
"""

import logging
import sys

from openlines_bridge.core.settings import Settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Chatty libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(settings: Settings | None = None) -> None:
    """Configure root logging. Call once at process entry."""
    level = "INFO"
    if settings is not None:
        level = "DEBUG" if settings.app_debug else settings.log_level.upper()

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging configured with level: {level}")
