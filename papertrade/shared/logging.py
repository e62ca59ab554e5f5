"""
Logging configuration for the application.

One pipe-separated line per record on stdout. Every module logs through
`logging.getLogger(__name__)` with %-style arguments.
Never log access tokens, API keys or recommendation prompts.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "apscheduler")


def configure_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    # httpx logs full request URLs at INFO, which include provider API keys.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
