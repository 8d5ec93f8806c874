"""Logging configuration for the image upload service."""

import logging
import sys


def configure_logging(level: str = "INFO", log_format: str | None = None) -> None:
    """Configure root logging to stdout.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Custom format string, or None for the default
            `timestamp - logger - level - message` layout.
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # aiosqlite logs every statement at DEBUG
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured with level: %s", level)
