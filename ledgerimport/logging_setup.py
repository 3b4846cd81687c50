"""Logging configuration for the command line tools."""

import logging
import sys

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str = "INFO", fmt: str | None = None) -> None:
    """Configure root logging to stderr.

    Args:
        level: Log level name.
        fmt: Optional logging format string.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt or "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
