"""Logging configuration for NetTools."""

import logging
import os
import sys

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: str | None = None) -> int:
    """Configure application-wide logging and return the level in effect.

    An explicit level (the CLI's --log-level) wins over NETTOOLS_LOG_LEVEL,
    which defaults to INFO. Output goes to stderr so stdout carries only
    tool output.

    Examples:
        # Every frame and parsed line
        $ NETTOOLS_LOG_LEVEL=DEBUG python -m nettools ping example.com

        # Quiet for one run
        $ python -m nettools dig example.com --type MX --log-level WARNING
    """
    source = "--log-level" if level else "NETTOOLS_LOG_LEVEL"
    requested = (level or os.environ.get("NETTOOLS_LOG_LEVEL") or "INFO").strip().upper()

    known = requested in LOG_LEVELS
    log_level = getattr(logging, requested) if known else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    logger = logging.getLogger(__name__)
    if not known:
        logger.warning("Unknown %s=%r, using INFO", source, requested)
    logger.debug("Logging configured: level=%s", logging.getLevelName(log_level))
    return log_level
