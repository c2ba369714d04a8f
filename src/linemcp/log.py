"""Logging setup that keeps protocol output and diagnostics apart."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOGGER_NAMES = ("linemcp", "linemcp_server")


class _StderrHandler(logging.StreamHandler):
    """Marker type so repeated configuration replaces rather than stacks."""


def configure_logging(
    level: int | str = logging.INFO, stream: TextIO | None = None
) -> logging.Handler:
    """Route package loggers to stderr.

    Standard output carries protocol lines only, so the package loggers never
    propagate to handlers the embedding application may have attached to stdout.

    Args:
        level: Minimum level for the package loggers.
        stream: Text stream to write to, ``sys.stderr`` when omitted.

    Returns:
        The installed handler.
    """
    handler = _StderrHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if isinstance(level, str):
        level = level.upper()
    for name in LOGGER_NAMES:
        package_logger = logging.getLogger(name)
        for existing in list(package_logger.handlers):
            if isinstance(existing, _StderrHandler):
                package_logger.removeHandler(existing)
        package_logger.addHandler(handler)
        package_logger.setLevel(level)
        package_logger.propagate = False
    return handler
