"""Process-wide loguru setup.

stdout belongs to the stdio MCP transport, so every log line goes to stderr.
"""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} [{level}] {name}: {message}"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink at the given level."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)
