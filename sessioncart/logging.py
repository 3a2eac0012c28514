"""
Centralized logging configuration for sessioncart.

Usage:
    from sessioncart.logging import get_logger
    logger = get_logger(__name__)

    logger.debug("Line added")
    logger.error("Session write failed", exc_info=True)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Backend client libraries log every REST call at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "httpcore.http11", "httpcore.connection", "hpack")


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless the host app already did."""
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    # Serverless log collectors add their own timestamps
    is_production = os.environ.get("VERCEL") == "1"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape characters that could inject fake log entries (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value) -> str:
    """
    Truncate an identifier (row id, session id) to its first 8 chars.

    Session ids are bearer secrets, so they are never logged in full.
    """
    if id_value is None or id_value == "":
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape and truncate a user-controlled string (item names, attribute keys)."""
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
