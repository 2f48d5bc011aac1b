"""Logging helpers for the script loader and its CLI."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

__all__ = ["JSONFormatter", "LOGGER_NAME", "setup_logging"]

LOGGER_NAME = "MarketDash"


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    *,
    level: str = "INFO",
    debug: bool = False,
    json_logs: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ``MarketDash`` logger with a single managed console handler.

    ``debug`` forces DEBUG level regardless of *level*. Calling this twice
    replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_marketdash_managed", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handler._marketdash_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger
