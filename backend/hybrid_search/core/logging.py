"""Logging setup: JSON lines for the server, plain text for the CLI."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

import orjson

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One orjson-encoded object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload).decode("utf-8")


def configure_logging(
    level: str | int | None = None,
    use_json: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Replace the root handlers; ``level`` defaults to ``HSEARCH_LOG_LEVEL``."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if use_json else logging.Formatter(PLAIN_FORMAT))
    root = logging.getLogger()
    root.setLevel(level or os.environ.get("HSEARCH_LOG_LEVEL", "INFO"))
    root.handlers = [handler]


def get_logger(name: str = "hybrid_search") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger"]
