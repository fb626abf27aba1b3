"""Structured JSON logging for pollers and the runner."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - logging interface name
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        payload.update({key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS})
        return json.dumps(payload, default=str)


def configure_logging(default_level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Configure the root logger; ``LOG_LEVEL`` overrides ``default_level``."""

    level_name = os.getenv("LOG_LEVEL", default_level)
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


__all__ = ["JsonFormatter", "configure_logging"]
