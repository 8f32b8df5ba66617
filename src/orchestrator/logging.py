"""Structured JSON logging.

Call sites attach fields with ``extra={"extra": {...}}``; the formatter merges
them into the emitted JSON line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = "orchestrator"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(level.upper())


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        configure_logging()
    return root.getChild(name)
