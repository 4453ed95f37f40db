"""Structured logging — JSON formatter, setup and operation timer.

Invariants:
    - Every record carries timestamp, level, logger name and message
    - Request-scoped extras (request_id, user_id, path, ...) surface when present
    - JSON in production, human-readable text in development
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "error_code",
    "ip",
    "user_agent",
    "operation",
)


class JSONFormatter(logging.Formatter):
    """Format logs as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the root logger. Safe to call more than once."""
    handler = logging.StreamHandler()
    handler.set_name("aether_pipeline")
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    for existing in list(logging.root.handlers):
        if existing.get_name() == "aether_pipeline":
            logging.root.removeHandler(existing)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


class Timer:
    """Measures one named operation and logs its outcome."""

    def __init__(self, operation: str, logger: logging.Logger | None = None) -> None:
        self.operation = operation
        self._logger = logger or logging.getLogger(__name__)
        self._started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self._started) * 1000, 2)

    def end(self, **extra: Any) -> float:
        duration = self.elapsed_ms
        self._logger.info(
            "%s completed",
            self.operation,
            extra={"operation": self.operation, "duration_ms": duration, **extra},
        )
        return duration

    def end_with_error(self, exc: BaseException, **extra: Any) -> float:
        duration = self.elapsed_ms
        self._logger.error(
            "%s failed: %s",
            self.operation,
            exc,
            extra={"operation": self.operation, "duration_ms": duration, **extra},
        )
        return duration
