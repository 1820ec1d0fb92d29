from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter used by every logger in the catalog service.

    Only a whitelisted set of ``extra={...}`` keys is copied into the payload so
    log lines keep a stable shape for indexing.
    """

    _extra_keys: Iterable[str] = (
        # Observability / HTTP request context
        "event",
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "code",
        # Domain context
        "user_id",
        "entity_id",
        "review_id",
        "rating",
        "review_count",
        "candidates",
        "verified_count",
        "notification_failures",
        "recommendations",
        "seconds_until_run",
        "error_type",
        # Infra context
        "attempt",
        "max_retries",
        "collection",
        "db_name",
        "template",
        "recipient",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._extra_keys:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logger(name: str = "catalog", level: int = logging.INFO) -> logging.Logger:
    """
    Return a non-propagating logger with a single JSON stream handler.

    Calling this more than once for the same name never stacks handlers.
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
