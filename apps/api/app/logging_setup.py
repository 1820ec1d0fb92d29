from __future__ import annotations

import logging
import sys

from src.catalog.logging_utils import JsonFormatter

HEALTHCHECK_PATHS = ("/v1/health", "/v1/ready")


class DropHealthcheckAccessLogs(logging.Filter):
    """
    Filter that removes uvicorn access logs for health/readiness endpoints.

    Probes hit these every few seconds; business endpoints keep their
    access logs.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in HEALTHCHECK_PATHS)


def configure_app_logging(level: int = logging.INFO) -> None:
    """
    Route the root logger through a single JSON StreamHandler.

    Catalog loggers do not propagate and own their handlers; this covers
    uvicorn, pymongo and anything else that logs through the root.
    """
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.handlers = [handler]

    uvicorn_access = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, DropHealthcheckAccessLogs) for f in uvicorn_access.filters):
        uvicorn_access.addFilter(DropHealthcheckAccessLogs())
