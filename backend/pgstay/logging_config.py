# backend/pgstay/logging_config.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import settings
from .middleware.request_id import get_org_slug, get_request_id

# `extra=` keys copied onto the JSON line when a record carries them
CONTEXT_FIELDS = (
    "org_id",
    "user_id",
    "tenant_id",
    "staff_id",
    "property_id",
    "record_id",
    "category",
    "billing_period",
    "http_method",
    "path",
    "status_code",
    "latency_ms",
    "user_email",
)

_NOISY = ("httpx", "httpcore", "celery.app.trace")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "env": settings.app_env,
            "message": record.getMessage(),
        }

        rid, org = get_request_id(), get_org_slug()
        if rid:
            line["request_id"] = rid
        if org:
            line["org_slug"] = org

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    """JSON lines on stdout for the API process and the celery worker."""
    level = (level or settings.log_level or "INFO").upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    # uvicorn --reload and celery both re-enter here
    root.handlers[:] = [handler]
    root.setLevel(level)

    logging.getLogger("sqlalchemy.engine").setLevel(settings.sql_log_level.upper())
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
