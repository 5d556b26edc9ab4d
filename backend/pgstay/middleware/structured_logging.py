# backend/pgstay/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("pgstay.request")

# polled by load balancers; logged at DEBUG only
_QUIET_PATHS = {"/api/health"}


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access log line per request. Fields go through `extra` so the JSON
    formatter emits them as top-level keys next to request_id and org_slug.

    Added before RequestIDMiddleware, so it runs inside the request context.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = request.url.path
            level = logging.DEBUG if path in _QUIET_PATHS else logging.INFO
            if status_code >= 500:
                level = logging.ERROR
            log.log(
                level,
                "%s %s -> %s",
                request.method,
                path,
                status_code,
                extra={
                    "http_method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                    "user_email": request.headers.get("X-User-Email"),
                },
            )
