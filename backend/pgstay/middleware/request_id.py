# backend/pgstay/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# client-supplied ids are echoed back, so keep them short and printable
_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_org_slug: ContextVar[str | None] = ContextVar("org_slug", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def get_org_slug() -> str | None:
    return _org_slug.get()


def _incoming_id(request: Request) -> str:
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    return rid if _SAFE_ID.match(rid) else uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id and the active org slug to context vars for the
    duration of the request; log records pick both up. The id is echoed in
    the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = _incoming_id(request)
        request.state.request_id = rid

        rid_token = _request_id.set(rid)
        org_token = _org_slug.set(request.headers.get("X-Org-Slug"))
        try:
            response = await call_next(request)
        finally:
            _org_slug.reset(org_token)
            _request_id.reset(rid_token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
