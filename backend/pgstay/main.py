# backend/pgstay/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.plans import router as plans_router
from .routers.dashboard import router as dashboard_router

from .routers.properties import router as properties_router
from .routers.rooms import router as rooms_router
from .routers.tenants import router as tenants_router
from .routers.staff import router as staff_router

from .routers.finance import router as finance_router
from .routers.payments import router as payments_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def create_app() -> FastAPI:
    app = FastAPI(title="PGStay", version=settings.app_version)

    # last added runs outermost: CORS, then request id, then the request log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(plans_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)

    # Properties + people
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(rooms_router, prefix=API_PREFIX)
    app.include_router(tenants_router, prefix=API_PREFIX)
    app.include_router(staff_router, prefix=API_PREFIX)

    # Money
    app.include_router(finance_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)

    return app


configure_logging()
app = create_app()
