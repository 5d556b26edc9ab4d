# backend/pgstay/services/plan_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..domain.modules import DEFAULT_PLANS
from ..models import Plan, Subscription

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanAccess:
    plan_code: str
    plan_name: str
    is_active: bool
    allowed_modules: list[str]


def ensure_default_plans(db: Session) -> None:
    existing = {p.code for p in db.scalars(select(Plan)).all()}
    added = False
    for code, plan in DEFAULT_PLANS.items():
        if code in existing:
            continue
        db.add(
            Plan(
                code=code,
                name=plan["name"],
                price=float(plan["price"]),
                period=plan["period"],
                display_order=int(plan["display_order"]),
                allowed_modules_json=json.dumps(plan["modules"]),
                is_active=True,
                created_at=datetime.utcnow(),
            )
        )
        added = True
    if added:
        db.commit()


def plan_modules(plan: Plan) -> list[str]:
    try:
        mods = json.loads(plan.allowed_modules_json or "[]")
    except ValueError:
        log.warning("plan %s has malformed allowed_modules_json", plan.code)
        return []
    return [str(m) for m in mods]


def current_subscription(db: Session, *, org_id: int) -> Subscription | None:
    return db.scalar(
        select(Subscription).where(Subscription.org_id == int(org_id)).order_by(Subscription.id.desc())
    )


def get_plan_access(db: Session, *, org_id: int) -> PlanAccess:
    ensure_default_plans(db)

    sub = current_subscription(db, org_id=org_id)
    if sub is not None and sub.status != "active":
        return PlanAccess(plan_code=str(sub.plan_code), plan_name=str(sub.plan_code), is_active=False, allowed_modules=[])

    plan_code = sub.plan_code if sub else (settings.default_plan_code or "starter")
    plan = db.scalar(select(Plan).where(Plan.code == str(plan_code)))
    if plan is None:
        return PlanAccess(plan_code=str(plan_code), plan_name=str(plan_code), is_active=False, allowed_modules=[])

    return PlanAccess(
        plan_code=str(plan.code),
        plan_name=str(plan.name),
        is_active=bool(plan.is_active),
        allowed_modules=plan_modules(plan),
    )


def subscribe(db: Session, *, org_id: int, plan_code: str) -> Subscription:
    ensure_default_plans(db)
    plan = db.scalar(select(Plan).where(Plan.code == str(plan_code)))
    if plan is None or not plan.is_active:
        raise HTTPException(status_code=404, detail="plan not found")

    prev = current_subscription(db, org_id=org_id)
    if prev is not None and prev.status == "active":
        prev.status = "cancelled"
        db.add(prev)

    sub = Subscription(org_id=int(org_id), plan_code=str(plan.code), status="active", started_at=datetime.utcnow())
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def check_module(db: Session, p: Principal, module: str) -> None:
    """Raise 403 unless the caller's plan includes `module`. Admins always pass."""
    if p.is_admin:
        return

    access = get_plan_access(db, org_id=p.org_id)
    if not access.is_active:
        raise HTTPException(
            status_code=403,
            detail={"message": "Your subscription plan is inactive. Please contact support."},
        )

    if module not in access.allowed_modules:
        raise HTTPException(
            status_code=403,
            detail={
                "message": (
                    f"Access denied. This feature is not included in your {access.plan_name} plan. "
                    "Please upgrade to access this module."
                ),
                "required_module": module,
                "current_plan": access.plan_name,
                "allowed_modules": access.allowed_modules,
            },
        )


def require_module(module: str) -> Callable[..., Principal]:
    """
    Dependency factory gating a router on a plan module.

        router = APIRouter(dependencies=[Depends(require_module(TENANTS))])
    """

    def _dep(db: Session = Depends(get_db), p: Principal = Depends(get_principal)) -> Principal:
        check_module(db, p, module)
        return p

    return _dep
