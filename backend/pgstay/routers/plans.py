# backend/pgstay/routers/plans.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_owner
from ..db import get_db
from ..domain.audit import audit_write
from ..models import Plan
from ..schemas import CurrentPlanOut, PlanOut, SubscribeIn
from ..services.events_facade import wf
from ..services.plan_service import current_subscription, ensure_default_plans, get_plan_access, plan_modules, subscribe

router = APIRouter(prefix="/plans", tags=["plans"])


def _plan_out(plan: Plan) -> PlanOut:
    return PlanOut(
        code=plan.code,
        name=plan.name,
        price=float(plan.price),
        period=plan.period,
        description=plan.description,
        allowed_modules=plan_modules(plan),
        display_order=int(plan.display_order),
    )


@router.get("", response_model=list[PlanOut])
def list_plans(db: Session = Depends(get_db)):
    ensure_default_plans(db)
    rows = db.scalars(select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.display_order.asc(), Plan.price.asc())).all()
    return [_plan_out(r) for r in rows]


def _current(db: Session, org_id: int) -> CurrentPlanOut:
    access = get_plan_access(db, org_id=org_id)
    sub = current_subscription(db, org_id=org_id)
    return CurrentPlanOut(
        plan_code=access.plan_code,
        plan_name=access.plan_name,
        is_active=access.is_active,
        allowed_modules=access.allowed_modules,
        subscription_status=sub.status if sub else None,
        started_at=sub.started_at if sub else None,
    )


@router.get("/current", response_model=CurrentPlanOut)
def current_plan(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return _current(db, p.org_id)


@router.post("/subscribe", response_model=CurrentPlanOut)
def subscribe_plan(payload: SubscribeIn, db: Session = Depends(get_db), p: Principal = Depends(require_owner)):
    before = get_plan_access(db, org_id=p.org_id)
    sub = subscribe(db, org_id=p.org_id, plan_code=payload.plan_code.strip().lower())

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="subscription.changed",
        entity_type="Subscription",
        entity_id=str(sub.id),
        before={"plan_code": before.plan_code},
        after={"plan_code": sub.plan_code},
    )
    wf(db, org_id=p.org_id, actor_user_id=p.user_id, event_type="plan.subscribed", payload={"plan_code": sub.plan_code})
    db.commit()
    return _current(db, p.org_id)
