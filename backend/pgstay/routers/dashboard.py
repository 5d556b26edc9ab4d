# backend/pgstay/routers/dashboard.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..domain.modules import DASHBOARD, REPORTS
from ..schemas import WorkflowEventOut
from ..services.dashboard_rollups import monthly_report, portfolio_rollup
from ..services.events_facade import wf
from ..services.ownership import must_get_property
from ..services.plan_service import require_module

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=dict, dependencies=[Depends(require_module(DASHBOARD))])
def summary(
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    """Top-of-dashboard cards: occupancy, tenant payment mix, this month's rent and spend."""
    if property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=property_id)
    return portfolio_rollup(db, org_id=p.org_id, property_id=property_id).as_dict()


@router.get("/activity", response_model=list[WorkflowEventOut], dependencies=[Depends(require_module(DASHBOARD))])
def activity(
    property_id: Optional[int] = Query(default=None),
    event_type: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    items = wf.recent(db, org_id=p.org_id, property_id=property_id, event_type=event_type, limit=limit)
    return [WorkflowEventOut(**vars(item)) for item in items]


@router.get("/reports/monthly", response_model=list[dict], dependencies=[Depends(require_module(REPORTS))])
def monthly(
    year: int = Query(ge=2000, le=2200),
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    if property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=property_id)
    return monthly_report(db, org_id=p.org_id, year=year, property_id=property_id)
