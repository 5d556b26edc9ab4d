# backend/pgstay/routers/tenants.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_manager
from ..db import get_db
from ..domain.modules import TENANTS
from ..models import Payment
from ..schemas import TenantCreate, TenantOut, TenantPage, TenantPaymentDatesIn, TenantUpdate
from ..services import tenant_service
from ..services.finance_service import serialize_payment
from ..services.ownership import must_get_tenant
from ..services.plan_service import require_module

router = APIRouter(prefix="/tenants", tags=["tenants"], dependencies=[Depends(require_module(TENANTS))])


@router.post("", response_model=TenantOut)
def create_tenant(payload: TenantCreate, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    return tenant_service.onboard_tenant(db, p=p, payload=payload)


@router.get("", response_model=TenantPage)
def list_tenants(
    search: str | None = Query(default=None),
    status: str | None = Query(default=None),
    payment_status: str | None = Query(default=None),
    property_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return tenant_service.list_tenants(
        db,
        org_id=p.org_id,
        search=search,
        status=status,
        payment_status=payment_status,
        property_id=property_id,
        page=page,
        limit=limit,
    )


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(tenant_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return tenant_service.get_tenant_detail(db, p=p, tenant_id=tenant_id)


@router.get("/{tenant_id}/payments")
def tenant_payments(tenant_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=tenant_id)
    rows = db.scalars(
        select(Payment).where(Payment.tenant_id == tenant.id, Payment.org_id == p.org_id).order_by(Payment.due_date.desc())
    ).all()
    return [serialize_payment(db, r) for r in rows]


@router.patch("/{tenant_id}", response_model=TenantOut)
def update_tenant(
    tenant_id: int,
    payload: TenantUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    return tenant_service.update_tenant(db, p=p, tenant_id=tenant_id, payload=payload)


@router.patch("/{tenant_id}/payment-status", response_model=TenantOut)
def update_payment_dates(
    tenant_id: int,
    payload: TenantPaymentDatesIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    return tenant_service.update_payment_dates(
        db,
        p=p,
        tenant_id=tenant_id,
        last_payment_date=payload.last_payment_date,
        next_payment_due=payload.next_payment_due,
    )


@router.delete("/{tenant_id}")
def delete_tenant(
    tenant_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    tenant_service.remove_tenant(db, p=p, tenant_id=tenant_id, background=background)
    return {"ok": True}
