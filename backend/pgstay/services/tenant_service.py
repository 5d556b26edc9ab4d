# backend/pgstay/services/tenant_service.py
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional

from fastapi import BackgroundTasks, HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.audit import audit_write, snapshot
from ..domain.billing import month_label, period_of
from ..domain.finance_records import PENDING, RENT, SECURITY_DEPOSIT
from ..models import Payment, Property, Room, Tenant
from ..schemas import TenantCreate, TenantUpdate
from . import email_service
from .events_facade import wf
from .ownership import must_get_property, must_get_room, must_get_tenant
from .reconciler import reconcile_tenant_status

log = logging.getLogger(__name__)


def _email_taken(db: Session, *, org_id: int, email: str, exclude_id: Optional[int] = None) -> bool:
    q = select(Tenant.id).where(Tenant.org_id == int(org_id), func.lower(Tenant.email) == email.strip().lower())
    if exclude_id is not None:
        q = q.where(Tenant.id != int(exclude_id))
    return db.scalar(q) is not None


def _claim_bed(db: Session, *, org_id: int, property_id: int, room_id: int) -> Room:
    room = must_get_room(db, org_id=org_id, room_id=room_id)
    if int(room.property_id) != int(property_id):
        raise HTTPException(status_code=422, detail="room does not belong to this property")
    if int(room.current_occupancy or 0) >= int(room.capacity or 0):
        raise HTTPException(status_code=409, detail="Room is at full capacity")
    room.current_occupancy = int(room.current_occupancy or 0) + 1
    db.add(room)
    return room


def _release_bed(db: Session, *, org_id: int, room_id: Optional[int]) -> None:
    if room_id is None:
        return
    room = db.scalar(select(Room).where(Room.id == int(room_id), Room.org_id == int(org_id)))
    if room is None:
        return
    room.current_occupancy = max(0, int(room.current_occupancy or 0) - 1)
    db.add(room)


def onboard_tenant(db: Session, *, p: Principal, payload: TenantCreate) -> Tenant:
    """
    Create a tenant, take a bed in the room, and open the joining-month Rent
    and Security Deposit records before the first reconciliation.
    """
    must_get_property(db, org_id=p.org_id, property_id=payload.property_id)
    if _email_taken(db, org_id=p.org_id, email=payload.email):
        raise HTTPException(status_code=409, detail="a tenant with this email already exists")

    if payload.room_id is not None:
        _claim_bed(db, org_id=p.org_id, property_id=payload.property_id, room_id=payload.room_id)

    data = payload.model_dump()
    data["email"] = payload.email.strip().lower()
    data["joining_date"] = payload.joining_date or datetime.utcnow()

    tenant = Tenant(org_id=p.org_id, status="Active", payment_status="Pending", deposit_status="Pending", **data)
    db.add(tenant)
    db.flush()

    joined = tenant.joining_date
    if float(tenant.rent_amount or 0.0) > 0:
        db.add(
            Payment(
                org_id=p.org_id,
                property_id=tenant.property_id,
                tenant_id=int(tenant.id),
                category=RENT,
                amount=float(tenant.rent_amount),
                status=PENDING,
                due_date=joined,
                billing_period=period_of(joined),
                description=f"Rent for {month_label(joined.month, joined.year)}",
            )
        )
    if float(tenant.security_deposit or 0.0) > 0:
        db.add(
            Payment(
                org_id=p.org_id,
                property_id=tenant.property_id,
                tenant_id=int(tenant.id),
                category=SECURITY_DEPOSIT,
                amount=float(tenant.security_deposit),
                status=PENDING,
                due_date=joined,
                description="Security deposit",
            )
        )

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="tenant.created",
        entity_type="Tenant",
        entity_id=str(tenant.id),
        before=None,
        after=snapshot(tenant),
    )
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type="tenant.onboarded",
        property_id=tenant.property_id,
        payload={"tenant_id": tenant.id, "room_id": tenant.room_id, "rent_amount": tenant.rent_amount},
    )
    db.commit()

    reconcile_tenant_status(db, tenant_id=int(tenant.id))
    db.refresh(tenant)
    log.info("tenant onboarded", extra={"org_id": p.org_id, "tenant_id": int(tenant.id), "property_id": tenant.property_id})
    return tenant


def get_tenant_detail(db: Session, *, p: Principal, tenant_id: int) -> Tenant:
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=tenant_id)
    reconcile_tenant_status(db, tenant_id=int(tenant.id))
    db.refresh(tenant)
    return tenant


def list_tenants(
    db: Session,
    *,
    org_id: int,
    search: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    property_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    q = select(Tenant).where(Tenant.org_id == int(org_id))
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.where(
            or_(
                func.lower(Tenant.name).like(like),
                func.lower(Tenant.email).like(like),
                func.lower(Tenant.phone).like(like),
            )
        )
    if status:
        q = q.where(Tenant.status == status)
    if payment_status:
        q = q.where(func.lower(Tenant.payment_status) == payment_status.strip().lower())
    if property_id is not None:
        q = q.where(Tenant.property_id == int(property_id))

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(Tenant.created_at.desc(), Tenant.id.desc()).offset((page - 1) * limit).limit(limit)).all()
    return {
        "items": list(rows),
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def update_tenant(db: Session, *, p: Principal, tenant_id: int, payload: TenantUpdate) -> Tenant:
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=tenant_id)
    before = snapshot(tenant)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("email"):
        email = str(changes["email"]).strip().lower()
        if _email_taken(db, org_id=p.org_id, email=email, exclude_id=int(tenant.id)):
            raise HTTPException(status_code=409, detail="a tenant with this email already exists")
        changes["email"] = email

    if "room_id" in changes and changes["room_id"] != tenant.room_id:
        new_room = changes.pop("room_id")
        if new_room is not None:
            _claim_bed(db, org_id=p.org_id, property_id=tenant.property_id, room_id=int(new_room))
        _release_bed(db, org_id=p.org_id, room_id=tenant.room_id)
        tenant.room_id = new_room
    else:
        changes.pop("room_id", None)

    for k, v in changes.items():
        setattr(tenant, k, v)

    db.add(tenant)
    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="tenant.updated",
        entity_type="Tenant",
        entity_id=str(tenant.id),
        before=before,
        after=snapshot(tenant),
    )
    db.commit()

    # security_deposit may have changed
    reconcile_tenant_status(db, tenant_id=int(tenant.id))
    db.refresh(tenant)
    return tenant


def update_payment_dates(
    db: Session,
    *,
    p: Principal,
    tenant_id: int,
    last_payment_date: Optional[datetime],
    next_payment_due: Optional[datetime],
) -> Tenant:
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=tenant_id)
    if last_payment_date is not None:
        tenant.last_payment_date = last_payment_date
    if next_payment_due is not None:
        tenant.next_payment_due = next_payment_due
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def remove_tenant(
    db: Session,
    *,
    p: Principal,
    tenant_id: int,
    background: Optional[BackgroundTasks] = None,
) -> None:
    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=tenant_id)
    before = snapshot(tenant)

    try:
        prop_name = db.scalar(select(Property.name).where(Property.id == tenant.property_id)) or ""
        if tenant.leaving_date is None:
            tenant.leaving_date = datetime.utcnow()
        email_service.dispatch(email_service.tenant_departure_notice(tenant=tenant, property_name=prop_name), background)
    except Exception:
        log.exception("departure notice failed", extra={"tenant_id": int(tenant.id)})

    _release_bed(db, org_id=p.org_id, room_id=tenant.room_id)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="tenant.deleted",
        entity_type="Tenant",
        entity_id=str(tenant.id),
        before=before,
        after=None,
    )
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type="tenant.departed",
        property_id=tenant.property_id,
        payload={"tenant_id": tenant.id, "name": tenant.name},
    )
    db.delete(tenant)
    db.commit()
    log.info("tenant removed", extra={"org_id": p.org_id, "tenant_id": tenant_id})
