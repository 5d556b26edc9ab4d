# backend/pgstay/routers/staff.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_manager
from ..db import get_db
from ..domain.audit import audit_write, snapshot
from ..domain.modules import STAFF
from ..models import Staff
from ..schemas import StaffCreate, StaffOut, StaffUpdate
from ..services.events_facade import wf
from ..services.ownership import must_get_property, must_get_staff
from ..services.plan_service import require_module

router = APIRouter(prefix="/staff", tags=["staff"], dependencies=[Depends(require_module(STAFF))])


def _commit_or_409(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="a staff member with this email already exists")


@router.post("", response_model=StaffOut)
def create_staff(payload: StaffCreate, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    must_get_property(db, org_id=p.org_id, property_id=payload.property_id)

    data = payload.model_dump()
    data["email"] = payload.email.strip().lower()
    data["joining_date"] = payload.joining_date or datetime.utcnow()

    row = Staff(org_id=p.org_id, is_active=True, **data)
    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="staff.created",
        entity_type="Staff",
        entity_id=str(row.id),
        after=snapshot(row),
    )
    wf(db, org_id=p.org_id, actor_user_id=p.user_id, event_type="staff.created", property_id=row.property_id, payload={"staff_id": row.id, "role": row.role})
    db.commit()
    return row


@router.get("", response_model=list[StaffOut])
def list_staff(
    property_id: int | None = Query(default=None),
    active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Staff).where(Staff.org_id == p.org_id)
    if property_id is not None:
        q = q.where(Staff.property_id == property_id)
    if active is not None:
        q = q.where(Staff.is_active.is_(active))
    if search:
        q = q.where(func.lower(Staff.name).like(f"%{search.strip().lower()}%"))
    return list(db.scalars(q.order_by(Staff.name.asc())).all())


@router.get("/{staff_id}", response_model=StaffOut)
def get_staff(staff_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_staff(db, org_id=p.org_id, staff_id=staff_id)


@router.patch("/{staff_id}", response_model=StaffOut)
def update_staff(staff_id: int, payload: StaffUpdate, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    row = must_get_staff(db, org_id=p.org_id, staff_id=staff_id)
    before = snapshot(row)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("property_id") is not None:
        must_get_property(db, org_id=p.org_id, property_id=int(changes["property_id"]))
    if changes.get("email"):
        changes["email"] = str(changes["email"]).strip().lower()

    for k, v in changes.items():
        setattr(row, k, v)
    db.add(row)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="staff.updated",
        entity_type="Staff",
        entity_id=str(row.id),
        before=before,
        after=snapshot(row),
    )
    _commit_or_409(db)
    db.refresh(row)
    return row


@router.delete("/{staff_id}")
def delete_staff(staff_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    row = must_get_staff(db, org_id=p.org_id, staff_id=staff_id)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="staff.deleted",
        entity_type="Staff",
        entity_id=str(row.id),
        before=snapshot(row),
    )
    db.delete(row)
    db.commit()
    return {"ok": True}
