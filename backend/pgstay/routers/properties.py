# backend/pgstay/routers/properties.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_owner
from ..db import get_db
from ..domain.audit import audit_write, snapshot
from ..models import Expense, Payment, Property, Room, Staff, Tenant
from ..schemas import PropertyCreate, PropertyOut, PropertyUpdate
from ..services.events_facade import wf
from ..services.ownership import must_get_property

router = APIRouter(prefix="/properties", tags=["properties"])


@router.post("", response_model=PropertyOut)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), p: Principal = Depends(require_owner)):
    row = Property(org_id=p.org_id, **payload.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="property.created",
        entity_type="Property",
        entity_id=str(row.id),
        after=snapshot(row),
    )
    wf(db, org_id=p.org_id, actor_user_id=p.user_id, event_type="property.created", property_id=row.id, payload={"name": row.name})
    db.commit()
    return row


@router.get("", response_model=list[PropertyOut])
def list_properties(db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    q = select(Property).where(Property.org_id == p.org_id).order_by(Property.id.asc())
    return list(db.scalars(q).all())


@router.get("/{property_id}", response_model=PropertyOut)
def get_property(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_property(db, org_id=p.org_id, property_id=property_id)


@router.patch("/{property_id}", response_model=PropertyOut)
def update_property(
    property_id: int,
    payload: PropertyUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    row = must_get_property(db, org_id=p.org_id, property_id=property_id)
    before = snapshot(row)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(row, k, v)
    db.add(row)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="property.updated",
        entity_type="Property",
        entity_id=str(row.id),
        before=before,
        after=snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{property_id}")
def delete_property(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_owner)):
    row = must_get_property(db, org_id=p.org_id, property_id=property_id)

    for model, label in ((Tenant, "tenants"), (Staff, "staff"), (Payment, "payments"), (Expense, "expenses")):
        n = db.scalar(select(func.count()).select_from(model).where(model.property_id == row.id)) or 0
        if n:
            raise HTTPException(status_code=409, detail=f"property still has {label}")

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="property.deleted",
        entity_type="Property",
        entity_id=str(row.id),
        before=snapshot(row),
    )
    db.delete(row)
    db.commit()
    return {"ok": True}


@router.get("/{property_id}/occupancy")
def property_occupancy(property_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = must_get_property(db, org_id=p.org_id, property_id=property_id)
    capacity, occupied = db.execute(
        select(func.coalesce(func.sum(Room.capacity), 0), func.coalesce(func.sum(Room.current_occupancy), 0)).where(
            Room.property_id == row.id
        )
    ).one()
    capacity, occupied = int(capacity), int(occupied)
    return {
        "property_id": int(row.id),
        "capacity": capacity,
        "occupied": occupied,
        "vacant": max(0, capacity - occupied),
        "occupancy_rate": round(occupied / capacity * 100, 1) if capacity else 0.0,
    }
