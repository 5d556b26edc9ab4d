# backend/pgstay/routers/rooms.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_manager
from ..db import get_db
from ..domain.audit import audit_write, snapshot
from ..domain.modules import ROOMS
from ..models import Room
from ..schemas import RoomCreate, RoomOut, RoomUpdate
from ..services.ownership import must_get_property, must_get_room
from ..services.plan_service import require_module

router = APIRouter(prefix="/rooms", tags=["rooms"], dependencies=[Depends(require_module(ROOMS))])


def _commit_or_409(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="room number already exists in this property")


@router.post("", response_model=RoomOut)
def create_room(payload: RoomCreate, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    must_get_property(db, org_id=p.org_id, property_id=payload.property_id)

    row = Room(org_id=p.org_id, current_occupancy=0, **payload.model_dump())
    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="room.created",
        entity_type="Room",
        entity_id=str(row.id),
        after=snapshot(row),
        commit=True,
    )
    return row


@router.get("", response_model=list[RoomOut])
def list_rooms(
    property_id: int | None = Query(default=None),
    available: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Room).where(Room.org_id == p.org_id)
    if property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=property_id)
        q = q.where(Room.property_id == property_id)
    if available:
        q = q.where(Room.current_occupancy < Room.capacity)
    return list(db.scalars(q.order_by(Room.property_id.asc(), Room.room_number.asc())).all())


@router.get("/{room_id}", response_model=RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return must_get_room(db, org_id=p.org_id, room_id=room_id)


@router.patch("/{room_id}", response_model=RoomOut)
def update_room(room_id: int, payload: RoomUpdate, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    row = must_get_room(db, org_id=p.org_id, room_id=room_id)
    before = snapshot(row)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("capacity") is not None and int(changes["capacity"]) < int(row.current_occupancy or 0):
        raise HTTPException(status_code=409, detail="capacity cannot be below current occupancy")

    for k, v in changes.items():
        setattr(row, k, v)
    db.add(row)
    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="room.updated",
        entity_type="Room",
        entity_id=str(row.id),
        before=before,
        after=snapshot(row),
    )
    _commit_or_409(db)
    db.refresh(row)
    return row


@router.delete("/{room_id}")
def delete_room(room_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    row = must_get_room(db, org_id=p.org_id, room_id=room_id)
    if int(row.current_occupancy or 0) > 0:
        raise HTTPException(status_code=409, detail="room is occupied")

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="room.deleted",
        entity_type="Room",
        entity_id=str(row.id),
        before=snapshot(row),
    )
    db.delete(row)
    db.commit()
    return {"ok": True}
