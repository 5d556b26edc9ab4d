# backend/pgstay/services/ownership.py
from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Property, Room, Tenant, Staff, Payment, Expense


def must_get_property(db: Session, *, org_id: int, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id, Property.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="property not found")
    return row


def must_get_room(db: Session, *, org_id: int, room_id: int) -> Room:
    row = db.scalar(select(Room).where(Room.id == room_id, Room.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="room not found")
    return row


def must_get_tenant(db: Session, *, org_id: int, tenant_id: int) -> Tenant:
    row = db.scalar(select(Tenant).where(Tenant.id == tenant_id, Tenant.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="tenant not found")
    return row


def must_get_staff(db: Session, *, org_id: int, staff_id: int) -> Staff:
    row = db.scalar(select(Staff).where(Staff.id == staff_id, Staff.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="staff not found")
    return row


def must_get_payment(db: Session, *, org_id: int, payment_id: int) -> Payment:
    row = db.scalar(select(Payment).where(Payment.id == payment_id, Payment.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="payment not found")
    return row


def must_get_expense(db: Session, *, org_id: int, expense_id: int) -> Expense:
    row = db.scalar(select(Expense).where(Expense.id == expense_id, Expense.org_id == org_id))
    if not row:
        raise HTTPException(status_code=404, detail="expense not found")
    return row
