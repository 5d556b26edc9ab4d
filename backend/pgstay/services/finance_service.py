# backend/pgstay/services/finance_service.py
"""
Finance record mutations and queries over the Payment / Expense stores.

Every create, update and delete publishes FinancialRecordChanged after the
record is committed; tenant status reconciliation hangs off that event.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional

from fastapi import BackgroundTasks, HTTPException
from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.audit import audit_write, snapshot
from ..domain.billing import period_of
from ..domain.finance_records import (
    EXPENSE_CATEGORIES,
    OVERDUE,
    PAID,
    PAYMENT_CATEGORIES,
    PENDING,
    RENT,
    STAFF_SALARY,
    canonical_category,
    canonical_status,
    display_status,
    from_expense,
    from_payment,
    is_expense_side,
)
from ..models import Expense, Payment, Property, Staff, Tenant
from ..schemas import FinanceRecordCreate, FinanceRecordUpdate
from . import email_service
from .events_facade import wf
from .finance_events import FinancialRecordChanged, finance_events
from .ownership import must_get_expense, must_get_payment, must_get_property, must_get_staff, must_get_tenant

log = logging.getLogger(__name__)

SALARY_TYPE = "Salary"
EXPENSE_TYPE = "Expense"
RECORD_TYPES = PAYMENT_CATEGORIES + (SALARY_TYPE, EXPENSE_TYPE)

_PAYMENT_FIELDS = ("amount", "due_date", "paid_date", "method", "transaction_id", "description", "notes")
_EXPENSE_FIELDS = ("amount", "paid_to", "payment_method", "invoice_number", "description", "notes")


def _status_or_422(value: Optional[str], default: str) -> str:
    try:
        return canonical_status(value, default=default)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def resolve_property_id(
    db: Session,
    *,
    org_id: int,
    property_id: Optional[int],
    owner: Optional[Any] = None,
) -> int:
    """Explicit property, else the tenant's/staff member's, else the org's first property."""
    if property_id is not None:
        return int(must_get_property(db, org_id=org_id, property_id=int(property_id)).id)
    if owner is not None and getattr(owner, "property_id", None) is not None:
        return int(owner.property_id)
    first = db.scalar(select(Property.id).where(Property.org_id == int(org_id)).order_by(Property.id.asc()))
    if first is None:
        raise HTTPException(status_code=422, detail="property_id is required (no property found for this account)")
    return int(first)


# -------------------------
# Serialization
# -------------------------
def _property_name(db: Session, property_id: int) -> Optional[str]:
    return db.scalar(select(Property.name).where(Property.id == int(property_id)))


def serialize_payment(db: Session, row: Payment) -> dict[str, Any]:
    rec = from_payment(row)
    tenant = db.get(Tenant, row.tenant_id) if row.tenant_id is not None else None
    prop_name = _property_name(db, row.property_id)
    return {
        "id": rec.id,
        "kind": rec.kind,
        "category": rec.category,
        "amount": rec.amount,
        "status": display_status(rec.status),
        "entity_id": tenant.id if tenant else None,
        "entity_name": tenant.name if tenant else prop_name,
        "entity_type": "Tenant" if tenant else "Property",
        "property_id": rec.property_id,
        "property_name": prop_name,
        "due_date": rec.due_date,
        "paid_date": rec.paid_date,
        "billing_period": row.billing_period,
        "method": row.method,
        "transaction_id": row.transaction_id,
        "description": rec.description,
        "created_at": rec.created_at,
    }


def serialize_expense(db: Session, row: Expense) -> dict[str, Any]:
    rec = from_expense(row)
    staff = db.get(Staff, row.staff_id) if row.staff_id is not None else None
    prop_name = _property_name(db, row.property_id)
    return {
        "id": rec.id,
        "kind": rec.kind,
        "category": SALARY_TYPE if rec.category == STAFF_SALARY else rec.category,
        "amount": rec.amount,
        "status": display_status(rec.status),
        "entity_id": staff.id if staff else None,
        "entity_name": staff.name if staff else (row.paid_to or prop_name),
        "entity_type": "Staff" if staff else "Property",
        "property_id": rec.property_id,
        "property_name": prop_name,
        "due_date": rec.due_date,
        "paid_date": rec.paid_date,
        "billing_period": row.billing_period,
        "method": row.payment_method,
        "transaction_id": row.invoice_number,
        "description": rec.description,
        "created_at": rec.created_at,
    }


# -------------------------
# Side effects
# -------------------------
def _publish(db: Session, *, org_id: int, row: Payment | Expense, action: str, category: Optional[str] = None, tenant_id: Optional[int] = None, staff_id: Optional[int] = None) -> None:
    finance_events.publish(
        db,
        FinancialRecordChanged(
            org_id=int(org_id),
            category=str(category or row.category),
            action=action,
            tenant_id=tenant_id,
            staff_id=staff_id,
            record_id=int(row.id) if row.id is not None else None,
        ),
    )


def _notify_paid(db: Session, row: Payment | Expense, background: Optional[BackgroundTasks]) -> None:
    if str(row.status).lower() != PAID:
        return
    try:
        prop_name = _property_name(db, row.property_id) or ""
        if isinstance(row, Payment) and row.category == RENT and row.tenant_id is not None:
            tenant = db.get(Tenant, row.tenant_id)
            if tenant is not None:
                email_service.dispatch(
                    email_service.rent_payment_confirmation(payment=row, tenant=tenant, property_name=prop_name),
                    background,
                )
        elif isinstance(row, Expense) and row.category == STAFF_SALARY and row.staff_id is not None:
            staff = db.get(Staff, row.staff_id)
            if staff is not None:
                email_service.dispatch(
                    email_service.salary_credit(expense=row, staff=staff, property_name=prop_name),
                    background,
                )
    except Exception:
        # rendering problems must not fail the mutation that triggered them
        log.exception("paid-record notification failed", extra={"record_id": int(row.id)})


def _commit_or_409(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="duplicate finance record (transaction id or billing period already used)")


def _record_activity(db: Session, p: Principal, *, row: Payment | Expense, action: str, before: Optional[dict] = None, after: Optional[dict] = None) -> None:
    entity_type = "Expense" if isinstance(row, Expense) else "Payment"
    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action=f"{entity_type.lower()}.{action}",
        entity_type=entity_type,
        entity_id=str(row.id),
        before=before,
        after=after,
    )
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type=f"finance.{action}",
        property_id=row.property_id,
        payload={"record_id": row.id, "store": entity_type.lower(), "category": row.category, "amount": row.amount, "status": row.status},
    )
    db.commit()


# -------------------------
# Create
# -------------------------
def create_record(
    db: Session,
    *,
    p: Principal,
    payload: FinanceRecordCreate,
    background: Optional[BackgroundTasks] = None,
) -> Payment | Expense:
    category = canonical_category(payload.category)

    if is_expense_side(category, payload.entity_type):
        row = _create_expense(db, p=p, payload=payload, category=category)
        _publish(db, org_id=p.org_id, row=row, action="created", staff_id=row.staff_id)
    else:
        row = _create_payment(db, p=p, payload=payload, category=category)
        _publish(db, org_id=p.org_id, row=row, action="created", tenant_id=row.tenant_id)

    _notify_paid(db, row, background)
    return row


def _create_payment(db: Session, *, p: Principal, payload: FinanceRecordCreate, category: str) -> Payment:
    if category not in PAYMENT_CATEGORIES:
        raise HTTPException(status_code=422, detail=f"unknown payment category: {payload.category}")

    tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=int(payload.entity_id)) if payload.entity_id is not None else None
    status = _status_or_422(payload.status, PENDING)
    now = datetime.utcnow()

    row = Payment(
        org_id=p.org_id,
        property_id=resolve_property_id(db, org_id=p.org_id, property_id=payload.property_id, owner=tenant),
        tenant_id=int(tenant.id) if tenant else None,
        category=category,
        amount=float(payload.amount),
        status=status,
        due_date=payload.due_date or now,
        paid_date=payload.paid_date or (now if status == PAID else None),
        method=payload.method or payload.payment_method,
        transaction_id=payload.transaction_id,
        description=payload.description,
        notes=payload.notes,
    )
    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    _record_activity(db, p, row=row, action="created", after=snapshot(row))
    log.info("payment record created", extra={"org_id": p.org_id, "record_id": int(row.id), "category": category})
    return row


def _create_expense(db: Session, *, p: Principal, payload: FinanceRecordCreate, category: str) -> Expense:
    if category not in EXPENSE_CATEGORIES:
        raise HTTPException(status_code=422, detail=f"unknown expense category: {payload.category}")

    staff = must_get_staff(db, org_id=p.org_id, staff_id=int(payload.entity_id)) if payload.entity_id is not None else None
    paid_to = payload.paid_to or (staff.name if staff else None)
    if not paid_to:
        raise HTTPException(status_code=422, detail="paid_to is required")

    row = Expense(
        org_id=p.org_id,
        property_id=resolve_property_id(db, org_id=p.org_id, property_id=payload.property_id, owner=staff),
        staff_id=int(staff.id) if staff else None,
        added_by_user_id=p.user_id,
        category=category,
        amount=float(payload.amount),
        status=_status_or_422(payload.status, PAID),
        date=payload.due_date or payload.paid_date or datetime.utcnow(),
        paid_to=paid_to,
        payment_method=payload.payment_method or payload.method or "Other",
        invoice_number=payload.invoice_number,
        description=payload.description,
        notes=payload.notes,
    )
    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    _record_activity(db, p, row=row, action="created", after=snapshot(row))
    log.info("expense record created", extra={"org_id": p.org_id, "record_id": int(row.id), "category": category})
    return row


# -------------------------
# Update
# -------------------------
def update_payment(
    db: Session,
    *,
    p: Principal,
    payment_id: int,
    payload: FinanceRecordUpdate,
    background: Optional[BackgroundTasks] = None,
) -> Payment:
    row = must_get_payment(db, org_id=p.org_id, payment_id=payment_id)
    return apply_payment_changes(db, p=p, row=row, changes=payload.model_dump(exclude_unset=True), background=background)


def apply_payment_changes(
    db: Session,
    *,
    p: Principal,
    row: Payment,
    changes: dict[str, Any],
    background: Optional[BackgroundTasks] = None,
) -> Payment:
    before = snapshot(row)
    old_tenant_id, old_category, old_status = row.tenant_id, row.category, row.status

    if "category" in changes and changes["category"] is not None:
        category = canonical_category(changes["category"])
        if category not in PAYMENT_CATEGORIES:
            raise HTTPException(status_code=422, detail=f"unknown payment category: {changes['category']}")
        row.category = category

    if "entity_id" in changes:
        if changes["entity_id"] is None:
            row.tenant_id = None
        else:
            tenant = must_get_tenant(db, org_id=p.org_id, tenant_id=int(changes["entity_id"]))
            row.tenant_id = int(tenant.id)

    if changes.get("property_id") is not None:
        row.property_id = int(must_get_property(db, org_id=p.org_id, property_id=int(changes["property_id"])).id)

    if "status" in changes:
        row.status = _status_or_422(changes["status"], PENDING)

    for k in _PAYMENT_FIELDS:
        if k in changes:
            setattr(row, k, changes[k])
    if "due_date" in changes and row.billing_period:
        row.billing_period = period_of(row.due_date)
    if "payment_method" in changes and "method" not in changes:
        row.method = changes["payment_method"]

    if row.status == PAID and row.paid_date is None:
        row.paid_date = datetime.utcnow()

    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    _record_activity(db, p, row=row, action="updated", before=before, after=snapshot(row))

    _publish(db, org_id=p.org_id, row=row, action="updated", tenant_id=row.tenant_id)
    if (old_tenant_id, old_category) != (row.tenant_id, row.category) and old_tenant_id is not None:
        # the record left the old tenant (or its tracked category)
        _publish(db, org_id=p.org_id, row=row, action="updated", category=old_category, tenant_id=old_tenant_id)

    if old_status != PAID:
        _notify_paid(db, row, background)
    return row


def update_expense(
    db: Session,
    *,
    p: Principal,
    expense_id: int,
    payload: FinanceRecordUpdate,
    background: Optional[BackgroundTasks] = None,
) -> Expense:
    row = must_get_expense(db, org_id=p.org_id, expense_id=expense_id)
    changes = payload.model_dump(exclude_unset=True)
    before = snapshot(row)
    old_status = row.status

    if changes.get("category") is not None:
        category = canonical_category(changes["category"])
        if category not in EXPENSE_CATEGORIES:
            raise HTTPException(status_code=422, detail=f"unknown expense category: {changes['category']}")
        row.category = category

    if "entity_id" in changes:
        if changes["entity_id"] is None:
            row.staff_id = None
        else:
            staff = must_get_staff(db, org_id=p.org_id, staff_id=int(changes["entity_id"]))
            row.staff_id = int(staff.id)

    if changes.get("property_id") is not None:
        row.property_id = int(must_get_property(db, org_id=p.org_id, property_id=int(changes["property_id"])).id)

    if "status" in changes:
        row.status = _status_or_422(changes["status"], PAID)

    for k in _EXPENSE_FIELDS:
        if k in changes:
            setattr(row, k, changes[k])
    if "method" in changes and "payment_method" not in changes:
        row.payment_method = changes["method"] or "Other"
    if changes.get("due_date") is not None:
        row.date = changes["due_date"]
        if row.billing_period:
            row.billing_period = period_of(row.date)

    db.add(row)
    _commit_or_409(db)
    db.refresh(row)

    _record_activity(db, p, row=row, action="updated", before=before, after=snapshot(row))
    _publish(db, org_id=p.org_id, row=row, action="updated", staff_id=row.staff_id)

    if old_status != PAID:
        _notify_paid(db, row, background)
    return row


# -------------------------
# Delete
# -------------------------
def delete_payment(db: Session, *, p: Principal, payment_id: int) -> None:
    row = must_get_payment(db, org_id=p.org_id, payment_id=payment_id)
    before = snapshot(row)
    tenant_id, category = row.tenant_id, row.category

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="payment.deleted",
        entity_type="Payment",
        entity_id=str(row.id),
        before=before,
        after=None,
    )
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type="finance.deleted",
        property_id=row.property_id,
        payload={"record_id": row.id, "store": "payment", "category": category},
    )
    db.delete(row)
    db.commit()

    finance_events.publish(
        db,
        FinancialRecordChanged(org_id=p.org_id, category=category, action="deleted", tenant_id=tenant_id, record_id=int(before["id"])),
    )


def delete_expense(db: Session, *, p: Principal, expense_id: int) -> None:
    row = must_get_expense(db, org_id=p.org_id, expense_id=expense_id)
    before = snapshot(row)
    staff_id, category = row.staff_id, row.category

    audit_write(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        action="expense.deleted",
        entity_type="Expense",
        entity_id=str(row.id),
        before=before,
        after=None,
    )
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type="finance.deleted",
        property_id=row.property_id,
        payload={"record_id": row.id, "store": "expense", "category": category},
    )
    db.delete(row)
    db.commit()

    finance_events.publish(
        db,
        FinancialRecordChanged(org_id=p.org_id, category=category, action="deleted", staff_id=staff_id, record_id=int(before["id"])),
    )


# -------------------------
# Queries
# -------------------------
def list_records(
    db: Session,
    *,
    org_id: int,
    record_type: Optional[str] = None,
    status: Optional[str] = None,
    entity_id: Optional[int] = None,
    property_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    rtype = (record_type or "").strip()
    if rtype and rtype.lower() == "all":
        rtype = ""
    if rtype and rtype not in RECORD_TYPES:
        rtype = canonical_category(rtype)
        if rtype == STAFF_SALARY:
            rtype = SALARY_TYPE
        if rtype not in RECORD_TYPES:
            raise HTTPException(status_code=422, detail=f"unknown record type: {record_type}")

    status_value = _status_or_422(status, "") if status else None

    if rtype in (SALARY_TYPE, EXPENSE_TYPE):
        q = select(Expense).where(Expense.org_id == int(org_id))
        if rtype == SALARY_TYPE:
            q = q.where(Expense.category == STAFF_SALARY)
        else:
            q = q.where(Expense.category != STAFF_SALARY)
        if status_value:
            q = q.where(Expense.status == status_value)
        if entity_id is not None:
            q = q.where(Expense.staff_id == int(entity_id))
        if property_id is not None:
            q = q.where(Expense.property_id == int(property_id))
        order = (desc(Expense.created_at), desc(Expense.id))
        serialize = serialize_expense
    else:
        q = select(Payment).where(Payment.org_id == int(org_id))
        if rtype:
            q = q.where(Payment.category == rtype)
        if status_value:
            q = q.where(Payment.status == status_value)
        if entity_id is not None:
            q = q.where(Payment.tenant_id == int(entity_id))
        if property_id is not None:
            q = q.where(Payment.property_id == int(property_id))
        order = (desc(Payment.created_at), desc(Payment.id))
        serialize = serialize_payment

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(*order).offset((page - 1) * limit).limit(limit)).all()

    return {
        "items": [serialize(db, r) for r in rows],
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def _sum(db: Session, column, *conds) -> float:
    return float(db.scalar(select(func.coalesce(func.sum(column), 0.0)).where(*conds)) or 0.0)


def finance_stats(db: Session, *, org_id: int, property_id: Optional[int] = None) -> dict[str, float]:
    pay_scope = [Payment.org_id == int(org_id)]
    exp_scope = [Expense.org_id == int(org_id)]
    if property_id is not None:
        pay_scope.append(Payment.property_id == int(property_id))
        exp_scope.append(Expense.property_id == int(property_id))

    total_income = _sum(db, Payment.amount, *pay_scope, Payment.status == PAID)
    pending_income = _sum(db, Payment.amount, *pay_scope, Payment.status.in_((PENDING, OVERDUE)))
    total_expense = _sum(db, Expense.amount, *exp_scope, Expense.status == PAID)
    pending_expense = _sum(db, Expense.amount, *exp_scope, Expense.status.in_((PENDING, OVERDUE)))

    return {
        "total_income": total_income,
        "pending_income": pending_income,
        "total_expense": total_expense,
        "pending_expense": pending_expense,
        "net": total_income - total_expense,
    }
