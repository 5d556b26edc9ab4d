# backend/tests/test_finance_event_reconciles.py
from __future__ import annotations

from pgstay.auth import Principal
from pgstay.db import SessionLocal
from pgstay.models import Organization, Property, Tenant
from pgstay.schemas import FinanceRecordCreate, FinanceRecordUpdate
from pgstay.services import finance_service
from pgstay.services.finance_events import FinancialRecordChanged, finance_events


def _setup(db) -> tuple[Principal, Property]:
    org = Organization(slug="events", name="Events")
    db.add(org)
    db.flush()
    prop = Property(org_id=org.id, name="Blue Door PG", address="7 Ring Rd", city="Chennai")
    db.add(prop)
    db.commit()
    p = Principal(org_id=int(org.id), org_slug="events", user_id=None, email="owner@example.com", role="owner")
    return p, prop


def _tenant(db, p: Principal, prop: Property, email: str, *, deposit: float = 0) -> Tenant:
    t = Tenant(
        org_id=p.org_id,
        property_id=prop.id,
        name=email.split("@")[0],
        email=email,
        phone="9000000000",
        rent_amount=5000,
        security_deposit=deposit,
    )
    db.add(t)
    db.commit()
    return t


def test_create_publishes_and_reconciles():
    db = SessionLocal()
    try:
        p, prop = _setup(db)
        t = _tenant(db, p, prop, "asha@example.com")

        finance_service.create_record(
            db,
            p=p,
            payload=FinanceRecordCreate(category="Rent", amount=5000, status="Overdue", entity_id=t.id, entity_type="Tenant"),
        )
        db.refresh(t)
        assert t.payment_status == "Overdue"
    finally:
        db.close()


def test_moving_a_record_reconciles_both_tenants():
    db = SessionLocal()
    try:
        p, prop = _setup(db)
        a = _tenant(db, p, prop, "a@example.com")
        b = _tenant(db, p, prop, "b@example.com")

        row = finance_service.create_record(
            db,
            p=p,
            payload=FinanceRecordCreate(category="Rent", amount=5000, status="pending", entity_id=a.id),
        )
        db.refresh(a)
        assert a.payment_status == "Pending"

        finance_service.update_payment(db, p=p, payment_id=row.id, payload=FinanceRecordUpdate(entity_id=b.id))
        db.refresh(a)
        db.refresh(b)
        assert a.payment_status == "Paid"
        assert b.payment_status == "Pending"
    finally:
        db.close()


def test_delete_reconciles_the_former_tenant():
    db = SessionLocal()
    try:
        p, prop = _setup(db)
        t = _tenant(db, p, prop, "del@example.com")
        row = finance_service.create_record(
            db,
            p=p,
            payload=FinanceRecordCreate(category="Rent", amount=5000, status="overdue", entity_id=t.id),
        )
        db.refresh(t)
        assert t.payment_status == "Overdue"

        finance_service.delete_payment(db, p=p, payment_id=row.id)
        db.refresh(t)
        assert t.payment_status == "Paid"
    finally:
        db.close()


def test_every_mutation_publishes_an_event():
    seen: list[FinancialRecordChanged] = []

    def _spy(db, event):
        seen.append(event)

    finance_events.subscribe(_spy)
    db = SessionLocal()
    try:
        p, prop = _setup(db)
        t = _tenant(db, p, prop, "spy@example.com")
        row = finance_service.create_record(db, p=p, payload=FinanceRecordCreate(category="Utility", amount=300, entity_id=t.id))
        finance_service.update_payment(db, p=p, payment_id=row.id, payload=FinanceRecordUpdate(status="paid"))
        finance_service.delete_payment(db, p=p, payment_id=row.id)

        exp = finance_service.create_record(db, p=p, payload=FinanceRecordCreate(category="Groceries", amount=900, paid_to="Market"))
        finance_service.delete_expense(db, p=p, expense_id=exp.id)
    finally:
        finance_events.unsubscribe(_spy)
        db.close()

    assert [e.action for e in seen] == ["created", "updated", "deleted", "created", "deleted"]
    assert seen[0].tenant_id is not None
    assert seen[3].category == "Groceries"
