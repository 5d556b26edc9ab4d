# backend/tests/test_reconcile_tenant_status.py
from __future__ import annotations

import threading
from datetime import datetime

from pgstay.db import SessionLocal
from pgstay.models import Organization, Payment, Property, Tenant
from pgstay.services.reconciler import _KeyedLocks, reconcile_tenant_status


def _mk_tenant(db, *, security_deposit: float, deposit_status: str = "Pending", payment_status: str = "Pending") -> Tenant:
    org = Organization(slug="recon", name="Recon")
    db.add(org)
    db.flush()
    prop = Property(org_id=org.id, name="Lake View PG", address="1 Lake Rd", city="Pune")
    db.add(prop)
    db.flush()
    t = Tenant(
        org_id=org.id,
        property_id=prop.id,
        name="Meera",
        email="meera@example.com",
        phone="9999999999",
        rent_amount=5000,
        security_deposit=security_deposit,
        deposit_status=deposit_status,
        payment_status=payment_status,
    )
    db.add(t)
    db.commit()
    return t


def _mk_payment(db, t: Tenant, *, category: str, status: str, amount: float = 5000) -> Payment:
    row = Payment(
        org_id=t.org_id,
        property_id=t.property_id,
        tenant_id=t.id,
        category=category,
        amount=amount,
        status=status,
        due_date=datetime(2026, 10, 10),
    )
    db.add(row)
    db.commit()
    return row


def test_deposit_paid_rent_pending_then_overdue():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, security_deposit=10000)
        _mk_payment(db, t, category="Security Deposit", status="paid", amount=10000)
        _mk_payment(db, t, category="Rent", status="pending")

        out = reconcile_tenant_status(db, tenant_id=t.id)
        assert out is not None
        assert t.deposit_status == "Paid"
        assert t.payment_status == "Pending"

        _mk_payment(db, t, category="Rent", status="overdue")
        reconcile_tenant_status(db, tenant_id=t.id)
        assert t.payment_status == "Overdue"
    finally:
        db.close()


def test_reconcile_is_idempotent():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, security_deposit=10000)
        _mk_payment(db, t, category="Security Deposit", status="paid", amount=10000)
        _mk_payment(db, t, category="Rent", status="paid")

        first = reconcile_tenant_status(db, tenant_id=t.id)
        second = reconcile_tenant_status(db, tenant_id=t.id)

        assert first.writes == 2
        assert second.writes == 0
        assert (second.deposit_status, second.payment_status) == ("Paid", "Paid")
    finally:
        db.close()


def test_zero_deposit_tenant_without_records_becomes_paid():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, security_deposit=0)
        reconcile_tenant_status(db, tenant_id=t.id)
        assert t.payment_status == "Paid"
        assert t.deposit_status == "Pending"
    finally:
        db.close()


def test_missing_tenant_is_a_silent_noop():
    db = SessionLocal()
    try:
        assert reconcile_tenant_status(db, tenant_id=424242) is None
        assert reconcile_tenant_status(db, tenant_id=None) is None
    finally:
        db.close()


def test_other_categories_do_not_affect_status():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, security_deposit=0)
        _mk_payment(db, t, category="Utility", status="overdue", amount=300)
        reconcile_tenant_status(db, tenant_id=t.id)
        assert t.payment_status == "Paid"
    finally:
        db.close()


def test_reconciled_values_are_persisted():
    db = SessionLocal()
    try:
        t = _mk_tenant(db, security_deposit=2000)
        _mk_payment(db, t, category="Security Deposit", status="paid", amount=2000)
        reconcile_tenant_status(db, tenant_id=t.id)
        tenant_id = int(t.id)
    finally:
        db.close()

    db = SessionLocal()
    try:
        fresh = db.get(Tenant, tenant_id)
        assert fresh.deposit_status == "Paid"
        assert fresh.payment_status == "Paid"
    finally:
        db.close()


def test_keyed_lock_serializes_one_tenant_but_not_others():
    locks = _KeyedLocks()
    same_entered = threading.Event()
    other_entered = threading.Event()

    def _hold(key: int, entered: threading.Event):
        with locks.hold(key):
            entered.set()

    with locks.hold(7):
        same = threading.Thread(target=_hold, args=(7, same_entered))
        other = threading.Thread(target=_hold, args=(8, other_entered))
        same.start()
        other.start()
        assert other_entered.wait(2)
        assert not same_entered.wait(0.2)

    same.join(2)
    other.join(2)
    assert same_entered.is_set()
    assert locks._locks == {}
