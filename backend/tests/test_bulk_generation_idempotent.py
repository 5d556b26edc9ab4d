# backend/tests/test_bulk_generation_idempotent.py
from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select

from pgstay.db import SessionLocal
from pgstay.models import Expense, Organization, Payment, Property, Staff, Tenant
from pgstay.services import bulk_generation
from pgstay.services.bulk_generation import NoActiveEntities, NoActiveStaff, NoActiveTenants, generate_rent, generate_salary


def _mk_org_with_property(db) -> tuple[int, int]:
    org = Organization(slug="bulk", name="Bulk")
    db.add(org)
    db.flush()
    prop = Property(org_id=org.id, name="Green Nest", address="4 Hill St", city="Mysuru")
    db.add(prop)
    db.commit()
    return int(org.id), int(prop.id)


def _mk_tenant(db, org_id: int, property_id: int, n: int, *, status: str = "Active") -> Tenant:
    t = Tenant(
        org_id=org_id,
        property_id=property_id,
        name=f"Tenant {n}",
        email=f"t{n}@example.com",
        phone=f"90000000{n:02d}",
        rent_amount=4000 + n,
        security_deposit=0,
        status=status,
    )
    db.add(t)
    db.commit()
    return t


def _mk_staff(db, org_id: int, property_id: int, n: int, *, active: bool = True) -> Staff:
    s = Staff(
        org_id=org_id,
        property_id=property_id,
        name=f"Staff {n}",
        email=f"s{n}@example.com",
        phone=f"80000000{n:02d}",
        role="Cook",
        salary=12000,
        is_active=active,
    )
    db.add(s)
    db.commit()
    return s


def test_generate_rent_twice_creates_n_then_zero():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        for n in range(3):
            _mk_tenant(db, org_id, prop_id, n)
        _mk_tenant(db, org_id, prop_id, 9, status="Left")

        first = generate_rent(db, org_id=org_id, month=11, year=2026)
        second = generate_rent(db, org_id=org_id, month=11, year=2026)

        assert first.count == 3
        assert second.count == 0
        assert second.skipped == 3

        rows = db.scalars(select(Payment).where(Payment.org_id == org_id)).all()
        assert len(rows) == 3
        for r in rows:
            assert r.category == "Rent"
            assert r.status == "pending"
            assert r.due_date == datetime(2026, 11, 10)
            assert r.billing_period == "2026-11"
            assert r.description == "Monthly Rent for November 2026"
    finally:
        db.close()


def test_generated_rent_reconciles_the_tenant():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        t = _mk_tenant(db, org_id, prop_id, 1)
        t.payment_status = "Paid"
        db.commit()

        generate_rent(db, org_id=org_id, month=1, year=2027)
        db.refresh(t)
        assert t.payment_status == "Pending"
    finally:
        db.close()


def test_existing_rent_in_the_month_is_skipped():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        t = _mk_tenant(db, org_id, prop_id, 1)
        db.add(
            Payment(
                org_id=org_id,
                property_id=prop_id,
                tenant_id=t.id,
                category="Rent",
                amount=4001,
                status="paid",
                due_date=datetime(2026, 11, 30, 23, 59, 59),
            )
        )
        db.commit()

        result = generate_rent(db, org_id=org_id, month=11, year=2026)
        assert result.count == 0
        assert result.skipped == 1
    finally:
        db.close()


def test_generate_rent_scoped_to_property():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        other = Property(org_id=org_id, name="Second", address="9 Lane", city="Mysuru")
        db.add(other)
        db.commit()
        _mk_tenant(db, org_id, prop_id, 1)
        _mk_tenant(db, org_id, int(other.id), 2)

        result = generate_rent(db, org_id=org_id, month=3, year=2027, property_id=int(other.id))
        assert result.count == 1
    finally:
        db.close()


def test_no_active_tenants_raises():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        _mk_tenant(db, org_id, prop_id, 1, status="Left")
        with pytest.raises(NoActiveTenants) as exc:
            generate_rent(db, org_id=org_id, month=11, year=2026)
        assert isinstance(exc.value, NoActiveEntities)
        assert str(exc.value) == "No active tenants found to generate rent for."
    finally:
        db.close()


def test_invalid_month_is_rejected():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        _mk_tenant(db, org_id, prop_id, 1)
        with pytest.raises(ValueError):
            generate_rent(db, org_id=org_id, month=13, year=2026)
    finally:
        db.close()


def test_generate_salary_twice_creates_n_then_zero():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        _mk_staff(db, org_id, prop_id, 1)
        _mk_staff(db, org_id, prop_id, 2)
        _mk_staff(db, org_id, prop_id, 3, active=False)

        first = generate_salary(db, org_id=org_id, month=2, year=2027)
        second = generate_salary(db, org_id=org_id, month=2, year=2027)

        assert first.count == 2
        assert second.count == 0

        rows = db.scalars(select(Expense).where(Expense.org_id == org_id)).all()
        assert {r.paid_to for r in rows} == {"Staff 1", "Staff 2"}
        for r in rows:
            assert r.category == "Staff Salary"
            assert r.status == "pending"
            assert r.date == datetime(2027, 2, 28)
            assert r.payment_method == "Other"
    finally:
        db.close()


def test_no_active_staff_raises():
    db = SessionLocal()
    try:
        org_id, _ = _mk_org_with_property(db)
        with pytest.raises(NoActiveStaff):
            generate_salary(db, org_id=org_id, month=2, year=2027)
    finally:
        db.close()


def test_concurrent_duplicate_is_rolled_back_and_counted_as_skipped(monkeypatch):
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        raced = _mk_tenant(db, org_id, prop_id, 1)
        other = _mk_tenant(db, org_id, prop_id, 2)
        tenant_ids = {int(raced.id), int(other.id)}
        # another worker committed this tenant's November rent after our pre-check ran
        db.add(
            Payment(
                org_id=org_id,
                property_id=prop_id,
                tenant_id=raced.id,
                category="Rent",
                amount=4001,
                status="pending",
                due_date=datetime(2026, 11, 10),
                billing_period="2026-11",
            )
        )
        db.commit()
        monkeypatch.setattr(bulk_generation, "_rent_exists", lambda db, **kw: False)

        result = generate_rent(db, org_id=org_id, month=11, year=2026)

        assert result.count == 1
        assert result.skipped == 1
        rows = db.scalars(select(Payment).where(Payment.org_id == org_id, Payment.billing_period == "2026-11")).all()
        assert {r.tenant_id for r in rows} == tenant_ids
        assert len(rows) == 2
    finally:
        db.close()


def test_concurrent_duplicate_salary_is_skipped(monkeypatch):
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        s = _mk_staff(db, org_id, prop_id, 1)
        first = generate_salary(db, org_id=org_id, month=4, year=2027)
        assert first.count == 1

        monkeypatch.setattr(bulk_generation, "_salary_exists", lambda db, **kw: False)
        second = generate_salary(db, org_id=org_id, month=4, year=2027)

        assert second.count == 0
        assert second.skipped == 1
        rows = db.scalars(select(Expense).where(Expense.staff_id == s.id)).all()
        assert len(rows) == 1
    finally:
        db.close()


def test_record_keyed_by_period_but_due_elsewhere_is_not_duplicated():
    db = SessionLocal()
    try:
        org_id, prop_id = _mk_org_with_property(db)
        t = _mk_tenant(db, org_id, prop_id, 1)
        db.add(
            Payment(
                org_id=org_id,
                property_id=prop_id,
                tenant_id=t.id,
                category="Rent",
                amount=4001,
                status="pending",
                due_date=datetime(2026, 12, 2),
                billing_period="2026-11",
            )
        )
        db.commit()

        result = generate_rent(db, org_id=org_id, month=11, year=2026)
        assert result.count == 0
        assert result.skipped == 1
    finally:
        db.close()
