# backend/pgstay/services/bulk_generation.py
"""
Monthly rent / salary generation.

One pending record per active tenant (Rent) or active staff member (Staff
Salary) per billing period. Re-running for the same month creates nothing:
entities that already have a record for the period (by billing_period or a
due date inside the month) are skipped, and the
(entity, category, billing_period) unique constraints reject a concurrent
duplicate, which is rolled back and counted as skipped.

Each entity is committed on its own; a failure part-way leaves earlier records
in place.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.billing import due_date_for, month_bounds, month_label, period_key
from ..domain.finance_records import PENDING, RENT, STAFF_SALARY
from ..models import Expense, Payment, Staff, Tenant
from .finance_events import FinancialRecordChanged, finance_events

log = logging.getLogger(__name__)


class NoActiveEntities(Exception):
    """Nothing in scope to generate records for."""


class NoActiveTenants(NoActiveEntities):
    def __init__(self) -> None:
        super().__init__("No active tenants found to generate rent for.")


class NoActiveStaff(NoActiveEntities):
    def __init__(self) -> None:
        super().__init__("No active staff found to generate salary for.")


@dataclass
class GenerationResult:
    month: int
    year: int
    billing_period: str
    record_ids: list[int] = field(default_factory=list)
    skipped: int = 0

    @property
    def count(self) -> int:
        return len(self.record_ids)


def _active_tenants(db: Session, *, org_id: int, property_id: Optional[int]) -> list[Tenant]:
    q = select(Tenant).where(Tenant.org_id == int(org_id), Tenant.status == "Active").order_by(Tenant.id.asc())
    if property_id is not None:
        q = q.where(Tenant.property_id == int(property_id))
    return list(db.scalars(q).all())


def _active_staff(db: Session, *, org_id: int, property_id: Optional[int]) -> list[Staff]:
    q = select(Staff).where(Staff.org_id == int(org_id), Staff.is_active.is_(True)).order_by(Staff.id.asc())
    if property_id is not None:
        q = q.where(Staff.property_id == int(property_id))
    return list(db.scalars(q).all())


def _rent_exists(db: Session, *, tenant_id: int, month: int, year: int) -> bool:
    start, end = month_bounds(month, year)
    row = db.scalar(
        select(Payment.id).where(
            Payment.tenant_id == int(tenant_id),
            Payment.category == RENT,
            or_(
                Payment.billing_period == period_key(month, year),
                and_(Payment.due_date >= start, Payment.due_date <= end),
            ),
        )
    )
    return row is not None


def _salary_exists(db: Session, *, staff_id: int, month: int, year: int) -> bool:
    start, end = month_bounds(month, year)
    row = db.scalar(
        select(Expense.id).where(
            Expense.staff_id == int(staff_id),
            Expense.category == STAFF_SALARY,
            or_(
                Expense.billing_period == period_key(month, year),
                and_(Expense.date >= start, Expense.date <= end),
            ),
        )
    )
    return row is not None


def generate_rent(
    db: Session,
    *,
    org_id: int,
    month: int,
    year: int,
    property_id: Optional[int] = None,
) -> GenerationResult:
    # validates month/year before touching the database
    month_bounds(month, year)

    tenants = _active_tenants(db, org_id=org_id, property_id=property_id)
    if not tenants:
        raise NoActiveTenants()

    result = GenerationResult(month=int(month), year=int(year), billing_period=period_key(month, year))
    due = due_date_for(month, year, settings.rent_due_day)
    label = month_label(month, year)

    for t in tenants:
        tenant_id = int(t.id)
        if _rent_exists(db, tenant_id=tenant_id, month=month, year=year):
            result.skipped += 1
            continue

        row = Payment(
            org_id=int(org_id),
            property_id=int(t.property_id),
            tenant_id=tenant_id,
            category=RENT,
            amount=float(t.rent_amount or 0.0),
            status=PENDING,
            due_date=due,
            billing_period=result.billing_period,
            description=f"Monthly Rent for {label}",
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            log.info("rent already generated concurrently", extra={"tenant_id": tenant_id, "org_id": int(org_id)})
            result.skipped += 1
            continue

        result.record_ids.append(int(row.id))
        finance_events.publish(
            db,
            FinancialRecordChanged(
                org_id=int(org_id),
                category=RENT,
                action="generated",
                tenant_id=tenant_id,
                record_id=int(row.id),
            ),
        )

    log.info(
        "rent generated for %s: created=%s skipped=%s",
        result.billing_period,
        result.count,
        result.skipped,
        extra={"org_id": int(org_id), "property_id": property_id},
    )
    return result


def generate_salary(
    db: Session,
    *,
    org_id: int,
    month: int,
    year: int,
    property_id: Optional[int] = None,
) -> GenerationResult:
    month_bounds(month, year)

    staff = _active_staff(db, org_id=org_id, property_id=property_id)
    if not staff:
        raise NoActiveStaff()

    result = GenerationResult(month=int(month), year=int(year), billing_period=period_key(month, year))
    pay_date = due_date_for(month, year, settings.salary_due_day)
    label = month_label(month, year)

    for s in staff:
        staff_id = int(s.id)
        if _salary_exists(db, staff_id=staff_id, month=month, year=year):
            result.skipped += 1
            continue

        row = Expense(
            org_id=int(org_id),
            property_id=int(s.property_id),
            staff_id=staff_id,
            category=STAFF_SALARY,
            amount=float(s.salary or 0.0),
            status=PENDING,
            date=pay_date,
            billing_period=result.billing_period,
            paid_to=str(s.name),
            payment_method="Other",
            description=f"Salary for {label} - {s.role}",
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            log.info("salary already generated concurrently", extra={"staff_id": staff_id, "org_id": int(org_id)})
            result.skipped += 1
            continue

        result.record_ids.append(int(row.id))
        finance_events.publish(
            db,
            FinancialRecordChanged(
                org_id=int(org_id),
                category=STAFF_SALARY,
                action="generated",
                staff_id=staff_id,
                record_id=int(row.id),
            ),
        )

    log.info(
        "salary generated for %s: created=%s skipped=%s",
        result.billing_period,
        result.count,
        result.skipped,
        extra={"org_id": int(org_id), "property_id": property_id},
    )
    return result
