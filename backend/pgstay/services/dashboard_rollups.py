# backend/pgstay/services/dashboard_rollups.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..domain.billing import month_bounds, period_key
from ..domain.finance_records import OVERDUE, PAID, PENDING, STAFF_SALARY
from ..models import Expense, Payment, Property, Room, Staff, Tenant


@dataclass(frozen=True)
class PortfolioRollup:
    properties: int
    rooms: int
    beds: int
    occupied_beds: int
    active_tenants: int
    active_staff: int
    tenants_by_payment_status: dict[str, int]
    month: str
    rent_expected: float
    rent_collected: float
    expenses_paid: float
    overdue_amount: float

    @property
    def occupancy_rate(self) -> float:
        return round(self.occupied_beds / self.beds * 100, 1) if self.beds else 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "properties": self.properties,
            "rooms": self.rooms,
            "beds": self.beds,
            "occupied_beds": self.occupied_beds,
            "occupancy_rate": self.occupancy_rate,
            "active_tenants": self.active_tenants,
            "active_staff": self.active_staff,
            "tenants_by_payment_status": self.tenants_by_payment_status,
            "month": self.month,
            "rent_expected": self.rent_expected,
            "rent_collected": self.rent_collected,
            "expenses_paid": self.expenses_paid,
            "overdue_amount": self.overdue_amount,
        }


def _count(db: Session, *conds) -> int:
    return int(db.scalar(select(func.count()).where(*conds)) or 0)


def _total(db: Session, column, *conds) -> float:
    return float(db.scalar(select(func.coalesce(func.sum(column), 0.0)).where(*conds)) or 0.0)


def portfolio_rollup(db: Session, *, org_id: int, property_id: Optional[int] = None, as_of: Optional[datetime] = None) -> PortfolioRollup:
    now = as_of or datetime.utcnow()
    start, end = month_bounds(now.month, now.year)

    def scoped(model):
        conds = [model.org_id == int(org_id)]
        if property_id is not None:
            conds.append(model.property_id == int(property_id))
        return conds

    prop_conds = [Property.org_id == int(org_id)]
    if property_id is not None:
        prop_conds.append(Property.id == int(property_id))

    beds, occupied = db.execute(
        select(func.coalesce(func.sum(Room.capacity), 0), func.coalesce(func.sum(Room.current_occupancy), 0)).where(*scoped(Room))
    ).one()

    by_status = dict(
        db.execute(
            select(Tenant.payment_status, func.count())
            .where(*scoped(Tenant), Tenant.status == "Active")
            .group_by(Tenant.payment_status)
        ).all()
    )

    rent_in_month = [*scoped(Payment), Payment.category == "Rent", Payment.due_date >= start, Payment.due_date <= end]

    return PortfolioRollup(
        properties=_count(db, *prop_conds),
        rooms=_count(db, *scoped(Room)),
        beds=int(beds),
        occupied_beds=int(occupied),
        active_tenants=_count(db, *scoped(Tenant), Tenant.status == "Active"),
        active_staff=_count(db, *scoped(Staff), Staff.is_active.is_(True)),
        tenants_by_payment_status={str(k): int(v) for k, v in by_status.items()},
        month=period_key(now.month, now.year),
        rent_expected=_total(db, Payment.amount, *rent_in_month),
        rent_collected=_total(db, Payment.amount, *rent_in_month, Payment.status == PAID),
        expenses_paid=_total(db, Expense.amount, *scoped(Expense), Expense.status == PAID, Expense.date >= start, Expense.date <= end),
        overdue_amount=_total(db, Payment.amount, *scoped(Payment), Payment.status == OVERDUE),
    )


def monthly_report(db: Session, *, org_id: int, year: int, property_id: Optional[int] = None) -> list[dict[str, Any]]:
    """Income vs expense per month of `year`; income is paid payments by due month."""
    out: list[dict[str, Any]] = []
    for month in range(1, 13):
        start, end = month_bounds(month, year)
        pay = [Payment.org_id == int(org_id), Payment.due_date >= start, Payment.due_date <= end]
        exp = [Expense.org_id == int(org_id), Expense.date >= start, Expense.date <= end]
        if property_id is not None:
            pay.append(Payment.property_id == int(property_id))
            exp.append(Expense.property_id == int(property_id))

        income = _total(db, Payment.amount, *pay, Payment.status == PAID)
        outstanding = _total(db, Payment.amount, *pay, Payment.status.in_((PENDING, OVERDUE)))
        salaries = _total(db, Expense.amount, *exp, Expense.status == PAID, Expense.category == STAFF_SALARY)
        other = _total(db, Expense.amount, *exp, Expense.status == PAID, Expense.category != STAFF_SALARY)
        out.append(
            {
                "period": period_key(month, year),
                "income": income,
                "outstanding": outstanding,
                "salaries": salaries,
                "other_expenses": other,
                "net": income - salaries - other,
            }
        )
    return out
