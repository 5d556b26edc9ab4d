# backend/tests/test_finance_records_variant.py
from __future__ import annotations

from types import SimpleNamespace

import pytest

from pgstay.domain.billing import month_bounds, period_of
from pgstay.domain.finance_records import (
    ExpenseRecord,
    RentRecord,
    SalaryRecord,
    SecurityDepositRecord,
    affects_tenant_status,
    canonical_category,
    canonical_status,
    display_status,
    from_expense,
    from_payment,
    is_expense_side,
    store_of,
)


def _payment(**kw):
    base = dict(id=1, org_id=1, property_id=1, tenant_id=7, category="Rent", amount=5000, status="pending",
                due_date=None, paid_date=None, description=None, created_at=None, billing_period="2026-10")
    base.update(kw)
    return SimpleNamespace(**base)


def _expense(**kw):
    base = dict(id=2, org_id=1, property_id=1, staff_id=None, category="Groceries", amount=800, status="paid",
                date=None, paid_date=None, description=None, created_at=None, billing_period=None,
                paid_to="Mart", payment_method="Cash")
    base.update(kw)
    return SimpleNamespace(**base)


def test_variant_follows_category():
    assert isinstance(from_payment(_payment()), RentRecord)
    dep = from_payment(_payment(category="Security Deposit"))
    assert isinstance(dep, SecurityDepositRecord)
    assert affects_tenant_status(dep)
    assert not affects_tenant_status(from_payment(_payment(category="Utility")))
    assert not affects_tenant_status(from_payment(_payment(tenant_id=None)))

    sal = from_expense(_expense(category="Staff Salary", staff_id=3))
    assert isinstance(sal, SalaryRecord)
    assert sal.staff_id == 3
    assert isinstance(from_expense(_expense()), ExpenseRecord)
    assert store_of(sal) == "expense"
    assert store_of(dep) == "payment"


def test_status_casing():
    assert canonical_status("PAID") == "paid"
    assert canonical_status(None) == "pending"
    assert canonical_status(" ", default="paid") == "paid"
    with pytest.raises(ValueError):
        canonical_status("settled")
    assert display_status("overdue") == "Overdue"


def test_category_aliases_and_side():
    assert canonical_category("salary") == "Staff Salary"
    assert canonical_category("Other Expense") == "Other"
    assert canonical_category("deposit") == "Security Deposit"
    assert canonical_category("Groceries") == "Groceries"

    assert is_expense_side("Salary")
    assert is_expense_side("Utility", entity_type="Staff")
    assert not is_expense_side("Rent", entity_type="Tenant")


def test_billing_helpers():
    from datetime import datetime

    start, end = month_bounds(12, 2026)
    assert start == datetime(2026, 12, 1)
    assert end == datetime(2026, 12, 31, 23, 59, 59)
    assert period_of(datetime(2026, 3, 9)) == "2026-03"
    with pytest.raises(ValueError):
        month_bounds(0, 2026)
