# backend/pgstay/domain/finance_records.py
"""
Finance records as a tagged variant.

A finance record is stored either as a Payment row (money coming in from a
tenant) or an Expense row (money going out, staff salary included). Callers
work with the variant below instead of probing two tables by category name.

Status casing contract:
  - persisted Payment/Expense statuses are lowercase (pending|paid|overdue|failed)
  - display statuses and Tenant derived fields are capitalized
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

# ---- categories ----
RENT = "Rent"
SECURITY_DEPOSIT = "Security Deposit"
UTILITY = "Utility"
OTHER_INCOME = "Other Income"

STAFF_SALARY = "Staff Salary"

PAYMENT_CATEGORIES = (RENT, SECURITY_DEPOSIT, UTILITY, OTHER_INCOME)

EXPENSE_CATEGORIES = (
    "Groceries",
    "Electricity Bill",
    "Water Bill",
    "Gas Bill",
    "Internet Bill",
    STAFF_SALARY,
    "Repairs",
    "Furniture",
    "Maintenance",
    "Cleaning Supplies",
    "Other",
)

# categories whose records drive a tenant's derived payment/deposit status
TENANT_STATUS_CATEGORIES = (RENT, SECURITY_DEPOSIT)

# request-side aliases
_CATEGORY_ALIASES = {
    "salary": STAFF_SALARY,
    "staff salary": STAFF_SALARY,
    "other expense": "Other",
    "deposit": SECURITY_DEPOSIT,
    "security deposit": SECURITY_DEPOSIT,
    "rent": RENT,
    "utility": UTILITY,
    "other income": OTHER_INCOME,
}

# ---- statuses ----
PENDING = "pending"
PAID = "paid"
OVERDUE = "overdue"
FAILED = "failed"

RECORD_STATUSES = (PENDING, PAID, OVERDUE, FAILED)


def canonical_status(value: Optional[str], default: str = PENDING) -> str:
    """Lowercase storage form. Raises ValueError for unknown statuses."""
    if value is None or not str(value).strip():
        return default
    s = str(value).strip().lower()
    if s not in RECORD_STATUSES:
        raise ValueError(f"unknown status: {value!r}")
    return s


def display_status(value: Optional[str]) -> str:
    if not value:
        return "Paid"
    s = str(value)
    return s[:1].upper() + s[1:]


def canonical_category(value: str) -> str:
    raw = (value or "").strip()
    return _CATEGORY_ALIASES.get(raw.lower(), raw)


def is_expense_side(category: str, entity_type: Optional[str] = None) -> bool:
    """True when a create request belongs in the expenses table."""
    if (entity_type or "").strip().lower() == "staff":
        return True
    return canonical_category(category) in EXPENSE_CATEGORIES


# ---- the variant ----
@dataclass(frozen=True)
class _RecordBase:
    id: int
    org_id: int
    property_id: int
    category: str
    amount: float
    status: str
    due_date: Optional[datetime]
    paid_date: Optional[datetime]
    description: Optional[str]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class RentRecord(_RecordBase):
    tenant_id: Optional[int] = None
    billing_period: Optional[str] = None
    kind: str = "rent"


@dataclass(frozen=True)
class SecurityDepositRecord(_RecordBase):
    tenant_id: Optional[int] = None
    kind: str = "security_deposit"


@dataclass(frozen=True)
class OtherIncomeRecord(_RecordBase):
    tenant_id: Optional[int] = None
    kind: str = "other_income"


@dataclass(frozen=True)
class SalaryRecord(_RecordBase):
    staff_id: Optional[int] = None
    paid_to: Optional[str] = None
    billing_period: Optional[str] = None
    kind: str = "salary"


@dataclass(frozen=True)
class ExpenseRecord(_RecordBase):
    paid_to: Optional[str] = None
    payment_method: Optional[str] = None
    kind: str = "expense"


FinanceRecord = Union[RentRecord, SecurityDepositRecord, OtherIncomeRecord, SalaryRecord, ExpenseRecord]


def _base_kwargs(row: Any, *, due_attr: str) -> dict[str, Any]:
    return {
        "id": int(row.id),
        "org_id": int(row.org_id),
        "property_id": int(row.property_id),
        "category": str(row.category),
        "amount": float(row.amount or 0.0),
        "status": str(row.status or PENDING).lower(),
        "due_date": getattr(row, due_attr, None),
        "paid_date": getattr(row, "paid_date", None),
        "description": getattr(row, "description", None),
        "created_at": getattr(row, "created_at", None),
    }


def from_payment(row: Any) -> FinanceRecord:
    base = _base_kwargs(row, due_attr="due_date")
    tenant_id = int(row.tenant_id) if row.tenant_id is not None else None
    if row.category == RENT:
        return RentRecord(**base, tenant_id=tenant_id, billing_period=row.billing_period)
    if row.category == SECURITY_DEPOSIT:
        return SecurityDepositRecord(**base, tenant_id=tenant_id)
    return OtherIncomeRecord(**base, tenant_id=tenant_id)


def from_expense(row: Any) -> FinanceRecord:
    base = _base_kwargs(row, due_attr="date")
    if row.category == STAFF_SALARY:
        return SalaryRecord(
            **base,
            staff_id=int(row.staff_id) if row.staff_id is not None else None,
            paid_to=row.paid_to,
            billing_period=row.billing_period,
        )
    return ExpenseRecord(**base, paid_to=row.paid_to, payment_method=row.payment_method)


def tenant_of(record: FinanceRecord) -> Optional[int]:
    return getattr(record, "tenant_id", None)


def affects_tenant_status(record: FinanceRecord) -> bool:
    return isinstance(record, (RentRecord, SecurityDepositRecord)) and record.tenant_id is not None


def store_of(record: FinanceRecord) -> str:
    if isinstance(record, (SalaryRecord, ExpenseRecord)):
        return "expense"
    return "payment"
