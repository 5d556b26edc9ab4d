# backend/pgstay/domain/payment_status.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .finance_records import OVERDUE, PAID, PENDING, SECURITY_DEPOSIT

# Tenant-facing labels (capitalized)
STATUS_PAID = "Paid"
STATUS_PENDING = "Pending"
STATUS_OVERDUE = "Overdue"


@dataclass(frozen=True)
class StatusInput:
    category: str
    status: str


@dataclass(frozen=True)
class TenantStatusDecision:
    deposit_status: str
    payment_status: str
    deposit_changed: bool
    payment_changed: bool

    @property
    def writes(self) -> int:
        return int(self.deposit_changed) + int(self.payment_changed)


def deposit_is_paid(records: Iterable[StatusInput]) -> bool:
    deposits = [r for r in records if r.category == SECURITY_DEPOSIT]
    return bool(deposits) and all((r.status or "").lower() == PAID for r in deposits)


def derive_tenant_status(
    *,
    security_deposit: float,
    deposit_status: str,
    payment_status: str,
    records: Iterable[StatusInput],
) -> TenantStatusDecision:
    """
    Pure decision over one snapshot of a tenant's Rent/Security-Deposit records.

    - when a deposit is owed, deposit_status is Paid iff at least one deposit
      record exists and every deposit record is paid, otherwise Pending;
      with nothing owed the stored value is kept
    - overdue beats pending beats an outstanding deposit beats Paid
    """
    records = list(records)
    owes_deposit = float(security_deposit or 0.0) > 0

    new_deposit = deposit_status
    if owes_deposit:
        new_deposit = STATUS_PAID if deposit_is_paid(records) else STATUS_PENDING

    statuses = {(r.status or "").lower() for r in records}

    final = STATUS_PAID
    if owes_deposit and new_deposit == STATUS_PENDING:
        final = STATUS_PENDING

    if OVERDUE in statuses:
        final = STATUS_OVERDUE
    elif PENDING in statuses:
        final = STATUS_PENDING

    return TenantStatusDecision(
        deposit_status=new_deposit,
        payment_status=final,
        deposit_changed=new_deposit != deposit_status,
        payment_changed=final != payment_status,
    )
