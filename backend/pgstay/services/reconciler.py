# backend/pgstay/services/reconciler.py
"""
Tenant payment-status reconciliation.

Recomputes Tenant.deposit_status / Tenant.payment_status from the tenant's
Rent and Security Deposit payment records and persists whichever changed.

Reconciliation for one tenant is serialized within the process (keyed lock);
across processes the last writer wins.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.finance_records import TENANT_STATUS_CATEGORIES
from ..domain.payment_status import StatusInput, derive_tenant_status
from ..models import Payment, Tenant

log = logging.getLogger(__name__)


class _KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._users: dict[int, int] = {}

    @contextmanager
    def hold(self, key: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]


_tenant_locks = _KeyedLocks()


@dataclass(frozen=True)
class ReconcileOutcome:
    tenant_id: int
    deposit_status: str
    payment_status: str
    writes: int


def find_status_payments(db: Session, *, tenant_id: int) -> list[Payment]:
    return list(
        db.scalars(
            select(Payment).where(
                Payment.tenant_id == int(tenant_id),
                Payment.category.in_(TENANT_STATUS_CATEGORIES),
            )
        ).all()
    )


def reconcile_tenant_status(db: Session, *, tenant_id: Optional[int], commit: bool = True) -> Optional[ReconcileOutcome]:
    """
    No-op (returns None) when tenant_id is empty or no longer resolves; callers
    invoke this from mutation paths where the tenant may just have been deleted.
    """
    if not tenant_id:
        return None

    with _tenant_locks.hold(int(tenant_id)):
        # the session does not autoflush; pending record writes must be visible to the snapshot
        db.flush()
        tenant = db.scalar(
            select(Tenant).where(Tenant.id == int(tenant_id)).execution_options(populate_existing=True)
        )
        if tenant is None:
            return None

        payments = find_status_payments(db, tenant_id=int(tenant.id))
        decision = derive_tenant_status(
            security_deposit=float(tenant.security_deposit or 0.0),
            deposit_status=str(tenant.deposit_status),
            payment_status=str(tenant.payment_status),
            records=[StatusInput(category=p.category, status=p.status) for p in payments],
        )

        if decision.deposit_changed:
            tenant.deposit_status = decision.deposit_status
        if decision.payment_changed:
            tenant.payment_status = decision.payment_status

        if decision.writes:
            db.add(tenant)
            if commit:
                db.commit()
            else:
                db.flush()
            log.info(
                "tenant status reconciled",
                extra={
                    "tenant_id": int(tenant.id),
                    "org_id": int(tenant.org_id),
                },
            )

        return ReconcileOutcome(
            tenant_id=int(tenant.id),
            deposit_status=decision.deposit_status,
            payment_status=decision.payment_status,
            writes=decision.writes,
        )
