# backend/pgstay/services/finance_events.py
"""
In-process hook for finance-record mutations.

Every create/update/delete of a Payment or Expense publishes a
FinancialRecordChanged event. Tenant status reconciliation is a subscriber, so
mutation sites never call the reconciler themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..domain.finance_records import TENANT_STATUS_CATEGORIES
from .reconciler import reconcile_tenant_status

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialRecordChanged:
    org_id: int
    category: str
    action: str  # created | updated | deleted | generated
    tenant_id: Optional[int] = None
    staff_id: Optional[int] = None
    record_id: Optional[int] = None


Handler = Callable[[Session, FinancialRecordChanged], None]


class FinanceEventBus:
    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Handler:
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, db: Session, event: FinancialRecordChanged) -> None:
        # Handlers run synchronously on the caller's session; errors propagate.
        log.debug("finance event %s %s", event.action, event.category, extra={"org_id": event.org_id})
        for handler in list(self._handlers):
            handler(db, event)


finance_events = FinanceEventBus()


@finance_events.subscribe
def reconcile_on_change(db: Session, event: FinancialRecordChanged) -> None:
    if event.tenant_id is None or event.category not in TENANT_STATUS_CATEGORIES:
        return
    reconcile_tenant_status(db, tenant_id=event.tenant_id)
