# backend/pgstay/services/events_facade.py
"""
Activity feed for the dashboard ("Ravi onboarded", "rent generated for 2026-10").

    from ..services.events_facade import wf
    wf(db, org_id=..., actor_user_id=..., event_type="tenant.onboarded", payload={...})

Writes add + flush only; the caller owns the commit so the feed entry lands in
the same transaction as the change it describes.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import WorkflowEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityItem:
    id: int
    property_id: Optional[int]
    actor_user_id: Optional[int]
    event_type: str
    payload: dict[str, Any]
    created_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: WorkflowEvent) -> "ActivityItem":
        try:
            payload = json.loads(row.payload_json or "{}")
        except ValueError:
            log.warning("unreadable activity payload", extra={"record_id": row.id})
            payload = {}
        return cls(
            id=int(row.id),
            property_id=row.property_id,
            actor_user_id=row.actor_user_id,
            event_type=str(row.event_type),
            payload=payload if isinstance(payload, dict) else {"value": payload},
            created_at=row.created_at,
        )


class ActivityFeed:
    def emit(
        self,
        db: Session,
        *,
        org_id: int,
        actor_user_id: Optional[int],
        event_type: str,
        property_id: Optional[int] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> WorkflowEvent:
        if not event_type:
            raise ValueError("event_type required")

        row = WorkflowEvent(
            org_id=int(org_id),
            property_id=property_id,
            actor_user_id=actor_user_id,
            event_type=event_type,
            # datetimes and Decimals in payloads are stored as strings
            payload_json=json.dumps(payload or {}, default=str),
            created_at=datetime.utcnow(),
        )
        db.add(row)
        db.flush()
        return row

    __call__ = emit

    def recent(
        self,
        db: Session,
        *,
        org_id: int,
        property_id: Optional[int] = None,
        event_type: Optional[str] = None,
        limit: int = 50,
    ) -> list[ActivityItem]:
        q = select(WorkflowEvent).where(WorkflowEvent.org_id == int(org_id))
        if property_id is not None:
            q = q.where(WorkflowEvent.property_id == int(property_id))
        if event_type:
            # "finance" matches finance.created, finance.rent_generated, ...
            q = q.where(WorkflowEvent.event_type.startswith(event_type))
        rows = db.scalars(q.order_by(WorkflowEvent.id.desc()).limit(int(limit))).all()
        return [ActivityItem.from_row(r) for r in rows]


wf = ActivityFeed()
