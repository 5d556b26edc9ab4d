# backend/pgstay/domain/audit.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from ..models import AuditEvent

# never copied into audit rows
SECRET_COLUMNS = frozenset({"password_hash", "gateway_payment_id"})


def snapshot(row: Any) -> dict[str, Any]:
    """Column values of an ORM row, secrets dropped."""
    mapper = sa_inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs if attr.key not in SECRET_COLUMNS}


def changed(before: dict[str, Any], after: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Narrow an update's before/after to the keys whose value moved."""
    keys = sorted(k for k in set(before) | set(after) if before.get(k) != after.get(k))
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


def _encode(v: Optional[dict[str, Any]]) -> Optional[str]:
    return None if v is None else json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    org_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: str,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditEvent:
    """
    Append one audit row. Updates (both sides given) keep only changed keys.
    Not committed unless asked, so it rides along with the caller's writes.
    """
    if before is not None and after is not None:
        before, after = changed(before, after)

    row = AuditEvent(
        org_id=int(org_id),
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_encode(before),
        after_json=_encode(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
    return row
