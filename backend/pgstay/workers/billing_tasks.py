# backend/pgstay/workers/billing_tasks.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select

from ..db import session_scope
from ..models import Organization
from ..services.bulk_generation import NoActiveEntities, generate_rent, generate_salary
from .celery_app import celery_app

log = logging.getLogger(__name__)


def _period(month: Optional[int], year: Optional[int]) -> tuple[int, int]:
    now = datetime.utcnow()
    return int(month or now.month), int(year or now.year)


def run_for_all_orgs(generate: Callable, *, month: int, year: int) -> dict:
    """
    Run one generator over every org. An org with nothing to generate is
    skipped; any other failure for one org is logged and the sweep goes on.
    """
    with session_scope() as db:
        org_ids = [int(x) for x in db.scalars(select(Organization.id).order_by(Organization.id.asc())).all()]
        created = 0
        failed: list[int] = []
        for org_id in org_ids:
            try:
                result = generate(db, org_id=org_id, month=month, year=year)
                created += result.count
            except NoActiveEntities:
                continue
            except Exception:
                db.rollback()
                failed.append(org_id)
                log.exception("monthly generation failed", extra={"org_id": org_id})
        return {"month": month, "year": year, "orgs": len(org_ids), "created": created, "failed_orgs": failed}


@celery_app.task(name="pgstay.workers.billing_tasks.generate_rent_all_orgs")
def generate_rent_all_orgs(month: Optional[int] = None, year: Optional[int] = None) -> dict:
    m, y = _period(month, year)
    out = run_for_all_orgs(generate_rent, month=m, year=y)
    log.info("monthly rent sweep done: %s", out)
    return out


@celery_app.task(name="pgstay.workers.billing_tasks.generate_salary_all_orgs")
def generate_salary_all_orgs(month: Optional[int] = None, year: Optional[int] = None) -> dict:
    m, y = _period(month, year)
    out = run_for_all_orgs(generate_salary, month=m, year=y)
    log.info("monthly salary sweep done: %s", out)
    return out
