# backend/pgstay/workers/celery_app.py
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from ..config import settings
from ..logging_config import configure_logging

celery_app = Celery(
    "pgstay",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["pgstay.workers.billing_tasks"],
)


@setup_logging.connect
def _worker_logging(**_kwargs) -> None:
    # same JSON lines as the API process
    configure_logging()


celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,   # avoid a single worker hoarding jobs
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

# Billing jobs run on their own queue
celery_app.conf.task_routes = {
    "pgstay.workers.billing_tasks.*": {"queue": "billing"},
}

# Open the month's rent and salary records on the 1st. Both tasks are safe to re-run.
celery_app.conf.beat_schedule = {
    "generate-monthly-rent": {
        "task": "pgstay.workers.billing_tasks.generate_rent_all_orgs",
        "schedule": crontab(minute=5, hour=0, day_of_month=1),
    },
    "generate-monthly-salary": {
        "task": "pgstay.workers.billing_tasks.generate_salary_all_orgs",
        "schedule": crontab(minute=15, hour=0, day_of_month=1),
    },
}
