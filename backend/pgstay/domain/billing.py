# backend/pgstay/domain/billing.py
from __future__ import annotations

import calendar
from datetime import datetime


def validate_period(month: int, year: int) -> None:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"month must be 1..12, got {month}")
    if not 2000 <= int(year) <= 2200:
        raise ValueError(f"year must be 2000..2200, got {year}")


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """[first day 00:00:00, last day 23:59:59] of the month, both inclusive."""
    validate_period(month, year)
    last_day = calendar.monthrange(int(year), int(month))[1]
    return datetime(int(year), int(month), 1), datetime(int(year), int(month), last_day, 23, 59, 59)


def period_key(month: int, year: int) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def period_of(d: datetime) -> str:
    return period_key(d.month, d.year)


def due_date_for(month: int, year: int, day: int) -> datetime:
    validate_period(month, year)
    return datetime(int(year), int(month), int(day))


def month_label(month: int, year: int) -> str:
    return f"{calendar.month_name[int(month)]} {int(year)}"
