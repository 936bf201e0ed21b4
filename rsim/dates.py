"""ISO date helpers used by the monthly timeline."""

from __future__ import annotations

import calendar
from datetime import date
import re

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_iso_date(value: str | date | None) -> date | None:
    """Parse ``YYYY-MM-DD`` (extra characters after the day are ignored)."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    match = ISO_DATE_RE.match(value.strip()[:10])
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12:
        return None
    if not 1 <= day <= calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    target = value.month - 1 + months
    year = value.year + target // 12
    month = target % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(value: date, years: int) -> date:
    return add_months(value, years * 12)


def months_between(start: date, end: date) -> int:
    """Whole months from ``start`` to ``end``, never negative."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def is_same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def is_within_range(value: date, start: date | None, end: date | None) -> bool:
    """Start is inclusive, end is exclusive; a missing bound is open."""
    if start is not None and value < start:
        return False
    if end is not None and value >= end:
        return False
    return True


def age_in_months(date_of_birth: date, on: date) -> int:
    return months_between(date_of_birth, on)


def age_in_years(date_of_birth: date, on: date) -> float:
    return round(age_in_months(date_of_birth, on) / 12.0, 1)


def to_monthly_rate(annual_rate: float) -> float:
    return (1.0 + annual_rate) ** (1.0 / 12.0) - 1.0
