"""Semi-monthly payroll periods.

Two cutoffs per month: the 1st to the 15th, and the 16th to the last day of
the month (28/29/30/31).
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta

from hrpay.errors import ApiError

FIRST_HALF_END_DAY = 15


def _last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def period_start_for(day: date) -> date:
    start_day = 1 if day.day <= FIRST_HALF_END_DAY else FIRST_HALF_END_DAY + 1
    return day.replace(day=start_day)


def period_end_for(period_start: date) -> date:
    if period_start.day == 1:
        return period_start.replace(day=FIRST_HALF_END_DAY)
    return period_start.replace(day=_last_day_of_month(period_start.year, period_start.month))


def period_for(day: date) -> tuple[date, date]:
    start = period_start_for(day)
    return start, period_end_for(start)


def period_days(period_start: date) -> list[date]:
    """Every calendar day of the period, weekends included."""
    end = period_end_for(period_start)
    return list(iter_days(period_start, end))


def iter_days(start: date, end: date):
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += timedelta(days=1)


def next_period_start(period_start: date) -> date:
    if period_start.day == 1:
        return period_start.replace(day=FIRST_HALF_END_DAY + 1)
    if period_start.month == 12:
        return date(period_start.year + 1, 1, 1)
    return date(period_start.year, period_start.month + 1, 1)


def previous_period_start(period_start: date) -> date:
    if period_start.day == FIRST_HALF_END_DAY + 1:
        return period_start.replace(day=1)
    if period_start.month == 1:
        return date(period_start.year - 1, 12, FIRST_HALF_END_DAY + 1)
    return date(period_start.year, period_start.month - 1, FIRST_HALF_END_DAY + 1)


def is_date_in_period(day: date, period_start: date, period_end: date) -> bool:
    return period_start <= day <= period_end


def format_period(period_start: date, period_end: date) -> str:
    # e.g. "Jan 1 - 15, 2025"
    return f"{period_start.strftime('%b')} {period_start.day} - {period_end.day}, {period_end.year}"


def validate_period(period_start: date, period_end: date) -> None:
    if period_start.day not in (1, FIRST_HALF_END_DAY + 1):
        raise ApiError(
            status_code=422,
            code="INVALID_PERIOD",
            message="period_start must be the 1st or the 16th of a month.",
        )
    expected_end = period_end_for(period_start)
    if period_end != expected_end:
        raise ApiError(
            status_code=422,
            code="INVALID_PERIOD",
            message=f"period_end must be {expected_end.isoformat()} for this period.",
        )
