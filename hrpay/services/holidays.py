from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from hrpay.models import EmployeeSchedule, EmployeeType

HolidayType = Literal["regular", "non-working"]

DAY_TYPE_REGULAR = "regular"
DAY_TYPE_REST = "sunday"
DAY_TYPE_REGULAR_HOLIDAY = "regular-holiday"
DAY_TYPE_NON_WORKING_HOLIDAY = "non-working-holiday"
DAY_TYPE_REST_REGULAR_HOLIDAY = "sunday-regular-holiday"
DAY_TYPE_REST_SPECIAL_HOLIDAY = "sunday-special-holiday"

HOLIDAY_DAY_TYPES = frozenset({DAY_TYPE_REGULAR_HOLIDAY, DAY_TYPE_NON_WORKING_HOLIDAY})

SUNDAY = 6


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
    type: HolidayType


def _coerce_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    # "2025-12-25", "2025-12-25T00:00:00+08:00" and "2025-12-25 00:00:00" all map to the same day
    return date.fromisoformat(raw[:10])


def normalize_holidays(rows: Iterable[Mapping[str, Any] | Holiday]) -> list[Holiday]:
    by_date: dict[date, Holiday] = {}
    for row in rows:
        if isinstance(row, Holiday):
            holiday = row
        else:
            raw_type = row.get("type")
            if raw_type is None:
                raw_type = "regular" if row.get("is_regular") else "non-working"
            holiday = Holiday(
                date=_coerce_date(row.get("date") or row.get("holiday_date")),  # type: ignore[arg-type]
                name=str(row.get("name") or ""),
                type="regular" if raw_type == "regular" else "non-working",
            )
        existing = by_date.get(holiday.date)
        if existing is None or (existing.type != "regular" and holiday.type == "regular"):
            by_date[holiday.date] = holiday
    return [by_date[key] for key in sorted(by_date)]


def determine_day_type(
    day: date,
    holidays: Iterable[Holiday],
    is_rest_day: bool | None = None,
) -> str:
    """Classify a calendar day.

    ``is_rest_day`` comes from the employee schedule. When it is ``None`` the
    Sunday default applies.
    """
    rest_day = (day.weekday() == SUNDAY) if is_rest_day is None else bool(is_rest_day)
    holiday = next((item for item in holidays if item.date == day), None)

    if holiday is not None and holiday.type == "regular":
        return DAY_TYPE_REST_REGULAR_HOLIDAY if rest_day else DAY_TYPE_REGULAR_HOLIDAY
    if holiday is not None:
        return DAY_TYPE_REST_SPECIAL_HOLIDAY if rest_day else DAY_TYPE_NON_WORKING_HOLIDAY
    if rest_day:
        return DAY_TYPE_REST
    return DAY_TYPE_REGULAR


def build_rest_day_map(
    employee_type: EmployeeType | str | None,
    schedules: Iterable[EmployeeSchedule],
    days: Iterable[date],
) -> dict[date, bool]:
    flagged = {item.schedule_date: bool(item.is_rest_day) for item in schedules}
    if EmployeeType(employee_type or EmployeeType.OFFICE_BASED) == EmployeeType.CLIENT_BASED:
        # Client sites set their own rest days; Sunday is a working day unless scheduled off.
        return {day: flagged.get(day, False) for day in days}
    return {day: flagged[day] for day in days if day in flagged}
