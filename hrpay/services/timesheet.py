"""Timesheet generation from raw clock entries.

Everything here is a pure function of its inputs: clock entries, the holiday
calendar, the employee's rest-day map and approved overtime. The attendance
ledger for a period is therefore reproducible from its sources at any time.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Protocol

from hrpay.services.bimonthly import iter_days
from hrpay.services.holidays import (
    DAY_TYPE_REGULAR,
    HOLIDAY_DAY_TYPES,
    Holiday,
    determine_day_type,
)
from hrpay.services.hours import (
    allocate_entry_hours,
    is_countable,
    local_work_date,
    status_value,
    to_utc,
)
from hrpay.settings import get_attendance_timezone, get_settings

SATURDAY = 5


class ClockEntryLike(Protocol):
    clock_in_time: datetime
    clock_out_time: datetime | None
    status: Any


@dataclass(frozen=True)
class AttendanceDay:
    date: date
    day_type: str
    regular_hours: int
    overtime_hours: int
    night_diff_hours: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "dayType": self.day_type,
            "regularHours": self.regular_hours,
            "overtimeHours": self.overtime_hours,
            "nightDiffHours": self.night_diff_hours,
        }


@dataclass(frozen=True)
class TimesheetResult:
    period_start: date
    period_end: date
    days: list[AttendanceDay] = field(default_factory=list)

    @property
    def total_regular_hours(self) -> int:
        return math.floor(sum(day.regular_hours for day in self.days))

    @property
    def total_overtime_hours(self) -> int:
        return math.floor(sum(day.overtime_hours for day in self.days))

    @property
    def total_night_diff_hours(self) -> int:
        return math.floor(sum(day.night_diff_hours for day in self.days))

    @property
    def days_worked(self) -> int:
        return sum(1 for day in self.days if day.regular_hours > 0)

    def to_attendance_data(self) -> list[dict[str, Any]]:
        return [day.to_dict() for day in self.days]


@dataclass(frozen=True)
class ClockEntryValidation:
    missing_days: list[date]
    incomplete_entries: list[date]

    @property
    def is_valid(self) -> bool:
        return not self.missing_days and not self.incomplete_entries


def _entry_regular_hours(entry: ClockEntryLike) -> float:
    hours = allocate_entry_hours(
        entry.clock_in_time,
        entry.clock_out_time,
        break_minutes=getattr(entry, "total_break_minutes", None),
    )
    return hours.regular_hours


def _group_by_local_date(
    entries: Iterable[ClockEntryLike],
    tz: tzinfo,
) -> dict[date, list[ClockEntryLike]]:
    grouped: dict[date, list[ClockEntryLike]] = defaultdict(list)
    for entry in entries:
        if entry.clock_out_time is None:
            continue
        grouped[local_work_date(entry.clock_in_time, tz)].append(entry)
    return grouped


def generate_timesheet(
    entries: Sequence[ClockEntryLike],
    period_start: date,
    period_end: date,
    holidays: Sequence[Holiday],
    *,
    rest_days: Mapping[date, bool] | None = None,
    approved_ot: Mapping[date, float] | None = None,
    eligible_for_ot: bool = True,
    eligible_for_night_diff: bool = True,
    tz: tzinfo | None = None,
) -> TimesheetResult:
    zone = tz or get_attendance_timezone()
    full_day_hours = get_settings().regular_day_hours
    entries_by_date = _group_by_local_date(entries, zone)
    rest_days = rest_days or {}
    approved_ot = approved_ot or {}

    days: list[AttendanceDay] = []
    for day in iter_days(period_start, period_end):
        day_type = determine_day_type(day, holidays, rest_days.get(day))

        regular_hours = 0.0
        night_hours = 0.0
        for entry in entries_by_date.get(day, []):
            if not is_countable(entry.status):
                continue
            hours = allocate_entry_hours(
                entry.clock_in_time,
                entry.clock_out_time,
                break_minutes=getattr(entry, "total_break_minutes", None),
                tz=zone,
            )
            regular_hours += hours.regular_hours
            if eligible_for_night_diff:
                night_hours += hours.night_diff_hours
        # several short entries on one day never add up past a full day
        regular_hours = min(regular_hours, float(full_day_hours))

        overtime_hours = float(approved_ot.get(day, 0.0)) if eligible_for_ot else 0.0

        if day_type == DAY_TYPE_REGULAR and regular_hours == 0 and day.weekday() == SATURDAY:
            # Saturday is a paid company benefit even when not worked.
            regular_hours = float(full_day_hours)

        if day_type in HOLIDAY_DAY_TYPES and regular_hours == 0:
            if _worked_full_day_before(entries_by_date.get(day - timedelta(days=1), []), full_day_hours):
                regular_hours = float(full_day_hours)

        days.append(
            AttendanceDay(
                date=day,
                day_type=day_type,
                regular_hours=math.floor(regular_hours),
                overtime_hours=math.floor(overtime_hours),
                night_diff_hours=math.floor(night_hours),
            )
        )

    return TimesheetResult(period_start=period_start, period_end=period_end, days=days)


def _worked_full_day_before(previous_entries: Iterable[ClockEntryLike], full_day_hours: int) -> bool:
    return any(
        is_countable(entry.status) and _entry_regular_hours(entry) >= full_day_hours
        for entry in previous_entries
    )


def validate_clock_entries(
    entries: Sequence[ClockEntryLike],
    period_start: date,
    period_end: date,
    expected_weekdays: Iterable[int],
    *,
    tz: tzinfo | None = None,
) -> ClockEntryValidation:
    """Check expected working days (Python weekday numbers, Monday=0) for entries."""
    zone = tz or get_attendance_timezone()
    by_date: dict[date, list[ClockEntryLike]] = defaultdict(list)
    for entry in entries:
        by_date[local_work_date(entry.clock_in_time, zone)].append(entry)

    weekdays = set(expected_weekdays)
    missing: list[date] = []
    incomplete: list[date] = []
    for day in iter_days(period_start, period_end):
        if day.weekday() not in weekdays:
            continue
        day_entries = by_date.get(day, [])
        has_complete = any(
            entry.clock_out_time is not None and is_countable(entry.status) for entry in day_entries
        )
        if has_complete:
            continue
        if day_entries:
            incomplete.append(day)
        else:
            missing.append(day)
    return ClockEntryValidation(missing_days=missing, incomplete_entries=incomplete)


def compute_source_fingerprint(
    *,
    entries: Sequence[ClockEntryLike],
    period_start: date,
    period_end: date,
    holidays: Sequence[Holiday],
    rest_days: Mapping[date, bool] | None,
    approved_ot: Mapping[date, float] | None,
    eligible_for_ot: bool,
    eligible_for_night_diff: bool,
) -> str:
    entry_rows = sorted(
        (
            to_utc(entry.clock_in_time).isoformat(),
            to_utc(entry.clock_out_time).isoformat() if entry.clock_out_time else None,
            status_value(entry.status),
            getattr(entry, "total_break_minutes", None),
        )
        for entry in entries
    )
    payload = {
        "period": [period_start.isoformat(), period_end.isoformat()],
        "entries": entry_rows,
        "holidays": [[item.date.isoformat(), item.type] for item in holidays],
        "rest_days": sorted([key.isoformat(), bool(value)] for key, value in (rest_days or {}).items()),
        "approved_ot": sorted([key.isoformat(), float(value)] for key, value in (approved_ot or {}).items()),
        "eligible": [bool(eligible_for_ot), bool(eligible_for_night_diff)],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
