from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from hrpay.models import ClockEntryStatus, JobLevel
from hrpay.settings import get_attendance_timezone, get_settings

COUNTABLE_STATUSES = frozenset(
    {
        ClockEntryStatus.APPROVED.value,
        ClockEntryStatus.AUTO_APPROVED.value,
        ClockEntryStatus.CLOCKED_OUT.value,
    }
)


@dataclass(frozen=True)
class EntryHours:
    status: str
    gross_minutes: int
    break_minutes: int
    total_hours: float
    regular_hours: float
    night_diff_hours: float


@dataclass(frozen=True)
class Eligibility:
    overtime: bool
    night_diff: bool


_ELIGIBILITY: dict[JobLevel, Eligibility] = {
    JobLevel.RANK_AND_FILE: Eligibility(overtime=True, night_diff=True),
    # flexi time: approved OT counts, night differential does not
    JobLevel.ACCOUNT_SUPERVISOR: Eligibility(overtime=True, night_diff=False),
    JobLevel.SUPERVISORY: Eligibility(overtime=False, night_diff=False),
    JobLevel.MANAGERIAL: Eligibility(overtime=False, night_diff=False),
}


def eligibility_for(job_level: JobLevel | str | None) -> Eligibility:
    if job_level is None:
        return _ELIGIBILITY[JobLevel.RANK_AND_FILE]
    return _ELIGIBILITY[JobLevel(job_level)]


def status_value(status: ClockEntryStatus | str | None) -> str:
    if isinstance(status, ClockEntryStatus):
        return status.value
    return str(status or "")


def is_countable(status: ClockEntryStatus | str | None) -> bool:
    return status_value(status) in COUNTABLE_STATUSES


def to_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def local_work_date(ts: datetime, tz: tzinfo | None = None) -> date:
    return to_utc(ts).astimezone(tz or get_attendance_timezone()).date()


def local_day_bounds_utc(day: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    zone = tz or get_attendance_timezone()
    local_start = datetime.combine(day, time.min, tzinfo=zone)
    local_end = local_start + timedelta(days=1)
    return local_start.astimezone(timezone.utc), local_end.astimezone(timezone.utc)


def night_diff_hours(
    clock_in: datetime,
    clock_out: datetime,
    *,
    tz: tzinfo | None = None,
    start_hour: int | None = None,
    end_hour: int | None = None,
) -> float:
    settings = get_settings()
    zone = tz or get_attendance_timezone()
    night_start = settings.night_diff_start_hour if start_hour is None else start_hour
    night_end = settings.night_diff_end_hour if end_hour is None else end_hour

    span_start = to_utc(clock_in)
    span_end = to_utc(clock_out)
    if span_end <= span_start:
        return 0.0

    first_day = span_start.astimezone(zone).date() - timedelta(days=1)
    last_day = span_end.astimezone(zone).date()
    overlap = timedelta()
    cursor = first_day
    while cursor <= last_day:
        window_start = datetime.combine(cursor, time(hour=night_start), tzinfo=zone)
        window_end = datetime.combine(cursor + timedelta(days=1), time(hour=night_end), tzinfo=zone)
        lo = max(span_start, window_start.astimezone(timezone.utc))
        hi = min(span_end, window_end.astimezone(timezone.utc))
        if hi > lo:
            overlap += hi - lo
        cursor += timedelta(days=1)
    return round(overlap.total_seconds() / 3600, 2)


def allocate_entry_hours(
    clock_in: datetime,
    clock_out: datetime | None,
    *,
    break_minutes: int | None = None,
    tz: tzinfo | None = None,
) -> EntryHours:
    if clock_out is None:
        return EntryHours(
            status="INCOMPLETE",
            gross_minutes=0,
            break_minutes=0,
            total_hours=0.0,
            regular_hours=0.0,
            night_diff_hours=0.0,
        )

    settings = get_settings()
    gross_minutes = max(0, int((to_utc(clock_out) - to_utc(clock_in)).total_seconds() // 60))
    if break_minutes is not None:
        effective_break = max(0, break_minutes)
    elif gross_minutes > settings.break_threshold_minutes:
        effective_break = settings.default_break_minutes
    else:
        effective_break = 0

    net_minutes = max(0, gross_minutes - effective_break)
    total_hours = round(net_minutes / 60, 2)
    return EntryHours(
        status="OK",
        gross_minutes=gross_minutes,
        break_minutes=effective_break,
        total_hours=total_hours,
        regular_hours=min(total_hours, float(settings.regular_day_hours)),
        night_diff_hours=night_diff_hours(clock_in, clock_out, tz=tz),
    )
