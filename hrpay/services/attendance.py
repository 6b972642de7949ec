from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import (
    Employee,
    EmployeeSchedule,
    Holiday as HolidayRow,
    OvertimeRequest,
    TimeClockEntry,
    TimesheetStatus,
    WeeklyAttendance,
)
from hrpay.services.bimonthly import iter_days, period_end_for, validate_period
from hrpay.services.holidays import Holiday, build_rest_day_map, normalize_holidays
from hrpay.services.hours import Eligibility, eligibility_for, local_day_bounds_utc, local_work_date
from hrpay.services.timesheet import TimesheetResult, compute_source_fingerprint, generate_timesheet
from hrpay.settings import get_attendance_timezone, get_settings

logger = logging.getLogger("hrpay.attendance")

OT_STATUS_APPROVED = "approved"
RESULT_CREATED = "created"
RESULT_UPDATED = "updated"
RESULT_SKIPPED = "skipped"


@dataclass(frozen=True)
class PeriodInputs:
    entries: list[TimeClockEntry]
    holidays: list[Holiday]
    rest_days: dict[date, bool]
    approved_ot: dict[date, float]
    eligibility: Eligibility

    def entries_in_period(self, period_start: date, period_end: date) -> list[TimeClockEntry]:
        tz = get_attendance_timezone()
        return [
            entry
            for entry in self.entries
            if period_start <= local_work_date(entry.clock_in_time, tz) <= period_end
        ]


@dataclass(frozen=True)
class PeriodAttendance:
    employee_id: str
    result: TimesheetResult
    fingerprint: str
    inputs: PeriodInputs


@dataclass
class AutoGenerateSummary:
    processed: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "created": sum(1 for item in self.results if item["status"] == RESULT_CREATED),
            "updated": sum(1 for item in self.results if item["status"] == RESULT_UPDATED),
            "skipped": sum(1 for item in self.results if item["status"] == RESULT_SKIPPED),
            "results": list(self.results),
            "errors": list(self.errors),
        }


def load_period_inputs(
    db: Session,
    employee: Employee,
    period_start: date,
    period_end: date,
) -> PeriodInputs:
    tz = get_attendance_timezone()
    # The holiday rule looks one day back, so the window opens a day early.
    window_start = period_start - timedelta(days=1)
    range_start_utc, _ = local_day_bounds_utc(window_start, tz)
    _, range_end_utc = local_day_bounds_utc(period_end, tz)

    entries = list(
        db.scalars(
            select(TimeClockEntry)
            .where(
                TimeClockEntry.employee_id == employee.id,
                TimeClockEntry.clock_in_time >= range_start_utc,
                TimeClockEntry.clock_in_time < range_end_utc,
            )
            .order_by(TimeClockEntry.clock_in_time.asc())
        ).all()
    )

    holiday_rows = db.scalars(
        select(HolidayRow).where(
            HolidayRow.holiday_date >= window_start,
            HolidayRow.holiday_date <= period_end,
        )
    ).all()
    holidays = normalize_holidays(
        {"date": row.holiday_date, "name": row.name, "is_regular": row.is_regular} for row in holiday_rows
    )

    schedules = db.scalars(
        select(EmployeeSchedule).where(
            EmployeeSchedule.employee_id == employee.id,
            EmployeeSchedule.schedule_date >= period_start,
            EmployeeSchedule.schedule_date <= period_end,
        )
    ).all()
    rest_days = build_rest_day_map(employee.employee_type, schedules, iter_days(period_start, period_end))

    ot_rows = db.scalars(
        select(OvertimeRequest).where(
            OvertimeRequest.employee_id == employee.id,
            OvertimeRequest.status == OT_STATUS_APPROVED,
            OvertimeRequest.ot_date >= period_start,
            OvertimeRequest.ot_date <= period_end,
        )
    ).all()
    approved_ot: dict[date, float] = defaultdict(float)
    for row in ot_rows:
        approved_ot[row.ot_date] += float(row.ot_hours or 0)

    return PeriodInputs(
        entries=entries,
        holidays=holidays,
        rest_days=rest_days,
        approved_ot=dict(approved_ot),
        eligibility=eligibility_for(employee.job_level),
    )


def compute_period_attendance(
    db: Session,
    employee: Employee,
    period_start: date,
    period_end: date,
) -> PeriodAttendance:
    validate_period(period_start, period_end)
    inputs = load_period_inputs(db, employee, period_start, period_end)
    result = generate_timesheet(
        inputs.entries,
        period_start,
        period_end,
        inputs.holidays,
        rest_days=inputs.rest_days,
        approved_ot=inputs.approved_ot,
        eligible_for_ot=inputs.eligibility.overtime,
        eligible_for_night_diff=inputs.eligibility.night_diff,
    )
    fingerprint = compute_source_fingerprint(
        entries=inputs.entries,
        period_start=period_start,
        period_end=period_end,
        holidays=inputs.holidays,
        rest_days=inputs.rest_days,
        approved_ot=inputs.approved_ot,
        eligible_for_ot=inputs.eligibility.overtime,
        eligible_for_night_diff=inputs.eligibility.night_diff,
    )
    return PeriodAttendance(employee_id=employee.id, result=result, fingerprint=fingerprint, inputs=inputs)


def _get_snapshot(db: Session, employee_id: str, period_start: date) -> WeeklyAttendance | None:
    return db.scalar(
        select(WeeklyAttendance).where(
            WeeklyAttendance.employee_id == employee_id,
            WeeklyAttendance.period_start == period_start,
        )
    )


def _previous_snapshot(db: Session, employee_id: str, period_start: date) -> WeeklyAttendance | None:
    return db.scalar(
        select(WeeklyAttendance)
        .where(
            WeeklyAttendance.employee_id == employee_id,
            WeeklyAttendance.period_start < period_start,
            WeeklyAttendance.total_regular_hours > 0,
        )
        .order_by(WeeklyAttendance.period_start.desc())
        .limit(1)
    )


def estimate_hourly_rate(db: Session, employee: Employee, period_start: date) -> Decimal:
    if employee.rate_per_hour:
        return Decimal(str(employee.rate_per_hour))
    if employee.rate_per_day:
        return Decimal(str(employee.rate_per_day)) / Decimal(get_settings().regular_day_hours)

    previous = _previous_snapshot(db, employee.id, period_start)
    if previous is not None and previous.total_regular_hours:
        return Decimal(str(previous.gross_pay or 0)) / Decimal(str(previous.total_regular_hours))
    return Decimal("0")


def estimate_gross_pay(regular_hours: float, hourly_rate: Decimal) -> Decimal:
    gross = Decimal(str(regular_hours)) * hourly_rate
    return gross.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def list_target_employees(db: Session, employee_ids: list[str] | None) -> list[Employee]:
    stmt = select(Employee).where(Employee.is_active.is_(True))
    if employee_ids:
        stmt = stmt.where(Employee.id.in_(employee_ids))
    stmt = stmt.order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.full_name.asc())
    return list(db.scalars(stmt).all())


def _store_snapshot(
    db: Session,
    *,
    employee: Employee,
    existing: WeeklyAttendance | None,
    computed: PeriodAttendance,
    period_start: date,
    period_end: date,
    actor_id: str | None,
    now_utc: datetime,
) -> tuple[WeeklyAttendance, str]:
    result = computed.result
    hourly_rate = estimate_hourly_rate(db, employee, period_start)
    gross_pay = estimate_gross_pay(result.total_regular_hours, hourly_rate)

    snapshot = existing
    outcome = RESULT_UPDATED
    if snapshot is None:
        snapshot = WeeklyAttendance(
            employee_id=employee.id,
            period_start=period_start,
            period_end=period_end,
            period_type="bimonthly",
            created_by=actor_id,
        )
        db.add(snapshot)
        outcome = RESULT_CREATED

    snapshot.period_end = period_end
    snapshot.attendance_data = result.to_attendance_data()
    snapshot.total_regular_hours = result.total_regular_hours
    snapshot.total_overtime_hours = result.total_overtime_hours
    snapshot.total_night_diff_hours = result.total_night_diff_hours
    snapshot.gross_pay = gross_pay
    snapshot.status = TimesheetStatus.FINALIZED
    snapshot.source_fingerprint = computed.fingerprint
    snapshot.generated_at = now_utc
    snapshot.finalized_by = actor_id
    snapshot.finalized_at = now_utc
    return snapshot, outcome


def auto_generate_timesheets(
    db: Session,
    *,
    period_start: date,
    period_end: date,
    employee_ids: list[str] | None = None,
    overwrite_existing: bool = False,
    actor_id: str | None = None,
    now_utc: datetime | None = None,
) -> AutoGenerateSummary:
    validate_period(period_start, period_end)
    generated_at = now_utc or datetime.now(timezone.utc)
    summary = AutoGenerateSummary()

    for employee in list_target_employees(db, employee_ids):
        summary.processed += 1
        base = {"employee_id": employee.id, "employee_name": employee.full_name}
        try:
            existing = _get_snapshot(db, employee.id, period_start)
            if existing is not None and not overwrite_existing:
                summary.results.append({**base, "status": RESULT_SKIPPED, "reason": "Timesheet already exists"})
                continue

            computed = compute_period_attendance(db, employee, period_start, period_end)
            if not computed.inputs.entries_in_period(period_start, period_end):
                summary.results.append({**base, "status": RESULT_SKIPPED, "reason": "No time clock entries found"})
                continue

            snapshot, outcome = _store_snapshot(
                db,
                employee=employee,
                existing=existing,
                computed=computed,
                period_start=period_start,
                period_end=period_end,
                actor_id=actor_id,
                now_utc=generated_at,
            )
            db.commit()
        except (SQLAlchemyError, ApiError) as exc:
            db.rollback()
            logger.warning(
                "timesheet_generation_failed",
                extra={"employee_id": employee.id, "period_start": period_start.isoformat(), "error": str(exc)},
            )
            summary.errors.append({**base, "error": str(exc) or exc.__class__.__name__})
            continue

        summary.results.append(
            {
                **base,
                "status": outcome,
                "timesheet_id": snapshot.id,
                "total_regular_hours": snapshot.total_regular_hours,
                "total_overtime_hours": snapshot.total_overtime_hours,
                "total_night_diff_hours": snapshot.total_night_diff_hours,
                "gross_pay": float(snapshot.gross_pay or 0),
            }
        )

    logger.info(
        "timesheets_auto_generated",
        extra={
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "processed": summary.processed,
            "error_count": len(summary.errors),
            "actor_id": actor_id,
        },
    )
    return summary


def _attendance_rows_by_date(rows: list[dict[str, Any]] | None) -> dict[str, dict[str, Any]]:
    return {str(row.get("date")): row for row in rows or [] if isinstance(row, dict)}


def check_attendance_drift(
    db: Session,
    employee: Employee,
    period_start: date,
    period_end: date | None = None,
) -> dict[str, Any]:
    period_end = period_end or period_end_for(period_start)
    computed = compute_period_attendance(db, employee, period_start, period_end)
    snapshot = _get_snapshot(db, employee.id, period_start)
    current_rows = _attendance_rows_by_date(computed.result.to_attendance_data())

    if snapshot is None:
        return {
            "employee_id": employee.id,
            "period_start": period_start.isoformat(),
            "has_snapshot": False,
            "in_sync": False,
            "stored_fingerprint": None,
            "current_fingerprint": computed.fingerprint,
            "differing_dates": sorted(current_rows),
        }

    stored_rows = _attendance_rows_by_date(snapshot.attendance_data)
    differing = sorted(
        key for key in set(stored_rows) | set(current_rows) if stored_rows.get(key) != current_rows.get(key)
    )
    in_sync = snapshot.source_fingerprint == computed.fingerprint and not differing
    if not in_sync:
        logger.info(
            "attendance_drift_detected",
            extra={
                "employee_id": employee.id,
                "period_start": period_start.isoformat(),
                "differing_dates": differing,
            },
        )
    return {
        "employee_id": employee.id,
        "period_start": period_start.isoformat(),
        "has_snapshot": True,
        "in_sync": in_sync,
        "stored_fingerprint": snapshot.source_fingerprint,
        "current_fingerprint": computed.fingerprint,
        "differing_dates": differing,
    }
