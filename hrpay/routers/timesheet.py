from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.errors import ApiError
from hrpay.models import AuditActorType, Employee, UserRole, WeeklyAttendance
from hrpay.schemas import (
    AttendanceDayRead,
    AutoGenerateRequest,
    ClockValidationRead,
    TimesheetRead,
)
from hrpay.security import CurrentUser, require_roles
from hrpay.services.attendance import (
    auto_generate_timesheets,
    check_attendance_drift,
    compute_period_attendance,
)
from hrpay.services.bimonthly import format_period, period_end_for, validate_period
from hrpay.services.exports import build_period_export
from hrpay.services.timesheet import validate_clock_entries

router = APIRouter(prefix="/api/timesheet", tags=["timesheet"])
require_payroll = require_roles(UserRole.ADMIN, UserRole.HR)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DEFAULT_WORKING_WEEKDAYS = (0, 1, 2, 3, 4, 5)


def _get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    return employee


@router.post("/auto-generate")
def auto_generate(
    payload: AutoGenerateRequest,
    request: Request,
    current: CurrentUser = Depends(require_payroll),
    db: Session = Depends(get_db),
) -> dict:
    summary = auto_generate_timesheets(
        db,
        period_start=payload.period_start,
        period_end=payload.period_end,
        employee_ids=payload.employee_ids,
        overwrite_existing=payload.overwrite_existing,
        actor_id=current.id,
    )
    body = summary.to_dict()
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=current.id,
        action="TIMESHEETS_AUTO_GENERATED",
        success=True,
        entity_type="timesheet",
        entity_id=payload.period_start.isoformat(),
        details={key: body[key] for key in ("processed", "created", "updated", "skipped")},
    )
    return body


@router.get("/export.xlsx")
def export_period(
    period_start: date = Query(...),
    employee_id: list[str] | None = Query(default=None),
    current: CurrentUser = Depends(require_payroll),
    db: Session = Depends(get_db),
) -> Response:
    period_end = period_end_for(period_start)
    content = build_period_export(
        db,
        period_start=period_start,
        period_end=period_end,
        employee_ids=employee_id,
    )
    filename = f"timesheets_{period_start.isoformat()}_{period_end.isoformat()}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{employee_id}", response_model=TimesheetRead)
def get_timesheet(
    employee_id: str,
    period_start: date = Query(...),
    current: CurrentUser = Depends(require_payroll),
    db: Session = Depends(get_db),
) -> TimesheetRead:
    employee = _get_employee(db, employee_id)
    period_end = period_end_for(period_start)
    computed = compute_period_attendance(db, employee, period_start, period_end)
    snapshot = db.scalar(
        select(WeeklyAttendance).where(
            WeeklyAttendance.employee_id == employee.id,
            WeeklyAttendance.period_start == period_start,
        )
    )
    result = computed.result
    return TimesheetRead(
        employee_id=employee.id,
        period_start=period_start,
        period_end=period_end,
        period_label=format_period(period_start, period_end),
        attendance_data=[AttendanceDayRead(**row) for row in result.to_attendance_data()],
        total_regular_hours=result.total_regular_hours,
        total_overtime_hours=result.total_overtime_hours,
        total_night_diff_hours=result.total_night_diff_hours,
        days_worked=result.days_worked,
        source_fingerprint=computed.fingerprint,
        snapshot_status=getattr(snapshot.status, "value", snapshot.status) if snapshot is not None else None,
        snapshot_in_sync=(snapshot.source_fingerprint == computed.fingerprint) if snapshot is not None else None,
    )


@router.get("/{employee_id}/drift")
def get_drift(
    employee_id: str,
    period_start: date = Query(...),
    current: CurrentUser = Depends(require_payroll),
    db: Session = Depends(get_db),
) -> dict:
    employee = _get_employee(db, employee_id)
    return check_attendance_drift(db, employee, period_start)


@router.get("/{employee_id}/validate", response_model=ClockValidationRead)
def validate_entries(
    employee_id: str,
    period_start: date = Query(...),
    weekday: list[int] | None = Query(default=None, description="Expected working weekdays, Monday=0"),
    current: CurrentUser = Depends(require_payroll),
    db: Session = Depends(get_db),
) -> ClockValidationRead:
    employee = _get_employee(db, employee_id)
    period_end = period_end_for(period_start)
    validate_period(period_start, period_end)
    expected = set(weekday) if weekday else set(DEFAULT_WORKING_WEEKDAYS)
    if any(day < 0 or day > 6 for day in expected):
        raise ApiError(status_code=422, code="INVALID_WEEKDAY", message="Weekdays must be between 0 and 6.")

    computed = compute_period_attendance(db, employee, period_start, period_end)
    validation = validate_clock_entries(
        computed.inputs.entries_in_period(period_start, period_end),
        period_start,
        period_end,
        expected,
    )
    return ClockValidationRead(
        employee_id=employee.id,
        period_start=period_start,
        period_end=period_end,
        is_valid=validation.is_valid,
        missing_days=validation.missing_days,
        incomplete_entries=validation.incomplete_entries,
    )
