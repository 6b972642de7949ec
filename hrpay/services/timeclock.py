from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import (
    ClockEntryStatus,
    Employee,
    EmployeeLocationAssignment,
    OfficeLocation,
    TimeClockEntry,
)
from hrpay.services.hours import allocate_entry_hours, eligibility_for, local_day_bounds_utc, to_utc
from hrpay.services.location import LocationDetails, resolve_location_details
from hrpay.settings import get_settings

logger = logging.getLogger("hrpay.timeclock")


def _ensure_active(employee: Employee) -> None:
    if not employee.is_active:
        raise ApiError(
            status_code=403,
            code="EMPLOYEE_INACTIVE",
            message="Inactive employee cannot perform attendance actions.",
        )


def get_current_entry(db: Session, employee_id: str) -> TimeClockEntry | None:
    return db.scalar(
        select(TimeClockEntry)
        .where(
            TimeClockEntry.employee_id == employee_id,
            TimeClockEntry.status == ClockEntryStatus.CLOCKED_IN,
            TimeClockEntry.clock_out_time.is_(None),
        )
        .order_by(TimeClockEntry.clock_in_time.desc())
        .limit(1)
    )


def list_employee_offices(db: Session, employee_id: str) -> list[OfficeLocation]:
    """Offices an employee may clock in at; every active office when none is assigned."""
    assigned = list(
        db.scalars(
            select(OfficeLocation)
            .join(EmployeeLocationAssignment, EmployeeLocationAssignment.location_id == OfficeLocation.id)
            .where(
                EmployeeLocationAssignment.employee_id == employee_id,
                OfficeLocation.is_active.is_(True),
            )
        ).all()
    )
    if assigned:
        return assigned
    return list(db.scalars(select(OfficeLocation).where(OfficeLocation.is_active.is_(True))).all())


def _resolve_and_enforce(db: Session, employee: Employee, location: str | None) -> LocationDetails:
    offices = list_employee_offices(db, employee.id)
    details = resolve_location_details(location, offices)
    if get_settings().enforce_geofence and offices and not details.is_within_allowed_area:
        logger.info(
            "clock_location_rejected",
            extra={"employee_id": employee.id, "location_name": details.name, "distance_m": details.distance_m},
        )
        raise ApiError(
            status_code=403,
            code="LOCATION_NOT_ALLOWED",
            message="You are outside of your registered work locations.",
        )
    return details


def clock_in(
    db: Session,
    employee: Employee,
    *,
    location: str | None = None,
    notes: str | None = None,
    device: str | None = None,
    ip: str | None = None,
    now: datetime | None = None,
) -> TimeClockEntry:
    _ensure_active(employee)
    if get_current_entry(db, employee.id) is not None:
        raise ApiError(status_code=409, code="ALREADY_CLOCKED_IN", message="Employee is already clocked in.")

    details = _resolve_and_enforce(db, employee, location)
    entry = TimeClockEntry(
        employee_id=employee.id,
        clock_in_time=to_utc(now or datetime.now(timezone.utc)),
        clock_in_location=location,
        location_name=details.name,
        is_within_allowed_area=details.is_within_allowed_area,
        clock_in_device=device,
        clock_in_ip=ip,
        employee_notes=notes,
        status=ClockEntryStatus.CLOCKED_IN,
        is_manual_entry=False,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(
        "employee_clocked_in",
        extra={"employee_id": employee.id, "entry_id": entry.id, "location_name": details.name},
    )
    return entry


def clock_out(
    db: Session,
    employee: Employee,
    *,
    location: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> TimeClockEntry:
    _ensure_active(employee)
    entry = get_current_entry(db, employee.id)
    if entry is None:
        raise ApiError(status_code=409, code="NOT_CLOCKED_IN", message="Employee is not clocked in.")

    _resolve_and_enforce(db, employee, location)
    clock_out_time = to_utc(now or datetime.now(timezone.utc))
    if clock_out_time <= to_utc(entry.clock_in_time):
        raise ApiError(
            status_code=422,
            code="INVALID_CLOCK_OUT",
            message="Clock-out time must be after clock-in time.",
        )

    hours = allocate_entry_hours(entry.clock_in_time, clock_out_time, break_minutes=entry.total_break_minutes)
    eligibility = eligibility_for(employee.job_level)
    entry.clock_out_time = clock_out_time
    entry.clock_out_location = location
    entry.total_break_minutes = hours.break_minutes
    entry.total_hours = hours.total_hours
    entry.regular_hours = hours.regular_hours
    # Overtime only exists through approved OT requests.
    entry.overtime_hours = 0.0
    entry.total_night_diff_hours = hours.night_diff_hours if eligibility.night_diff else 0.0
    entry.status = ClockEntryStatus.CLOCKED_OUT
    if notes:
        entry.employee_notes = notes
    db.commit()
    db.refresh(entry)
    logger.info(
        "employee_clocked_out",
        extra={"employee_id": employee.id, "entry_id": entry.id, "total_hours": hours.total_hours},
    )
    return entry


def _get_entry(db: Session, entry_id: str) -> TimeClockEntry:
    entry = db.get(TimeClockEntry, entry_id)
    if entry is None:
        raise ApiError(status_code=404, code="ENTRY_NOT_FOUND", message="Time entry not found.")
    return entry


def approve_entry(
    db: Session,
    entry_id: str,
    *,
    approver_id: str,
    hr_notes: str | None = None,
    now: datetime | None = None,
) -> TimeClockEntry:
    entry = _get_entry(db, entry_id)
    if entry.clock_out_time is None:
        raise ApiError(
            status_code=409,
            code="ENTRY_INCOMPLETE",
            message="An entry without clock-out cannot be approved.",
        )
    entry.status = ClockEntryStatus.APPROVED
    entry.hr_notes = hr_notes
    entry.approved_by = approver_id
    entry.approved_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(entry)
    return entry


def reject_entry(
    db: Session,
    entry_id: str,
    *,
    approver_id: str,
    hr_notes: str,
) -> TimeClockEntry:
    if not (hr_notes or "").strip():
        raise ApiError(status_code=422, code="NOTES_REQUIRED", message="A note is required to reject an entry.")
    entry = _get_entry(db, entry_id)
    entry.status = ClockEntryStatus.REJECTED
    entry.hr_notes = hr_notes.strip()
    entry.approved_by = approver_id
    entry.approved_at = None
    db.commit()
    db.refresh(entry)
    return entry


def list_entries(
    db: Session,
    employee_id: str,
    *,
    start_date: date,
    end_date: date,
) -> list[TimeClockEntry]:
    range_start_utc, _ = local_day_bounds_utc(start_date)
    _, range_end_utc = local_day_bounds_utc(end_date)
    return list(
        db.scalars(
            select(TimeClockEntry)
            .where(
                TimeClockEntry.employee_id == employee_id,
                TimeClockEntry.clock_in_time >= range_start_utc,
                TimeClockEntry.clock_in_time < range_end_utc,
            )
            .order_by(TimeClockEntry.clock_in_time.asc())
        ).all()
    )
