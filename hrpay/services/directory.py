"""Master data the attendance ledger reads from.

Employees (rates, job level, OT group, office assignments), office
locations, the holiday calendar, per-day schedules and overtime groups.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import (
    Employee,
    EmployeeLocationAssignment,
    EmployeeSchedule,
    EmployeeType,
    Holiday,
    JobLevel,
    OfficeLocation,
    OvertimeGroup,
    User,
    UserRole,
)
from hrpay.security import hash_password

logger = logging.getLogger("hrpay.directory")

EMPLOYEE_NAME_FIELDS = ("first_name", "middle_name", "last_name")
EMPLOYEE_PLAIN_FIELDS = ("employee_type", "job_level", "rate_per_day", "rate_per_hour", "hire_date", "is_active")
OT_GROUP_ROLES = {
    "approver_id": frozenset({UserRole.ADMIN, UserRole.APPROVER, UserRole.OT_APPROVER}),
    "viewer_id": frozenset({UserRole.ADMIN, UserRole.VIEWER, UserRole.OT_VIEWER}),
}


def _not_found(code: str, message: str) -> ApiError:
    return ApiError(status_code=404, code=code, message=message)


def _conflict(code: str, message: str) -> ApiError:
    return ApiError(status_code=409, code=code, message=message)


def compose_full_name(first_name: str | None, middle_name: str | None, last_name: str | None) -> str:
    """Build "Juan D. Cruz" style names; the middle name shortens to an initial."""
    middle = (middle_name or "").strip()
    parts = [(first_name or "").strip(), f"{middle[0].upper()}." if middle else "", (last_name or "").strip()]
    return " ".join(part for part in parts if part)


def get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise _not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")
    return employee


def list_employees(db: Session, *, include_inactive: bool = False) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.full_name.asc())
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    return list(db.scalars(stmt).all())


def _check_overtime_group(db: Session, group_id: int | None) -> None:
    if group_id is not None and db.get(OvertimeGroup, group_id) is None:
        raise _not_found("OT_GROUP_NOT_FOUND", "Overtime group not found.")


def _replace_locations(db: Session, employee_id: str, location_ids: Iterable[int]) -> list[int]:
    wanted = list(dict.fromkeys(location_ids))
    if wanted:
        found = set(db.scalars(select(OfficeLocation.id).where(OfficeLocation.id.in_(wanted))).all())
        missing = [item for item in wanted if item not in found]
        if missing:
            raise ApiError(
                status_code=404,
                code="OFFICE_NOT_FOUND",
                message="One or more office locations do not exist.",
                details={"location_ids": missing},
            )
    db.execute(delete(EmployeeLocationAssignment).where(EmployeeLocationAssignment.employee_id == employee_id))
    for location_id in wanted:
        db.add(EmployeeLocationAssignment(employee_id=employee_id, location_id=location_id))
    return wanted


def list_employee_location_ids(db: Session, employee_id: str) -> list[int]:
    return list(
        db.scalars(
            select(EmployeeLocationAssignment.location_id)
            .where(EmployeeLocationAssignment.employee_id == employee_id)
            .order_by(EmployeeLocationAssignment.location_id)
        ).all()
    )


def create_employee(
    db: Session,
    *,
    employee_code: str,
    first_name: str,
    last_name: str,
    middle_name: str | None = None,
    employee_type: EmployeeType = EmployeeType.OFFICE_BASED,
    job_level: JobLevel = JobLevel.RANK_AND_FILE,
    rate_per_day: Decimal | None = None,
    rate_per_hour: Decimal | None = None,
    hire_date: date | None = None,
    overtime_group_id: int | None = None,
    location_ids: Iterable[int] = (),
    password: str | None = None,
) -> Employee:
    code = employee_code.strip()
    if db.scalar(select(Employee.id).where(Employee.employee_id == code)) is not None:
        raise _conflict("EMPLOYEE_ID_EXISTS", f"Employee ID {code} is already in use.")
    _check_overtime_group(db, overtime_group_id)

    employee = Employee(
        employee_id=code,
        first_name=first_name.strip(),
        middle_name=(middle_name or "").strip() or None,
        last_name=last_name.strip(),
        full_name=compose_full_name(first_name, middle_name, last_name),
        employee_type=employee_type,
        job_level=job_level,
        rate_per_day=rate_per_day,
        rate_per_hour=rate_per_hour,
        hire_date=hire_date,
        overtime_group_id=overtime_group_id,
        # the portal password starts as the employee ID until the employee changes it
        password_hash=hash_password((password or "").strip() or code),
        is_active=True,
    )
    db.add(employee)
    try:
        db.flush()
        _replace_locations(db, employee.id, location_ids)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _conflict("EMPLOYEE_ID_EXISTS", f"Employee ID {code} is already in use.") from exc
    except ApiError:
        db.rollback()
        raise
    db.refresh(employee)
    logger.info("employee_created", extra={"employee_id": employee.id, "job_level": employee.job_level.value})
    return employee


def update_employee(
    db: Session,
    employee_id: str,
    changes: dict[str, Any],
    *,
    location_ids: Iterable[int] | None = None,
) -> Employee:
    """Apply only the fields present in ``changes``; ``None`` clears nullable fields."""
    employee = get_employee(db, employee_id)
    if "overtime_group_id" in changes:
        _check_overtime_group(db, changes["overtime_group_id"])
        employee.overtime_group_id = changes["overtime_group_id"]

    for name in EMPLOYEE_PLAIN_FIELDS:
        if name in changes:
            if changes[name] is None and name in ("employee_type", "job_level", "is_active"):
                continue
            setattr(employee, name, changes[name])

    if any(name in changes for name in EMPLOYEE_NAME_FIELDS):
        for name in EMPLOYEE_NAME_FIELDS:
            if name in changes:
                setattr(employee, name, (changes[name] or "").strip() or None)
        employee.full_name = compose_full_name(employee.first_name, employee.middle_name, employee.last_name)

    try:
        if location_ids is not None:
            _replace_locations(db, employee.id, location_ids)
        db.commit()
    except ApiError:
        db.rollback()
        raise
    db.refresh(employee)
    return employee


def reset_employee_password(db: Session, employee_id: str) -> Employee:
    employee = get_employee(db, employee_id)
    employee.password_hash = hash_password(employee.employee_id)
    db.commit()
    logger.info("employee_password_reset", extra={"employee_id": employee.id})
    return employee


def list_offices(db: Session, *, include_inactive: bool = False) -> list[OfficeLocation]:
    stmt = select(OfficeLocation).order_by(OfficeLocation.name.asc())
    if not include_inactive:
        stmt = stmt.where(OfficeLocation.is_active.is_(True))
    return list(db.scalars(stmt).all())


def create_office(
    db: Session,
    *,
    name: str,
    latitude: float,
    longitude: float,
    radius_meters: int,
    address: str | None = None,
) -> OfficeLocation:
    office = OfficeLocation(
        name=name.strip(),
        address=(address or "").strip() or None,
        latitude=latitude,
        longitude=longitude,
        radius_meters=radius_meters,
        is_active=True,
    )
    db.add(office)
    db.commit()
    db.refresh(office)
    return office


def update_office(db: Session, office_id: int, changes: dict[str, Any]) -> OfficeLocation:
    office = db.get(OfficeLocation, office_id)
    if office is None:
        raise _not_found("OFFICE_NOT_FOUND", "Office location not found.")
    for name in ("name", "address", "latitude", "longitude", "radius_meters", "is_active"):
        if name in changes and (changes[name] is not None or name == "address"):
            setattr(office, name, changes[name])
    db.commit()
    db.refresh(office)
    return office


def list_holidays(db: Session, *, year: int | None = None) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.holiday_date.asc())
    if year is not None:
        stmt = stmt.where(Holiday.holiday_date >= date(year, 1, 1), Holiday.holiday_date <= date(year, 12, 31))
    return list(db.scalars(stmt).all())


def save_holiday(db: Session, *, holiday_date: date, name: str, is_regular: bool) -> tuple[Holiday, bool]:
    """Create or replace the holiday on ``holiday_date``. Returns (holiday, created)."""
    holiday = db.scalar(select(Holiday).where(Holiday.holiday_date == holiday_date))
    created = holiday is None
    if holiday is None:
        holiday = Holiday(holiday_date=holiday_date)
        db.add(holiday)
    holiday.name = name.strip()
    holiday.is_regular = is_regular
    db.commit()
    db.refresh(holiday)
    return holiday, created


def delete_holiday(db: Session, holiday_date: date) -> None:
    holiday = db.scalar(select(Holiday).where(Holiday.holiday_date == holiday_date))
    if holiday is None:
        raise _not_found("HOLIDAY_NOT_FOUND", f"No holiday on {holiday_date.isoformat()}.")
    db.delete(holiday)
    db.commit()


@dataclass(frozen=True)
class ScheduleDay:
    schedule_date: date
    is_rest_day: bool = False
    start_time: time | None = None
    end_time: time | None = None


def list_schedule(db: Session, employee_id: str, start: date, end: date) -> list[EmployeeSchedule]:
    get_employee(db, employee_id)
    return list(
        db.scalars(
            select(EmployeeSchedule)
            .where(
                EmployeeSchedule.employee_id == employee_id,
                EmployeeSchedule.schedule_date >= start,
                EmployeeSchedule.schedule_date <= end,
            )
            .order_by(EmployeeSchedule.schedule_date.asc())
        ).all()
    )


def save_schedule(db: Session, employee_id: str, days: Iterable[ScheduleDay]) -> list[EmployeeSchedule]:
    """Upsert one schedule row per date; the last entry for a repeated date wins."""
    get_employee(db, employee_id)
    by_date = {day.schedule_date: day for day in days}
    if not by_date:
        return []

    existing = {
        row.schedule_date: row
        for row in db.scalars(
            select(EmployeeSchedule).where(
                EmployeeSchedule.employee_id == employee_id,
                EmployeeSchedule.schedule_date.in_(list(by_date)),
            )
        ).all()
    }
    saved: list[EmployeeSchedule] = []
    for schedule_date in sorted(by_date):
        day = by_date[schedule_date]
        row = existing.get(schedule_date)
        if row is None:
            row = EmployeeSchedule(employee_id=employee_id, schedule_date=schedule_date)
            db.add(row)
        row.is_rest_day = day.is_rest_day
        row.start_time = None if day.is_rest_day else day.start_time
        row.end_time = None if day.is_rest_day else day.end_time
        saved.append(row)
    db.commit()
    logger.info("employee_schedule_saved", extra={"employee_id": employee_id, "days": len(saved)})
    return saved


def list_overtime_groups(db: Session) -> list[OvertimeGroup]:
    return list(db.scalars(select(OvertimeGroup).order_by(OvertimeGroup.name.asc())).all())


def _check_group_member(db: Session, field_name: str, user_id: str | None) -> None:
    if user_id is None:
        return
    user = db.get(User, user_id)
    if user is None:
        raise _not_found("USER_NOT_FOUND", "User not found.")
    if UserRole(user.role) not in OT_GROUP_ROLES[field_name]:
        raise ApiError(
            status_code=422,
            code="INVALID_ROLE",
            message=f"User role {UserRole(user.role).value} cannot be assigned as {field_name.removesuffix('_id')}.",
        )


def save_overtime_group(
    db: Session,
    *,
    group_id: int | None,
    changes: dict[str, Any],
) -> OvertimeGroup:
    for field_name in OT_GROUP_ROLES:
        if field_name in changes:
            _check_group_member(db, field_name, changes[field_name])

    if group_id is None:
        group = OvertimeGroup(name=(changes.get("name") or "").strip())
        db.add(group)
    else:
        group = db.get(OvertimeGroup, group_id)
        if group is None:
            raise _not_found("OT_GROUP_NOT_FOUND", "Overtime group not found.")
        if changes.get("name"):
            group.name = changes["name"].strip()

    for field_name in OT_GROUP_ROLES:
        if field_name in changes:
            setattr(group, field_name, changes[field_name])

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _conflict("OT_GROUP_EXISTS", "An overtime group with this name already exists.") from exc
    db.refresh(group)
    return group
