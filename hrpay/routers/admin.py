from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.errors import ApiError
from hrpay.models import AuditActorType, Employee, Holiday, UserRole
from hrpay.schemas import (
    EmployeeCreateRequest,
    EmployeeDetailRead,
    EmployeeUpdateRequest,
    HolidayRead,
    HolidayWrite,
    OfficeLocationCreate,
    OfficeLocationRead,
    OfficeLocationUpdate,
    OkResponse,
    OvertimeGroupRead,
    OvertimeGroupWrite,
    ScheduleDayRead,
    ScheduleSaveRequest,
)
from hrpay.security import CurrentUser, require_roles
from hrpay.services.bimonthly import period_end_for, period_start_for
from hrpay.services.directory import (
    ScheduleDay,
    create_employee,
    create_office,
    delete_holiday,
    get_employee,
    list_employee_location_ids,
    list_employees,
    list_holidays,
    list_offices,
    list_overtime_groups,
    list_schedule,
    reset_employee_password,
    save_holiday,
    save_overtime_group,
    save_schedule,
    update_employee,
    update_office,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])
require_hr = require_roles(UserRole.ADMIN, UserRole.HR)
require_admin = require_roles(UserRole.ADMIN)


def _audit(
    db: Session,
    request: Request,
    current: CurrentUser,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    details: dict | None = None,
) -> None:
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=current.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )


def _employee_read(db: Session, employee: Employee) -> EmployeeDetailRead:
    read = EmployeeDetailRead.model_validate(employee)
    read.location_ids = list_employee_location_ids(db, employee.id)
    return read


def _holiday_read(holiday: Holiday) -> HolidayRead:
    return HolidayRead(
        holiday_date=holiday.holiday_date,
        name=holiday.name,
        type="regular" if holiday.is_regular else "non-working",
    )


@router.get("/employees", response_model=list[EmployeeDetailRead])
def list_employees_endpoint(
    include_inactive: bool = Query(default=False),
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[EmployeeDetailRead]:
    return [_employee_read(db, item) for item in list_employees(db, include_inactive=include_inactive)]


@router.post("/employees", response_model=EmployeeDetailRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreateRequest,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> EmployeeDetailRead:
    employee = create_employee(
        db,
        employee_code=payload.employee_id,
        first_name=payload.first_name,
        middle_name=payload.middle_name,
        last_name=payload.last_name,
        employee_type=payload.employee_type,
        job_level=payload.job_level,
        rate_per_day=payload.rate_per_day,
        rate_per_hour=payload.rate_per_hour,
        hire_date=payload.hire_date,
        overtime_group_id=payload.overtime_group_id,
        location_ids=payload.location_ids,
        password=payload.password,
    )
    _audit(
        db,
        request,
        current,
        action="EMPLOYEE_CREATED",
        entity_type="employee",
        entity_id=employee.id,
        details={"employee_id": employee.employee_id, "job_level": employee.job_level.value},
    )
    return _employee_read(db, employee)


@router.get("/employees/{employee_id}", response_model=EmployeeDetailRead)
def get_employee_endpoint(
    employee_id: str,
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> EmployeeDetailRead:
    return _employee_read(db, get_employee(db, employee_id))


@router.patch("/employees/{employee_id}", response_model=EmployeeDetailRead)
def update_employee_endpoint(
    employee_id: str,
    payload: EmployeeUpdateRequest,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> EmployeeDetailRead:
    changes = payload.model_dump(exclude_unset=True, exclude={"location_ids"})
    employee = update_employee(db, employee_id, changes, location_ids=payload.location_ids)
    _audit(
        db,
        request,
        current,
        action="EMPLOYEE_UPDATED",
        entity_type="employee",
        entity_id=employee.id,
        details={"fields": sorted(payload.model_fields_set)},
    )
    return _employee_read(db, employee)


@router.post("/employees/{employee_id}/reset-password", response_model=OkResponse)
def reset_employee_password_endpoint(
    employee_id: str,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> OkResponse:
    employee = reset_employee_password(db, employee_id)
    _audit(
        db,
        request,
        current,
        action="EMPLOYEE_PASSWORD_RESET",
        entity_type="employee",
        entity_id=employee.id,
    )
    return OkResponse()


@router.get("/employees/{employee_id}/schedule", response_model=list[ScheduleDayRead])
def get_schedule_endpoint(
    employee_id: str,
    period_start: date = Query(...),
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[ScheduleDayRead]:
    start = period_start_for(period_start)
    rows = list_schedule(db, employee_id, start, period_end_for(start))
    return [ScheduleDayRead.model_validate(row) for row in rows]


@router.put("/employees/{employee_id}/schedule", response_model=list[ScheduleDayRead])
def save_schedule_endpoint(
    employee_id: str,
    payload: ScheduleSaveRequest,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[ScheduleDayRead]:
    days = [
        ScheduleDay(
            schedule_date=item.schedule_date,
            is_rest_day=item.is_rest_day,
            start_time=item.start_time,
            end_time=item.end_time,
        )
        for item in payload.days
    ]
    rows = save_schedule(db, employee_id, days)
    _audit(
        db,
        request,
        current,
        action="EMPLOYEE_SCHEDULE_SAVED",
        entity_type="employee",
        entity_id=employee_id,
        details={"rest_days": [row.schedule_date.isoformat() for row in rows if row.is_rest_day]},
    )
    return [ScheduleDayRead.model_validate(row) for row in rows]


@router.get("/offices", response_model=list[OfficeLocationRead])
def list_offices_endpoint(
    include_inactive: bool = Query(default=False),
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[OfficeLocationRead]:
    return [OfficeLocationRead.model_validate(item) for item in list_offices(db, include_inactive=include_inactive)]


@router.post("/offices", response_model=OfficeLocationRead, status_code=status.HTTP_201_CREATED)
def create_office_endpoint(
    payload: OfficeLocationCreate,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> OfficeLocationRead:
    office = create_office(
        db,
        name=payload.name,
        address=payload.address,
        latitude=payload.latitude,
        longitude=payload.longitude,
        radius_meters=payload.radius_meters,
    )
    _audit(
        db,
        request,
        current,
        action="OFFICE_CREATED",
        entity_type="office_location",
        entity_id=str(office.id),
        details={"name": office.name, "radius_meters": office.radius_meters},
    )
    return OfficeLocationRead.model_validate(office)


@router.patch("/offices/{office_id}", response_model=OfficeLocationRead)
def update_office_endpoint(
    office_id: int,
    payload: OfficeLocationUpdate,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> OfficeLocationRead:
    office = update_office(db, office_id, payload.model_dump(exclude_unset=True))
    _audit(
        db,
        request,
        current,
        action="OFFICE_UPDATED",
        entity_type="office_location",
        entity_id=str(office.id),
        details={"fields": sorted(payload.model_fields_set)},
    )
    return OfficeLocationRead.model_validate(office)


@router.get("/holidays", response_model=list[HolidayRead])
def list_holidays_endpoint(
    year: int | None = Query(default=None, ge=2000, le=2100),
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[HolidayRead]:
    return [_holiday_read(item) for item in list_holidays(db, year=year)]


@router.put("/holidays/{holiday_date}", response_model=HolidayRead)
def save_holiday_endpoint(
    holiday_date: date,
    payload: HolidayWrite,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> HolidayRead:
    holiday, created = save_holiday(
        db,
        holiday_date=holiday_date,
        name=payload.name,
        is_regular=payload.type == "regular",
    )
    _audit(
        db,
        request,
        current,
        action="HOLIDAY_CREATED" if created else "HOLIDAY_UPDATED",
        entity_type="holiday",
        entity_id=holiday_date.isoformat(),
        details={"name": holiday.name, "type": payload.type},
    )
    return _holiday_read(holiday)


@router.delete("/holidays/{holiday_date}", response_model=OkResponse)
def delete_holiday_endpoint(
    holiday_date: date,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> OkResponse:
    delete_holiday(db, holiday_date)
    _audit(db, request, current, action="HOLIDAY_DELETED", entity_type="holiday", entity_id=holiday_date.isoformat())
    return OkResponse()


@router.get("/overtime-groups", response_model=list[OvertimeGroupRead])
def list_overtime_groups_endpoint(
    _current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> list[OvertimeGroupRead]:
    return [OvertimeGroupRead.model_validate(item) for item in list_overtime_groups(db)]


@router.post("/overtime-groups", response_model=OvertimeGroupRead, status_code=status.HTTP_201_CREATED)
def create_overtime_group_endpoint(
    payload: OvertimeGroupWrite,
    request: Request,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> OvertimeGroupRead:
    if not payload.name:
        raise ApiError(status_code=422, code="NAME_REQUIRED", message="Overtime group name is required.")
    group = save_overtime_group(db, group_id=None, changes=payload.model_dump(exclude_unset=True))
    _audit(db, request, current, action="OT_GROUP_CREATED", entity_type="overtime_group", entity_id=str(group.id))
    return OvertimeGroupRead.model_validate(group)


@router.patch("/overtime-groups/{group_id}", response_model=OvertimeGroupRead)
def update_overtime_group_endpoint(
    group_id: int,
    payload: OvertimeGroupWrite,
    request: Request,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> OvertimeGroupRead:
    group = save_overtime_group(db, group_id=group_id, changes=payload.model_dump(exclude_unset=True))
    _audit(
        db,
        request,
        current,
        action="OT_GROUP_UPDATED",
        entity_type="overtime_group",
        entity_id=str(group.id),
        details={"approver_id": group.approver_id, "viewer_id": group.viewer_id},
    )
    return OvertimeGroupRead.model_validate(group)
