from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.errors import ApiError
from hrpay.models import AuditActorType, Employee
from hrpay.routers.http_utils import client_ip, user_agent
from hrpay.schemas import (
    ChangePasswordRequest,
    ClockEntryRead,
    ClockRequest,
    EmployeeLoginRequest,
    EmployeeRead,
    EmployeeTokenResponse,
    FirstLoginRequest,
    FirstLoginResponse,
    LeaveCreateRequest,
    LeaveCreditsResponse,
    LeaveRead,
    OkResponse,
    OvertimeCreateRequest,
    OvertimeRead,
)
from hrpay.security import (
    create_employee_token,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_employee,
)
from hrpay.services.approvals import create_overtime_request
from hrpay.services.leaves import create_leave_request, get_employee_leave_credits
from hrpay.services.timeclock import clock_in, clock_out, get_current_entry
from hrpay.services.users import authenticate_employee, change_employee_password, record_employee_first_login

router = APIRouter(prefix="/api/employee", tags=["employee"])


@router.post("/login", response_model=EmployeeTokenResponse)
def employee_login(
    payload: EmployeeLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeTokenResponse:
    ip = client_ip(request)
    if ip:
        ensure_login_attempt_allowed(ip)

    employee = authenticate_employee(db, employee_code=payload.employee_id, password=payload.password)
    if employee is None:
        if ip:
            register_login_failure(ip)
        audit_request(
            db,
            request,
            actor_type=AuditActorType.SYSTEM,
            actor_id=payload.employee_id,
            action="EMPLOYEE_LOGIN_FAIL",
            success=False,
            details={"reason": "INVALID_CREDENTIALS"},
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid employee ID or password.")

    if ip:
        register_login_success(ip)
    token, expires_in = create_employee_token(
        employee_pk=employee.id,
        employee_code=employee.employee_id,
        full_name=employee.full_name,
    )
    request.state.actor = "employee"
    request.state.actor_id = employee.employee_id
    return EmployeeTokenResponse(
        access_token=token,
        expires_in=expires_in,
        employee=EmployeeRead.model_validate(employee),
    )


@router.post("/change-password", response_model=OkResponse)
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> OkResponse:
    change_employee_password(
        db,
        employee,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    audit_request(
        db,
        request,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=employee.employee_id,
        action="EMPLOYEE_PASSWORD_CHANGED",
        success=True,
        entity_type="employee",
        entity_id=employee.id,
    )
    return OkResponse()


@router.post("/first-login", response_model=FirstLoginResponse)
def first_login(
    payload: FirstLoginRequest,
    request: Request,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> FirstLoginResponse:
    result = record_employee_first_login(
        db,
        employee,
        ip_address=client_ip(request),
        user_agent=payload.user_agent or user_agent(request),
        device_info=payload.model_dump(exclude={"user_agent"}),
    )
    return FirstLoginResponse(**result)


@router.get("/clock/current", response_model=ClockEntryRead | None)
def current_clock_entry(
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> ClockEntryRead | None:
    entry = get_current_entry(db, employee.id)
    return ClockEntryRead.model_validate(entry) if entry is not None else None


@router.post("/clock-in", response_model=ClockEntryRead)
def clock_in_endpoint(
    payload: ClockRequest,
    request: Request,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> ClockEntryRead:
    entry = clock_in(
        db,
        employee,
        location=payload.location,
        notes=payload.notes,
        device=payload.device or user_agent(request),
        ip=client_ip(request),
    )
    request.state.event_id = entry.id
    return ClockEntryRead.model_validate(entry)


@router.post("/clock-out", response_model=ClockEntryRead)
def clock_out_endpoint(
    payload: ClockRequest,
    request: Request,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> ClockEntryRead:
    entry = clock_out(db, employee, location=payload.location, notes=payload.notes)
    request.state.event_id = entry.id
    return ClockEntryRead.model_validate(entry)


@router.get("/leave-credits", response_model=LeaveCreditsResponse)
def leave_credits(
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> LeaveCreditsResponse:
    return LeaveCreditsResponse(**get_employee_leave_credits(db, employee))


@router.post("/leave-requests", response_model=LeaveRead, status_code=201)
def create_leave(
    payload: LeaveCreateRequest,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = create_leave_request(
        db,
        employee,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    return LeaveRead.model_validate(leave)


@router.post("/overtime-requests", response_model=OvertimeRead, status_code=201)
def create_overtime(
    payload: OvertimeCreateRequest,
    employee: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
) -> OvertimeRead:
    request_row = create_overtime_request(
        db,
        employee,
        ot_date=payload.ot_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        reason=payload.reason,
    )
    return OvertimeRead.model_validate(request_row)
