from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import Employee, LeaveRequest, LeaveType
from hrpay.services.approvals import LEAVE_CHAIN, STATUS_PENDING
from hrpay.settings import get_attendance_timezone, get_settings

logger = logging.getLogger("hrpay.leaves")


def _local_today() -> date:
    return datetime.now(timezone.utc).astimezone(get_attendance_timezone()).date()


def _years_of_service(hire_date: date | None, today: date) -> int:
    if hire_date is None:
        return 0
    years = today.year - hire_date.year
    if (today.month, today.day) < (hire_date.month, hire_date.day):
        years -= 1
    return max(0, years)


def refresh_employee_leave_balances(db: Session, employee: Employee, today: date | None = None) -> bool:
    """Roll SIL credits over to the current year.

    Unused credits from a previous year do not carry over. Employees with at
    least one year of service receive the annual entitlement. Returns whether
    anything changed.
    """
    current_day = today or _local_today()
    if employee.sil_balance_year == current_day.year:
        return False

    granted = 0.0
    if _years_of_service(employee.hire_date, current_day) >= 1:
        granted = float(get_settings().sil_annual_days)

    previous_credits = float(employee.sil_credits or 0)
    employee.sil_credits = granted
    employee.sil_balance_year = current_day.year
    employee.sil_last_accrual = current_day
    db.commit()
    logger.info(
        "sil_balance_refreshed",
        extra={
            "employee_id": employee.id,
            "year": current_day.year,
            "previous_credits": previous_credits,
            "granted": granted,
        },
    )
    return True


def _pending_sil_days(db: Session, employee_id: str) -> float:
    open_statuses = [STATUS_PENDING, *(stage.status for stage in LEAVE_CHAIN.stages[:-1])]
    total = db.scalar(
        select(func.coalesce(func.sum(LeaveRequest.total_days), 0)).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.leave_type == LeaveType.SIL,
            LeaveRequest.status.in_(open_statuses),
        )
    )
    return float(total or 0)


def get_employee_leave_credits(db: Session, employee: Employee, today: date | None = None) -> dict[str, Any]:
    refresh_employee_leave_balances(db, employee, today)
    credits = float(employee.sil_credits or 0)
    pending = _pending_sil_days(db, employee.id)
    return {
        "employee_id": employee.id,
        "sil_credits": credits,
        "year": employee.sil_balance_year,
        "pending_sil_days": pending,
        "available_sil_days": max(0.0, credits - pending),
        "last_accrual": employee.sil_last_accrual.isoformat() if employee.sil_last_accrual else None,
    }


def create_leave_request(
    db: Session,
    employee: Employee,
    *,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: str | None = None,
) -> LeaveRequest:
    if end_date < start_date:
        raise ApiError(
            status_code=422,
            code="INVALID_DATE_RANGE",
            message="end_date must be greater than or equal to start_date.",
        )

    total_days = float((end_date - start_date).days + 1)
    if leave_type == LeaveType.SIL:
        credits = get_employee_leave_credits(db, employee)
        if total_days > credits["available_sil_days"]:
            raise ApiError(
                status_code=422,
                code="INSUFFICIENT_LEAVE_CREDITS",
                message="Not enough SIL credits for this request.",
                details={"requested": total_days, "available": credits["available_sil_days"]},
            )

    leave = LeaveRequest(
        employee_id=employee.id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        reason=(reason or "").strip() or None,
        status=STATUS_PENDING,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    return leave


def _get_leave(db: Session, leave_id: str) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise ApiError(status_code=404, code="LEAVE_NOT_FOUND", message="Leave request not found.")
    return leave


def approve_leave_request(
    db: Session,
    leave_id: str,
    *,
    actor_id: str,
    actor_role: str,
    now: datetime | None = None,
) -> LeaveRequest:
    leave = _get_leave(db, leave_id)
    stage = LEAVE_CHAIN.advance(leave, actor_id=actor_id, actor_role=actor_role, now=now)
    if stage.status == LEAVE_CHAIN.final_status and leave.leave_type == LeaveType.SIL:
        employee = db.get(Employee, leave.employee_id)
        if employee is not None:
            employee.sil_credits = max(0.0, float(employee.sil_credits or 0) - float(leave.total_days))
    db.commit()
    db.refresh(leave)
    logger.info(
        "leave_request_advanced",
        extra={"leave_id": leave.id, "status": leave.status, "actor_id": actor_id},
    )
    return leave


def reject_leave_request(
    db: Session,
    leave_id: str,
    *,
    actor_id: str,
    actor_role: str,
    reason: str,
    now: datetime | None = None,
) -> LeaveRequest:
    leave = _get_leave(db, leave_id)
    LEAVE_CHAIN.reject(leave, actor_id=actor_id, actor_role=actor_role, reason=reason, now=now)
    db.commit()
    db.refresh(leave)
    logger.info("leave_request_rejected", extra={"leave_id": leave.id, "actor_id": actor_id})
    return leave
