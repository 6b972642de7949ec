from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.models import AuditActorType, UserRole
from hrpay.schemas import (
    ClockEntryRead,
    EntryDecisionRequest,
    FundApproveRequest,
    FundRequestCreate,
    FundRequestRead,
    LeaveRead,
    OvertimeRead,
    RejectRequest,
)
from hrpay.security import CurrentUser, require_roles, require_user
from hrpay.services.approvals import (
    approve_fund_request,
    approve_overtime_request,
    create_fund_request,
    reject_fund_request,
    reject_overtime_request,
)
from hrpay.services.leaves import approve_leave_request, reject_leave_request
from hrpay.services.timeclock import approve_entry, reject_entry

router = APIRouter(prefix="/api/requests", tags=["requests"])
require_hr = require_roles(UserRole.ADMIN, UserRole.HR)


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
        success=True,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )


@router.post("/overtime/{overtime_id}/approve", response_model=OvertimeRead)
def approve_overtime(
    overtime_id: str,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OvertimeRead:
    record = approve_overtime_request(db, overtime_id, actor_id=current.id, actor_role=current.role)
    _audit(db, request, current, action="OVERTIME_APPROVED", entity_type="overtime_request", entity_id=record.id)
    return OvertimeRead.model_validate(record)


@router.post("/overtime/{overtime_id}/reject", response_model=OvertimeRead)
def reject_overtime(
    overtime_id: str,
    payload: RejectRequest,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OvertimeRead:
    record = reject_overtime_request(
        db,
        overtime_id,
        actor_id=current.id,
        actor_role=current.role,
        reason=payload.reason or "",
    )
    _audit(db, request, current, action="OVERTIME_REJECTED", entity_type="overtime_request", entity_id=record.id)
    return OvertimeRead.model_validate(record)


@router.post("/fund", response_model=FundRequestRead, status_code=status.HTTP_201_CREATED)
def create_fund(
    payload: FundRequestCreate,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> FundRequestRead:
    record = create_fund_request(
        db,
        requested_by=current.id,
        purpose=payload.purpose,
        details=[item.model_dump(mode="json") for item in payload.details],
        date_needed=payload.date_needed,
        request_date=payload.request_date,
        po_number=payload.po_number,
        project_title=payload.project_title,
        project_location=payload.project_location,
        po_amount=payload.po_amount,
        urgent_reason=payload.urgent_reason,
    )
    _audit(
        db,
        request,
        current,
        action="FUND_REQUEST_CREATED",
        entity_type="fund_request",
        entity_id=record.id,
        details={"total": str(record.total_requested_amount)},
    )
    return FundRequestRead.model_validate(record)


@router.post("/fund/{fund_id}/approve", response_model=FundRequestRead)
def approve_fund(
    fund_id: str,
    request: Request,
    payload: FundApproveRequest | None = None,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> FundRequestRead:
    record = approve_fund_request(
        db,
        fund_id,
        actor_id=current.id,
        actor_role=current.role,
        target_status=payload.target_status if payload else None,
    )
    _audit(
        db,
        request,
        current,
        action="FUND_REQUEST_APPROVED",
        entity_type="fund_request",
        entity_id=record.id,
        details={"status": record.status},
    )
    return FundRequestRead.model_validate(record)


@router.post("/fund/{fund_id}/reject", response_model=FundRequestRead)
def reject_fund(
    fund_id: str,
    payload: RejectRequest,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> FundRequestRead:
    record = reject_fund_request(
        db,
        fund_id,
        actor_id=current.id,
        actor_role=current.role,
        reason=payload.reason or "",
    )
    _audit(db, request, current, action="FUND_REQUEST_REJECTED", entity_type="fund_request", entity_id=record.id)
    return FundRequestRead.model_validate(record)


@router.post("/leave/{leave_id}/approve", response_model=LeaveRead)
def approve_leave(
    leave_id: str,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> LeaveRead:
    record = approve_leave_request(db, leave_id, actor_id=current.id, actor_role=current.role)
    _audit(
        db,
        request,
        current,
        action="LEAVE_APPROVED",
        entity_type="leave_request",
        entity_id=record.id,
        details={"status": record.status},
    )
    return LeaveRead.model_validate(record)


@router.post("/leave/{leave_id}/reject", response_model=LeaveRead)
def reject_leave(
    leave_id: str,
    payload: RejectRequest,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> LeaveRead:
    record = reject_leave_request(
        db,
        leave_id,
        actor_id=current.id,
        actor_role=current.role,
        reason=payload.reason or "",
    )
    _audit(db, request, current, action="LEAVE_REJECTED", entity_type="leave_request", entity_id=record.id)
    return LeaveRead.model_validate(record)


@router.post("/time-entries/{entry_id}/approve", response_model=ClockEntryRead)
def approve_time_entry(
    entry_id: str,
    request: Request,
    payload: EntryDecisionRequest | None = None,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> ClockEntryRead:
    entry = approve_entry(db, entry_id, approver_id=current.id, hr_notes=payload.hr_notes if payload else None)
    _audit(db, request, current, action="TIME_ENTRY_APPROVED", entity_type="time_clock_entry", entity_id=entry.id)
    return ClockEntryRead.model_validate(entry)


@router.post("/time-entries/{entry_id}/reject", response_model=ClockEntryRead)
def reject_time_entry(
    entry_id: str,
    payload: EntryDecisionRequest,
    request: Request,
    current: CurrentUser = Depends(require_hr),
    db: Session = Depends(get_db),
) -> ClockEntryRead:
    entry = reject_entry(db, entry_id, approver_id=current.id, hr_notes=payload.hr_notes or "")
    _audit(db, request, current, action="TIME_ENTRY_REJECTED", entity_type="time_clock_entry", entity_id=entry.id)
    return ClockEntryRead.model_validate(entry)
