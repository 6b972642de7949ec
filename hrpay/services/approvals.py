"""Multi-stage approval workflows for overtime, fund and leave requests.

Every workflow is a linear chain ``pending -> stage 1 -> ... -> final``.
A request moves forward one stage at a time and can be rejected from any
non-final state; rejection is terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import Employee, FundRequest, OvertimeGroup, OvertimeRequest, UserRole

logger = logging.getLogger("hrpay.approvals")

STATUS_PENDING = "pending"
STATUS_REJECTED = "rejected"


@dataclass(frozen=True)
class ApprovalStage:
    status: str
    field_prefix: str
    roles: frozenset[str]


class ApprovalChain:
    def __init__(self, name: str, stages: Iterable[ApprovalStage]):
        self.name = name
        self.stages: tuple[ApprovalStage, ...] = tuple(stages)
        if not self.stages:
            raise ValueError("An approval chain needs at least one stage.")

    @property
    def final_status(self) -> str:
        return self.stages[-1].status

    @property
    def statuses(self) -> tuple[str, ...]:
        return (STATUS_PENDING, *(stage.status for stage in self.stages), STATUS_REJECTED)

    def next_stage(self, current_status: str) -> ApprovalStage | None:
        if current_status == STATUS_PENDING:
            return self.stages[0]
        for index, stage in enumerate(self.stages[:-1]):
            if stage.status == current_status:
                return self.stages[index + 1]
        return None

    def is_open(self, current_status: str) -> bool:
        return current_status not in (self.final_status, STATUS_REJECTED)

    def _invalid(self, current_status: str, target: str) -> ApiError:
        return ApiError(
            status_code=409,
            code="INVALID_TRANSITION",
            message=f"Cannot move {self.name} request from '{current_status}' to '{target}'.",
        )

    def advance(
        self,
        record: Any,
        *,
        actor_id: str,
        actor_role: str,
        target_status: str | None = None,
        now: datetime | None = None,
    ) -> ApprovalStage:
        current_status = str(record.status or STATUS_PENDING)
        stage = self.next_stage(current_status)
        if stage is None or (target_status is not None and target_status != stage.status):
            raise self._invalid(current_status, target_status or "next stage")
        if actor_role not in stage.roles:
            raise ApiError(
                status_code=403,
                code="FORBIDDEN",
                message=f"Your role cannot approve the '{stage.status}' stage.",
            )

        record.status = stage.status
        setattr(record, f"{stage.field_prefix}_by", actor_id)
        setattr(record, f"{stage.field_prefix}_at", now or datetime.now(timezone.utc))
        return stage

    def reject(
        self,
        record: Any,
        *,
        actor_id: str,
        actor_role: str,
        reason: str,
        now: datetime | None = None,
    ) -> None:
        """Reject an open request; only roles that could sign the next stage may reject it."""
        current_status = str(record.status or STATUS_PENDING)
        if not self.is_open(current_status):
            raise self._invalid(current_status, STATUS_REJECTED)
        stage = self.next_stage(current_status)
        if stage is None or actor_role not in stage.roles:
            raise ApiError(
                status_code=403,
                code="FORBIDDEN",
                message="Your role cannot reject this request at its current stage.",
            )
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ApiError(
                status_code=422,
                code="REASON_REQUIRED",
                message="A rejection reason is required.",
            )
        record.status = STATUS_REJECTED
        record.rejected_by = actor_id
        record.rejected_at = now or datetime.now(timezone.utc)
        record.rejection_reason = cleaned


_MANAGERS = frozenset({UserRole.ADMIN.value, UserRole.ACCOUNT_MANAGER.value, UserRole.APPROVER.value})

OVERTIME_CHAIN = ApprovalChain(
    "overtime",
    [
        ApprovalStage(
            status="approved",
            field_prefix="approved",
            roles=frozenset({UserRole.ADMIN.value, UserRole.HR.value, UserRole.OT_APPROVER.value}),
        ),
    ],
)

FUND_REQUEST_CHAIN = ApprovalChain(
    "fund",
    [
        ApprovalStage("project_manager_approved", "project_manager_approved", _MANAGERS),
        ApprovalStage(
            "purchasing_officer_approved",
            "purchasing_officer_approved",
            frozenset({UserRole.ADMIN.value, UserRole.APPROVER.value}),
        ),
        ApprovalStage("management_approved", "management_approved", frozenset({UserRole.ADMIN.value})),
    ],
)

LEAVE_CHAIN = ApprovalChain(
    "leave",
    [
        ApprovalStage("approved_by_manager", "account_manager_approved", _MANAGERS),
        ApprovalStage(
            "approved_by_hr",
            "hr_approved",
            frozenset({UserRole.ADMIN.value, UserRole.HR.value}),
        ),
    ],
)


def compute_ot_window(ot_date: date, start_time: time, end_time: time) -> tuple[date, float]:
    """Return the end date and hours of an OT window; an end before the start rolls to the next day."""
    start_dt = datetime.combine(ot_date, start_time)
    end_date = ot_date
    end_dt = datetime.combine(end_date, end_time)
    if end_dt <= start_dt:
        end_date = ot_date + timedelta(days=1)
        end_dt = datetime.combine(end_date, end_time)
    hours = round((end_dt - start_dt).total_seconds() / 3600, 2)
    return end_date, hours


def _get_or_404(db: Session, model: type, pk: str, label: str) -> Any:
    record = db.get(model, pk)
    if record is None:
        raise ApiError(status_code=404, code=f"{label.upper()}_NOT_FOUND", message=f"{label.title()} request not found.")
    return record


def create_overtime_request(
    db: Session,
    employee: Employee,
    *,
    ot_date: date,
    start_time: time,
    end_time: time,
    reason: str | None = None,
) -> OvertimeRequest:
    end_date, hours = compute_ot_window(ot_date, start_time, end_time)
    if hours <= 0:
        raise ApiError(status_code=422, code="INVALID_OT_WINDOW", message="Overtime window must be positive.")

    request = OvertimeRequest(
        employee_id=employee.id,
        ot_date=ot_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
        ot_hours=hours,
        reason=(reason or "").strip() or None,
        status=STATUS_PENDING,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def _can_approve_overtime(db: Session, request: OvertimeRequest, actor_id: str, actor_role: str) -> bool:
    if actor_role in (UserRole.ADMIN.value, UserRole.HR.value):
        return True
    if actor_role != UserRole.OT_APPROVER.value:
        return False
    employee = db.get(Employee, request.employee_id)
    if employee is None or employee.overtime_group_id is None:
        return False
    group = db.get(OvertimeGroup, employee.overtime_group_id)
    return group is not None and group.approver_id == actor_id


def approve_overtime_request(
    db: Session,
    request_id: str,
    *,
    actor_id: str,
    actor_role: str,
    now: datetime | None = None,
) -> OvertimeRequest:
    request: OvertimeRequest = _get_or_404(db, OvertimeRequest, request_id, "overtime")
    if not _can_approve_overtime(db, request, actor_id, actor_role):
        raise ApiError(status_code=403, code="FORBIDDEN", message="You are not the approver for this employee.")
    OVERTIME_CHAIN.advance(request, actor_id=actor_id, actor_role=actor_role, now=now)
    db.commit()
    db.refresh(request)
    logger.info("overtime_request_approved", extra={"request_id": request.id, "actor_id": actor_id})
    return request


def reject_overtime_request(
    db: Session,
    request_id: str,
    *,
    actor_id: str,
    actor_role: str,
    reason: str,
    now: datetime | None = None,
) -> OvertimeRequest:
    request: OvertimeRequest = _get_or_404(db, OvertimeRequest, request_id, "overtime")
    if not _can_approve_overtime(db, request, actor_id, actor_role):
        raise ApiError(status_code=403, code="FORBIDDEN", message="You are not the approver for this employee.")
    OVERTIME_CHAIN.reject(request, actor_id=actor_id, actor_role=actor_role, reason=reason, now=now)
    db.commit()
    db.refresh(request)
    logger.info("overtime_request_rejected", extra={"request_id": request.id, "actor_id": actor_id})
    return request


def create_fund_request(
    db: Session,
    *,
    requested_by: str,
    purpose: str,
    details: list[dict[str, Any]],
    date_needed: date,
    request_date: date | None = None,
    po_number: str | None = None,
    project_title: str | None = None,
    project_location: str | None = None,
    po_amount: Decimal | None = None,
    urgent_reason: str | None = None,
) -> FundRequest:
    if not details:
        raise ApiError(status_code=422, code="DETAILS_REQUIRED", message="At least one line item is required.")
    total = sum((Decimal(str(item.get("amount") or 0)) for item in details), Decimal("0"))
    if total <= 0:
        raise ApiError(status_code=422, code="INVALID_AMOUNT", message="Total requested amount must be positive.")

    fund_request = FundRequest(
        requested_by=requested_by,
        request_date=request_date or datetime.now(timezone.utc).date(),
        purpose=purpose.strip(),
        po_number=po_number,
        project_title=project_title,
        project_location=project_location,
        po_amount=po_amount,
        details=details,
        total_requested_amount=total,
        date_needed=date_needed,
        urgent_reason=urgent_reason,
        status=STATUS_PENDING,
    )
    db.add(fund_request)
    db.commit()
    db.refresh(fund_request)
    return fund_request


def approve_fund_request(
    db: Session,
    request_id: str,
    *,
    actor_id: str,
    actor_role: str,
    target_status: str | None = None,
    now: datetime | None = None,
) -> FundRequest:
    fund_request: FundRequest = _get_or_404(db, FundRequest, request_id, "fund")
    stage = FUND_REQUEST_CHAIN.advance(
        fund_request,
        actor_id=actor_id,
        actor_role=actor_role,
        target_status=target_status,
        now=now,
    )
    db.commit()
    db.refresh(fund_request)
    logger.info(
        "fund_request_advanced",
        extra={"request_id": fund_request.id, "status": stage.status, "actor_id": actor_id},
    )
    return fund_request


def reject_fund_request(
    db: Session,
    request_id: str,
    *,
    actor_id: str,
    actor_role: str,
    reason: str,
    now: datetime | None = None,
) -> FundRequest:
    fund_request: FundRequest = _get_or_404(db, FundRequest, request_id, "fund")
    FUND_REQUEST_CHAIN.reject(
        fund_request,
        actor_id=actor_id,
        actor_role=actor_role,
        reason=reason,
        now=now,
    )
    db.commit()
    db.refresh(fund_request)
    logger.info("fund_request_rejected", extra={"request_id": fund_request.id, "actor_id": actor_id})
    return fund_request
