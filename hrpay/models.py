from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrpay.db import Base


def _uuid_str() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    HR = "hr"
    ACCOUNT_MANAGER = "account_manager"
    APPROVER = "approver"
    VIEWER = "viewer"
    OT_APPROVER = "ot_approver"
    OT_VIEWER = "ot_viewer"


class EmployeeType(str, enum.Enum):
    OFFICE_BASED = "office-based"
    CLIENT_BASED = "client-based"


class JobLevel(str, enum.Enum):
    RANK_AND_FILE = "rank_and_file"
    ACCOUNT_SUPERVISOR = "account_supervisor"
    SUPERVISORY = "supervisory"
    MANAGERIAL = "managerial"


class ClockEntryStatus(str, enum.Enum):
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"
    APPROVED = "approved"
    AUTO_APPROVED = "auto_approved"
    PENDING = "pending"
    REJECTED = "rejected"


class TimesheetStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"


class LeaveType(str, enum.Enum):
    SIL = "SIL"
    SICK = "SICK"
    EMERGENCY = "EMERGENCY"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    UNPAID = "UNPAID"


class AuditActorType(str, enum.Enum):
    USER = "USER"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"


def _str_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=32,
    )


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(_str_enum(UserRole, "user_role"), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    can_access_salary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    approver_groups: Mapped[list[OvertimeGroup]] = relationship(
        back_populates="approver",
        foreign_keys="OvertimeGroup.approver_id",
    )
    viewer_groups: Mapped[list[OvertimeGroup]] = relationship(
        back_populates="viewer",
        foreign_keys="OvertimeGroup.viewer_id",
    )


class OvertimeGroup(Base):
    __tablename__ = "overtime_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    approver_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    viewer_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    approver: Mapped[User | None] = relationship(back_populates="approver_groups", foreign_keys=[approver_id])
    viewer: Mapped[User | None] = relationship(back_populates="viewer_groups", foreign_keys=[viewer_id])
    employees: Mapped[list[Employee]] = relationship(back_populates="overtime_group")


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    middle_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_type: Mapped[EmployeeType] = mapped_column(
        _str_enum(EmployeeType, "employee_type"),
        nullable=False,
        default=EmployeeType.OFFICE_BASED,
    )
    job_level: Mapped[JobLevel] = mapped_column(
        _str_enum(JobLevel, "job_level"),
        nullable=False,
        default=JobLevel.RANK_AND_FILE,
    )
    rate_per_day: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    rate_per_hour: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    overtime_group_id: Mapped[int | None] = mapped_column(
        ForeignKey("overtime_groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sil_credits: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    sil_balance_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sil_last_accrual: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    overtime_group: Mapped[OvertimeGroup | None] = relationship(back_populates="employees")
    clock_entries: Mapped[list[TimeClockEntry]] = relationship(back_populates="employee")
    schedules: Mapped[list[EmployeeSchedule]] = relationship(back_populates="employee")
    location_assignments: Mapped[list[EmployeeLocationAssignment]] = relationship(back_populates="employee")


class EmployeeLoginRecord(Base):
    __tablename__ = "employee_login_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    logged_in_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    is_first_login: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    device_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class OfficeLocation(Base):
    __tablename__ = "office_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius_meters: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class EmployeeLocationAssignment(Base):
    __tablename__ = "employee_location_assignments"
    __table_args__ = (UniqueConstraint("employee_id", "location_id", name="uq_employee_location"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    location_id: Mapped[int] = mapped_column(ForeignKey("office_locations.id", ondelete="CASCADE"), nullable=False)

    employee: Mapped[Employee] = relationship(back_populates="location_assignments")
    location: Mapped[OfficeLocation] = relationship()


class TimeClockEntry(Base):
    __tablename__ = "time_clock_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    clock_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    clock_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clock_in_location: Mapped[str | None] = mapped_column(String(64), nullable=True)
    clock_out_location: Mapped[str | None] = mapped_column(String(64), nullable=True)
    location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_within_allowed_area: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    clock_in_device: Mapped[str | None] = mapped_column(String(255), nullable=True)
    clock_in_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_break_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    regular_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    overtime_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_night_diff_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[ClockEntryStatus] = mapped_column(
        _str_enum(ClockEntryStatus, "clock_entry_status"),
        nullable=False,
        default=ClockEntryStatus.CLOCKED_IN,
    )
    is_manual_entry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    employee_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    hr_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    employee: Mapped[Employee] = relationship(back_populates="clock_entries")


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_regular: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class EmployeeSchedule(Base):
    __tablename__ = "employee_schedules"
    __table_args__ = (UniqueConstraint("employee_id", "schedule_date", name="uq_employee_schedule_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_rest_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    employee: Mapped[Employee] = relationship(back_populates="schedules")


class OvertimeRequest(Base):
    __tablename__ = "overtime_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    ot_hours: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending", index=True)
    approved_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    employee: Mapped[Employee] = relationship()


class FundRequest(Base):
    __tablename__ = "fund_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    requested_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    po_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    po_amount: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True)
    details: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_requested_amount: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False)
    date_needed: Mapped[date] = mapped_column(Date, nullable=False)
    urgent_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="pending", index=True)
    project_manager_approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    project_manager_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    purchasing_officer_approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    purchasing_officer_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    management_approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    management_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[LeaveType] = mapped_column(_str_enum(LeaveType, "leave_type"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="pending", index=True)
    account_manager_approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    account_manager_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hr_approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    hr_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    employee: Mapped[Employee] = relationship()


class WeeklyAttendance(Base):
    __tablename__ = "weekly_attendance"
    __table_args__ = (UniqueConstraint("employee_id", "period_start", name="uq_weekly_attendance_period"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_type: Mapped[str] = mapped_column(String(16), nullable=False, default="bimonthly")
    attendance_data: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_regular_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_night_diff_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    gross_pay: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    status: Mapped[TimesheetStatus] = mapped_column(
        _str_enum(TimesheetStatus, "timesheet_status"),
        nullable=False,
        default=TimesheetStatus.DRAFT,
    )
    source_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


class PasswordResetRequest(Base):
    __tablename__ = "password_reset_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    actor_type: Mapped[AuditActorType] = mapped_column(
        _str_enum(AuditActorType, "audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
