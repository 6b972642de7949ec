from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrpay.models import EmployeeType, JobLevel, LeaveType, UserRole


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class UserRead(BaseModel):
    id: str
    email: str
    full_name: str
    role: UserRole
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    user: UserRead


class MeResponse(BaseModel):
    id: str
    role: str
    email: str | None = None
    full_name: str | None = None


class ResetRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str


class OkResponse(BaseModel):
    ok: bool = True


class UserCreateRequest(BaseModel):
    # Presence is validated by the service so the caller gets one list of missing fields.
    email: str | None = None
    full_name: str | None = None
    password: str | None = None
    role: str | None = None
    ot_groups: list[int] = Field(default_factory=list)


class UserCreateResponse(BaseModel):
    success: bool = True
    user: UserRead


class UserDeleteRequest(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class UserStatusUpdateRequest(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")
    is_active: bool | None = None

    model_config = ConfigDict(populate_by_name=True)


class UserMutationResponse(BaseModel):
    success: bool = True
    message: str
    user: UserRead | None = None


class EmployeeLoginRequest(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=255)


class EmployeeRead(BaseModel):
    id: str
    employee_id: str
    full_name: str
    employee_type: EmployeeType | None = None
    job_level: JobLevel | None = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class EmployeeTokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    employee: EmployeeRead


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class FirstLoginRequest(BaseModel):
    user_agent: str | None = None
    device_info: str | None = None
    browser_name: str | None = None
    browser_version: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    device_type: str | None = None


class FirstLoginResponse(BaseModel):
    success: bool
    is_first_login: bool
    message: str


class ClockRequest(BaseModel):
    location: str | None = Field(default=None, max_length=64, description='GPS as "lat,lng"')
    notes: str | None = Field(default=None, max_length=2000)
    device: str | None = Field(default=None, max_length=255)


class ClockEntryRead(BaseModel):
    id: str
    employee_id: str
    clock_in_time: datetime
    clock_out_time: datetime | None = None
    location_name: str | None = None
    is_within_allowed_area: bool
    total_break_minutes: int | None = None
    total_hours: float | None = None
    regular_hours: float | None = None
    overtime_hours: float | None = None
    total_night_diff_hours: float | None = None
    status: str
    employee_notes: str | None = None
    hr_notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class EntryDecisionRequest(BaseModel):
    hr_notes: str | None = None


class LeaveCreditsResponse(BaseModel):
    employee_id: str
    sil_credits: float
    year: int | None = None
    pending_sil_days: float
    available_sil_days: float
    last_accrual: str | None = None


class AutoGenerateRequest(BaseModel):
    period_start: date
    period_end: date
    employee_ids: list[str] | None = None
    overwrite_existing: bool = False


class AttendanceDayRead(BaseModel):
    date: str
    dayType: str
    regularHours: int
    overtimeHours: int
    nightDiffHours: int


class TimesheetRead(BaseModel):
    employee_id: str
    period_start: date
    period_end: date
    period_label: str
    attendance_data: list[AttendanceDayRead]
    total_regular_hours: int
    total_overtime_hours: int
    total_night_diff_hours: int
    days_worked: int
    source_fingerprint: str
    snapshot_status: str | None = None
    snapshot_in_sync: bool | None = None


class ClockValidationRead(BaseModel):
    employee_id: str
    period_start: date
    period_end: date
    is_valid: bool
    missing_days: list[date]
    incomplete_entries: list[date]


class OvertimeCreateRequest(BaseModel):
    ot_date: date
    start_time: time
    end_time: time
    reason: str | None = Field(default=None, max_length=2000)


class OvertimeRead(BaseModel):
    id: str
    employee_id: str
    ot_date: date
    end_date: date
    start_time: time
    end_time: time
    ot_hours: float
    reason: str | None = None
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class RejectRequest(BaseModel):
    # Blank reasons are rejected by the approval chain with REASON_REQUIRED.
    reason: str | None = Field(default=None, max_length=2000)


class FundLineItem(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(gt=0)


class FundRequestCreate(BaseModel):
    purpose: str = Field(min_length=1, max_length=2000)
    details: list[FundLineItem] = Field(min_length=1)
    date_needed: date
    request_date: date | None = None
    po_number: str | None = None
    project_title: str | None = None
    project_location: str | None = None
    po_amount: Decimal | None = None
    urgent_reason: str | None = None


class FundApproveRequest(BaseModel):
    target_status: Literal[
        "project_manager_approved",
        "purchasing_officer_approved",
        "management_approved",
    ] | None = None


class FundRequestRead(BaseModel):
    id: str
    requested_by: str | None = None
    request_date: date
    purpose: str
    details: list[dict[str, Any]]
    total_requested_amount: Decimal
    date_needed: date
    status: str
    project_manager_approved_by: str | None = None
    purchasing_officer_approved_by: str | None = None
    management_approved_by: str | None = None
    rejection_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveCreateRequest(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def validate_range(self) -> "LeaveCreateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class LeaveRead(BaseModel):
    id: str
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: float
    reason: str | None = None
    status: str
    rejection_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeCreateRequest(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    first_name: str = Field(min_length=1, max_length=255)
    middle_name: str | None = Field(default=None, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    employee_type: EmployeeType = EmployeeType.OFFICE_BASED
    job_level: JobLevel = JobLevel.RANK_AND_FILE
    rate_per_day: Decimal | None = Field(default=None, ge=0)
    rate_per_hour: Decimal | None = Field(default=None, ge=0)
    hire_date: date | None = None
    overtime_group_id: int | None = Field(default=None, ge=1)
    location_ids: list[int] = Field(default_factory=list)
    password: str | None = Field(default=None, max_length=255)


class EmployeeUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=255)
    middle_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    employee_type: EmployeeType | None = None
    job_level: JobLevel | None = None
    rate_per_day: Decimal | None = Field(default=None, ge=0)
    rate_per_hour: Decimal | None = Field(default=None, ge=0)
    hire_date: date | None = None
    overtime_group_id: int | None = Field(default=None, ge=1)
    is_active: bool | None = None
    location_ids: list[int] | None = None


class EmployeeDetailRead(EmployeeRead):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    rate_per_day: Decimal | None = None
    rate_per_hour: Decimal | None = None
    hire_date: date | None = None
    overtime_group_id: int | None = None
    location_ids: list[int] = Field(default_factory=list)


class OfficeLocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=512)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_meters: int = Field(default=100, ge=10, le=10000)


class OfficeLocationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=512)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    radius_meters: int | None = Field(default=None, ge=10, le=10000)
    is_active: bool | None = None


class OfficeLocationRead(BaseModel):
    id: int
    name: str
    address: str | None = None
    latitude: float
    longitude: float
    radius_meters: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class HolidayWrite(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: Literal["regular", "non-working"] = "regular"


class HolidayRead(BaseModel):
    holiday_date: date
    name: str
    type: Literal["regular", "non-working"]


class ScheduleDayWrite(BaseModel):
    schedule_date: date
    is_rest_day: bool = False
    start_time: time | None = None
    end_time: time | None = None


class ScheduleSaveRequest(BaseModel):
    days: list[ScheduleDayWrite] = Field(min_length=1, max_length=62)


class ScheduleDayRead(BaseModel):
    schedule_date: date
    is_rest_day: bool
    start_time: time | None = None
    end_time: time | None = None

    model_config = ConfigDict(from_attributes=True)


class OvertimeGroupWrite(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    approver_id: str | None = None
    viewer_id: str | None = None


class OvertimeGroupRead(BaseModel):
    id: int
    name: str
    approver_id: str | None = None
    viewer_id: str | None = None

    model_config = ConfigDict(from_attributes=True)
