"""Initial payroll and timesheet schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-01 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("can_access_salary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "overtime_groups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("approver_id", sa.String(length=36), nullable=True),
        sa.Column("viewer_id", sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(["approver_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["viewer_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("name", name="uq_overtime_groups_name"),
    )
    op.create_index("ix_overtime_groups_approver_id", "overtime_groups", ["approver_id"], unique=False)
    op.create_index("ix_overtime_groups_viewer_id", "overtime_groups", ["viewer_id"], unique=False)

    op.create_table(
        "employees",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("middle_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("employee_type", sa.String(length=32), nullable=False, server_default="office-based"),
        sa.Column("job_level", sa.String(length=32), nullable=False, server_default="rank_and_file"),
        sa.Column("rate_per_day", sa.Numeric(12, 2), nullable=True),
        sa.Column("rate_per_hour", sa.Numeric(12, 2), nullable=True),
        sa.Column("overtime_group_id", sa.Integer(), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("sil_credits", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("sil_balance_year", sa.Integer(), nullable=True),
        sa.Column("sil_last_accrual", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.ForeignKeyConstraint(["overtime_group_id"], ["overtime_groups.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_employees_employee_id", "employees", ["employee_id"], unique=True)
    op.create_index("ix_employees_overtime_group_id", "employees", ["overtime_group_id"], unique=False)

    op.create_table(
        "employee_login_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("logged_in_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_first_login", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("device_info", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_employee_login_records_employee_id",
        "employee_login_records",
        ["employee_id"],
        unique=False,
    )

    op.create_table(
        "office_locations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("radius_meters", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "employee_location_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["office_locations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "location_id", name="uq_employee_location"),
    )

    op.create_table(
        "time_clock_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("clock_in_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("clock_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clock_in_location", sa.String(length=64), nullable=True),
        sa.Column("clock_out_location", sa.String(length=64), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("is_within_allowed_area", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("clock_in_device", sa.String(length=255), nullable=True),
        sa.Column("clock_in_ip", sa.String(length=64), nullable=True),
        sa.Column("total_break_minutes", sa.Integer(), nullable=True),
        sa.Column("total_hours", sa.Float(), nullable=True),
        sa.Column("regular_hours", sa.Float(), nullable=True),
        sa.Column("overtime_hours", sa.Float(), nullable=True),
        sa.Column("total_night_diff_hours", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="clocked_in"),
        sa.Column("is_manual_entry", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("employee_notes", sa.Text(), nullable=True),
        sa.Column("hr_notes", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_time_clock_entries_employee_id", "time_clock_entries", ["employee_id"], unique=False)
    op.create_index("ix_time_clock_entries_clock_in_time", "time_clock_entries", ["clock_in_time"], unique=False)
    # At most one open entry per employee.
    op.create_index(
        "uq_time_clock_entries_open_per_employee",
        "time_clock_entries",
        ["employee_id"],
        unique=True,
        postgresql_where=sa.text("clock_out_time IS NULL"),
        sqlite_where=sa.text("clock_out_time IS NULL"),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("is_regular", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_holidays_holiday_date", "holidays", ["holiday_date"], unique=True)

    op.create_table(
        "employee_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("is_rest_day", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "schedule_date", name="uq_employee_schedule_day"),
    )
    op.create_index("ix_employee_schedules_employee_id", "employee_schedules", ["employee_id"], unique=False)

    op.create_table(
        "overtime_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("ot_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("ot_hours", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=36), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rejected_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_overtime_requests_employee_id", "overtime_requests", ["employee_id"], unique=False)
    op.create_index("ix_overtime_requests_ot_date", "overtime_requests", ["ot_date"], unique=False)
    op.create_index("ix_overtime_requests_status", "overtime_requests", ["status"], unique=False)

    op.create_table(
        "fund_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("requested_by", sa.String(length=36), nullable=True),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("po_number", sa.String(length=64), nullable=True),
        sa.Column("project_title", sa.String(length=255), nullable=True),
        sa.Column("project_location", sa.String(length=255), nullable=True),
        sa.Column("po_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("total_requested_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date_needed", sa.Date(), nullable=False),
        sa.Column("urgent_reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("project_manager_approved_by", sa.String(length=36), nullable=True),
        sa.Column("project_manager_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchasing_officer_approved_by", sa.String(length=36), nullable=True),
        sa.Column("purchasing_officer_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("management_approved_by", sa.String(length=36), nullable=True),
        sa.Column("management_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=36), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["requested_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_fund_requests_status", "fund_requests", ["status"], unique=False)

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("leave_type", sa.String(length=32), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("account_manager_approved_by", sa.String(length=36), nullable=True),
        sa.Column("account_manager_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hr_approved_by", sa.String(length=36), nullable=True),
        sa.Column("hr_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=36), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"], unique=False)
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"], unique=False)

    op.create_table(
        "weekly_attendance",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("period_type", sa.String(length=16), nullable=False, server_default="bimonthly"),
        sa.Column("attendance_data", sa.JSON(), nullable=False),
        sa.Column("total_regular_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_overtime_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_night_diff_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("gross_pay", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("source_fingerprint", sa.String(length=64), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_by", sa.String(length=36), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "period_start", name="uq_weekly_attendance_period"),
    )
    op.create_index("ix_weekly_attendance_employee_id", "weekly_attendance", ["employee_id"], unique=False)

    op.create_table(
        "password_reset_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_password_reset_requests_email", "password_reset_requests", ["email"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_type", sa.String(length=32), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_password_reset_requests_email", table_name="password_reset_requests")
    op.drop_table("password_reset_requests")
    op.drop_index("ix_weekly_attendance_employee_id", table_name="weekly_attendance")
    op.drop_table("weekly_attendance")
    op.drop_index("ix_leave_requests_status", table_name="leave_requests")
    op.drop_index("ix_leave_requests_employee_id", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("ix_fund_requests_status", table_name="fund_requests")
    op.drop_table("fund_requests")
    op.drop_index("ix_overtime_requests_status", table_name="overtime_requests")
    op.drop_index("ix_overtime_requests_ot_date", table_name="overtime_requests")
    op.drop_index("ix_overtime_requests_employee_id", table_name="overtime_requests")
    op.drop_table("overtime_requests")
    op.drop_index("ix_employee_schedules_employee_id", table_name="employee_schedules")
    op.drop_table("employee_schedules")
    op.drop_index("ix_holidays_holiday_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_index("uq_time_clock_entries_open_per_employee", table_name="time_clock_entries")
    op.drop_index("ix_time_clock_entries_clock_in_time", table_name="time_clock_entries")
    op.drop_index("ix_time_clock_entries_employee_id", table_name="time_clock_entries")
    op.drop_table("time_clock_entries")
    op.drop_table("employee_location_assignments")
    op.drop_table("office_locations")
    op.drop_index("ix_employee_login_records_employee_id", table_name="employee_login_records")
    op.drop_table("employee_login_records")
    op.drop_index("ix_employees_overtime_group_id", table_name="employees")
    op.drop_index("ix_employees_employee_id", table_name="employees")
    op.drop_table("employees")
    op.drop_index("ix_overtime_groups_viewer_id", table_name="overtime_groups")
    op.drop_index("ix_overtime_groups_approver_id", table_name="overtime_groups")
    op.drop_table("overtime_groups")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
