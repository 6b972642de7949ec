from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "is_active"},
    "employees": {"id", "employee_id", "employee_type", "job_level", "sil_credits"},
    "time_clock_entries": {"id", "employee_id", "clock_in_time", "clock_out_time", "status"},
    "weekly_attendance": {"id", "employee_id", "period_start", "attendance_data", "source_fingerprint"},
    "holidays": {"holiday_date", "is_regular"},
    "overtime_requests": {"id", "ot_date", "ot_hours", "status"},
    "alembic_version": {"version_num"},
}

OPTIONAL_TABLES: tuple[str, ...] = ("employee_schedules", "office_locations", "fund_requests", "leave_requests")

# Newest revision under hrpay/migrations/versions.
EXPECTED_ALEMBIC_HEAD = "0001_initial"


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)

    try:
        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())
    except SQLAlchemyError as exc:
        return SchemaGuardResult(
            ok=False,
            checked_at_utc=checked_at_utc,
            issues=[f"DATABASE_UNREACHABLE:{exc.__class__.__name__}"],
        )

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        if table_name not in table_names:
            issues.append(f"MISSING_TABLE:{table_name}")
            continue
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    for table_name in OPTIONAL_TABLES:
        if table_name not in table_names:
            warnings.append(f"TABLE_NOT_FOUND:{table_name}")

    if "alembic_version" in table_names:
        try:
            with engine.connect() as connection:
                row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
                version = str(row).strip() if row is not None else ""
                if not version:
                    issues.append("ALEMBIC_VERSION_EMPTY")
                elif version != EXPECTED_ALEMBIC_HEAD:
                    warnings.append(f"ALEMBIC_HEAD_MISMATCH:{version}")
        except SQLAlchemyError as exc:
            issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
