from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import Employee, EmployeeLoginRecord, OvertimeGroup, User, UserRole
from hrpay.security import hash_password, verify_password
from hrpay.services.role_cache import ROLE_CACHE
from hrpay.settings import get_settings

logger = logging.getLogger("hrpay.users")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CREATABLE_ROLES: tuple[str, ...] = tuple(role.value for role in UserRole)
OT_GROUP_FIELD_BY_ROLE = {
    UserRole.APPROVER.value: "approver_id",
    UserRole.OT_APPROVER.value: "approver_id",
    UserRole.VIEWER.value: "viewer_id",
    UserRole.OT_VIEWER.value: "viewer_id",
}


def _bad_request(code: str, message: str, details: Any | None = None) -> ApiError:
    return ApiError(status_code=400, code=code, message=message, details=details)


def create_user(
    db: Session,
    *,
    email: str | None,
    full_name: str | None,
    password: str | None,
    role: str | None,
    ot_groups: Iterable[int] | None = None,
) -> User:
    trimmed_email = (email or "").strip()
    trimmed_name = (full_name or "").strip()
    trimmed_password = (password or "").strip()
    trimmed_role = (role or "").strip()

    missing = [
        label
        for label, value in (
            ("email", trimmed_email),
            ("full name", trimmed_name),
            ("password", trimmed_password),
            ("role", trimmed_role),
        )
        if not value
    ]
    if missing:
        raise _bad_request("MISSING_FIELDS", f"Missing required fields: {', '.join(missing)}", missing)

    if not EMAIL_PATTERN.match(trimmed_email):
        raise _bad_request("INVALID_EMAIL", "Invalid email format")

    if trimmed_role not in CREATABLE_ROLES:
        raise _bad_request("INVALID_ROLE", f"Invalid role. Must be one of: {', '.join(CREATABLE_ROLES)}")

    min_length = get_settings().user_password_min_length
    if len(trimmed_password) < min_length:
        raise _bad_request(
            "PASSWORD_TOO_SHORT",
            f"Password must be at least {min_length} characters long (currently {len(trimmed_password)})",
        )

    normalized_email = trimmed_email.lower()
    existing = db.scalar(select(User).where(User.email == normalized_email))
    if existing is not None:
        raise ApiError(status_code=409, code="EMAIL_EXISTS", message="A user with this email already exists.")

    user = User(
        email=normalized_email,
        full_name=trimmed_name,
        role=UserRole(trimmed_role),
        password_hash=hash_password(trimmed_password),
        is_active=True,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="EMAIL_EXISTS", message="A user with this email already exists.") from exc

    group_field = OT_GROUP_FIELD_BY_ROLE.get(trimmed_role)
    if group_field is not None:
        for group_id in ot_groups or []:
            group = db.get(OvertimeGroup, group_id)
            if group is None:
                logger.warning("ot_group_assignment_skipped", extra={"group_id": group_id, "user_id": user.id})
                continue
            setattr(group, group_field, user.id)

    db.commit()
    db.refresh(user)
    ROLE_CACHE.invalidate(user.id)
    return user


def delete_user(db: Session, *, user_id: str | None, actor_id: str) -> None:
    if not user_id:
        raise _bad_request("MISSING_FIELDS", "Missing required field: userId", ["userId"])
    if user_id == actor_id:
        raise _bad_request("SELF_DELETE", "You cannot delete your own account")

    user = db.get(User, user_id)
    if user is None:
        raise ApiError(status_code=404, code="USER_NOT_FOUND", message="User not found.")
    db.delete(user)
    db.commit()
    ROLE_CACHE.invalidate(user_id)


def update_user_status(db: Session, *, user_id: str | None, is_active: bool | None, actor_id: str) -> User:
    if not user_id or not isinstance(is_active, bool):
        raise _bad_request("MISSING_FIELDS", "Missing required fields: userId, is_active", ["userId", "is_active"])
    if user_id == actor_id and not is_active:
        raise _bad_request("SELF_DEACTIVATE", "You cannot deactivate your own account")

    user = db.get(User, user_id)
    if user is None:
        raise ApiError(status_code=404, code="USER_NOT_FOUND", message="User not found.")
    user.is_active = is_active
    db.commit()
    db.refresh(user)
    ROLE_CACHE.invalidate(user_id)
    return user


def authenticate_user(db: Session, *, email: str, password: str) -> User | None:
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def authenticate_employee(db: Session, *, employee_code: str, password: str) -> Employee | None:
    employee = db.scalar(select(Employee).where(Employee.employee_id == employee_code.strip()))
    if employee is None or not employee.is_active:
        return None
    if not verify_password(password.strip(), employee.password_hash):
        return None
    return employee


def change_employee_password(
    db: Session,
    employee: Employee,
    *,
    current_password: str,
    new_password: str,
) -> None:
    min_length = get_settings().employee_password_min_length
    cleaned = (new_password or "").strip()
    if len(cleaned) < min_length:
        raise _bad_request("PASSWORD_TOO_SHORT", f"Password must be at least {min_length} characters long")
    if not verify_password((current_password or "").strip(), employee.password_hash):
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Current password is incorrect.")

    employee.password_hash = hash_password(cleaned)
    db.commit()


def record_employee_first_login(
    db: Session,
    employee: Employee,
    *,
    ip_address: str | None,
    user_agent: str | None,
    device_info: dict[str, Any] | None,
    now_utc: datetime | None = None,
) -> dict[str, Any]:
    previous = db.scalar(
        select(EmployeeLoginRecord.id).where(EmployeeLoginRecord.employee_id == employee.id).limit(1)
    )
    is_first_login = previous is None
    db.add(
        EmployeeLoginRecord(
            employee_id=employee.id,
            logged_in_at=now_utc or datetime.now(timezone.utc),
            is_first_login=is_first_login,
            ip_address=ip_address,
            user_agent=user_agent,
            device_info={key: value for key, value in (device_info or {}).items() if value is not None},
        )
    )
    db.commit()
    return {
        "success": True,
        "is_first_login": is_first_login,
        "message": "First login recorded" if is_first_login else "Login recorded",
    }
