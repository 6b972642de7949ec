from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy.orm import Session

from hrpay.db import get_db
from hrpay.errors import ApiError
from hrpay.models import Employee, UserRole
from hrpay.services.role_cache import get_current_user_role
from hrpay.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_TYPE_USER = "access"
TOKEN_TYPE_EMPLOYEE = "employee"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str
    email: str | None = None
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FailedLoginThrottle:
    """Sliding-window count of failed logins per client key."""

    def __init__(self, max_attempts: int, window: timedelta):
        self.max_attempts = max_attempts
        self.window = window
        self._lock = threading.Lock()
        self._failures: dict[str, deque[datetime]] = defaultdict(deque)
        self._last_sweep = _utcnow()

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)

    def _sweep(self, now: datetime) -> None:
        # keys from clients that never come back are only dropped here
        if now - self._last_sweep < self.window:
            return
        self._last_sweep = now
        for key in list(self._failures):
            self._prune(key, now)

    def _prune(self, key: str, now: datetime) -> int:
        failures = self._failures.get(key)
        if failures is None:
            return 0
        while failures and now - failures[0] > self.window:
            failures.popleft()
        if not failures:
            del self._failures[key]
        return len(failures)

    def check(self, key: str) -> None:
        with self._lock:
            if self._prune(key, _utcnow()) >= self.max_attempts:
                raise ApiError(
                    status_code=429,
                    code="TOO_MANY_ATTEMPTS",
                    message="Too many failed login attempts. Please try again later.",
                )

    def failure(self, key: str) -> None:
        now = _utcnow()
        with self._lock:
            self._sweep(now)
            self._prune(key, now)
            self._failures[key].append(now)

    def success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()


LOGIN_THROTTLE = FailedLoginThrottle(max_attempts=10, window=timedelta(minutes=10))


def ensure_login_attempt_allowed(ip: str) -> None:
    LOGIN_THROTTLE.check(ip)


def register_login_failure(ip: str) -> None:
    LOGIN_THROTTLE.failure(ip)


def register_login_success(ip: str) -> None:
    LOGIN_THROTTLE.success(ip)


def reset_login_attempts() -> None:
    LOGIN_THROTTLE.clear()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Invalid/legacy hash values should not crash auth flow.
        return False


def _build_claims(
    *,
    token_type: str,
    expires_delta: timedelta,
    sub: str,
    extra: dict[str, Any],
) -> dict[str, Any]:
    settings = get_settings()
    now = _utcnow()
    exp = now + expires_delta
    return {
        "sub": sub,
        **extra,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "jti": str(uuid4()),
        "typ": token_type,
    }


def create_access_token(*, user_id: str, email: str, role: str, full_name: str | None = None) -> tuple[str, int]:
    settings = get_settings()
    claims = _build_claims(
        token_type=TOKEN_TYPE_USER,
        expires_delta=timedelta(minutes=settings.access_token_minutes),
        sub=user_id,
        extra={"email": email, "role": role, "full_name": full_name},
    )
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, settings.access_token_minutes * 60


def create_employee_token(*, employee_pk: str, employee_code: str, full_name: str) -> tuple[str, int]:
    settings = get_settings()
    claims = _build_claims(
        token_type=TOKEN_TYPE_EMPLOYEE,
        expires_delta=timedelta(minutes=settings.employee_token_minutes),
        sub=employee_pk,
        extra={"employee_id": employee_code, "full_name": full_name},
    )
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, settings.employee_token_minutes * 60


def decode_token(token: str, *, expected_type: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != expected_type:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")
    return payload


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")
    return credentials.credentials


def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    payload = decode_token(_bearer_token(credentials), expected_type=TOKEN_TYPE_USER)
    user_id = str(payload["sub"])
    # The role in the token may be stale; the cached lookup is authoritative.
    role = get_current_user_role(db, user_id)
    if role is None:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="User is inactive or no longer exists.")

    request.state.actor = "user"
    request.state.actor_id = user_id
    return CurrentUser(
        id=user_id,
        role=role,
        email=payload.get("email"),
        full_name=payload.get("full_name"),
    )


def require_roles(*roles: UserRole | str) -> Callable[..., CurrentUser]:
    allowed = frozenset(str(getattr(role, "value", role)) for role in roles)
    if not allowed:
        raise ValueError("require_roles needs at least one role")

    def _dependency(current: CurrentUser = Depends(require_user)) -> CurrentUser:
        if current.role not in allowed:
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return current

    return _dependency


def require_employee(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Employee:
    payload = decode_token(_bearer_token(credentials), expected_type=TOKEN_TYPE_EMPLOYEE)
    employee = db.get(Employee, str(payload["sub"]))
    if employee is None:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Employee no longer exists.")
    if not employee.is_active:
        raise ApiError(status_code=403, code="EMPLOYEE_INACTIVE", message="Employee account is inactive.")

    request.state.actor = "employee"
    request.state.actor_id = employee.employee_id
    request.state.employee_id = employee.id
    return employee
