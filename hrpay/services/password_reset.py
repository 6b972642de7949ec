"""Self-service password reset for back-office users.

Requests always answer generically so that callers cannot discover which
emails exist. A per-email ledger enforces a minimum gap between sends and a
daily cap.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import PasswordResetRequest, User
from hrpay.security import hash_password
from hrpay.services.notifications import (
    EmailChannel,
    NotificationChannel,
    NotificationMessage,
    normalize_email,
    safe_send_email,
)
from hrpay.services.role_cache import ROLE_CACHE
from hrpay.settings import get_public_base_url, get_settings

logger = logging.getLogger("hrpay.password_reset")

TOKEN_TYPE_RESET = "password_reset"
RESET_TOKEN_MINUTES = 30


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def reset_throttle_reason(db: Session, email: str, now_utc: datetime) -> str | None:
    settings = get_settings()
    since = now_utc - timedelta(days=1)
    recent = list(
        db.scalars(
            select(PasswordResetRequest.requested_at)
            .where(
                PasswordResetRequest.email == email,
                PasswordResetRequest.requested_at >= since,
            )
            .order_by(PasswordResetRequest.requested_at.desc())
        ).all()
    )
    if len(recent) >= settings.reset_daily_limit:
        return "daily_limit"
    if recent and now_utc - _as_utc(recent[0]) < timedelta(minutes=settings.reset_min_gap_minutes):
        return "min_gap"
    return None


def _hash_marker(password_hash: str) -> str:
    # Changing the password invalidates every outstanding token.
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_reset_token(user: User, now_utc: datetime | None = None) -> str:
    settings = get_settings()
    now = now_utc or datetime.now(timezone.utc)
    claims = {
        "sub": user.id,
        "typ": TOKEN_TYPE_RESET,
        "phm": _hash_marker(user.password_hash),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=RESET_TOKEN_MINUTES)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm="HS256")


def request_password_reset(
    db: Session,
    *,
    email: str | None,
    ip: str | None,
    channel: NotificationChannel | None = None,
    now_utc: datetime | None = None,
) -> dict[str, Any]:
    now = now_utc or datetime.now(timezone.utc)
    normalized = normalize_email(email)
    if normalized is None:
        return {"ok": True}

    reason = reset_throttle_reason(db, normalized, now)
    if reason is not None:
        logger.info("password_reset_throttled", extra={"reason": reason})
        return {"ok": True}

    user = db.scalar(select(User).where(User.email == normalized))
    if user is not None and user.is_active:
        token = create_reset_token(user, now)
        message = NotificationMessage(
            recipients=[user.email],
            subject="Reset your password",
            body=(
                f"Hello {user.full_name},\n\n"
                f"Use the link below to set a new password. It expires in {RESET_TOKEN_MINUTES} minutes.\n\n"
                f"{get_public_base_url()}/reset-password?token={token}\n"
            ),
        )
        result = safe_send_email(channel or EmailChannel(), message)
        logger.info("password_reset_sent", extra={"user_id": user.id, "mode": result.get("mode")})

    db.add(PasswordResetRequest(email=normalized, ip=ip, requested_at=now))
    db.commit()
    return {"ok": True}


def complete_password_reset(db: Session, *, token: str, new_password: str) -> User:
    settings = get_settings()
    invalid = ApiError(status_code=400, code="INVALID_RESET_TOKEN", message="Reset link is invalid or expired.")
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        raise invalid from exc
    if payload.get("typ") != TOKEN_TYPE_RESET:
        raise invalid

    user = db.get(User, str(payload.get("sub") or ""))
    if user is None or not user.is_active or payload.get("phm") != _hash_marker(user.password_hash):
        raise invalid

    cleaned = (new_password or "").strip()
    if len(cleaned) < settings.user_password_min_length:
        raise ApiError(
            status_code=400,
            code="PASSWORD_TOO_SHORT",
            message=f"Password must be at least {settings.user_password_min_length} characters long.",
        )
    user.password_hash = hash_password(cleaned)
    db.commit()
    ROLE_CACHE.invalidate(user.id)
    return user
