from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrpay.errors import ApiError
from hrpay.models import User
from hrpay.settings import get_settings

logger = logging.getLogger("hrpay.auth")

Clock = Callable[[], float]


class RoleCache:
    """Thread-safe ``user_id -> role`` map with a fixed TTL."""

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, user_id: str, *, allow_stale: bool = False) -> str | None:
        with self._lock:
            item = self._entries.get(user_id)
            if item is None:
                return None
            role, stored_at = item
            if allow_stale or self._clock() - stored_at < self.ttl_seconds:
                return role
            return None

    def set(self, user_id: str, role: str) -> None:
        with self._lock:
            self._entries[user_id] = (role, self._clock())

    def invalidate(self, user_id: str | None = None) -> None:
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)

    def batch_load(self, db: Session, user_ids: Iterable[str]) -> dict[str, str]:
        wanted = sorted({item for item in user_ids if item})
        if not wanted:
            return {}
        rows = db.scalars(select(User).where(User.id.in_(wanted))).all()
        roles: dict[str, str] = {}
        for user in rows:
            role = _role_value(user.role)
            roles[user.id] = role
            self.set(user.id, role)
        return roles


class AuthCallGuard:
    """Backoff in front of role lookups.

    After a failure the next call waits at least ``min_interval_seconds``.
    After ``max_failures`` consecutive failures calls are skipped for
    ``min_interval_seconds * cooldown_multiplier``. Any success resets the
    failure counter.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        max_failures: int,
        cooldown_multiplier: int,
        clock: Clock = time.monotonic,
    ):
        self.min_interval_seconds = min_interval_seconds
        self.max_failures = max_failures
        self.cooldown_seconds = min_interval_seconds * cooldown_multiplier
        self._clock = clock
        self._lock = threading.Lock()
        self._failures = 0
        self._last_failure_at: float | None = None

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._failures

    def allow_call(self) -> bool:
        with self._lock:
            if self._failures == 0 or self._last_failure_at is None:
                return True
            elapsed = self._clock() - self._last_failure_at
            if self._failures >= self.max_failures:
                if elapsed < self.cooldown_seconds:
                    return False
                self._failures = 0
                return True
            return elapsed >= self.min_interval_seconds

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._last_failure_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure_at = self._clock()

    def reset(self) -> None:
        self.record_success()


def _role_value(role: object) -> str:
    return str(getattr(role, "value", role))


def _build_role_cache() -> RoleCache:
    return RoleCache(get_settings().role_cache_ttl_seconds)


def _build_auth_guard() -> AuthCallGuard:
    settings = get_settings()
    return AuthCallGuard(
        min_interval_seconds=settings.auth_min_call_interval_ms / 1000,
        max_failures=settings.auth_max_consecutive_failures,
        cooldown_multiplier=settings.auth_cooldown_multiplier,
    )


ROLE_CACHE = _build_role_cache()
AUTH_GUARD = _build_auth_guard()


def _stale_or_backoff(cache: RoleCache, user_id: str) -> str:
    stale = cache.get(user_id, allow_stale=True)
    if stale is not None:
        logger.warning("role_lookup_served_stale", extra={"user_id": user_id})
        return stale
    raise ApiError(
        status_code=503,
        code="AUTH_BACKOFF",
        message="Authentication is temporarily unavailable. Please retry shortly.",
    )


def get_current_user_role(
    db: Session,
    user_id: str,
    *,
    cache: RoleCache | None = None,
    guard: AuthCallGuard | None = None,
) -> str | None:
    """Role of an active user, or ``None`` when the user is gone or inactive."""
    cache = cache or ROLE_CACHE
    guard = guard or AUTH_GUARD

    cached = cache.get(user_id)
    if cached is not None:
        return cached

    if not guard.allow_call():
        return _stale_or_backoff(cache, user_id)

    try:
        user = db.get(User, user_id)
    except SQLAlchemyError:
        guard.record_failure()
        logger.exception(
            "role_lookup_failed",
            extra={"user_id": user_id, "consecutive_failures": guard.consecutive_failures},
        )
        return _stale_or_backoff(cache, user_id)

    guard.record_success()
    if user is None or not user.is_active:
        cache.invalidate(user_id)
        return None

    role = _role_value(user.role)
    cache.set(user_id, role)
    return role
