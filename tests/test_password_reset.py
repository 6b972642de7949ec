from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from hrpay.errors import ApiError
from hrpay.models import PasswordResetRequest, User, UserRole
from hrpay.security import hash_password, verify_password
from hrpay.services.notifications import NotificationChannel
from hrpay.services.password_reset import (
    complete_password_reset,
    create_reset_token,
    request_password_reset,
    reset_throttle_reason,
)

NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class _ScalarResult:
    def __init__(self, rows):
        self._rows = rows

    def all(self):  # type: ignore[no-untyped-def]
        return self._rows


class _ResetDB:
    def __init__(self, *, user: User | None = None, recent: list[datetime] | None = None):
        self.user = user
        self.recent = recent or []
        self.rows: list[object] = []

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarResult(sorted(self.recent, reverse=True))

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.user

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        if model is User and self.user is not None and self.user.id == pk:
            return self.user
        return None

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def commit(self) -> None:
        return


class _RecordingChannel(NotificationChannel):
    configured = True

    def __init__(self) -> None:
        self.sent = []

    def send(self, message):  # type: ignore[no-untyped-def]
        self.sent.append(message)
        return {"mode": "test", "sent": len(message.recipients)}


def _user() -> User:
    return User(
        id="u1",
        email="hr@example.com",
        full_name="HR Person",
        role=UserRole.HR,
        password_hash=hash_password("OldPass123!"),
        is_active=True,
    )


class ResetThrottleTests(unittest.TestCase):
    def test_no_history_is_allowed(self) -> None:
        self.assertIsNone(reset_throttle_reason(_ResetDB(), "hr@example.com", NOW))

    def test_min_gap_between_requests(self) -> None:
        db = _ResetDB(recent=[NOW - timedelta(minutes=3)])
        self.assertEqual(reset_throttle_reason(db, "hr@example.com", NOW), "min_gap")

        db = _ResetDB(recent=[NOW - timedelta(minutes=6)])
        self.assertIsNone(reset_throttle_reason(db, "hr@example.com", NOW))

    def test_daily_limit(self) -> None:
        db = _ResetDB(recent=[NOW - timedelta(hours=hours) for hours in range(1, 6)])
        self.assertEqual(reset_throttle_reason(db, "hr@example.com", NOW), "daily_limit")


class RequestPasswordResetTests(unittest.TestCase):
    def test_known_user_gets_link_and_request_is_recorded(self) -> None:
        db = _ResetDB(user=_user())
        channel = _RecordingChannel()

        result = request_password_reset(db, email=" HR@Example.com ", ip="203.0.113.5", channel=channel, now_utc=NOW)

        self.assertEqual(result, {"ok": True})
        self.assertEqual(len(channel.sent), 1)
        self.assertIn("/reset-password?token=", channel.sent[0].body)
        recorded = [row for row in db.rows if isinstance(row, PasswordResetRequest)]
        self.assertEqual(recorded[0].email, "hr@example.com")

    def test_throttled_request_sends_nothing(self) -> None:
        db = _ResetDB(user=_user(), recent=[NOW - timedelta(minutes=1)])
        channel = _RecordingChannel()

        with self.assertLogs("hrpay.password_reset", level="INFO"):
            result = request_password_reset(db, email="hr@example.com", ip=None, channel=channel, now_utc=NOW)

        self.assertEqual(result, {"ok": True})
        self.assertEqual(channel.sent, [])
        self.assertEqual(db.rows, [])

    def test_malformed_email_is_ignored(self) -> None:
        db = _ResetDB()

        self.assertEqual(request_password_reset(db, email="not-an-email", ip=None), {"ok": True})
        self.assertEqual(db.rows, [])


class CompletePasswordResetTests(unittest.TestCase):
    def test_token_sets_new_password_once(self) -> None:
        user = _user()
        db = _ResetDB(user=user)
        token = create_reset_token(user)

        complete_password_reset(db, token=token, new_password="NewPass456!")
        self.assertTrue(verify_password("NewPass456!", user.password_hash))

        with self.assertRaises(ApiError) as ctx:
            complete_password_reset(db, token=token, new_password="Another789!")
        self.assertEqual(ctx.exception.code, "INVALID_RESET_TOKEN")

    def test_expired_token_is_rejected(self) -> None:
        user = _user()
        token = create_reset_token(user, now_utc=datetime.now(timezone.utc) - timedelta(hours=1))

        with self.assertRaises(ApiError) as ctx:
            complete_password_reset(_ResetDB(user=user), token=token, new_password="NewPass456!")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_short_password_is_rejected(self) -> None:
        user = _user()

        with self.assertRaises(ApiError) as ctx:
            complete_password_reset(_ResetDB(user=user), token=create_reset_token(user), new_password="short")

        self.assertEqual(ctx.exception.code, "PASSWORD_TOO_SHORT")
        self.assertTrue(verify_password("OldPass123!", user.password_hash))


if __name__ == "__main__":
    unittest.main()
