from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from hrpay.errors import ApiError
from hrpay.security import (
    TOKEN_TYPE_EMPLOYEE,
    TOKEN_TYPE_USER,
    FailedLoginThrottle,
    create_access_token,
    create_employee_token,
    decode_token,
    ensure_login_attempt_allowed,
    hash_password,
    register_login_failure,
    register_login_success,
    require_roles,
    reset_login_attempts,
    verify_password,
)


class LoginThrottleTests(unittest.TestCase):
    def tearDown(self) -> None:
        reset_login_attempts()

    def test_blocks_after_ten_failures(self) -> None:
        ip = "203.0.113.10"
        for _ in range(10):
            ensure_login_attempt_allowed(ip)
            register_login_failure(ip)

        with self.assertRaises(ApiError) as ctx:
            ensure_login_attempt_allowed(ip)

        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(ctx.exception.code, "TOO_MANY_ATTEMPTS")
        ensure_login_attempt_allowed("203.0.113.11")

    def test_success_clears_failures(self) -> None:
        ip = "203.0.113.20"
        for _ in range(9):
            register_login_failure(ip)
        register_login_success(ip)
        register_login_failure(ip)

        ensure_login_attempt_allowed(ip)

    def test_expired_keys_from_other_clients_are_swept(self) -> None:
        start = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)
        with patch("hrpay.security._utcnow", return_value=start):
            throttle = FailedLoginThrottle(max_attempts=3, window=timedelta(minutes=10))
            throttle.failure("198.51.100.1")
            throttle.failure("198.51.100.2")
        self.assertEqual(len(throttle), 2)

        with patch("hrpay.security._utcnow", return_value=start + timedelta(minutes=11)):
            throttle.failure("198.51.100.3")

        self.assertEqual(len(throttle), 1)
        throttle.check("198.51.100.1")


class PasswordHashTests(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("StrongPass123!")

        self.assertTrue(verify_password("StrongPass123!", hashed))
        self.assertFalse(verify_password("wrong", hashed))

    def test_missing_or_malformed_hash_never_verifies(self) -> None:
        self.assertFalse(verify_password("anything", None))
        self.assertFalse(verify_password("anything", "not-a-bcrypt-hash"))


class TokenTests(unittest.TestCase):
    def test_access_token_round_trip(self) -> None:
        token, expires_in = create_access_token(user_id="u1", email="hr@example.com", role="hr", full_name="HR")

        payload = decode_token(token, expected_type=TOKEN_TYPE_USER)

        self.assertEqual(payload["sub"], "u1")
        self.assertEqual(payload["role"], "hr")
        self.assertGreater(expires_in, 0)

    def test_employee_token_is_not_a_user_token(self) -> None:
        token, _ = create_employee_token(employee_pk="emp-1", employee_code="E001", full_name="Ana Cruz")

        self.assertEqual(decode_token(token, expected_type=TOKEN_TYPE_EMPLOYEE)["employee_id"], "E001")
        with self.assertRaises(ApiError) as ctx:
            decode_token(token, expected_type=TOKEN_TYPE_USER)
        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")

    def test_garbage_token_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            decode_token("not.a.token", expected_type=TOKEN_TYPE_USER)
        self.assertEqual(ctx.exception.status_code, 401)

    def test_require_roles_needs_at_least_one_role(self) -> None:
        with self.assertRaises(ValueError):
            require_roles()


if __name__ == "__main__":
    unittest.main()
