from __future__ import annotations

import unittest
from collections.abc import Generator

from fastapi.testclient import TestClient

from hrpay.db import get_db
from hrpay.main import app
from hrpay.models import Employee, PasswordResetRequest, User, UserRole
from hrpay.security import CurrentUser, hash_password, require_employee, require_user, reset_login_attempts, verify_password
from hrpay.services.role_cache import ROLE_CACHE


def _override_get_db(fake_db):
    def _override() -> Generator[object, None, None]:
        yield fake_db

    return _override


class _ScalarResult:
    def __init__(self, rows):
        self._rows = rows

    def all(self):  # type: ignore[no-untyped-def]
        return self._rows


class _FakeDB:
    """Just enough of a Session for the auth and user endpoints."""

    def __init__(self, *, scalar_value: object | None = None, objects: tuple[object, ...] = ()):
        self.scalar_value = scalar_value
        self.objects = {(type(obj), obj.id): obj for obj in objects}
        self.rows: list[object] = []
        self.deleted: list[object] = []

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.scalar_value

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarResult([])

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self.objects.get((model, pk))

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def flush(self) -> None:
        for obj in self.rows:
            if isinstance(obj, User) and obj.id is None:
                obj.id = "new-user-id"

    def delete(self, obj: object) -> None:
        self.deleted.append(obj)

    def commit(self) -> None:
        return

    def rollback(self) -> None:
        return

    def refresh(self, _obj: object) -> None:
        return


def _user(user_id: str = "u1", *, role: UserRole = UserRole.HR, password: str = "StrongPass123!") -> User:
    return User(
        id=user_id,
        email=f"{user_id}@example.com",
        full_name="Test User",
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )


def _as_admin() -> CurrentUser:
    return CurrentUser(id="admin-1", role="admin", email="admin@example.com")


def _as_hr() -> CurrentUser:
    return CurrentUser(id="hr-1", role="hr", email="hr@example.com")


class _ApiTestCase(unittest.TestCase):
    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        reset_login_attempts()
        ROLE_CACHE.invalidate()

    def _client(self, fake_db: _FakeDB) -> TestClient:
        app.dependency_overrides[get_db] = _override_get_db(fake_db)
        return TestClient(app)


class UserEndpointTests(_ApiTestCase):
    def test_admin_creates_user(self) -> None:
        fake_db = _FakeDB()
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(fake_db)

        response = client.post(
            "/api/users/create",
            json={
                "email": " New.Hire@Example.com ",
                "full_name": "New Hire",
                "password": "StrongPass123!",
                "role": "hr",
            },
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["user"]["email"], "new.hire@example.com")
        self.assertEqual(payload["user"]["role"], "hr")
        created = next(row for row in fake_db.rows if isinstance(row, User))
        self.assertTrue(verify_password("StrongPass123!", created.password_hash))

    def test_duplicate_email_conflicts(self) -> None:
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB(scalar_value=_user()))

        response = client.post(
            "/api/users/create",
            json={"email": "u1@example.com", "full_name": "Dup", "password": "StrongPass123!", "role": "hr"},
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "EMAIL_EXISTS")

    def test_missing_fields_are_listed(self) -> None:
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB())

        response = client.post("/api/users/create", json={"email": "x@example.com", "role": "hr"})

        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "MISSING_FIELDS")
        self.assertEqual(error["details"], ["full name", "password"])
        self.assertIn("request_id", error)

    def test_unknown_role_is_rejected(self) -> None:
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB())

        response = client.post(
            "/api/users/create",
            json={"email": "x@example.com", "full_name": "X", "password": "StrongPass123!", "role": "owner"},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_ROLE")

    def test_non_admin_is_forbidden(self) -> None:
        app.dependency_overrides[require_user] = _as_hr
        client = self._client(_FakeDB())

        response = client.post(
            "/api/users/create",
            json={"email": "x@example.com", "full_name": "X", "password": "StrongPass123!", "role": "hr"},
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_admin_cannot_deactivate_self(self) -> None:
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB())

        response = client.patch("/api/users/update-status", json={"userId": "admin-1", "is_active": False})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "SELF_DEACTIVATE")

    def test_admin_cannot_delete_self(self) -> None:
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB())

        response = client.request("DELETE", "/api/users/delete", json={"userId": "admin-1"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "SELF_DELETE")

    def test_admin_deletes_other_user(self) -> None:
        target = _user("u9")
        fake_db = _FakeDB(objects=(target,))
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(fake_db)

        response = client.request("DELETE", "/api/users/delete", json={"userId": "u9"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(fake_db.deleted, [target])

    def test_deactivate_other_user(self) -> None:
        target = _user("u9")
        app.dependency_overrides[require_user] = _as_admin
        client = self._client(_FakeDB(objects=(target,)))

        response = client.patch("/api/users/update-status", json={"userId": "u9", "is_active": False})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "User deactivated successfully")
        self.assertFalse(target.is_active)


class AuthEndpointTests(_ApiTestCase):
    def test_login_returns_bearer_token(self) -> None:
        client = self._client(_FakeDB(scalar_value=_user(role=UserRole.ADMIN)))

        response = client.post("/api/auth/login", json={"email": "u1@example.com", "password": "StrongPass123!"})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["token_type"], "bearer")
        self.assertEqual(payload["user"]["role"], "admin")
        self.assertTrue(response.headers["X-Request-Id"])

    def test_wrong_password_is_invalid_credentials(self) -> None:
        client = self._client(_FakeDB(scalar_value=_user()))

        response = client.post("/api/auth/login", json={"email": "u1@example.com", "password": "nope"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")

    def test_missing_bearer_token_is_invalid_token(self) -> None:
        client = self._client(_FakeDB())

        response = client.get("/api/auth/me")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_reset_request_for_unknown_email_still_succeeds(self) -> None:
        fake_db = _FakeDB()
        client = self._client(fake_db)

        response = client.post("/api/auth/reset-request", json={"email": "ghost@example.com"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True})
        self.assertTrue(any(isinstance(row, PasswordResetRequest) for row in fake_db.rows))

    def test_invalid_request_body_is_validation_error(self) -> None:
        client = self._client(_FakeDB())

        response = client.post("/api/auth/login", json={"email": "u1@example.com"})

        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertTrue(any(item["loc"][-1] == "password" for item in error["details"]))


class EmployeeEndpointTests(_ApiTestCase):
    def _employee(self) -> Employee:
        return Employee(
            id="emp-1",
            employee_id="E001",
            full_name="Ana Cruz",
            password_hash=hash_password("1234"),
            is_active=True,
        )

    def test_employee_login(self) -> None:
        client = self._client(_FakeDB(scalar_value=self._employee()))

        response = client.post("/api/employee/login", json={"employee_id": "E001", "password": "1234"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["employee"]["employee_id"], "E001")

    def test_change_password_requires_current_password(self) -> None:
        employee = self._employee()
        app.dependency_overrides[require_employee] = lambda: employee
        client = self._client(_FakeDB())

        response = client.post(
            "/api/employee/change-password",
            json={"current_password": "0000", "new_password": "5678"},
        )

        self.assertEqual(response.status_code, 401)
        self.assertTrue(verify_password("1234", employee.password_hash))

    def test_change_password(self) -> None:
        employee = self._employee()
        app.dependency_overrides[require_employee] = lambda: employee
        client = self._client(_FakeDB())

        response = client.post(
            "/api/employee/change-password",
            json={"current_password": "1234", "new_password": "5678"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(verify_password("5678", employee.password_hash))


class HealthTests(_ApiTestCase):
    def test_unknown_route_uses_error_envelope(self) -> None:
        client = self._client(_FakeDB())

        response = client.get("/api/does-not-exist")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
