from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hrpay.db import Base, get_db
from hrpay.main import app
from hrpay.models import AuditLog, Employee, EmployeeSchedule, EmployeeType, OfficeLocation, User, UserRole
from hrpay.security import CurrentUser, require_user, verify_password
from hrpay.services.bimonthly import iter_days
from hrpay.services.directory import compose_full_name, list_schedule
from hrpay.services.holidays import build_rest_day_map


def _memory_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def _as(role: str):  # type: ignore[no-untyped-def]
    def _current() -> CurrentUser:
        return CurrentUser(id=f"{role}-1", role=role, email=f"{role}@example.com")

    return _current


class ComposeFullNameTests(unittest.TestCase):
    def test_middle_name_becomes_initial(self) -> None:
        self.assertEqual(compose_full_name("Juan", "dela", "Cruz"), "Juan D. Cruz")
        self.assertEqual(compose_full_name(" Ana ", None, "Reyes"), "Ana Reyes")


class _DirectoryApiTestCase(unittest.TestCase):
    role = "hr"

    def setUp(self) -> None:
        self.db = _memory_session()

        def _override() -> Generator[Session, None, None]:
            yield self.db

        app.dependency_overrides[get_db] = _override
        app.dependency_overrides[require_user] = _as(self.role)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    def _office(self, name: str = "Makati HQ") -> OfficeLocation:
        office = OfficeLocation(name=name, latitude=14.5547, longitude=121.0244, radius_meters=150, is_active=True)
        self.db.add(office)
        self.db.commit()
        return office

    def _create_employee(self, **overrides) -> dict:  # type: ignore[no-untyped-def]
        payload = {
            "employee_id": "EMP-001",
            "first_name": "Juan",
            "middle_name": "Dela",
            "last_name": "Cruz",
            "job_level": "supervisory",
            "rate_per_day": "644.00",
        }
        payload.update(overrides)
        return self.client.post("/api/admin/employees", json=payload)  # type: ignore[return-value]


class EmployeeDirectoryTests(_DirectoryApiTestCase):
    def test_create_employee_with_rates_and_locations(self) -> None:
        office = self._office()

        response = self._create_employee(location_ids=[office.id], rate_per_hour="80.50")

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["full_name"], "Juan D. Cruz")
        self.assertEqual(body["job_level"], "supervisory")
        self.assertEqual(Decimal(str(body["rate_per_day"])), Decimal("644"))
        self.assertEqual(Decimal(str(body["rate_per_hour"])), Decimal("80.5"))
        self.assertEqual(body["location_ids"], [office.id])

        employee = self.db.get(Employee, body["id"])
        self.assertTrue(verify_password("EMP-001", employee.password_hash))
        audit = self.db.scalar(select(AuditLog).where(AuditLog.action == "EMPLOYEE_CREATED"))
        self.assertEqual(audit.entity_id, employee.id)
        self.assertEqual(audit.actor_id, "hr-1")

    def test_duplicate_employee_id_is_conflict(self) -> None:
        self._create_employee()

        response = self._create_employee(first_name="Other")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "EMPLOYEE_ID_EXISTS")

    def test_unknown_office_is_rejected_without_creating_employee(self) -> None:
        response = self._create_employee(location_ids=[999])

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "OFFICE_NOT_FOUND")
        self.assertIsNone(self.db.scalar(select(Employee.id)))

    def test_update_rates_and_job_level(self) -> None:
        created = self._create_employee().json()

        response = self.client.patch(
            f"/api/admin/employees/{created['id']}",
            json={"job_level": "managerial", "rate_per_day": "800", "last_name": "Santos"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["job_level"], "managerial")
        self.assertEqual(Decimal(str(body["rate_per_day"])), Decimal("800"))
        self.assertEqual(body["full_name"], "Juan D. Santos")
        audit = self.db.scalar(select(AuditLog).where(AuditLog.action == "EMPLOYEE_UPDATED"))
        self.assertEqual(audit.details["fields"], ["job_level", "last_name", "rate_per_day"])

    def test_deactivated_employee_drops_from_default_list(self) -> None:
        created = self._create_employee().json()
        self.client.patch(f"/api/admin/employees/{created['id']}", json={"is_active": False})

        active = self.client.get("/api/admin/employees")
        everyone = self.client.get("/api/admin/employees", params={"include_inactive": "true"})

        self.assertEqual(active.json(), [])
        self.assertEqual([item["id"] for item in everyone.json()], [created["id"]])

    def test_unknown_employee_is_not_found(self) -> None:
        response = self.client.patch("/api/admin/employees/missing", json={"job_level": "managerial"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "EMPLOYEE_NOT_FOUND")


class OfficeTests(_DirectoryApiTestCase):
    def test_create_and_update_office(self) -> None:
        created = self.client.post(
            "/api/admin/offices",
            json={"name": "Cebu Branch", "latitude": 10.3157, "longitude": 123.8854, "radius_meters": 200},
        )
        updated = self.client.patch(f"/api/admin/offices/{created.json()['id']}", json={"radius_meters": 300})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["radius_meters"], 300)

    def test_out_of_range_coordinates_are_invalid(self) -> None:
        response = self.client.post(
            "/api/admin/offices",
            json={"name": "Nowhere", "latitude": 91, "longitude": 0, "radius_meters": 5},
        )

        self.assertEqual(response.status_code, 422)
        self.assertIsNone(self.db.scalar(select(OfficeLocation.id)))


class HolidayCalendarTests(_DirectoryApiTestCase):
    def test_saved_holiday_changes_the_timesheet_day_type(self) -> None:
        created = self._create_employee().json()

        saved = self.client.put("/api/admin/holidays/2025-02-03", json={"name": "Company Day", "type": "regular"})
        listed = self.client.get("/api/admin/holidays", params={"year": 2025})
        timesheet = self.client.get(f"/api/timesheet/{created['id']}", params={"period_start": "2025-02-01"})

        self.assertEqual(saved.status_code, 200)
        self.assertEqual(listed.json(), [{"holiday_date": "2025-02-03", "name": "Company Day", "type": "regular"}])
        days = {row["date"]: row["dayType"] for row in timesheet.json()["attendance_data"]}
        self.assertEqual(days["2025-02-03"], "regular-holiday")

    def test_resaving_a_holiday_updates_it(self) -> None:
        self.client.put("/api/admin/holidays/2025-02-03", json={"name": "Company Day", "type": "regular"})

        response = self.client.put("/api/admin/holidays/2025-02-03", json={"name": "Town Fiesta", "type": "non-working"})

        self.assertEqual(response.json()["type"], "non-working")
        actions = list(self.db.scalars(select(AuditLog.action).order_by(AuditLog.id)).all())
        self.assertEqual(actions, ["HOLIDAY_CREATED", "HOLIDAY_UPDATED"])

    def test_delete_holiday(self) -> None:
        self.client.put("/api/admin/holidays/2025-02-03", json={"name": "Company Day"})

        deleted = self.client.delete("/api/admin/holidays/2025-02-03")
        missing = self.client.delete("/api/admin/holidays/2025-02-03")

        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/admin/holidays").json(), [])
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "HOLIDAY_NOT_FOUND")


class ScheduleTests(_DirectoryApiTestCase):
    def test_saved_rest_days_feed_the_rest_day_map(self) -> None:
        created = self._create_employee(employee_type="client-based").json()

        response = self.client.put(
            f"/api/admin/employees/{created['id']}/schedule",
            json={
                "days": [
                    {"schedule_date": "2025-02-04", "is_rest_day": True, "start_time": "08:00:00"},
                    {"schedule_date": "2025-02-05", "start_time": "08:00:00", "end_time": "17:00:00"},
                ]
            },
        )

        self.assertEqual(response.status_code, 200)
        rows = response.json()
        self.assertTrue(rows[0]["is_rest_day"])
        self.assertIsNone(rows[0]["start_time"])
        self.assertEqual(rows[1]["end_time"], "17:00:00")

        schedules = list_schedule(self.db, created["id"], date(2025, 2, 1), date(2025, 2, 15))
        rest_days = build_rest_day_map(
            EmployeeType.CLIENT_BASED,
            schedules,
            iter_days(date(2025, 2, 1), date(2025, 2, 15)),
        )
        self.assertTrue(rest_days[date(2025, 2, 4)])
        self.assertFalse(rest_days[date(2025, 2, 9)])

        listed = self.client.get(
            f"/api/admin/employees/{created['id']}/schedule",
            params={"period_start": "2025-02-01"},
        )
        self.assertEqual([row["schedule_date"] for row in listed.json()], ["2025-02-04", "2025-02-05"])

    def test_resaving_a_day_replaces_it(self) -> None:
        created = self._create_employee().json()
        url = f"/api/admin/employees/{created['id']}/schedule"
        self.client.put(url, json={"days": [{"schedule_date": "2025-02-04", "is_rest_day": True}]})

        self.client.put(url, json={"days": [{"schedule_date": "2025-02-04", "is_rest_day": False}]})

        rows = list(self.db.scalars(select(EmployeeSchedule)).all())
        self.assertEqual(len(rows), 1)
        self.assertFalse(rows[0].is_rest_day)


class OvertimeGroupTests(_DirectoryApiTestCase):
    role = "admin"

    def _user(self, user_id: str, role: UserRole) -> User:
        user = User(id=user_id, email=f"{user_id}@example.com", full_name=user_id, role=role, password_hash="x")
        self.db.add(user)
        self.db.commit()
        return user

    def test_create_group_with_approver_and_viewer(self) -> None:
        self._user("approver-1", UserRole.OT_APPROVER)
        self._user("viewer-1", UserRole.OT_VIEWER)

        response = self.client.post(
            "/api/admin/overtime-groups",
            json={"name": "Field Team", "approver_id": "approver-1", "viewer_id": "viewer-1"},
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["approver_id"], "approver-1")
        self.assertEqual([item["name"] for item in self.client.get("/api/admin/overtime-groups").json()], ["Field Team"])

    def test_approver_must_hold_an_approving_role(self) -> None:
        self._user("viewer-1", UserRole.OT_VIEWER)

        response = self.client.post(
            "/api/admin/overtime-groups",
            json={"name": "Field Team", "approver_id": "viewer-1"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "INVALID_ROLE")
        self.assertEqual(self.client.get("/api/admin/overtime-groups").json(), [])

    def test_duplicate_group_name_is_conflict(self) -> None:
        self.client.post("/api/admin/overtime-groups", json={"name": "Field Team"})

        response = self.client.post("/api/admin/overtime-groups", json={"name": "Field Team"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "OT_GROUP_EXISTS")


class DirectoryAccessTests(_DirectoryApiTestCase):
    role = "ot_viewer"

    def test_viewer_cannot_manage_directory(self) -> None:
        responses = [
            self._create_employee(),
            self.client.put("/api/admin/holidays/2025-02-03", json={"name": "Company Day"}),
            self.client.post("/api/admin/overtime-groups", json={"name": "Field Team"}),
        ]

        self.assertEqual([item.status_code for item in responses], [403, 403, 403])
        self.assertIsNone(self.db.scalar(select(Employee.id)))


class HrCannotManageOvertimeGroupsTests(_DirectoryApiTestCase):
    def test_hr_cannot_create_overtime_group(self) -> None:
        response = self.client.post("/api/admin/overtime-groups", json={"name": "Field Team"})

        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
