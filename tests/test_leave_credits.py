from __future__ import annotations

import unittest
from datetime import date

from hrpay.errors import ApiError
from hrpay.models import Employee, LeaveRequest, LeaveType
from hrpay.services.leaves import create_leave_request, get_employee_leave_credits, refresh_employee_leave_balances


class _LeaveDB:
    def __init__(self, pending_days: float = 0.0):
        self.pending_days = pending_days
        self.rows: list[object] = []
        self.commits = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.pending_days

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj: object) -> None:
        return


def _employee(*, hire_date: date | None, credits: float = 0.0, year: int | None = None) -> Employee:
    return Employee(
        id="emp-1",
        employee_id="E001",
        full_name="Ana Cruz",
        hire_date=hire_date,
        sil_credits=credits,
        sil_balance_year=year,
    )


class LeaveBalanceTests(unittest.TestCase):
    def test_new_year_resets_unused_credits(self) -> None:
        employee = _employee(hire_date=date(2020, 6, 1), credits=2.0, year=2024)

        changed = refresh_employee_leave_balances(_LeaveDB(), employee, today=date(2025, 1, 2))

        self.assertTrue(changed)
        self.assertEqual(employee.sil_credits, 5.0)
        self.assertEqual(employee.sil_balance_year, 2025)

    def test_less_than_a_year_of_service_earns_nothing(self) -> None:
        employee = _employee(hire_date=date(2024, 6, 1))

        refresh_employee_leave_balances(_LeaveDB(), employee, today=date(2025, 5, 31))

        self.assertEqual(employee.sil_credits, 0.0)

    def test_same_year_is_untouched(self) -> None:
        employee = _employee(hire_date=date(2020, 6, 1), credits=3.0, year=2025)
        db = _LeaveDB()

        self.assertFalse(refresh_employee_leave_balances(db, employee, today=date(2025, 7, 1)))
        self.assertEqual(employee.sil_credits, 3.0)
        self.assertEqual(db.commits, 0)

    def test_pending_requests_reduce_available_days(self) -> None:
        employee = _employee(hire_date=date(2020, 6, 1), credits=5.0, year=2025)

        credits = get_employee_leave_credits(_LeaveDB(pending_days=2.0), employee, today=date(2025, 7, 1))

        self.assertEqual(credits["sil_credits"], 5.0)
        self.assertEqual(credits["available_sil_days"], 3.0)


class CreateLeaveRequestTests(unittest.TestCase):
    def test_sil_request_beyond_available_credits_is_rejected(self) -> None:
        today = date.today()
        employee = _employee(hire_date=date(2000, 1, 1), credits=1.0, year=today.year)

        with self.assertRaises(ApiError) as ctx:
            create_leave_request(
                _LeaveDB(),
                employee,
                leave_type=LeaveType.SIL,
                start_date=date(2025, 3, 3),
                end_date=date(2025, 3, 4),
            )

        self.assertEqual(ctx.exception.code, "INSUFFICIENT_LEAVE_CREDITS")
        self.assertEqual(ctx.exception.details, {"requested": 2.0, "available": 1.0})

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            create_leave_request(
                _LeaveDB(),
                _employee(hire_date=None),
                leave_type=LeaveType.SIL,
                start_date=date(2025, 3, 4),
                end_date=date(2025, 3, 3),
            )
        self.assertEqual(ctx.exception.code, "INVALID_DATE_RANGE")

    def test_non_sil_leave_skips_credit_check(self) -> None:
        db = _LeaveDB()

        leave = create_leave_request(
            db,
            _employee(hire_date=None),
            leave_type=LeaveType.UNPAID,
            start_date=date(2025, 3, 3),
            end_date=date(2025, 3, 7),
            reason="  family  ",
        )

        self.assertIsInstance(leave, LeaveRequest)
        self.assertEqual(leave.total_days, 5.0)
        self.assertEqual(leave.reason, "family")
        self.assertEqual(leave.status, "pending")
        self.assertEqual(db.rows, [leave])


if __name__ == "__main__":
    unittest.main()
