from __future__ import annotations

import unittest
from datetime import datetime, timezone

from hrpay.errors import ApiError
from hrpay.models import ClockEntryStatus, Employee, JobLevel, OfficeLocation, TimeClockEntry
from hrpay.services.timeclock import approve_entry, clock_in, clock_out, reject_entry


class _ScalarResult:
    def __init__(self, rows):
        self._rows = rows

    def all(self):  # type: ignore[no-untyped-def]
        return self._rows


class _ClockDB:
    def __init__(self, *, open_entry: TimeClockEntry | None = None, offices: list[OfficeLocation] | None = None):
        self.open_entry = open_entry
        self.offices = offices or []
        self.rows: list[object] = []
        self.commits = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.open_entry

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarResult(self.offices)

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        if model is TimeClockEntry and self.open_entry is not None and self.open_entry.id == pk:
            return self.open_entry
        return None

    def add(self, obj: object) -> None:
        self.rows.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj: object) -> None:
        return


def _employee(*, is_active: bool = True, job_level: JobLevel = JobLevel.RANK_AND_FILE) -> Employee:
    return Employee(id="emp-1", employee_id="E001", full_name="Ana Cruz", is_active=is_active, job_level=job_level)


def _office() -> OfficeLocation:
    return OfficeLocation(
        id=1,
        name="Makati HQ",
        address="Ayala Ave",
        latitude=14.5547,
        longitude=121.0244,
        radius_meters=150,
        is_active=True,
    )


def _open_entry(clock_in_utc: datetime) -> TimeClockEntry:
    return TimeClockEntry(
        id="entry-1",
        employee_id="emp-1",
        clock_in_time=clock_in_utc,
        total_break_minutes=None,
        status=ClockEntryStatus.CLOCKED_IN,
    )


class ClockInTests(unittest.TestCase):
    def test_clock_in_inside_office(self) -> None:
        db = _ClockDB(offices=[_office()])

        entry = clock_in(db, _employee(), location="14.5548,121.0245", now=datetime(2025, 3, 3, 0, 0, tzinfo=timezone.utc))

        self.assertEqual(entry.status, ClockEntryStatus.CLOCKED_IN)
        self.assertEqual(entry.location_name, "Makati HQ")
        self.assertTrue(entry.is_within_allowed_area)
        self.assertEqual(db.rows, [entry])

    def test_clock_in_outside_offices_is_rejected(self) -> None:
        db = _ClockDB(offices=[_office()])

        with self.assertRaises(ApiError) as ctx:
            clock_in(db, _employee(), location="14.6760,121.0437")

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.code, "LOCATION_NOT_ALLOWED")
        self.assertEqual(db.rows, [])

    def test_clock_in_without_office_directory_is_allowed(self) -> None:
        entry = clock_in(_ClockDB(), _employee(), location="14.6760,121.0437")

        self.assertEqual(entry.location_name, "Waiting for location directory")
        self.assertFalse(entry.is_within_allowed_area)

    def test_second_clock_in_conflicts(self) -> None:
        db = _ClockDB(open_entry=_open_entry(datetime(2025, 3, 3, 0, 0, tzinfo=timezone.utc)))

        with self.assertRaises(ApiError) as ctx:
            clock_in(db, _employee())

        self.assertEqual(ctx.exception.code, "ALREADY_CLOCKED_IN")

    def test_inactive_employee_cannot_clock_in(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            clock_in(_ClockDB(), _employee(is_active=False))

        self.assertEqual(ctx.exception.code, "EMPLOYEE_INACTIVE")


class ClockOutTests(unittest.TestCase):
    def test_clock_out_fills_hours(self) -> None:
        # 08:00 to 17:00 Manila time
        entry = _open_entry(datetime(2025, 3, 3, 0, 0, tzinfo=timezone.utc))
        db = _ClockDB(open_entry=entry)

        clock_out(db, _employee(), now=datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc))

        self.assertEqual(entry.status, ClockEntryStatus.CLOCKED_OUT)
        self.assertEqual(entry.total_break_minutes, 60)
        self.assertEqual(entry.total_hours, 8.0)
        self.assertEqual(entry.regular_hours, 8.0)
        self.assertEqual(entry.overtime_hours, 0.0)
        self.assertEqual(entry.total_night_diff_hours, 0.0)

    def test_night_shift_without_night_diff_eligibility(self) -> None:
        # 20:00 to 02:00 Manila time
        entry = _open_entry(datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc))
        db = _ClockDB(open_entry=entry)

        clock_out(db, _employee(job_level=JobLevel.MANAGERIAL), now=datetime(2025, 3, 3, 18, 0, tzinfo=timezone.utc))

        self.assertEqual(entry.total_hours, 5.0)
        self.assertEqual(entry.total_night_diff_hours, 0.0)

    def test_clock_out_without_open_entry(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            clock_out(_ClockDB(), _employee())

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.code, "NOT_CLOCKED_IN")


class EntryReviewTests(unittest.TestCase):
    def test_open_entry_cannot_be_approved(self) -> None:
        db = _ClockDB(open_entry=_open_entry(datetime(2025, 3, 3, 0, 0, tzinfo=timezone.utc)))

        with self.assertRaises(ApiError) as ctx:
            approve_entry(db, "entry-1", approver_id="hr-1")

        self.assertEqual(ctx.exception.code, "ENTRY_INCOMPLETE")

    def test_reject_requires_notes(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            reject_entry(_ClockDB(), "entry-1", approver_id="hr-1", hr_notes="  ")

        self.assertEqual(ctx.exception.code, "NOTES_REQUIRED")


if __name__ == "__main__":
    unittest.main()
