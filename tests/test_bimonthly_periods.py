from __future__ import annotations

import unittest
from datetime import date

from hrpay.errors import ApiError
from hrpay.services.bimonthly import (
    format_period,
    next_period_start,
    period_days,
    period_end_for,
    period_for,
    previous_period_start,
    validate_period,
)


class BimonthlyPeriodTests(unittest.TestCase):
    def test_first_half_runs_to_fifteenth(self) -> None:
        self.assertEqual(period_for(date(2025, 3, 9)), (date(2025, 3, 1), date(2025, 3, 15)))

    def test_second_half_runs_to_month_end(self) -> None:
        self.assertEqual(period_for(date(2025, 3, 16)), (date(2025, 3, 16), date(2025, 3, 31)))
        self.assertEqual(period_end_for(date(2025, 4, 16)), date(2025, 4, 30))

    def test_february_second_half_handles_leap_years(self) -> None:
        self.assertEqual(period_end_for(date(2024, 2, 16)), date(2024, 2, 29))
        self.assertEqual(period_end_for(date(2025, 2, 16)), date(2025, 2, 28))
        self.assertEqual(len(period_days(date(2025, 2, 16))), 13)

    def test_next_and_previous_cross_year_boundary(self) -> None:
        self.assertEqual(next_period_start(date(2025, 12, 16)), date(2026, 1, 1))
        self.assertEqual(previous_period_start(date(2026, 1, 1)), date(2025, 12, 16))
        self.assertEqual(next_period_start(date(2025, 5, 1)), date(2025, 5, 16))

    def test_format_period(self) -> None:
        self.assertEqual(format_period(date(2025, 1, 1), date(2025, 1, 15)), "Jan 1 - 15, 2025")

    def test_validate_period_rejects_bad_start(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            validate_period(date(2025, 1, 2), date(2025, 1, 15))
        self.assertEqual(ctx.exception.code, "INVALID_PERIOD")
        self.assertEqual(ctx.exception.status_code, 422)

    def test_validate_period_rejects_mismatched_end(self) -> None:
        with self.assertRaises(ApiError):
            validate_period(date(2025, 1, 16), date(2025, 1, 30))
        validate_period(date(2025, 1, 16), date(2025, 1, 31))


if __name__ == "__main__":
    unittest.main()
