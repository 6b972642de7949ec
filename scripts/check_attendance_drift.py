#!/usr/bin/env python
"""Compare stored timesheet snapshots with attendance re-derived from source rows.

Exit status is 1 when any snapshot of the period has drifted.
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import date

from hrpay.db import SessionLocal
from hrpay.services.attendance import check_attendance_drift, list_target_employees
from hrpay.services.bimonthly import period_start_for


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--period-start",
        type=date.fromisoformat,
        default=None,
        help="Period start (YYYY-MM-DD, the 1st or 16th). Defaults to the current period.",
    )
    parser.add_argument("--employee-id", action="append", dest="employee_ids", default=None)
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    period_start = args.period_start or period_start_for(date.today())
    reports = []
    with SessionLocal() as db:
        for employee in list_target_employees(db, args.employee_ids):
            reports.append(check_attendance_drift(db, employee, period_start))

    drifted = [item for item in reports if item["has_snapshot"] and not item["in_sync"]]
    print(
        json.dumps(
            {
                "period_start": period_start.isoformat(),
                "checked": len(reports),
                "drifted": len(drifted),
                "reports": reports,
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 1 if drifted else 0


if __name__ == "__main__":
    sys.exit(run())
