#!/usr/bin/env python
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text

from hrpay.services.schema_guard import EXPECTED_ALEMBIC_HEAD as EXPECTED_HEAD

REQUIRED_TABLES = (
    "users",
    "employees",
    "time_clock_entries",
    "holidays",
    "overtime_requests",
    "fund_requests",
    "leave_requests",
    "weekly_attendance",
    "password_reset_requests",
    "audit_logs",
)


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def run() -> dict:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")

    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing else "ok", {"tables": missing})

        if "time_clock_entries" in tables:
            multiple_open = conn.execute(
                text(
                    """
                    select employee_id, count(*)
                    from time_clock_entries
                    where clock_out_time is null
                    group by employee_id
                    having count(*) > 1
                    """
                )
            ).fetchall()
            add(
                "multiple_open_clock_entries",
                "fail" if multiple_open else "ok",
                {"rows": [list(row) for row in multiple_open]},
            )

            inverted = conn.execute(
                text(
                    """
                    select id
                    from time_clock_entries
                    where clock_out_time is not null and clock_out_time <= clock_in_time
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "clock_out_before_clock_in",
                "fail" if inverted else "ok",
                {"sample_ids": [row[0] for row in inverted]},
            )

        if "weekly_attendance" in tables:
            unfingerprinted = conn.execute(
                text(
                    """
                    select count(*)
                    from weekly_attendance
                    where status = 'finalized' and source_fingerprint is null
                    """
                )
            ).scalar_one()
            add(
                "finalized_without_fingerprint",
                "warn" if unfingerprinted else "ok",
                {"count": unfingerprinted},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
