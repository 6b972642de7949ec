from __future__ import annotations

import unittest
from unittest.mock import patch

from hrpay.services.schema_guard import OPTIONAL_TABLES, REQUIRED_TABLE_COLUMNS, verify_runtime_schema


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(self, *, columns_by_table: dict[str, set[str]], extra_tables: tuple[str, ...] = ()):
        self._columns_by_table = columns_by_table
        self._extra_tables = extra_tables

    def get_table_names(self):  # type: ignore[no-untyped-def]
        return [*self._columns_by_table, *self._extra_tables]

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        return [{"name": item} for item in self._columns_by_table[table_name]]


def _full_columns() -> dict[str, set[str]]:
    return {table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()}


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table=_full_columns(), extra_tables=OPTIONAL_TABLES)

        with patch("hrpay.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.to_dict()["issue_count"], 0)

    def test_verify_runtime_schema_reports_missing_columns_and_empty_version(self) -> None:
        columns = _full_columns()
        columns["weekly_attendance"].discard("source_fingerprint")
        columns["employees"].discard("job_level")
        fake_inspector = _FakeInspector(columns_by_table=columns, extra_tables=OPTIONAL_TABLES)

        with patch("hrpay.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine(""))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:weekly_attendance:source_fingerprint", result.issues)
        self.assertIn("MISSING_COLUMNS:employees:job_level", result.issues)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)

    def test_missing_tables_are_issues_and_optional_tables_are_warnings(self) -> None:
        columns = _full_columns()
        del columns["holidays"]
        fake_inspector = _FakeInspector(columns_by_table=columns)

        with patch("hrpay.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertEqual(result.issues, ["MISSING_TABLE:holidays"])
        self.assertEqual(result.warnings, [f"TABLE_NOT_FOUND:{name}" for name in OPTIONAL_TABLES])

    def test_old_alembic_revision_is_a_warning(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table=_full_columns(), extra_tables=OPTIONAL_TABLES)

        with patch("hrpay.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0000_bootstrap"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["ALEMBIC_HEAD_MISMATCH:0000_bootstrap"])


if __name__ == "__main__":
    unittest.main()
