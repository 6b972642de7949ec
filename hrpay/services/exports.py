from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from hrpay.models import Employee
from hrpay.services.attendance import (
    compute_period_attendance,
    estimate_gross_pay,
    estimate_hourly_rate,
    list_target_employees,
)
from hrpay.services.bimonthly import format_period, validate_period
from hrpay.services.holidays import DAY_TYPE_REGULAR, DAY_TYPE_REST
from hrpay.services.timesheet import TimesheetResult

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
HOLIDAY_FILL = PatternFill(fill_type="solid", fgColor="FFF3CD")
REST_FILL = PatternFill(fill_type="solid", fgColor="E9F1F7")
HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)
THIN_SIDE = Side(style="thin", color="C7D2DA")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

SUMMARY_HEADERS = [
    "Employee ID",
    "Name",
    "Days Worked",
    "Regular Hours",
    "Overtime Hours",
    "Night Diff Hours",
    "Hourly Rate",
    "Gross Pay (Base)",
]
DAILY_HEADERS = ["Date", "Day", "Day Type", "Regular Hours", "Overtime Hours", "Night Diff Hours"]


@dataclass(frozen=True)
class EmployeePeriodRow:
    employee_code: str
    full_name: str
    result: TimesheetResult
    hourly_rate: Decimal
    gross_pay: Decimal


def _style_header(ws: Worksheet, row: int) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            if cell.coordinate in ws.merged_cells:
                continue
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def _merge_title(ws: Worksheet, row: int, text: str, width: int) -> None:
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=width)
    cell = ws.cell(row=row, column=1, value=text)
    cell.font = TITLE_FONT
    cell.alignment = Alignment(horizontal="left", vertical="center")


def _style_rows(ws: Worksheet, *, start_row: int, end_row: int) -> None:
    for row_idx in range(start_row, end_row + 1):
        for col_idx in range(1, ws.max_column + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if row_idx % 2 == 0 and cell.fill.fill_type is None:
                cell.fill = ZEBRA_FILL
            if isinstance(cell.value, (int, float, Decimal)):
                cell.alignment = Alignment(horizontal="center", vertical="center")


def _safe_sheet_title(title: str, fallback: str) -> str:
    cleaned = "".join(ch for ch in title if ch not in ['\\', '/', '*', '?', ':', '[', ']']).strip()
    if not cleaned:
        cleaned = fallback
    return cleaned[:31]


def _append_summary_sheet(ws: Worksheet, title: str, rows: Sequence[EmployeePeriodRow]) -> None:
    ws.title = "Summary"
    _merge_title(ws, 1, title, len(SUMMARY_HEADERS))
    ws.append([])
    ws.append(SUMMARY_HEADERS)
    header_row = ws.max_row
    _style_header(ws, header_row)
    for item in rows:
        ws.append(
            [
                item.employee_code,
                item.full_name,
                item.result.days_worked,
                item.result.total_regular_hours,
                item.result.total_overtime_hours,
                item.result.total_night_diff_hours,
                float(item.hourly_rate),
                float(item.gross_pay),
            ]
        )
    _style_rows(ws, start_row=header_row + 1, end_row=ws.max_row)
    ws.freeze_panes = f"A{header_row + 1}"
    _auto_width(ws)


def _append_employee_sheet(wb: Workbook, item: EmployeePeriodRow, used_titles: set[str]) -> None:
    title = _safe_sheet_title(f"{item.employee_code} {item.full_name}", item.employee_code or "Employee")
    base_title = title
    suffix = 2
    while title in used_titles:
        title = f"{base_title[:28]}-{suffix}"
        suffix += 1
    used_titles.add(title)

    ws = wb.create_sheet(title=title)
    ws.append(DAILY_HEADERS)
    _style_header(ws, 1)
    for day in item.result.days:
        ws.append(
            [
                day.date.isoformat(),
                day.date.strftime("%a"),
                day.day_type,
                day.regular_hours,
                day.overtime_hours,
                day.night_diff_hours,
            ]
        )
        if day.day_type == DAY_TYPE_REST:
            fill = REST_FILL
        elif day.day_type != DAY_TYPE_REGULAR:
            fill = HOLIDAY_FILL
        else:
            continue
        for cell in ws[ws.max_row]:
            cell.fill = fill
    ws.append(
        [
            "Total",
            "",
            "",
            item.result.total_regular_hours,
            item.result.total_overtime_hours,
            item.result.total_night_diff_hours,
        ]
    )
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    _style_rows(ws, start_row=2, end_row=ws.max_row)
    ws.freeze_panes = "A2"
    _auto_width(ws)


def build_period_xlsx(period_start: date, period_end: date, rows: Sequence[EmployeePeriodRow]) -> bytes:
    wb = Workbook()
    _append_summary_sheet(wb.active, f"Attendance {format_period(period_start, period_end)}", rows)
    used_titles = {"Summary"}
    for item in rows:
        _append_employee_sheet(wb, item, used_titles)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _employee_row(db: Session, employee: Employee, period_start: date, period_end: date) -> EmployeePeriodRow:
    computed = compute_period_attendance(db, employee, period_start, period_end)
    rate = estimate_hourly_rate(db, employee, period_start)
    return EmployeePeriodRow(
        employee_code=employee.employee_id,
        full_name=employee.full_name,
        result=computed.result,
        hourly_rate=rate,
        gross_pay=estimate_gross_pay(computed.result.total_regular_hours, rate),
    )


def build_period_export(
    db: Session,
    *,
    period_start: date,
    period_end: date,
    employee_ids: list[str] | None = None,
) -> bytes:
    validate_period(period_start, period_end)
    rows = [
        _employee_row(db, employee, period_start, period_end)
        for employee in list_target_employees(db, employee_ids)
    ]
    return build_period_xlsx(period_start, period_end, rows)
