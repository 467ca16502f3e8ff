"""Spreadsheet export of the submission pool.

Produces an .xlsx workbook: one overview sheet listing every submission,
then one sheet per submission with its per-question corrections.
"""

from __future__ import annotations

import io
import re
from datetime import datetime

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from models.submission import Submission

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

OVERVIEW_TITLE = "Overview"
OVERVIEW_HEADERS = [
    "Submitted at",
    "Student name",
    "Student ID",
    "Status",
    "Score",
    "Max",
    "Grade",
    "Plagiarism",
    "Matched student",
    "Summary",
]
DETAIL_HEADERS = ["Question", "Student answer (transcribed)", "Points", "Max", "Explanation"]

_MAX_SHEET_TITLE = 31
_INVALID_TITLE_CHARS = re.compile(r"[\[\]\*\?/\\:]")

_HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
_HEADER_FILL = PatternFill(start_color="4F46E5", end_color="4F46E5", fill_type="solid")
_LABEL_FONT = Font(bold=True)
_LABEL_FILL = PatternFill(start_color="F3F4F6", end_color="F3F4F6", fill_type="solid")
_CORRECT_FILL = PatternFill(start_color="D1FAE5", end_color="D1FAE5", fill_type="solid")
_INCORRECT_FILL = PatternFill(start_color="FEE2E2", end_color="FEE2E2", fill_type="solid")
_THIN_BORDER = Border(
    left=Side(style="thin"), right=Side(style="thin"),
    top=Side(style="thin"), bottom=Side(style="thin"),
)
_WRAP = Alignment(wrap_text=True, vertical="top")


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _sheet_title(name: str, index: int, used: set[str]) -> str:
    """Excel-safe, unique sheet title of at most 31 characters."""
    base = _INVALID_TITLE_CHARS.sub("_", name).strip() or "Student"
    suffix = f"_{index}"
    title = base[: _MAX_SHEET_TITLE - len(suffix)] + suffix
    while title.lower() in used:
        index += 1000
        suffix = f"_{index}"
        title = base[: _MAX_SHEET_TITLE - len(suffix)] + suffix
    used.add(title.lower())
    return title


def _write_header(ws, row: int, headers: list[str]) -> None:
    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col_idx, value=header)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center", wrap_text=True)
        cell.border = _THIN_BORDER


def _overview_row(sub: Submission) -> list:
    result = sub.result
    analysis = result.integrity_analysis if result else None
    return [
        _format_time(sub.submission_time),
        sub.student_name,
        sub.student_id,
        sub.status.value,
        result.total_score if result else None,
        result.max_total_score if result else None,
        result.letter_grade if result else "",
        "YES" if analysis and analysis.plagiarism_detected else "",
        (analysis.matched_student_name or "") if analysis else "",
        result.summary if result else (sub.error_reason or ""),
    ]


def _write_overview(ws, submissions: list[Submission]) -> None:
    ws.title = OVERVIEW_TITLE
    _write_header(ws, 1, OVERVIEW_HEADERS)
    for row_idx, sub in enumerate(submissions, 2):
        for col_idx, value in enumerate(_overview_row(sub), 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            cell.border = _THIN_BORDER
            cell.alignment = _WRAP
    widths = [20, 24, 14, 10, 8, 8, 10, 12, 24, 60]
    for col_idx, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def _write_detail(ws, sub: Submission) -> None:
    result = sub.result
    info = [
        ("Student:", sub.student_name),
        ("Student ID:", sub.student_id),
        ("Total score:", f"{result.total_score} / {result.max_total_score}" if result else "-"),
        ("Comment:", result.summary if result else (sub.error_reason or "")),
    ]
    for row_idx, (label, value) in enumerate(info, 1):
        label_cell = ws.cell(row=row_idx, column=1, value=label)
        label_cell.font = _LABEL_FONT
        label_cell.fill = _LABEL_FILL
        ws.cell(row=row_idx, column=2, value=value).alignment = _WRAP

    header_row = len(info) + 2
    _write_header(ws, header_row, DETAIL_HEADERS)
    if result:
        for row_idx, corr in enumerate(result.corrections, header_row + 1):
            values = [
                corr.question_id,
                corr.student_answer,
                corr.points_awarded,
                corr.max_points,
                corr.explanation,
            ]
            for col_idx, value in enumerate(values, 1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = _THIN_BORDER
                cell.alignment = _WRAP
            ws.cell(row=row_idx, column=1).fill = (
                _CORRECT_FILL if corr.is_correct else _INCORRECT_FILL
            )
    for col_idx, width in enumerate([16, 60, 8, 8, 60], 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def build_workbook(submissions: list[Submission]) -> openpyxl.Workbook:
    """Build the overview + per-student workbook."""
    wb = openpyxl.Workbook()
    _write_overview(wb.active, submissions)
    used = {OVERVIEW_TITLE.lower()}
    for index, sub in enumerate(submissions, 1):
        ws = wb.create_sheet(title=_sheet_title(sub.student_name, index, used))
        _write_detail(ws, sub)
    return wb


def export_submissions_xlsx(submissions: list[Submission]) -> bytes:
    """Serialize the workbook for *submissions* to .xlsx bytes."""
    buf = io.BytesIO()
    build_workbook(submissions).save(buf)
    return buf.getvalue()
