from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Iterable, List, Optional, Sequence

from flask import render_template
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from .durations import format_signed
from .errors import RenderingFailure
from .reports import Report
from .store import WorkSession
from .timeutils import format_short_date

logger = logging.getLogger(__name__)

PDF_RENDER_WORKERS = 2
_render_pool = ThreadPoolExecutor(max_workers=PDF_RENDER_WORKERS, thread_name_prefix="pdf-render")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIMETYPE = "application/pdf"

COLUMNS = [
    ("Date", 15),
    ("Arrival", 10),
    ("Departure", 10),
    ("Break (min)", 12),
    ("Remote (min)", 13),
    ("Net total", 12),
    ("Notes", 30),
]
HEADER_FILL = PatternFill("solid", fgColor="DCE6F1")
SHEET_NAME_FORBIDDEN = re.compile(r"[/\\?*\[\]:]")
MAX_SHEET_NAME = 31


@dataclass
class Sheet:
    name: str
    rows: List[List[Any]] = field(default_factory=list)
    total_row: Optional[List[Any]] = None


def session_row(session: WorkSession, net_minutes: int) -> List[Any]:
    return [
        format_short_date(session.day),
        session.arrival_time,
        session.departure_time,
        session.break_minutes,
        session.remote_minutes or 0,
        format_signed(net_minutes),
        session.notes or "",
    ]


def total_row(label: str, total_minutes: int) -> List[Any]:
    return [label, None, None, None, None, format_signed(total_minutes), None]


def sheet_name(report: Report) -> str:
    start = format_short_date(report.period.start, with_year=True)
    end = format_short_date(report.period.end, with_year=True)
    name = f"{start} - {end}"
    return SHEET_NAME_FORBIDDEN.sub("-", name)[:MAX_SHEET_NAME]


def report_sheet(report: Report, name: str, total_label: str = "TOTAL") -> Sheet:
    rows = [session_row(session, report.net_minutes(session)) for session in report.sessions]
    return Sheet(name=name, rows=rows, total_row=total_row(total_label, report.total_minutes))


def bulk_sheets(reports: Iterable[Report]) -> List[Sheet]:
    return [report_sheet(report, sheet_name(report), "PERIOD TOTAL") for report in reports]


def build_workbook(sheets: Sequence[Sheet]) -> bytes:
    """Serialize sheets into an xlsx workbook, one worksheet per sheet."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for sheet in sheets:
        worksheet = workbook.create_sheet(title=sheet.name)
        for col, (header, width) in enumerate(COLUMNS, start=1):
            cell = worksheet.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal="center")
            worksheet.column_dimensions[cell.column_letter].width = width
        for values in sheet.rows:
            worksheet.append(values)
        if sheet.total_row is not None:
            worksheet.append([])
            worksheet.append(sheet.total_row)
            for cell in worksheet[worksheet.max_row]:
                cell.font = Font(bold=True)

    buffer = BytesIO()
    try:
        workbook.save(buffer)
    except Exception as exc:
        logger.exception("Workbook serialization failed")
        raise RenderingFailure("Spreadsheet generation failed.") from exc
    return buffer.getvalue()


def render_report_html(report: Report, username: str) -> str:
    cards = [
        {
            "title": summary.label,
            "range": f"{format_short_date(summary.start)} to {format_short_date(summary.end)}",
            "value": format_signed(summary.total_minutes),
        }
        for summary in report.summaries
    ]
    rows = [
        {
            "day": format_short_date(session.day),
            "arrival": session.arrival_time,
            "departure": session.departure_time,
            "break_minutes": session.break_minutes,
            "remote_minutes": session.remote_minutes or 0,
            "net": format_signed(report.net_minutes(session)),
            "notes": session.notes or "",
        }
        for session in report.sessions
    ]
    return render_template(
        "report.html",
        username=username,
        period=report.period,
        cards=cards,
        total_minutes=report.total_minutes,
        rows=rows,
    )


def _write_pdf(html: str) -> bytes:
    # weasyprint loads pango/cairo when imported
    from weasyprint import HTML

    return HTML(string=html).write_pdf()


def html_to_pdf(html: str, timeout: Optional[float] = None) -> bytes:
    """Render ``html`` to PDF bytes on the shared render pool.

    A render that exceeds ``timeout`` is reported as a failure but keeps its
    worker until weasyprint returns; threads cannot be interrupted. The pool
    size caps how many such stragglers can exist, and later requests queue
    behind them and time out in turn.
    """
    future = _render_pool.submit(_write_pdf, html)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.error("PDF rendering exceeded %ss", timeout)
        raise RenderingFailure(f"PDF rendering timed out after {timeout} seconds.") from None
    except Exception as exc:
        logger.exception("PDF rendering failed")
        raise RenderingFailure("PDF rendering failed.") from exc
