from __future__ import annotations

import datetime as dt
import io
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from .grouping import Report, ReportRow
from .profit import ProfitTotals, format_currency
from .schemas import ProfitExportPayload

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

environment = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
environment.filters["currency"] = format_currency
environment.filters["hours"] = lambda value: f"{float(value or 0):.2f}"


def report_sections(rows: List[ReportRow]) -> List[Dict[str, Any]]:
    """Pair each header row with the entry and subtotal rows printed under it."""
    sections: List[Dict[str, Any]] = []
    for row in rows:
        if row.kind == "header":
            sections.append({"header": row, "rows": []})
        elif sections:
            sections[-1]["rows"].append(row)
    return sections


def report_filename(suffix: str, today: Optional[dt.date] = None) -> str:
    day = today or dt.date.today()
    return f"timesheet-report-{day.isoformat()}.{suffix}"


def render_report_html(report: Report, client: Optional[str]) -> str:
    template = environment.get_template("timesheet_report.html")
    return template.render(
        report=report,
        client=client or "No Client",
        sections=report_sections(report.rows),
    )


def render_profit_html(payload: ProfitExportPayload, totals: ProfitTotals) -> str:
    template = environment.get_template("profit_report.html")
    return template.render(payload=payload, totals=totals)


def _entry_line(row: ReportRow) -> str:
    entry = row.entry
    if entry is None:
        return ""
    parts = [entry.date, entry.user, entry.client or "-", entry.project or "-", entry.task or "-"]
    note = (entry.note or "-").replace("\n", " ")
    if len(note) > 60:
        note = note[:57] + "..."
    return " | ".join(parts) + f" | {note}"


def render_report_pdf(report: Report, client: Optional[str], title: str = "Timesheet Report") -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    y = height - 2 * cm
    heading = f"{title} - Summary View" if report.totals_only else title
    pdf.setTitle(heading)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(2 * cm, y, heading)
    y -= 0.8 * cm
    pdf.setFont("Helvetica", 12)
    pdf.drawString(2 * cm, y, (client or "No Client").upper())
    y -= 0.8 * cm
    pdf.setFont("Helvetica", 10)
    pdf.drawString(
        2 * cm,
        y,
        f"Total hours {report.total_duration} | Entries {report.entry_count} | "
        f"Team members {len(report.users)} | Projects {len(report.projects)}",
    )
    y -= 1 * cm

    for row in report.rows:
        indent = 2 * cm + row.level * 0.6 * cm
        if row.kind == "header":
            pdf.setFont("Helvetica-Bold", 11)
            pdf.drawString(indent, y, row.label)
            pdf.drawRightString(width - 2 * cm, y, f"{row.entry_count} entries - {row.duration} hours")
        elif row.kind == "entry":
            pdf.setFont("Helvetica", 9)
            pdf.drawString(indent + 0.4 * cm, y, _entry_line(row))
            pdf.drawRightString(width - 2 * cm, y, row.duration)
        else:
            pdf.setFont("Helvetica-Oblique", 10)
            pdf.drawRightString(width - 4 * cm, y, "Subtotal")
            pdf.drawRightString(width - 2 * cm, y, row.duration)
        y -= 0.6 * cm
        if y < 2 * cm:
            pdf.showPage()
            y = height - 2 * cm
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawRightString(width - 4 * cm, y, "Total")
    pdf.drawRightString(width - 2 * cm, y, report.total_duration)
    pdf.save()
    return buffer.getvalue()


def write_report_xlsx(report: Report, client: Optional[str]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Report"
    ws.append(["Timesheet Report", client or "No Client"])
    ws.append(["Total", report.total_duration, "Entries", report.entry_count])
    ws.append([])
    ws.append(["Group", "Date", "User", "Client", "Project", "Task", "Duration", "Note"])
    header_font = Font(bold=True)
    for cell in ws[ws.max_row]:
        cell.font = header_font
    for row in report.rows:
        if row.kind == "entry" and row.entry is not None:
            entry = row.entry
            ws.append(
                [
                    "",
                    entry.date,
                    entry.user,
                    entry.client or "-",
                    entry.project or "-",
                    entry.task or "-",
                    row.duration,
                    entry.note or "",
                ]
            )
            continue
        label = row.label if row.kind == "header" else f"Subtotal {row.label}"
        ws.append([label, None, None, None, None, None, row.duration, None])
        cell = ws.cell(row=ws.max_row, column=1)
        cell.font = header_font
        cell.alignment = Alignment(indent=row.level)
    ws.append(["Total", None, None, None, None, None, report.total_duration, None])
    ws.cell(row=ws.max_row, column=1).font = header_font
    for column, width in zip("ABCDEFGH", (32, 12, 20, 20, 24, 20, 10, 60)):
        ws.column_dimensions[column].width = width
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
