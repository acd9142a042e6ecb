"""Report rendering to CSV and PDF, and delivery by email."""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from timesheet_engine.services.mailer import Attachment, Mailer
from timesheet_engine.services.report_service import OutputFormat, Report

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    OutputFormat.CSV: "text/csv",
    OutputFormat.PDF: "application/pdf",
}

HEADER_BLUE = colors.Color(59 / 255, 130 / 255, 246 / 255)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def report_filename(report: Report, output_format: OutputFormat | str) -> str:
    """`Title_With_Underscores_YYYY-MM-DD.ext`."""
    output_format = OutputFormat(output_format)
    stem = re.sub(r"\s+", "_", report.title.strip()) or "report"
    return f"{stem}_{report.generated_at:%Y-%m-%d}.{output_format.value}"


def render_csv(report: Report) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(report.headers)
    for row in report.rows:
        writer.writerow([_cell(value) for value in row])
    return buffer.getvalue().encode("utf-8")


def render_pdf(report: Report, generated_at: datetime | None = None) -> bytes:
    """Landscape letter table; the header row repeats on every page."""
    generated_at = generated_at or report.generated_at
    parameters = report.parameters

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("report_title", parent=styles["Heading1"], fontSize=16)
    meta_style = ParagraphStyle("report_meta", parent=styles["Normal"], fontSize=10)
    cell_style = ParagraphStyle("report_cell", parent=styles["Normal"], fontSize=8, leading=10)
    head_style = ParagraphStyle(
        "report_head", parent=cell_style, textColor=colors.white, fontName="Helvetica-Bold"
    )

    story: list[Any] = [
        Paragraph(escape(report.title), title_style),
        Paragraph(f"Generated: {generated_at:%Y-%m-%d %H:%M}", meta_style),
        Paragraph(f"Total Records: {report.record_count}", meta_style),
    ]
    if parameters.has_date_range:
        story.append(
            Paragraph(
                f"Period: {parameters.start_date:%m/%d/%Y} - {parameters.end_date:%m/%d/%Y}",
                meta_style,
            )
        )
    story.append(Spacer(1, 0.2 * inch))

    data = [[Paragraph(escape(header), head_style) for header in report.headers]]
    data.extend([Paragraph(escape(_cell(value)), cell_style) for value in row] for row in report.rows)

    page_width = landscape(letter)[0] - 1.0 * inch
    column_width = page_width / max(len(report.headers), 1)
    table = Table(data, colWidths=[column_width] * len(report.headers), repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_BLUE),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    story.append(table)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=report.title,
    )
    doc.build(story)
    return buffer.getvalue()


def render(report: Report, output_format: OutputFormat | str) -> bytes:
    if OutputFormat(output_format) == OutputFormat.PDF:
        return render_pdf(report)
    return render_csv(report)


async def email_report(
    mailer: Mailer,
    to: str,
    report: Report,
    output_format: OutputFormat | str,
    content: bytes | None = None,
) -> str:
    """Send a rendered report as an attachment. Returns the attachment filename."""
    output_format = OutputFormat(output_format)
    filename = report_filename(report, output_format)
    content = content if content is not None else render(report, output_format)
    body = (
        f"Your requested {report.title} is attached.\n\n"
        f"Generated: {report.generated_at:%Y-%m-%d %H:%M}\n"
        f"Records: {report.record_count}\n"
        f"Filename: {filename}\n"
    )
    await mailer.send(
        to,
        f"Timesheet Report - {report.title}",
        body,
        attachments=[Attachment(filename, content, CONTENT_TYPES[output_format])],
    )
    logger.info("Emailed report '%s' to %s", report.title, to)
    return filename
