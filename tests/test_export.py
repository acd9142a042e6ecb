"""Tests for report rendering and email delivery."""

import csv
import io
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from timesheet_engine.services.export import (
    email_report,
    render,
    render_csv,
    render_pdf,
    report_filename,
)
from timesheet_engine.services.mailer import Attachment, Mailer, MailerDisabledError
from timesheet_engine.services.report_service import Report, ReportParameters


@pytest.fixture
def report() -> Report:
    return Report(
        title="Timesheet Summary Report",
        headers=["Employee Name", "Total Hours", "Estimated Pay", "Manager Name"],
        rows=[
            ["Sam Staff", Decimal("8.5"), Decimal("170"), "Max Manager"],
            ["Hana <Reviewer> & Co", Decimal("0.00"), Decimal("0.00"), "N/A"],
        ],
        parameters=ReportParameters(start_date=date(2024, 3, 1), end_date=date(2024, 3, 15)),
        generated_at=datetime(2024, 3, 16, 9, 30, tzinfo=timezone.utc),
    )


class TestCsv:
    def test_header_then_rows_with_two_decimal_places(self, report):
        rows = list(csv.reader(io.StringIO(render_csv(report).decode("utf-8"))))

        assert rows[0] == ["Employee Name", "Total Hours", "Estimated Pay", "Manager Name"]
        assert rows[1] == ["Sam Staff", "8.50", "170.00", "Max Manager"]
        assert rows[2] == ["Hana <Reviewer> & Co", "0.00", "0.00", "N/A"]

    def test_values_with_commas_are_quoted(self):
        report = Report(title="Users", headers=["Name"], rows=[["Staff, Sam"]])
        assert render_csv(report).decode("utf-8").splitlines() == ["Name", '"Staff, Sam"']

    def test_empty_report_has_header_only(self):
        report = Report(title="Users", headers=["Name", "Role"], rows=[])
        assert render_csv(report) == b"Name,Role\r\n"


class TestPdf:
    def test_renders_pdf_document(self, report):
        content = render_pdf(report)
        assert content.startswith(b"%PDF")

    def test_long_report_grows_document(self, report):
        short = render_pdf(report)
        report.rows = [["Sam Staff", Decimal("8"), Decimal("160"), "Max Manager"]] * 200
        long = render(report, "pdf")
        assert long.startswith(b"%PDF")
        assert len(long) > len(short)


def test_filename_uses_title_and_generation_date(report):
    assert report_filename(report, "csv") == "Timesheet_Summary_Report_2024-03-16.csv"
    assert report_filename(report, "pdf") == "Timesheet_Summary_Report_2024-03-16.pdf"


def test_unknown_format_rejected(report):
    with pytest.raises(ValueError):
        report_filename(report, "xlsx")


class TestEmail:
    async def test_report_sent_as_attachment(self, mailer, report):
        filename = await email_report(mailer, "hr@test.com", report, "csv")

        assert filename == "Timesheet_Summary_Report_2024-03-16.csv"
        [msg] = mailer.outbox
        assert msg["To"] == "hr@test.com"
        assert msg["From"] == "timesheets@test.com"
        assert msg["Subject"] == "Timesheet Report - Timesheet Summary Report"

        [attachment] = list(msg.iter_attachments())
        assert attachment.get_filename() == filename
        assert attachment.get_content_type() == "text/csv"
        assert attachment.get_payload(decode=True) == render_csv(report)

    async def test_prerendered_content_is_reused(self, mailer, report):
        await email_report(mailer, "hr@test.com", report, "pdf", content=b"%PDF-fake")

        [attachment] = list(mailer.outbox[0].iter_attachments())
        assert attachment.get_content_type() == "application/pdf"
        assert attachment.get_payload(decode=True) == b"%PDF-fake"

    async def test_disabled_mailer_raises(self, settings, report):
        mailer = Mailer(settings)
        assert not mailer.enabled
        with pytest.raises(MailerDisabledError):
            await email_report(mailer, "hr@test.com", report, "csv")


def test_build_message_without_attachments(mail_settings):
    msg = Mailer(mail_settings).build_message("a@test.com", "Hi", "Body text")
    assert msg.get_content().strip() == "Body text"
    assert list(msg.iter_attachments()) == []


def test_build_message_defaults_binary_subtype(mail_settings):
    msg = Mailer(mail_settings).build_message(
        "a@test.com", "Hi", "Body", [Attachment("blob", b"\x00\x01", "application")]
    )
    [attachment] = list(msg.iter_attachments())
    assert attachment.get_content_type() == "application/octet-stream"
