"""Tests for report configuration and building."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from timesheet_engine.errors import NotActionableError, ValidationError
from timesheet_engine.models import PayRateHistory
from timesheet_engine.services.custom_report_service import CustomReportService
from timesheet_engine.services.report_service import (
    ReportConfig,
    ReportFilterToggle,
    ReportParameters,
    ReportService,
    ReportType,
    TimesheetColumn,
    UserSummaryColumn,
)

from .conftest import seed_timesheet


class TestReportConfig:
    def test_default_has_every_column_and_filter(self):
        config = ReportConfig.default("timesheet_summary")

        assert config.columns == tuple(TimesheetColumn)
        assert config.filters == frozenset(ReportFilterToggle)
        assert config.headers[0] == "Employee Name"

    def test_round_trip_through_stored_json(self):
        stored = {
            "reportType": "user_summary",
            "columns": ["employeeName", "approvalRate"],
            "filters": {"dateRange": True, "status": False, "users": False, "roles": True},
        }
        config = ReportConfig.from_dict(stored)

        assert config.columns == (UserSummaryColumn.EMPLOYEE_NAME, UserSummaryColumn.APPROVAL_RATE)
        assert config.filters == {ReportFilterToggle.DATE_RANGE, ReportFilterToggle.ROLES}
        assert config.to_dict() == stored

    def test_unknown_column_rejected(self):
        with pytest.raises(ValidationError, match="estimatedPay"):
            ReportConfig.from_dict({"reportType": "user_summary", "columns": ["estimatedPay"]})

    def test_empty_columns_rejected(self):
        with pytest.raises(ValidationError, match="At least one column"):
            ReportConfig.from_dict({"reportType": "timesheet_summary", "columns": []})

    def test_unknown_report_type(self):
        with pytest.raises(ValidationError, match="Invalid report type"):
            ReportConfig.from_dict({"reportType": "payroll", "columns": ["employeeName"]})

    def test_parameters_validated(self):
        with pytest.raises(ValidationError):
            ReportParameters(start_date=date(2024, 3, 1), end_date=date(2024, 2, 1))
        with pytest.raises(ValidationError):
            ReportParameters(status="DENIED")
        with pytest.raises(ValidationError):
            ReportParameters(roles=("INTERN",))


class TestTimesheetSummary:
    @pytest_asyncio.fixture
    async def seeded(self, session_factory, users):
        async with session_factory() as session:
            session.add_all(
                [
                    PayRateHistory(
                        user_id=users["staff"].id,
                        pay_rate=Decimal("18.00"),
                        effective_date=date(2024, 1, 1),
                        end_date=date(2024, 3, 1),
                    ),
                    PayRateHistory(
                        user_id=users["staff"].id,
                        pay_rate=Decimal("20.00"),
                        effective_date=date(2024, 3, 1),
                    ),
                ]
            )
            await session.commit()
        await seed_timesheet(
            session_factory, users["staff"], date(2024, 2, 16), "APPROVED", {date(2024, 2, 20): (9, 17)}
        )
        await seed_timesheet(
            session_factory,
            users["staff"],
            date(2024, 3, 1),
            "PENDING_HR",
            {date(2024, 3, 4): (9, 17)},
            plawa={date(2024, 3, 5): Decimal("1.5")},
        )
        await seed_timesheet(
            session_factory, users["peer"], date(2024, 3, 1), "PENDING_MANAGER", {date(2024, 3, 4): (9, 13)}
        )
        await seed_timesheet(session_factory, users["hr"], date(2024, 3, 1))

    async def test_rows_newest_period_first_then_name(self, session, seeded):
        config = ReportConfig(
            ReportType.TIMESHEET_SUMMARY,
            (TimesheetColumn.EMPLOYEE_NAME, TimesheetColumn.PERIOD_START, TimesheetColumn.STATUS),
        )
        report = await ReportService(session).build(config)

        assert report.title == "Timesheet Summary Report"
        assert report.headers == ["Employee Name", "Period Start", "Status"]
        assert report.rows == [
            ["Hana Reviewer", "2024-03-01", "PENDING_STAFF"],
            ["Pat Peer", "2024-03-01", "PENDING_MANAGER"],
            ["Sam Staff", "2024-03-01", "PENDING_HR"],
            ["Sam Staff", "2024-02-16", "APPROVED"],
        ]

    async def test_estimated_pay_uses_historical_rate(self, session, users, seeded):
        config = ReportConfig(
            ReportType.TIMESHEET_SUMMARY,
            (
                TimesheetColumn.PERIOD_START,
                TimesheetColumn.TOTAL_HOURS,
                TimesheetColumn.PLAWA_HOURS,
                TimesheetColumn.PAY_RATE,
                TimesheetColumn.ESTIMATED_PAY,
            ),
            frozenset({ReportFilterToggle.USERS}),
        )
        report = await ReportService(session).build(
            config, ReportParameters(user_ids=(users["staff"].id,))
        )

        assert report.rows == [
            ["2024-03-01", Decimal("9.50"), Decimal("1.50"), Decimal("20.00"), Decimal("190.00")],
            ["2024-02-16", Decimal("8.00"), Decimal("0.00"), Decimal("18.00"), Decimal("144.00")],
        ]

    async def test_manager_and_signatures(self, session, seeded):
        config = ReportConfig(
            ReportType.TIMESHEET_SUMMARY,
            (
                TimesheetColumn.EMPLOYEE_NAME,
                TimesheetColumn.MANAGER_NAME,
                TimesheetColumn.STAFF_SIGNED,
                TimesheetColumn.HR_SIGNED,
            ),
        )
        rows = (await ReportService(session).build(config)).rows

        assert rows[0] == ["Hana Reviewer", "N/A", "No", "No"]
        assert rows[2] == ["Sam Staff", "Max Manager", "Yes", "No"]
        assert rows[3] == ["Sam Staff", "Max Manager", "Yes", "Yes"]

    async def test_filters_apply_only_when_enabled(self, session, seeded):
        columns = (TimesheetColumn.EMPLOYEE_NAME,)
        parameters = ReportParameters(
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), status="PENDING_HR"
        )

        enabled = ReportConfig(
            ReportType.TIMESHEET_SUMMARY,
            columns,
            frozenset({ReportFilterToggle.DATE_RANGE, ReportFilterToggle.STATUS}),
        )
        disabled = ReportConfig(ReportType.TIMESHEET_SUMMARY, columns, frozenset())

        assert (await ReportService(session).build(enabled, parameters)).rows == [["Sam Staff"]]
        assert (await ReportService(session).build(disabled, parameters)).record_count == 4

    async def test_role_filter(self, session, seeded):
        config = ReportConfig.default(ReportType.TIMESHEET_SUMMARY)
        report = await ReportService(session).build(config, ReportParameters(roles=("HR",)))
        assert report.record_count == 1


class TestUserSummary:
    async def test_includes_users_without_timesheets(self, session_factory, session, users):
        await seed_timesheet(
            session_factory, users["staff"], date(2024, 3, 1), "APPROVED", {date(2024, 3, 4): (9, 17)}
        )
        await seed_timesheet(session_factory, users["staff"], date(2024, 3, 16), "PENDING_STAFF")

        config = ReportConfig(
            ReportType.USER_SUMMARY,
            (
                UserSummaryColumn.EMPLOYEE_NAME,
                UserSummaryColumn.TOTAL_HOURS,
                UserSummaryColumn.TOTAL_PAY,
                UserSummaryColumn.TIMESHEET_COUNT,
                UserSummaryColumn.APPROVED_COUNT,
                UserSummaryColumn.APPROVAL_RATE,
            ),
            frozenset({ReportFilterToggle.ROLES}),
        )
        report = await ReportService(session).build(config, ReportParameters(roles=("STAFF",)))

        assert report.rows == [
            ["Oscar Outsider", Decimal("0.00"), Decimal("0.00"), 0, 0, Decimal("0.00")],
            ["Pat Peer", Decimal("0.00"), Decimal("0.00"), 0, 0, Decimal("0.00")],
            ["Sam Staff", Decimal("8.00"), Decimal("160.00"), 2, 1, Decimal("50.00")],
        ]


class TestCustomReports:
    CONFIG = {
        "reportType": "timesheet_summary",
        "columns": ["employeeName", "status"],
        "filters": {"status": True},
    }

    async def test_create_and_execute(self, session_factory, session, actors, users):
        await seed_timesheet(session_factory, users["staff"], date(2024, 3, 1), "APPROVED")
        await seed_timesheet(session_factory, users["peer"], date(2024, 3, 1), "PENDING_MANAGER")
        service = CustomReportService(session)

        saved = await service.create(actors["hr"], "Approved Sheets", self.CONFIG, "Final only")
        assert saved.config["filters"] == {
            "dateRange": False,
            "status": True,
            "users": False,
            "roles": False,
        }

        report = await service.execute(saved.id, ReportParameters(status="APPROVED"))
        assert report.title == "Approved Sheets"
        assert report.rows == [["Sam Staff", "APPROVED"]]

    async def test_invalid_config_not_saved(self, session, actors):
        service = CustomReportService(session)
        with pytest.raises(ValidationError):
            await service.create(actors["hr"], "Broken", {"reportType": "timesheet_summary", "columns": ["bogus"]})
        with pytest.raises(ValidationError):
            await service.create(actors["hr"], "  ", self.CONFIG)
        assert await service.list_active() == []

    async def test_update_and_soft_delete(self, session, actors):
        service = CustomReportService(session)
        saved = await service.create(actors["hr"], "Weekly", self.CONFIG)
        saved_id = saved.id

        updated = await service.update(saved_id, "Weekly v2", self.CONFIG, "renamed")
        assert updated.name == "Weekly v2"

        await service.delete(saved_id)
        assert await service.list_active() == []
        with pytest.raises(NotActionableError):
            await service.get(saved_id)
        with pytest.raises(NotActionableError):
            await service.execute(saved_id)

    async def test_missing_report(self, session, actors):
        with pytest.raises(NotActionableError):
            await CustomReportService(session).get(uuid4())
