"""Tabular timesheet reports.

Report columns are closed enums per report type, so a configuration naming an
unknown column is rejected when it is built rather than producing empty cells.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.calculators.hours import (
    ZERO,
    HoursBreakdown,
    hours_breakdown,
    round_hours,
    round_money,
)
from timesheet_engine.calculators.pay_calculator import calculate_pay
from timesheet_engine.calculators.rate_resolver import resolve_rate
from timesheet_engine.calculators.types import PayRateWindow, TimesheetHours
from timesheet_engine.errors import ValidationError
from timesheet_engine.models import PayRateHistory, Timesheet, User
from timesheet_engine.services.permissions import Role
from timesheet_engine.services.state_machine import TimesheetState

NOT_APPLICABLE = "N/A"


class ReportType(str, Enum):
    TIMESHEET_SUMMARY = "timesheet_summary"
    USER_SUMMARY = "user_summary"


class OutputFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"


class TimesheetColumn(str, Enum):
    """Columns of a timesheet_summary report, one row per timesheet."""

    EMPLOYEE_NAME = "employeeName"
    EMPLOYEE_EMAIL = "employeeEmail"
    MANAGER_NAME = "managerName"
    MANAGER_EMAIL = "managerEmail"
    PERIOD_START = "periodStart"
    PERIOD_END = "periodEnd"
    STATUS = "status"
    TOTAL_HOURS = "totalHours"
    REGULAR_HOURS = "regularHours"
    PLAWA_HOURS = "plawaHours"
    PAY_RATE = "payRate"
    ESTIMATED_PAY = "estimatedPay"
    STAFF_SIGNED = "staffSigned"
    MANAGER_SIGNED = "managerSigned"
    HR_SIGNED = "hrSigned"


class UserSummaryColumn(str, Enum):
    """Columns of a user_summary report, one row per user."""

    EMPLOYEE_NAME = "employeeName"
    EMPLOYEE_EMAIL = "employeeEmail"
    ROLE = "role"
    MANAGER_NAME = "managerName"
    MANAGER_EMAIL = "managerEmail"
    PAY_RATE = "payRate"
    TOTAL_HOURS = "totalHours"
    REGULAR_HOURS = "regularHours"
    PLAWA_HOURS = "plawaHours"
    TOTAL_PAY = "totalPay"
    TIMESHEET_COUNT = "timesheetCount"
    APPROVED_COUNT = "approvedCount"
    APPROVAL_RATE = "approvalRate"


COLUMN_LABELS: dict[str, str] = {
    "employeeName": "Employee Name",
    "employeeEmail": "Employee Email",
    "managerName": "Manager Name",
    "managerEmail": "Manager Email",
    "periodStart": "Period Start",
    "periodEnd": "Period End",
    "status": "Status",
    "totalHours": "Total Hours",
    "regularHours": "Regular Hours",
    "plawaHours": "PLAWA Hours",
    "payRate": "Pay Rate",
    "estimatedPay": "Estimated Pay",
    "staffSigned": "Staff Signed",
    "managerSigned": "Manager Signed",
    "hrSigned": "HR Signed",
    "role": "Role",
    "totalPay": "Total Pay",
    "timesheetCount": "Timesheets",
    "approvedCount": "Approved",
    "approvalRate": "Approval Rate",
}

COLUMNS_BY_TYPE: dict[ReportType, type[Enum]] = {
    ReportType.TIMESHEET_SUMMARY: TimesheetColumn,
    ReportType.USER_SUMMARY: UserSummaryColumn,
}

DEFAULT_TITLES = {
    ReportType.TIMESHEET_SUMMARY: "Timesheet Summary Report",
    ReportType.USER_SUMMARY: "User Summary Report",
}


class ReportFilterToggle(str, Enum):
    DATE_RANGE = "dateRange"
    STATUS = "status"
    USERS = "users"
    ROLES = "roles"


@dataclass(frozen=True)
class ReportConfig:
    """Report type, selected columns, and enabled filters.

    Stored as JSON on custom reports:
        {"reportType": "...", "columns": [...], "filters": {"dateRange": true, ...}}
    """

    report_type: ReportType
    columns: tuple[Enum, ...]
    filters: frozenset[ReportFilterToggle] = frozenset()

    def __post_init__(self) -> None:
        try:
            report_type = ReportType(self.report_type)
        except ValueError:
            raise ValidationError(f"Invalid report type: {self.report_type}")
        column_enum = COLUMNS_BY_TYPE[report_type]

        if not self.columns:
            raise ValidationError("At least one column must be selected")
        columns = []
        invalid = []
        for column in self.columns:
            try:
                columns.append(column_enum(getattr(column, "value", column)))
            except ValueError:
                invalid.append(str(getattr(column, "value", column)))
        if invalid:
            raise ValidationError(
                f"Unknown column(s) for {report_type.value}: {', '.join(invalid)}"
            )

        try:
            filters = frozenset(ReportFilterToggle(f) for f in self.filters)
        except ValueError:
            raise ValidationError("Unknown report filter")

        object.__setattr__(self, "report_type", report_type)
        object.__setattr__(self, "columns", tuple(dict.fromkeys(columns)))
        object.__setattr__(self, "filters", filters)

    @classmethod
    def default(cls, report_type: ReportType | str) -> ReportConfig:
        """Every column, every filter enabled."""
        report_type = ReportType(report_type)
        return cls(
            report_type=report_type,
            columns=tuple(COLUMNS_BY_TYPE[report_type]),
            filters=frozenset(ReportFilterToggle),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReportConfig:
        if not isinstance(data, Mapping):
            raise ValidationError("Report configuration must be an object")
        filters = data.get("filters") or {}
        if isinstance(filters, Mapping):
            enabled = [name for name, on in filters.items() if on]
        else:
            enabled = list(filters)
        return cls(
            report_type=data.get("reportType"),
            columns=tuple(data.get("columns") or ()),
            filters=frozenset(enabled),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportType": self.report_type.value,
            "columns": [column.value for column in self.columns],
            "filters": {toggle.value: toggle in self.filters for toggle in ReportFilterToggle},
        }

    @property
    def headers(self) -> list[str]:
        return [COLUMN_LABELS[column.value] for column in self.columns]


@dataclass(frozen=True)
class ReportParameters:
    """Runtime filter values. Each applies only if its toggle is enabled."""

    start_date: date | None = None
    end_date: date | None = None
    status: str | None = None
    user_ids: tuple[UUID, ...] = ()
    roles: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("Start date must not be after end date")
        if self.status is not None:
            try:
                object.__setattr__(self, "status", TimesheetState(self.status).value)
            except ValueError:
                raise ValidationError(f"Invalid status: {self.status}")
        try:
            object.__setattr__(self, "roles", tuple(Role(role).value for role in self.roles))
        except ValueError:
            raise ValidationError("Invalid role filter")
        object.__setattr__(self, "user_ids", tuple(self.user_ids))

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass
class Report:
    """Labeled rows ready for rendering."""

    title: str
    headers: list[str]
    rows: list[list[Any]]
    parameters: ReportParameters = field(default_factory=ReportParameters)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record_count(self) -> int:
        return len(self.rows)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.headers, row)) for row in self.rows]


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _approval_rate(approved: int, total: int) -> Decimal:
    if total == 0:
        return round_money(ZERO)
    return round_money(Decimal(approved) / Decimal(total) * 100)


class ReportService:
    """Builds reports from timesheets.

    Estimated pay resolves the historical rate for each timesheet's period
    start, the same way pay calculations do.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def build(
        self,
        config: ReportConfig,
        parameters: ReportParameters | None = None,
        title: str | None = None,
    ) -> Report:
        parameters = parameters or ReportParameters()
        title = title or DEFAULT_TITLES[config.report_type]

        if config.report_type == ReportType.TIMESHEET_SUMMARY:
            rows = await self._timesheet_rows(config, parameters)
        else:
            rows = await self._user_summary_rows(config, parameters)

        return Report(title=title, headers=config.headers, rows=rows, parameters=parameters)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _user_filters(self, config: ReportConfig, parameters: ReportParameters) -> list[Any]:
        clauses: list[Any] = []
        if ReportFilterToggle.USERS in config.filters and parameters.user_ids:
            clauses.append(User.id.in_(parameters.user_ids))
        if ReportFilterToggle.ROLES in config.filters and parameters.roles:
            clauses.append(User.role.in_(parameters.roles))
        return clauses

    def _timesheet_filters(self, config: ReportConfig, parameters: ReportParameters) -> list[Any]:
        clauses: list[Any] = []
        if ReportFilterToggle.DATE_RANGE in config.filters and parameters.has_date_range:
            clauses.append(Timesheet.period_start >= parameters.start_date)
            clauses.append(Timesheet.period_start <= parameters.end_date)
        if ReportFilterToggle.STATUS in config.filters and parameters.status:
            clauses.append(Timesheet.state == parameters.status)
        return clauses

    async def _load_timesheets(
        self, config: ReportConfig, parameters: ReportParameters
    ) -> list[Timesheet]:
        result = await self.session.execute(
            select(Timesheet)
            .join(User, Timesheet.user_id == User.id)
            .where(*self._timesheet_filters(config, parameters))
            .where(*self._user_filters(config, parameters))
            .options(
                selectinload(Timesheet.entries),
                selectinload(Timesheet.user).selectinload(User.manager),
            )
            .order_by(Timesheet.period_start.desc(), User.name)
        )
        return list(result.scalars().all())

    async def _load_history(self, user_ids: Iterable[UUID]) -> dict[UUID, list[PayRateWindow]]:
        history: dict[UUID, list[PayRateWindow]] = defaultdict(list)
        ids = list(set(user_ids))
        if not ids:
            return history
        result = await self.session.execute(
            select(PayRateHistory)
            .where(PayRateHistory.user_id.in_(ids))
            .order_by(PayRateHistory.effective_date)
        )
        for row in result.scalars().all():
            history[row.user_id].append(
                PayRateWindow(row.pay_rate, row.effective_date, row.end_date)
            )
        return history

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------

    async def _timesheet_rows(
        self, config: ReportConfig, parameters: ReportParameters
    ) -> list[list[Any]]:
        timesheets = await self._load_timesheets(config, parameters)
        history = await self._load_history(t.user_id for t in timesheets)

        rows = []
        for timesheet in timesheets:
            user = timesheet.user
            hours = hours_breakdown(timesheet.entries)
            rate = resolve_rate(history[user.id], timesheet.period_start, user.pay_rate).pay_rate
            values = {
                TimesheetColumn.EMPLOYEE_NAME: user.name,
                TimesheetColumn.EMPLOYEE_EMAIL: user.email,
                TimesheetColumn.MANAGER_NAME: user.manager.name if user.manager else NOT_APPLICABLE,
                TimesheetColumn.MANAGER_EMAIL: user.manager.email if user.manager else NOT_APPLICABLE,
                TimesheetColumn.PERIOD_START: timesheet.period_start.isoformat(),
                TimesheetColumn.PERIOD_END: timesheet.period_end.isoformat(),
                TimesheetColumn.STATUS: timesheet.state,
                TimesheetColumn.TOTAL_HOURS: round_hours(hours.total),
                TimesheetColumn.REGULAR_HOURS: round_hours(hours.regular),
                TimesheetColumn.PLAWA_HOURS: round_hours(hours.plawa),
                TimesheetColumn.PAY_RATE: round_money(rate),
                TimesheetColumn.ESTIMATED_PAY: round_money(hours.total * rate),
                TimesheetColumn.STAFF_SIGNED: _yes_no(timesheet.staff_sig),
                TimesheetColumn.MANAGER_SIGNED: _yes_no(timesheet.manager_sig),
                TimesheetColumn.HR_SIGNED: _yes_no(timesheet.hr_sig),
            }
            rows.append([values[column] for column in config.columns])
        return rows

    async def _user_summary_rows(
        self, config: ReportConfig, parameters: ReportParameters
    ) -> list[list[Any]]:
        """One row per matching user, including users with no matching timesheets."""
        result = await self.session.execute(
            select(User)
            .where(*self._user_filters(config, parameters))
            .options(selectinload(User.manager))
            .order_by(User.name, User.email)
        )
        users = list(result.scalars().all())

        by_user: dict[UUID, list[Timesheet]] = defaultdict(list)
        for timesheet in await self._load_timesheets(config, parameters):
            by_user[timesheet.user_id].append(timesheet)
        history = await self._load_history(user.id for user in users)

        rows = []
        for user in users:
            timesheets = by_user.get(user.id, [])
            hours = HoursBreakdown()
            sheet_hours = []
            approved = 0
            for timesheet in timesheets:
                breakdown = hours_breakdown(timesheet.entries)
                hours = hours + breakdown
                sheet_hours.append(
                    TimesheetHours(timesheet.period_start, timesheet.period_end, breakdown.total)
                )
                if timesheet.state == TimesheetState.APPROVED.value:
                    approved += 1
            pay = calculate_pay(sheet_hours, history[user.id], user.pay_rate)

            values = {
                UserSummaryColumn.EMPLOYEE_NAME: user.name,
                UserSummaryColumn.EMPLOYEE_EMAIL: user.email,
                UserSummaryColumn.ROLE: user.role,
                UserSummaryColumn.MANAGER_NAME: user.manager.name if user.manager else NOT_APPLICABLE,
                UserSummaryColumn.MANAGER_EMAIL: user.manager.email if user.manager else NOT_APPLICABLE,
                UserSummaryColumn.PAY_RATE: round_money(user.pay_rate),
                UserSummaryColumn.TOTAL_HOURS: round_hours(hours.total),
                UserSummaryColumn.REGULAR_HOURS: round_hours(hours.regular),
                UserSummaryColumn.PLAWA_HOURS: round_hours(hours.plawa),
                UserSummaryColumn.TOTAL_PAY: round_money(pay.total_pay),
                UserSummaryColumn.TIMESHEET_COUNT: len(timesheets),
                UserSummaryColumn.APPROVED_COUNT: approved,
                UserSummaryColumn.APPROVAL_RATE: _approval_rate(approved, len(timesheets)),
            }
            rows.append([values[column] for column in config.columns])
        return rows
