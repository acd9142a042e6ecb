"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timesheet_engine.calculators.hours import (
    daily_hours,
    hours_breakdown,
    round_hours,
    round_money,
)
from timesheet_engine.calculators.pay_period import PeriodOption
from timesheet_engine.calculators.types import PayCalculation
from timesheet_engine.models import Timesheet, TimesheetEntry
from timesheet_engine.services.permissions import Actor, can_approve, is_owner
from timesheet_engine.services.report_service import OutputFormat, ReportParameters, ReportType
from timesheet_engine.services.state_machine import TimesheetEvent, TimesheetStateMachine
from timesheet_engine.services.timesheet_service import naive_utc
from timesheet_engine.services.user_service import UserMetrics


# ============================================================================
# Common
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    detail: str
    code: str
    errors: list[str] | None = None
    retryable: bool | None = None


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# Auth and users
# ============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: str
    manager_id: UUID | None = None
    pay_rate: Decimal
    status: str
    created_at: datetime | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserCreate(BaseModel):
    email: str
    name: str
    role: str = "STAFF"
    password: str | None = None
    manager_id: UUID | None = None
    pay_rate: Decimal = Field(default=Decimal("0"), ge=0)


class UserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    email: str | None = None
    name: str | None = None
    role: str | None = None
    pay_rate: Decimal | None = Field(default=None, ge=0)
    password: str | None = None
    status: str | None = None


class ManagerAssignment(BaseModel):
    manager_id: UUID | None = None


class PayRateCreate(BaseModel):
    pay_rate: Decimal = Field(ge=0)
    effective_date: date
    end_date: date | None = None


class PayRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pay_rate: Decimal
    effective_date: date
    end_date: date | None = None


# ============================================================================
# Timesheets
# ============================================================================


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_date: date
    in1: datetime | None = None
    out1: datetime | None = None
    in2: datetime | None = None
    out2: datetime | None = None
    in3: datetime | None = None
    out3: datetime | None = None
    plawa_hours: Decimal
    comments: str | None = None
    hours: Decimal = Decimal("0.00")

    @classmethod
    def from_entry(cls, entry: TimesheetEntry) -> EntryResponse:
        response = cls.model_validate(entry)
        response.hours = daily_hours(
            entry.in1, entry.out1, entry.in2, entry.out2, entry.in3, entry.out3, entry.plawa_hours
        )
        return response


class EntryUpdate(BaseModel):
    """Partial entry update. Clock times are stored as naive UTC."""

    in1: datetime | None = None
    out1: datetime | None = None
    in2: datetime | None = None
    out2: datetime | None = None
    in3: datetime | None = None
    out3: datetime | None = None
    plawa_hours: Decimal | None = None
    comments: str | None = None

    @field_validator("in1", "out1", "in2", "out2", "in3", "out3")
    @classmethod
    def to_naive_utc(cls, value: datetime | None) -> datetime | None:
        return naive_utc(value)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class TimesheetCreate(BaseModel):
    period_start: date
    period_end: date


class SignatureRequest(BaseModel):
    signature: str = ""


class DenyRequest(BaseModel):
    note: str = ""


def _available_actions(actor: Actor, timesheet: Timesheet) -> list[str]:
    actions = []
    for event in TimesheetStateMachine.available_events(timesheet.state):
        if event == TimesheetEvent.SUBMIT:
            allowed = is_owner(actor, timesheet.user_id)
        else:
            allowed = can_approve(actor, timesheet, timesheet.user.manager_id)
        if allowed:
            actions.append(event.value)
    return actions


class TimesheetSummaryResponse(BaseModel):
    """Timesheet without its entries."""

    id: UUID
    user_id: UUID
    user_name: str
    period_start: date
    period_end: date
    state: str
    staff_sig: str | None = None
    staff_signed_at: datetime | None = None
    manager_sig: str | None = None
    manager_signed_at: datetime | None = None
    hr_sig: str | None = None
    hr_signed_at: datetime | None = None
    manager_note: str | None = None
    total_hours: Decimal
    regular_hours: Decimal
    plawa_hours: Decimal
    editable: bool = False
    available_actions: list[str] = Field(default_factory=list)

    @classmethod
    def summary_fields(cls, timesheet: Timesheet, actor: Actor) -> dict[str, Any]:
        hours = hours_breakdown(timesheet.entries).rounded()
        return {
            "id": timesheet.id,
            "user_id": timesheet.user_id,
            "user_name": timesheet.user.name,
            "period_start": timesheet.period_start,
            "period_end": timesheet.period_end,
            "state": timesheet.state,
            "staff_sig": timesheet.staff_sig,
            "staff_signed_at": timesheet.staff_signed_at,
            "manager_sig": timesheet.manager_sig,
            "manager_signed_at": timesheet.manager_signed_at,
            "hr_sig": timesheet.hr_sig,
            "hr_signed_at": timesheet.hr_signed_at,
            "manager_note": timesheet.manager_note,
            "total_hours": hours.total,
            "regular_hours": hours.regular,
            "plawa_hours": hours.plawa,
            "editable": is_owner(actor, timesheet.user_id)
            and TimesheetStateMachine.can_modify_entries(timesheet.state),
            "available_actions": _available_actions(actor, timesheet),
        }

    @classmethod
    def from_timesheet(cls, timesheet: Timesheet, actor: Actor) -> TimesheetSummaryResponse:
        return cls(**cls.summary_fields(timesheet, actor))


class TimesheetResponse(TimesheetSummaryResponse):
    entries: list[EntryResponse] = Field(default_factory=list)

    @classmethod
    def from_timesheet(cls, timesheet: Timesheet, actor: Actor) -> TimesheetResponse:
        return cls(
            **cls.summary_fields(timesheet, actor),
            entries=[EntryResponse.from_entry(entry) for entry in timesheet.entries],
        )


class PeriodOptionResponse(BaseModel):
    period_start: date
    period_end: date
    label: str
    is_current: bool
    is_past: bool
    is_future: bool
    timesheet_id: UUID | None = None
    state: str | None = None

    @classmethod
    def from_option(cls, option: PeriodOption, timesheet: Timesheet | None) -> PeriodOptionResponse:
        return cls(
            period_start=option.period.start,
            period_end=option.period.end,
            label=option.period.label,
            is_current=option.is_current,
            is_past=option.is_past,
            is_future=option.is_future,
            timesheet_id=timesheet.id if timesheet else None,
            state=timesheet.state if timesheet else None,
        )


# ============================================================================
# Pay and metrics
# ============================================================================


class PayBreakdownResponse(BaseModel):
    pay_rate: Decimal
    hours: Decimal
    pay: Decimal
    source: str
    effective_date: date | None = None
    end_date: date | None = None


class PayCalculationResponse(BaseModel):
    total_hours: Decimal
    total_pay: Decimal
    breakdown: list[PayBreakdownResponse]

    @classmethod
    def from_calculation(cls, calculation: PayCalculation) -> PayCalculationResponse:
        rounded = calculation.rounded()
        return cls(
            total_hours=rounded.total_hours,
            total_pay=rounded.total_pay,
            breakdown=[
                PayBreakdownResponse(
                    pay_rate=line.pay_rate,
                    hours=line.hours,
                    pay=line.pay,
                    source=line.source.value,
                    effective_date=line.effective_date,
                    end_date=line.end_date,
                )
                for line in rounded.breakdown
            ],
        )


class EarningsResponse(PayCalculationResponse):
    user_id: UUID
    year: int


class MonthlyHoursResponse(BaseModel):
    month: str
    month_name: str
    hours: Decimal
    regular_hours: Decimal
    plawa_hours: Decimal
    timesheets: int


class DayAverageResponse(BaseModel):
    total: Decimal
    count: int
    average: Decimal


class RecentTimesheetResponse(BaseModel):
    id: UUID
    period_start: date
    period_end: date
    state: str
    total_hours: Decimal


class MetricsSummary(BaseModel):
    total_hours: Decimal
    total_regular_hours: Decimal
    total_plawa_hours: Decimal
    total_timesheets: int
    approved_timesheets: int
    pending_timesheets: int
    average_hours_per_timesheet: Decimal
    average_hours_per_month: Decimal
    plawa_percentage: Decimal
    approval_rate: Decimal
    estimated_earnings: Decimal


class UserMetricsResponse(BaseModel):
    user: UserResponse
    since: date
    summary: MetricsSummary
    monthly: list[MonthlyHoursResponse]
    day_of_week: dict[str, DayAverageResponse]
    earnings: PayCalculationResponse
    recent_timesheets: list[RecentTimesheetResponse]

    @classmethod
    def from_metrics(cls, metrics: UserMetrics) -> UserMetricsResponse:
        hours = metrics.hours.rounded()
        return cls(
            user=UserResponse.model_validate(metrics.user),
            since=metrics.since,
            summary=MetricsSummary(
                total_hours=hours.total,
                total_regular_hours=hours.regular,
                total_plawa_hours=hours.plawa,
                total_timesheets=metrics.timesheet_count,
                approved_timesheets=metrics.approved_count,
                pending_timesheets=metrics.pending_count,
                average_hours_per_timesheet=round_hours(metrics.average_hours_per_timesheet),
                average_hours_per_month=round_hours(metrics.average_hours_per_month),
                plawa_percentage=round_money(metrics.plawa_percentage),
                approval_rate=round_money(metrics.approval_rate),
                estimated_earnings=round_money(metrics.earnings.total_pay),
            ),
            monthly=[
                MonthlyHoursResponse(
                    month=month.month,
                    month_name=month.month_name,
                    hours=round_hours(month.hours.total),
                    regular_hours=round_hours(month.hours.regular),
                    plawa_hours=round_hours(month.hours.plawa),
                    timesheets=month.timesheets,
                )
                for month in metrics.monthly
            ],
            day_of_week={
                name: DayAverageResponse(
                    total=round_hours(day.total),
                    count=day.count,
                    average=round_hours(day.average),
                )
                for name, day in metrics.day_of_week.items()
            },
            earnings=PayCalculationResponse.from_calculation(metrics.earnings),
            recent_timesheets=[
                RecentTimesheetResponse(
                    id=timesheet.id,
                    period_start=timesheet.period_start,
                    period_end=timesheet.period_end,
                    state=timesheet.state,
                    total_hours=round_hours(total),
                )
                for timesheet, total in metrics.recent
            ],
        )


# ============================================================================
# Reports
# ============================================================================


class ReportParametersSchema(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    status: str | None = None
    user_ids: list[UUID] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)

    def to_parameters(self) -> ReportParameters:
        return ReportParameters(
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            user_ids=tuple(self.user_ids),
            roles=tuple(self.roles),
        )


class ReportRequest(ReportParametersSchema):
    """Ad-hoc report. Every filter is enabled; unset parameters match everything."""

    report_type: ReportType
    format: OutputFormat = OutputFormat.CSV
    columns: list[str] | None = None
    email_to: str | None = None


class ReportExecuteRequest(BaseModel):
    format: OutputFormat = OutputFormat.CSV
    parameters: ReportParametersSchema = Field(default_factory=ReportParametersSchema)


class ReportEmailResponse(BaseModel):
    message: str
    record_count: int
    filename: str | None = None


class CustomReportCreate(BaseModel):
    name: str
    description: str = ""
    config: dict[str, Any]


class CustomReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    config: dict[str, Any]
    created_by: UUID | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ============================================================================
# Notifications
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: str
    resource_id: UUID | None = None
    is_read: bool
    created_at: datetime | None = None
