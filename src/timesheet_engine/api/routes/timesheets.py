"""Timesheet API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from timesheet_engine.api.dependencies import AppSettings, CurrentActor, TimesheetServiceDep
from timesheet_engine.api.schemas import (
    DenyRequest,
    EntryResponse,
    EntryUpdate,
    ErrorResponse,
    PeriodOptionResponse,
    SignatureRequest,
    TimesheetCreate,
    TimesheetResponse,
    TimesheetSummaryResponse,
)
from timesheet_engine.services.state_machine import TimesheetState

router = APIRouter(prefix="/timesheet", tags=["timesheets"])

NOT_ACTIONABLE = {404: {"model": ErrorResponse}}
INVALID_OR_NOT_ACTIONABLE = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


# ============================================================================
# Reads and creation
# ============================================================================


@router.get("/current", response_model=TimesheetResponse)
async def get_current_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
) -> TimesheetResponse:
    """The actor's timesheet for today's pay period, created on first access."""
    timesheet = await service.get_or_create_current(actor)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.get("", response_model=list[TimesheetSummaryResponse])
async def list_timesheets(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    state: Annotated[TimesheetState | None, Query()] = None,
) -> list[TimesheetSummaryResponse]:
    """Timesheets visible to the actor, newest period first."""
    timesheets = await service.list_for_actor(actor, state.value if state else None)
    return [TimesheetSummaryResponse.from_timesheet(t, actor) for t in timesheets]


@router.post(
    "",
    response_model=TimesheetResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    payload: TimesheetCreate,
) -> TimesheetResponse:
    """Create the actor's timesheet for a past or future pay period."""
    timesheet = await service.create_for_period(actor, payload.period_start, payload.period_end)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.get("/periods", response_model=list[PeriodOptionResponse])
async def list_periods(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    settings: AppSettings,
    back: Annotated[int | None, Query(ge=0, le=48)] = None,
    forward: Annotated[int | None, Query(ge=0, le=24)] = None,
) -> list[PeriodOptionResponse]:
    """Pay periods around today, newest first, with the actor's timesheet for each."""
    options = await service.period_options(
        actor,
        date.today(),
        settings.pay_periods_back if back is None else back,
        settings.pay_periods_forward if forward is None else forward,
    )
    return [PeriodOptionResponse.from_option(option, timesheet) for option, timesheet in options]


@router.get("/{timesheet_id}", response_model=TimesheetResponse, responses=NOT_ACTIONABLE)
async def get_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
) -> TimesheetResponse:
    timesheet = await service.get_for_actor(actor, timesheet_id)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.patch(
    "/{timesheet_id}/entry/{entry_id}",
    response_model=EntryResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def update_entry(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    entry_id: Annotated[UUID, Path()],
    payload: EntryUpdate,
) -> EntryResponse:
    """Edit one day's times, PLAWA hours, or comments while PENDING_STAFF."""
    entry = await service.update_entry(actor, timesheet_id, entry_id, payload.changes())
    return EntryResponse.from_entry(entry)


# ============================================================================
# Transitions
# ============================================================================


@router.post(
    "/{timesheet_id}/submit",
    response_model=TimesheetResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def submit_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: SignatureRequest,
) -> TimesheetResponse:
    """Staff signs and submits: PENDING_STAFF to PENDING_MANAGER."""
    timesheet = await service.submit(actor, timesheet_id, payload.signature)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.post(
    "/{timesheet_id}/approve",
    response_model=TimesheetResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def approve_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: SignatureRequest,
) -> TimesheetResponse:
    """Direct manager signs: PENDING_MANAGER to PENDING_HR."""
    timesheet = await service.manager_approve(actor, timesheet_id, payload.signature)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.post(
    "/{timesheet_id}/deny",
    response_model=TimesheetResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def deny_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: DenyRequest,
) -> TimesheetResponse:
    """Direct manager returns the timesheet to staff with a note."""
    timesheet = await service.manager_deny(actor, timesheet_id, payload.note)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.post(
    "/{timesheet_id}/hr-approve",
    response_model=TimesheetResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def hr_approve_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: SignatureRequest,
) -> TimesheetResponse:
    """HR or ADMIN final sign-off: PENDING_HR to APPROVED."""
    timesheet = await service.hr_approve(actor, timesheet_id, payload.signature)
    return TimesheetResponse.from_timesheet(timesheet, actor)


@router.post(
    "/{timesheet_id}/hr-deny",
    response_model=TimesheetResponse,
    responses=INVALID_OR_NOT_ACTIONABLE,
)
async def hr_deny_timesheet(
    service: TimesheetServiceDep,
    actor: CurrentActor,
    timesheet_id: Annotated[UUID, Path()],
    payload: DenyRequest,
) -> TimesheetResponse:
    """HR or ADMIN returns the timesheet to staff; staff and manager both re-sign."""
    timesheet = await service.hr_deny(actor, timesheet_id, payload.note)
    return TimesheetResponse.from_timesheet(timesheet, actor)
