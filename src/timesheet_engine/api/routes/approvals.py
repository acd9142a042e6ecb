"""Review queues for managers and HR."""

from fastapi import APIRouter

from timesheet_engine.api.dependencies import CurrentActor, TimesheetServiceDep
from timesheet_engine.api.schemas import ErrorResponse, TimesheetSummaryResponse

router = APIRouter(tags=["approvals"])


@router.get("/manager/pending-approvals", response_model=list[TimesheetSummaryResponse])
async def manager_pending_approvals(
    service: TimesheetServiceDep,
    actor: CurrentActor,
) -> list[TimesheetSummaryResponse]:
    """Direct reports' timesheets awaiting the actor's review."""
    timesheets = await service.pending_manager_approvals(actor)
    return [TimesheetSummaryResponse.from_timesheet(t, actor) for t in timesheets]


@router.get(
    "/hr/pending-approvals",
    response_model=list[TimesheetSummaryResponse],
    responses={403: {"model": ErrorResponse}},
)
async def hr_pending_approvals(
    service: TimesheetServiceDep,
    actor: CurrentActor,
) -> list[TimesheetSummaryResponse]:
    """Timesheets awaiting final sign-off."""
    timesheets = await service.pending_hr_approvals(actor)
    return [TimesheetSummaryResponse.from_timesheet(t, actor) for t in timesheets]
