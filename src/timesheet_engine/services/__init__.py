"""Timesheet engine services."""

from timesheet_engine.services.state_machine import (
    InvalidTransitionError,
    TimesheetEvent,
    TimesheetState,
    TimesheetStateMachine,
)
from timesheet_engine.services.timesheet_service import TimesheetService

__all__ = [
    "InvalidTransitionError",
    "TimesheetEvent",
    "TimesheetService",
    "TimesheetState",
    "TimesheetStateMachine",
]
