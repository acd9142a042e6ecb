"""Timesheet transition events and their dispatcher."""

from timesheet_engine.events.emitter import NotificationDispatcher
from timesheet_engine.events.types import (
    EventMetadata,
    NotificationType,
    TimesheetHRApproved,
    TimesheetHRDenied,
    TimesheetManagerApproved,
    TimesheetManagerDenied,
    TimesheetSubmitted,
    TimesheetTransitionEvent,
)

__all__ = [
    "EventMetadata",
    "NotificationDispatcher",
    "NotificationType",
    "TimesheetHRApproved",
    "TimesheetHRDenied",
    "TimesheetManagerApproved",
    "TimesheetManagerDenied",
    "TimesheetSubmitted",
    "TimesheetTransitionEvent",
]
