"""ORM models."""

from timesheet_engine.models.audit import AuditEvent
from timesheet_engine.models.base import Base, TimestampMixin, UpdatedAtMixin
from timesheet_engine.models.notification import Notification
from timesheet_engine.models.report import CustomReport
from timesheet_engine.models.timesheet import Timesheet, TimesheetEntry
from timesheet_engine.models.user import PayRateHistory, User

__all__ = [
    "AuditEvent",
    "Base",
    "CustomReport",
    "Notification",
    "PayRateHistory",
    "TimestampMixin",
    "Timesheet",
    "TimesheetEntry",
    "UpdatedAtMixin",
    "User",
]
