"""Timesheet transition events.

Events are immutable records of a transition that has already been
committed. They carry enough context for notification handlers to pick
recipients without reaching back into the caller's transaction.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class NotificationType(str, Enum):
    """Notification kinds shown to users."""

    SUBMISSION = "submission"
    APPROVAL = "approval"
    DENIAL = "denial"
    FINAL_APPROVAL = "final_approval"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every transition event."""

    event_id: UUID
    timestamp: datetime
    actor_id: UUID | None

    @classmethod
    def create(cls, actor_id: UUID | None = None) -> EventMetadata:
        return cls(event_id=uuid4(), timestamp=datetime.now(timezone.utc), actor_id=actor_id)


@dataclass(frozen=True)
class TimesheetTransitionEvent:
    """Base class for timesheet transition events."""

    metadata: EventMetadata
    timesheet_id: UUID
    owner_id: UUID
    owner_name: str
    manager_id: UUID | None
    period_start: date
    period_end: date
    state: str

    notification_type = NotificationType.SUBMISSION

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @property
    def period_label(self) -> str:
        return f"{self.period_start:%m/%d/%Y} - {self.period_end:%m/%d/%Y}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return _serialize(data)


@dataclass(frozen=True)
class TimesheetSubmitted(TimesheetTransitionEvent):
    notification_type = NotificationType.SUBMISSION


@dataclass(frozen=True)
class TimesheetManagerApproved(TimesheetTransitionEvent):
    notification_type = NotificationType.APPROVAL


@dataclass(frozen=True)
class TimesheetManagerDenied(TimesheetTransitionEvent):
    note: str = ""

    notification_type = NotificationType.DENIAL


@dataclass(frozen=True)
class TimesheetHRApproved(TimesheetTransitionEvent):
    notification_type = NotificationType.FINAL_APPROVAL


@dataclass(frozen=True)
class TimesheetHRDenied(TimesheetTransitionEvent):
    note: str = ""

    notification_type = NotificationType.DENIAL


def _serialize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (UUID, Enum)):
        return str(obj.value if isinstance(obj, Enum) else obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj
