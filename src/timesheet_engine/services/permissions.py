"""Role capabilities and access rules.

All role and relationship checks go through these functions; handlers never
compare role strings inline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from timesheet_engine.services.state_machine import TimesheetState

if TYPE_CHECKING:
    from timesheet_engine.models import Timesheet, User


class Role(str, Enum):
    """User roles."""

    STAFF = "STAFF"
    MANAGER = "MANAGER"
    HR = "HR"
    ADMIN = "ADMIN"


class AccountStatus(str, Enum):
    """User account status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


REVIEWER_ROLES = frozenset({Role.HR, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    id: UUID
    role: Role
    email: str = ""
    name: str = ""

    @property
    def is_reviewer(self) -> bool:
        """HR and ADMIN give final sign-off and see every timesheet."""
        return self.role in REVIEWER_ROLES

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(id=user.id, role=Role(user.role), email=user.email, name=user.name)


def is_owner(actor: Actor, owner_id: UUID) -> bool:
    return actor.id == owner_id


def is_direct_manager(actor: Actor, owner_manager_id: UUID | None) -> bool:
    return owner_manager_id is not None and actor.id == owner_manager_id


def can_submit(actor: Actor, timesheet: Timesheet) -> bool:
    return is_owner(actor, timesheet.user_id)


def can_edit_entries(actor: Actor, timesheet: Timesheet) -> bool:
    return is_owner(actor, timesheet.user_id)


def can_manager_review(actor: Actor, owner_manager_id: UUID | None) -> bool:
    """Only the owner's direct manager reviews at the manager stage."""
    return is_direct_manager(actor, owner_manager_id)


def can_hr_review(actor: Actor) -> bool:
    return actor.is_reviewer


def can_approve(actor: Actor, timesheet: Timesheet, owner_manager_id: UUID | None) -> bool:
    """Whether the actor may approve or deny the timesheet in its current state."""
    if timesheet.state == TimesheetState.PENDING_MANAGER:
        return can_manager_review(actor, owner_manager_id)
    if timesheet.state == TimesheetState.PENDING_HR:
        return can_hr_review(actor)
    return False


def can_view_timesheet(actor: Actor, owner_id: UUID, owner_manager_id: UUID | None) -> bool:
    return (
        is_owner(actor, owner_id)
        or is_direct_manager(actor, owner_manager_id)
        or actor.is_reviewer
    )


def can_message(actor: Actor, target: User, actor_manager_id: UUID | None = None) -> bool:
    """Staff message their manager and reviewers; managers their reports; reviewers anyone."""
    if actor.id == target.id:
        return False
    if actor.is_reviewer or Role(target.role) in REVIEWER_ROLES:
        return True
    return target.manager_id == actor.id or target.id == actor_manager_id


def can_run_reports(actor: Actor) -> bool:
    return actor.is_reviewer


def can_manage_users(actor: Actor) -> bool:
    return actor.is_reviewer
