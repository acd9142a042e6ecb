"""Timesheet approval state machine with transition validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TimesheetState(str, Enum):
    """Timesheet lifecycle states."""

    PENDING_STAFF = "PENDING_STAFF"
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"


class TimesheetEvent(str, Enum):
    """Events that move a timesheet between states."""

    SUBMIT = "submit"
    MANAGER_APPROVE = "approve"
    MANAGER_DENY = "deny"
    HR_APPROVE = "hr-approve"
    HR_DENY = "hr-deny"


class InvalidTransitionError(Exception):
    """Raised when an event cannot fire from the current state."""

    def __init__(self, from_state: str, event: str, reason: str | None = None):
        self.from_state = from_state
        self.event = event
        self.reason = reason
        msg = f"Cannot apply '{event}' to a timesheet in '{from_state}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


@dataclass(frozen=True)
class TransitionPlan:
    """Column values a transition writes, guarded by the expected prior state."""

    event: TimesheetEvent
    from_state: TimesheetState
    to_state: TimesheetState
    values: dict[str, Any] = field(default_factory=dict)


class TimesheetStateMachine:
    """State machine for timesheet approval.

    Allowed transitions:
    - PENDING_STAFF   --submit-->      PENDING_MANAGER
    - PENDING_MANAGER --approve-->     PENDING_HR
    - PENDING_MANAGER --deny-->        PENDING_STAFF (staff signature cleared)
    - PENDING_HR      --hr-approve-->  APPROVED
    - PENDING_HR      --hr-deny-->     PENDING_STAFF (staff and manager signatures cleared)

    Denials are transitions taken by the reviewer, not states. After an HR
    denial both the staff member and the manager must attest again.
    """

    TRANSITIONS: dict[TimesheetEvent, tuple[TimesheetState, TimesheetState]] = {
        TimesheetEvent.SUBMIT: (TimesheetState.PENDING_STAFF, TimesheetState.PENDING_MANAGER),
        TimesheetEvent.MANAGER_APPROVE: (TimesheetState.PENDING_MANAGER, TimesheetState.PENDING_HR),
        TimesheetEvent.MANAGER_DENY: (TimesheetState.PENDING_MANAGER, TimesheetState.PENDING_STAFF),
        TimesheetEvent.HR_APPROVE: (TimesheetState.PENDING_HR, TimesheetState.APPROVED),
        TimesheetEvent.HR_DENY: (TimesheetState.PENDING_HR, TimesheetState.PENDING_STAFF),
    }

    # Events that record a signature
    SIGNATURE_EVENTS = frozenset(
        {TimesheetEvent.SUBMIT, TimesheetEvent.MANAGER_APPROVE, TimesheetEvent.HR_APPROVE}
    )

    # Events that require a denial note
    NOTE_EVENTS = frozenset({TimesheetEvent.MANAGER_DENY, TimesheetEvent.HR_DENY})

    # States where entries can be modified
    ENTRIES_MUTABLE = frozenset({TimesheetState.PENDING_STAFF})

    TERMINAL = frozenset({TimesheetState.APPROVED})

    @classmethod
    def can_fire(cls, state: str, event: str) -> bool:
        """Check if an event may fire from a state."""
        transition = cls.TRANSITIONS.get(TimesheetEvent(event))
        return transition is not None and transition[0] == state

    @classmethod
    def expected_state(cls, event: str) -> TimesheetState:
        return cls.TRANSITIONS[TimesheetEvent(event)][0]

    @classmethod
    def next_state(cls, event: str) -> TimesheetState:
        return cls.TRANSITIONS[TimesheetEvent(event)][1]

    @classmethod
    def validate_transition(cls, state: str, event: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_fire(state, event):
            raise InvalidTransitionError(state, event)

    @classmethod
    def available_events(cls, state: str) -> list[TimesheetEvent]:
        """Events that may fire from the given state."""
        return [event for event, (source, _) in cls.TRANSITIONS.items() if source == state]

    @classmethod
    def can_modify_entries(cls, state: str) -> bool:
        """Check if entries (times, PLAWA hours, comments) can be modified."""
        return state in cls.ENTRIES_MUTABLE

    @classmethod
    def is_terminal(cls, state: str) -> bool:
        return state in cls.TERMINAL

    @classmethod
    def validate_payload(
        cls,
        event: str,
        signature: str | None = None,
        note: str | None = None,
    ) -> list[str]:
        """Return validation errors for a transition's input (empty if valid)."""
        event = TimesheetEvent(event)
        errors: list[str] = []
        if event in cls.SIGNATURE_EVENTS and not (signature and signature.strip()):
            errors.append("Digital signature is required")
        if event in cls.NOTE_EVENTS and not (note and note.strip()):
            errors.append("Denial reason is required")
        return errors

    @classmethod
    def plan(
        cls,
        event: str,
        now: datetime,
        signature: str | None = None,
        note: str | None = None,
    ) -> TransitionPlan:
        """Compute the column values written by a transition.

        Callers validate the payload first; this only shapes the update.
        """
        event = TimesheetEvent(event)
        from_state, to_state = cls.TRANSITIONS[event]
        values: dict[str, Any] = {"state": to_state.value}

        if event == TimesheetEvent.SUBMIT:
            values.update(staff_sig=signature, staff_signed_at=now)
        elif event == TimesheetEvent.MANAGER_APPROVE:
            values.update(manager_sig=signature, manager_signed_at=now)
        elif event == TimesheetEvent.HR_APPROVE:
            values.update(hr_sig=signature, hr_signed_at=now)
        elif event == TimesheetEvent.MANAGER_DENY:
            values.update(
                staff_sig=None,
                staff_signed_at=None,
                manager_note=note.strip() if note else note,
            )
        elif event == TimesheetEvent.HR_DENY:
            values.update(
                staff_sig=None,
                staff_signed_at=None,
                manager_sig=None,
                manager_signed_at=None,
                manager_note=note.strip() if note else note,
            )

        return TransitionPlan(event=event, from_state=from_state, to_state=to_state, values=values)
