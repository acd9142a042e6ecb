"""Tests for the timesheet approval state machine."""

from datetime import datetime

import pytest

from timesheet_engine.services.state_machine import (
    InvalidTransitionError,
    TimesheetEvent,
    TimesheetState,
    TimesheetStateMachine,
)

NOW = datetime(2024, 3, 8, 17, 0)


class TestTimesheetStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Each event fires from exactly one state."""
        assert TimesheetStateMachine.can_fire("PENDING_STAFF", "submit") is True
        assert TimesheetStateMachine.can_fire("PENDING_MANAGER", "approve") is True
        assert TimesheetStateMachine.can_fire("PENDING_MANAGER", "deny") is True
        assert TimesheetStateMachine.can_fire("PENDING_HR", "hr-approve") is True
        assert TimesheetStateMachine.can_fire("PENDING_HR", "hr-deny") is True

    def test_invalid_transitions(self):
        """Stages cannot be skipped or replayed."""
        assert TimesheetStateMachine.can_fire("PENDING_STAFF", "approve") is False
        assert TimesheetStateMachine.can_fire("PENDING_STAFF", "hr-approve") is False
        assert TimesheetStateMachine.can_fire("PENDING_MANAGER", "submit") is False
        assert TimesheetStateMachine.can_fire("PENDING_MANAGER", "hr-approve") is False
        assert TimesheetStateMachine.can_fire("PENDING_HR", "approve") is False

        # Approved is terminal
        for event in TimesheetEvent:
            assert TimesheetStateMachine.can_fire("APPROVED", event.value) is False

    def test_next_states(self):
        assert TimesheetStateMachine.next_state("submit") == TimesheetState.PENDING_MANAGER
        assert TimesheetStateMachine.next_state("approve") == TimesheetState.PENDING_HR
        assert TimesheetStateMachine.next_state("deny") == TimesheetState.PENDING_STAFF
        assert TimesheetStateMachine.next_state("hr-approve") == TimesheetState.APPROVED
        assert TimesheetStateMachine.next_state("hr-deny") == TimesheetState.PENDING_STAFF

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimesheetStateMachine.validate_transition("APPROVED", "deny")

        assert exc_info.value.from_state == "APPROVED"
        assert exc_info.value.event == "deny"

    def test_available_events(self):
        assert TimesheetStateMachine.available_events("PENDING_MANAGER") == [
            TimesheetEvent.MANAGER_APPROVE,
            TimesheetEvent.MANAGER_DENY,
        ]
        assert TimesheetStateMachine.available_events("APPROVED") == []

    def test_can_modify_entries(self):
        assert TimesheetStateMachine.can_modify_entries("PENDING_STAFF") is True
        assert TimesheetStateMachine.can_modify_entries("PENDING_MANAGER") is False
        assert TimesheetStateMachine.can_modify_entries("PENDING_HR") is False
        assert TimesheetStateMachine.can_modify_entries("APPROVED") is False

    def test_is_terminal(self):
        assert TimesheetStateMachine.is_terminal("APPROVED") is True
        assert TimesheetStateMachine.is_terminal("PENDING_HR") is False


class TestPayloadValidation:
    @pytest.mark.parametrize("event", ["submit", "approve", "hr-approve"])
    @pytest.mark.parametrize("signature", [None, "", "   "])
    def test_signature_required(self, event, signature):
        errors = TimesheetStateMachine.validate_payload(event, signature=signature)
        assert errors == ["Digital signature is required"]

    @pytest.mark.parametrize("event", ["deny", "hr-deny"])
    @pytest.mark.parametrize("note", [None, "", "\t"])
    def test_note_required(self, event, note):
        errors = TimesheetStateMachine.validate_payload(event, note=note)
        assert errors == ["Denial reason is required"]

    def test_valid_payloads(self):
        assert TimesheetStateMachine.validate_payload("submit", signature="Sam") == []
        assert TimesheetStateMachine.validate_payload("deny", note="Fix Tuesday") == []


class TestTransitionPlan:
    def test_submit_records_staff_signature(self):
        plan = TimesheetStateMachine.plan("submit", NOW, signature="Sam Staff")

        assert plan.from_state == TimesheetState.PENDING_STAFF
        assert plan.to_state == TimesheetState.PENDING_MANAGER
        assert plan.values == {
            "state": "PENDING_MANAGER",
            "staff_sig": "Sam Staff",
            "staff_signed_at": NOW,
        }

    def test_manager_deny_clears_staff_signature_only(self):
        plan = TimesheetStateMachine.plan("deny", NOW, note="  Fix Tuesday ")

        assert plan.values == {
            "state": "PENDING_STAFF",
            "staff_sig": None,
            "staff_signed_at": None,
            "manager_note": "Fix Tuesday",
        }

    def test_hr_deny_clears_staff_and_manager_signatures(self):
        plan = TimesheetStateMachine.plan("hr-deny", NOW, note="Missing PLAWA")

        assert plan.values["state"] == "PENDING_STAFF"
        assert plan.values["staff_sig"] is None
        assert plan.values["manager_sig"] is None
        assert plan.values["manager_signed_at"] is None
        assert plan.values["manager_note"] == "Missing PLAWA"
        assert "hr_sig" not in plan.values

    def test_hr_approve_records_hr_signature(self):
        plan = TimesheetStateMachine.plan("hr-approve", NOW, signature="Hana")
        assert plan.to_state == TimesheetState.APPROVED
        assert plan.values["hr_sig"] == "Hana"
        assert plan.values["hr_signed_at"] == NOW
