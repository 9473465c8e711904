"""
Tests for the grievance status state machine.

No database involved: the machine only answers whether a change is legal.
"""
import pytest

from app.models.db_models import GrievanceStatus, NotificationType
from app.services.grievance import GrievanceStateMachine, InvalidTransition, STATE_CONFIG
from app.services.grievance.state_machine import parse_status


ALL_STATES = list(GrievanceStatus)


@pytest.fixture
def machine():
    return GrievanceStateMachine()


class TestTransitionTable:

    @pytest.mark.parametrize("from_state,to_state", [
        (GrievanceStatus.PENDING, GrievanceStatus.IN_PROGRESS),
        (GrievanceStatus.PENDING, GrievanceStatus.RESOLVED),
        (GrievanceStatus.PENDING, GrievanceStatus.REJECTED),
        (GrievanceStatus.IN_PROGRESS, GrievanceStatus.RESOLVED),
        (GrievanceStatus.IN_PROGRESS, GrievanceStatus.REJECTED),
    ])
    def test_forward_transitions_allowed(self, machine, from_state, to_state):
        allowed, _ = machine.can_transition(from_state, to_state)
        assert allowed is True

    @pytest.mark.parametrize("from_state,to_state", [
        (GrievanceStatus.IN_PROGRESS, GrievanceStatus.PENDING),
        (GrievanceStatus.RESOLVED, GrievanceStatus.PENDING),
        (GrievanceStatus.RESOLVED, GrievanceStatus.IN_PROGRESS),
        (GrievanceStatus.RESOLVED, GrievanceStatus.REJECTED),
        (GrievanceStatus.REJECTED, GrievanceStatus.PENDING),
        (GrievanceStatus.REJECTED, GrievanceStatus.IN_PROGRESS),
        (GrievanceStatus.REJECTED, GrievanceStatus.RESOLVED),
    ])
    def test_backward_and_terminal_transitions_rejected(self, machine, from_state, to_state):
        allowed, reason = machine.can_transition(from_state, to_state)
        assert allowed is False
        assert from_state.value in reason

    @pytest.mark.parametrize("state", ALL_STATES)
    def test_same_state_is_noop(self, machine, state):
        target, is_noop = machine.validate("g-1", state, state)
        assert target == state
        assert is_noop is True

    def test_terminal_states_have_no_exits(self, machine):
        assert machine.is_terminal_state(GrievanceStatus.RESOLVED)
        assert machine.is_terminal_state(GrievanceStatus.REJECTED)
        assert not machine.is_terminal_state(GrievanceStatus.PENDING)
        assert not machine.is_terminal_state(GrievanceStatus.IN_PROGRESS)

    def test_every_status_is_configured(self):
        assert set(STATE_CONFIG) == set(GrievanceStatus)

    def test_next_states_is_a_copy(self, machine):
        next_states = machine.get_next_states(GrievanceStatus.PENDING)
        next_states.clear()
        assert machine.get_next_states(GrievanceStatus.PENDING)


class TestValidate:

    def test_accepts_raw_strings(self, machine):
        target, is_noop = machine.validate("g-1", GrievanceStatus.PENDING, "in_progress")
        assert target == GrievanceStatus.IN_PROGRESS
        assert is_noop is False

    def test_unknown_status_raises(self, machine):
        with pytest.raises(InvalidTransition) as exc_info:
            machine.validate("g-1", GrievanceStatus.PENDING, "closed")

        assert exc_info.value.current == "pending"
        assert exc_info.value.attempted == "closed"
        assert exc_info.value.status_code == 409

    def test_illegal_transition_carries_context(self, machine):
        with pytest.raises(InvalidTransition) as exc_info:
            machine.validate("g-42", GrievanceStatus.RESOLVED, GrievanceStatus.PENDING)

        err = exc_info.value
        assert err.grievance_id == "g-42"
        assert err.current == "resolved"
        assert err.attempted == "pending"
        assert "g-42" in str(err)


class TestNotificationConfig:

    def test_only_terminal_states_notify(self, machine):
        assert machine.get_notification_type(GrievanceStatus.RESOLVED) == NotificationType.SUCCESS
        assert machine.get_notification_type(GrievanceStatus.REJECTED) == NotificationType.ERROR
        assert machine.get_notification_type(GrievanceStatus.PENDING) is None
        assert machine.get_notification_type(GrievanceStatus.IN_PROGRESS) is None


def test_parse_status():
    assert parse_status("resolved") == GrievanceStatus.RESOLVED
    assert parse_status(GrievanceStatus.REJECTED) == GrievanceStatus.REJECTED
    assert parse_status("RESOLVED") is None
    assert parse_status("") is None
