"""
Grievance Status State Machine

Forward-only lifecycle for grievances:

    PENDING → IN_PROGRESS → RESOLVED | REJECTED
    PENDING → RESOLVED | REJECTED

RESOLVED and REJECTED are terminal. A transition to the current status is a
no-op so that bulk updates can be re-issued safely.
"""
from typing import Any, Dict, List, Optional, Tuple, Union

from ...models.db_models import GrievanceStatus, NotificationType
from .errors import InvalidTransition


# =============================================================================
# STATE CONFIGURATION
# =============================================================================
#
# "notify" describes the citizen-facing notification emitted when a grievance
# ENTERS that state. None means the transition is silent.
#
# =============================================================================

STATE_CONFIG = {
    GrievanceStatus.PENDING: {
        "description": "Submitted, awaiting triage",
        "allowed_transitions": [
            GrievanceStatus.IN_PROGRESS,
            GrievanceStatus.RESOLVED,
            GrievanceStatus.REJECTED,
        ],
        "notify": None,
    },
    GrievanceStatus.IN_PROGRESS: {
        "description": "Being worked on by the municipality",
        "allowed_transitions": [
            GrievanceStatus.RESOLVED,
            GrievanceStatus.REJECTED,
        ],
        "notify": None,
    },
    GrievanceStatus.RESOLVED: {
        "description": "Issue fixed",
        "allowed_transitions": [],  # Terminal state
        "notify": NotificationType.SUCCESS,
    },
    GrievanceStatus.REJECTED: {
        "description": "Closed without action",
        "allowed_transitions": [],  # Terminal state
        "notify": NotificationType.ERROR,
    },
}


def parse_status(value: Union[str, GrievanceStatus]) -> Optional[GrievanceStatus]:
    """Map a raw status string onto the enum, None if it is not a known status."""
    if isinstance(value, GrievanceStatus):
        return value
    try:
        return GrievanceStatus(value)
    except ValueError:
        return None


class GrievanceStateMachine:
    """
    Validates grievance status changes against STATE_CONFIG.

    Stateless: it never touches the database. The grievance store asks it
    whether a change is legal and whether the change is a no-op.
    """

    def get_state_config(self, state: GrievanceStatus) -> Dict[str, Any]:
        """Get configuration for a state."""
        return STATE_CONFIG.get(state, {})

    def can_transition(
        self,
        from_state: GrievanceStatus,
        to_state: Union[str, GrievanceStatus],
    ) -> Tuple[bool, str]:
        """
        Check if a status change is allowed.

        Returns (allowed, reason)
        """
        target = parse_status(to_state)
        if target is None:
            return False, f"Unknown status: {to_state}"

        if target == from_state:
            return True, "No-op"

        if target in self.get_state_config(from_state).get("allowed_transitions", []):
            return True, "Transition allowed"

        return False, f"Cannot transition from {from_state.value} to {target.value}"

    def validate(
        self,
        grievance_id: str,
        from_state: GrievanceStatus,
        to_state: Union[str, GrievanceStatus],
    ) -> Tuple[GrievanceStatus, bool]:
        """
        Validate a status change.

        Returns (target_status, is_noop)

        Raises:
            InvalidTransition: If the change is not allowed
        """
        allowed, _ = self.can_transition(from_state, to_state)
        if not allowed:
            attempted = to_state.value if isinstance(to_state, GrievanceStatus) else str(to_state)
            raise InvalidTransition(grievance_id, from_state.value, attempted)

        target = parse_status(to_state)
        return target, target == from_state

    def is_terminal_state(self, state: GrievanceStatus) -> bool:
        """Check if a state is terminal (no further transitions)."""
        return len(self.get_state_config(state).get("allowed_transitions", [])) == 0

    def get_next_states(self, state: GrievanceStatus) -> List[GrievanceStatus]:
        """Get possible next states from current state."""
        return list(self.get_state_config(state).get("allowed_transitions", []))

    def get_notification_type(self, state: GrievanceStatus) -> Optional[NotificationType]:
        """Notification type emitted on entering a state, None for silent states."""
        return self.get_state_config(state).get("notify")
