"""
Grievance Service Errors

Typed outcomes of the grievance lifecycle services. Every error except
InternalError is an expected, user-facing result; status_code is what the
HTTP layer answers with.
"""
from typing import Optional


class GrievanceServiceError(Exception):
    """Base class for grievance service failures."""
    status_code = 400
    kind = "error"


class ValidationError(GrievanceServiceError):
    """Malformed or missing required input."""
    status_code = 400
    kind = "validation_error"


class NotFound(GrievanceServiceError):
    """Referenced record does not exist."""
    status_code = 404
    kind = "not_found"


class InvalidTransition(GrievanceServiceError):
    """Status change violates the grievance state machine."""
    status_code = 409
    kind = "invalid_transition"

    def __init__(self, grievance_id: str, current: Optional[str], attempted: str):
        self.grievance_id = grievance_id
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Cannot transition grievance {grievance_id} from {current} to {attempted}"
        )


class PreconditionFailed(GrievanceServiceError):
    """Operation requires a state the record does not currently hold."""
    status_code = 412
    kind = "precondition_failed"


class Conflict(GrievanceServiceError):
    """Uniqueness violation."""
    status_code = 409
    kind = "conflict"


class InternalError(GrievanceServiceError):
    """Unexpected persistence or dependency failure. Details stay server-side."""
    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
