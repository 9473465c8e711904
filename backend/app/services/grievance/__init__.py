"""
Grievance Lifecycle Services

Status transitions, notification side effects, feedback constraints and
dashboard aggregation for citizen grievances.
"""

from .errors import (
    GrievanceServiceError,
    ValidationError,
    NotFound,
    InvalidTransition,
    PreconditionFailed,
    Conflict,
    InternalError,
)
from .state_machine import GrievanceStateMachine, STATE_CONFIG
from .notification_dispatcher import NotificationDispatcher
from .grievance_store import GrievanceStore
from .feedback_recorder import FeedbackRecorder
from .aggregation_engine import AggregationEngine, UserStats, GlobalStats

__all__ = [
    # Errors
    'GrievanceServiceError',
    'ValidationError',
    'NotFound',
    'InvalidTransition',
    'PreconditionFailed',
    'Conflict',
    'InternalError',
    # Services
    'GrievanceStateMachine',
    'STATE_CONFIG',
    'NotificationDispatcher',
    'GrievanceStore',
    'FeedbackRecorder',
    'AggregationEngine',
    'UserStats',
    'GlobalStats',
]
