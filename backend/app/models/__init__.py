"""CivicEye - Data Models"""
from .db_models import (
    # Enums
    UserRole, GrievanceStatus, GrievanceCategory, GrievancePriority, NotificationType,
    # Tables
    UserDB, GrievanceDB, NotificationDB, FeedbackDB,
)

__all__ = [
    "UserRole", "GrievanceStatus", "GrievanceCategory", "GrievancePriority", "NotificationType",
    "UserDB", "GrievanceDB", "NotificationDB", "FeedbackDB",
]
