"""
CivicEye - SQLAlchemy ORM Models
Persistent storage for users, grievances, notifications and feedback
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey,
    Enum as SQLEnum, Boolean, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Roles known to the system."""
    CITIZEN = "citizen"
    ADMIN = "admin"


class GrievanceStatus(str, Enum):
    """Lifecycle states of a grievance. RESOLVED and REJECTED are terminal."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class GrievanceCategory(str, Enum):
    """Categories a citizen can file a grievance under."""
    GARBAGE = "garbage"
    STREETLIGHT = "streetlight"
    WATER = "water"
    ROAD = "road"
    NOISE = "noise"
    OTHERS = "others"
    EMERGENCY = "emergency"


class GrievancePriority(str, Enum):
    """Triage priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class NotificationType(str, Enum):
    """Visual severity of a notification."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def _enum_values(enum_cls):
    # Persist enum values ("in_progress") rather than member names ("IN_PROGRESS")
    return [member.value for member in enum_cls]


# =============================================================================
# TABLES
# =============================================================================

class UserDB(Base):
    """User account. Role decides access to admin operations."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CITIZEN.value)

    # Format: {"email": bool, "push": bool, "sms": bool}
    notification_preferences = Column(
        JSON, nullable=True,
        default=lambda: {"email": True, "push": True, "sms": False},
    )

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    grievances = relationship("GrievanceDB", back_populates="user")
    notifications = relationship("NotificationDB", back_populates="user", cascade="all, delete-orphan")


class GrievanceDB(Base):
    """A citizen-submitted civic issue report."""
    __tablename__ = "grievances"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)  # Creator, immutable

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    # Plain text so legacy or unknown categories still round-trip
    category = Column(String(50), nullable=True, index=True)
    status = Column(
        SQLEnum(GrievanceStatus, values_callable=_enum_values, name="grievance_status"),
        nullable=False, default=GrievanceStatus.PENDING, index=True,
    )
    priority = Column(
        SQLEnum(GrievancePriority, values_callable=_enum_values, name="grievance_priority"),
        nullable=False, default=GrievancePriority.MEDIUM,
    )

    location = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Media references (object storage URLs)
    image_urls = Column(JSON, nullable=True, default=list)
    audio_url = Column(String(1000), nullable=True)
    resolution_proof_urls = Column(JSON, nullable=True, default=list)

    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="grievances")
    feedbacks = relationship("FeedbackDB", back_populates="grievance")


class NotificationDB(Base):
    """In-app notification for a single recipient."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    grievance_id = Column(String(36), ForeignKey("grievances.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        SQLEnum(NotificationType, values_callable=_enum_values, name="notification_type"),
        nullable=False, default=NotificationType.INFO,
    )
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("UserDB", back_populates="notifications")


class FeedbackDB(Base):
    """Citizen satisfaction feedback on a resolved grievance."""
    __tablename__ = "feedbacks"
    __table_args__ = (
        # One feedback per (grievance, user); closes the check-then-insert race
        UniqueConstraint("grievance_id", "user_id", name="uq_feedback_grievance_user"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    grievance_id = Column(String(36), ForeignKey("grievances.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    rating = Column(Integer, nullable=False)  # 1-5
    comments = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    grievance = relationship("GrievanceDB", back_populates="feedbacks")
