"""
CivicEye - API Response Models

Pydantic shapes shared by several routers. Request models live next to the
endpoints that accept them.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .db_models import FeedbackDB, GrievanceDB, NotificationDB, UserDB


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _value(enum_member) -> Optional[str]:
    return enum_member.value if enum_member is not None else None


class GrievanceResponse(BaseModel):
    """Full grievance record."""
    id: str
    user_id: str
    title: str
    description: str
    category: Optional[str] = None
    status: str
    priority: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_urls: List[str] = []
    audio_url: Optional[str] = None
    resolution_proof_urls: List[str] = []
    rejection_reason: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_db(cls, grievance: GrievanceDB) -> "GrievanceResponse":
        return cls(
            id=grievance.id,
            user_id=grievance.user_id,
            title=grievance.title,
            description=grievance.description,
            category=grievance.category,
            status=_value(grievance.status),
            priority=_value(grievance.priority),
            location=grievance.location,
            latitude=grievance.latitude,
            longitude=grievance.longitude,
            image_urls=grievance.image_urls or [],
            audio_url=grievance.audio_url,
            resolution_proof_urls=grievance.resolution_proof_urls or [],
            rejection_reason=grievance.rejection_reason,
            created_at=_iso(grievance.created_at),
            updated_at=_iso(grievance.updated_at),
        )


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    type: str
    read: bool
    grievance_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, notification: NotificationDB) -> "NotificationResponse":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            title=notification.title,
            message=notification.message,
            type=_value(notification.type),
            read=bool(notification.read),
            grievance_id=notification.grievance_id,
            created_at=_iso(notification.created_at),
        )


class FeedbackResponse(BaseModel):
    id: str
    grievance_id: str
    user_id: Optional[str] = None
    rating: int
    comments: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, feedback: FeedbackDB) -> "FeedbackResponse":
        return cls(
            id=feedback.id,
            grievance_id=feedback.grievance_id,
            user_id=feedback.user_id,
            rating=feedback.rating,
            comments=feedback.comments,
            created_at=_iso(feedback.created_at),
        )


class UserResponse(BaseModel):
    """Public profile of an account."""
    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    role: str
    notification_preferences: Dict[str, bool] = {}
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, user: UserDB) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone=user.phone,
            address=user.address,
            role=user.role,
            notification_preferences=user.notification_preferences or {},
            created_at=_iso(user.created_at),
        )


class MessageResponse(BaseModel):
    message: str
