"""
CivicEye - User Profile Router
Profile read and allow-listed profile updates for the signed-in user.
"""
from typing import Optional
import logging
import re

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..models.schemas import UserResponse
from ..auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class NotificationPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: Optional[bool] = None
    push: Optional[bool] = None
    sms: Optional[bool] = None


class ProfileUpdateRequest(BaseModel):
    """
    Fields a user may change on their own profile.
    Unknown fields (role, email, password_hash, ...) are rejected with 422.
    """
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notification_preferences: Optional[NotificationPreferences] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not re.match(r'^\+?[\d\s\-()]{7,20}$', v):
            raise ValueError('Invalid phone number')
        return v


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/me", response_model=UserResponse)
async def get_profile(current_user: UserDB = Depends(get_current_user)):
    """Get the signed-in user's profile."""
    return UserResponse.from_db(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update profile information.
    All fields are optional - only provided fields will be updated.
    """
    if request.full_name is not None:
        current_user.full_name = request.full_name.strip() or None
    if request.phone is not None:
        current_user.phone = request.phone
    if request.address is not None:
        current_user.address = request.address.strip() or None

    if request.notification_preferences is not None:
        # Reassign so the JSON column is flagged dirty
        preferences = dict(current_user.notification_preferences or {})
        preferences.update(request.notification_preferences.model_dump(exclude_none=True))
        current_user.notification_preferences = preferences

    db.commit()
    db.refresh(current_user)

    logger.info(f"Profile updated for user: {current_user.email}")
    return UserResponse.from_db(current_user)
