"""
Notification API Routes

The signed-in user's inbox.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.db_models import UserDB
from ..models.schemas import NotificationResponse
from ..services.grievance import NotificationDispatcher, GrievanceServiceError


router = APIRouter(prefix="/notifications", tags=["notifications"])


class ClearResponse(BaseModel):
    removed: int


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Newest first."""
    notifications = NotificationDispatcher(db).list_for_user(current_user.id)
    return [NotificationResponse.from_db(n) for n in notifications]


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    dispatcher = NotificationDispatcher(db)
    try:
        notification = dispatcher.get(notification_id)
        # Someone else's notification is indistinguishable from a missing one
        if notification.user_id != current_user.id:
            raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
        notification = dispatcher.mark_read(notification_id)
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return NotificationResponse.from_db(notification)


@router.delete("", response_model=ClearResponse)
async def clear_notifications(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Delete the whole inbox."""
    removed = NotificationDispatcher(db).clear_for_user(current_user.id)
    return ClearResponse(removed=removed)
