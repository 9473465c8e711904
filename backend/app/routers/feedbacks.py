"""
Feedback API Routes

Citizens rate resolved grievances. The public listing hides who submitted.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from ..models.db_models import UserDB
from ..models.schemas import FeedbackResponse
from ..services.grievance import FeedbackRecorder, GrievanceServiceError


router = APIRouter(prefix="/feedbacks", tags=["feedbacks"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class SubmitFeedbackRequest(BaseModel):
    grievance_id: str
    # Range is enforced by FeedbackRecorder so a bad rating is a 400, not a 422
    rating: Optional[int] = Field(None, description="Satisfaction score, 1-5")
    comments: Optional[str] = None


class PublicFeedback(BaseModel):
    """Feedback without the submitter."""
    id: str
    grievance_id: str
    rating: int
    comments: Optional[str] = None
    created_at: Optional[str] = None


class AdminFeedback(BaseModel):
    id: str
    grievance_id: str
    user_id: Optional[str] = None
    rating: int
    comments: Optional[str] = None
    created_at: Optional[datetime] = None
    grievance: Optional[Dict[str, Any]] = None


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Rate a resolved grievance. One feedback per user per grievance.
    """
    recorder = FeedbackRecorder(db)
    try:
        feedback = recorder.submit(
            grievance_id=request.grievance_id,
            user_id=current_user.id,
            rating=request.rating,
            comments=request.comments,
        )
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return FeedbackResponse.from_db(feedback)


@router.get("/public", response_model=List[PublicFeedback])
async def list_public_feedback(db: Session = Depends(get_db)):
    """Anonymized feedback for the transparency page."""
    feedbacks = FeedbackRecorder(db).list_public()
    return [
        PublicFeedback(
            id=f.id,
            grievance_id=f.grievance_id,
            rating=f.rating,
            comments=f.comments,
            created_at=f.created_at.isoformat() if f.created_at else None,
        )
        for f in feedbacks
    ]


@router.get("/admin", response_model=List[AdminFeedback])
async def list_admin_feedback(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Every feedback with the grievance it belongs to."""
    return [AdminFeedback(**row) for row in FeedbackRecorder(db).list_for_admin()]
