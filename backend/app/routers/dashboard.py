"""
Dashboard API Routes

Citizen-facing summary of the signed-in user's grievances.
"""
from dataclasses import asdict
from typing import List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.db_models import UserDB
from ..models.schemas import GrievanceResponse
from ..services.grievance import AggregationEngine, GrievanceStore


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class UserStatsResponse(BaseModel):
    total_grievances: int
    pending: int
    in_progress: int
    resolved: int
    rejected: int


@router.get("/stats", response_model=UserStatsResponse)
async def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """Status counts of the grievances the current user created."""
    stats = AggregationEngine(db).user_stats(current_user.id)
    return UserStatsResponse(**asdict(stats))


@router.get("/recent", response_model=List[GrievanceResponse])
async def get_recent_grievances(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """The current user's latest grievances."""
    grievances = GrievanceStore(db).recent(user_id=current_user.id, limit=limit)
    return [GrievanceResponse.from_db(g) for g in grievances]
