"""
CivicEye - Admin Router
Triage console: system statistics, user roles and bulk grievance handling.
Every status change goes through GrievanceStore, never a direct write.
"""
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB, UserRole
from ..models.schemas import GrievanceResponse, UserResponse
from ..auth import require_admin
from ..services.grievance import AggregationEngine, GrievanceStore, GrievanceServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class GlobalStatsResponse(BaseModel):
    """Admin dashboard statistics."""
    total_users: int
    total_grievances: int
    admin_users: int
    citizen_users: int
    status_breakdown: Dict[str, int]
    category_breakdown: Dict[str, int]
    new_users_last_week: int
    new_grievances_last_week: int
    new_users_last_month: int
    new_grievances_last_month: int


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., description="citizen or admin")


class GrievancePageResponse(BaseModel):
    """Paginated grievance list."""
    grievances: List[GrievanceResponse]
    total: int
    page: int
    page_size: int


class BulkStatusRequest(BaseModel):
    grievance_ids: List[str]
    status: str
    rejection_reason: Optional[str] = None


class BulkStatusItem(BaseModel):
    id: str
    grievance: Optional[GrievanceResponse] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class BulkStatusResponse(BaseModel):
    results: List[BulkStatusItem]
    updated: int
    failed: int


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/stats", response_model=GlobalStatsResponse)
async def get_stats(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    System-wide counts. Computed from current rows on every call.
    """
    stats = AggregationEngine(db).global_stats(now=datetime.utcnow())
    return GlobalStatsResponse(**asdict(stats))


@router.get("/users", response_model=UserListResponse)
async def get_users(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    List users, newest first.
    """
    query = db.query(UserDB)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (UserDB.email.ilike(search_term)) |
            (UserDB.full_name.ilike(search_term))
        )

    users = query.order_by(desc(UserDB.created_at)).all()
    return UserListResponse(
        users=[UserResponse.from_db(u) for u in users],
        total=len(users),
    )


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Promote or demote an account.
    """
    valid_roles = [r.value for r in UserRole]
    if request.role not in valid_roles:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {valid_roles}")

    user = db.get(UserDB, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    user.role = request.role
    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.email} set role of {user.email} to {request.role}")
    return UserResponse.from_db(user)


@router.get("/grievances", response_model=GrievancePageResponse)
async def get_grievances(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Paginated grievance list across all citizens, newest first.
    """
    store = GrievanceStore(db)
    total = store.count(status=status, category=category)

    offset = (page - 1) * page_size
    grievances = store.list(status=status, category=category, limit=page_size, offset=offset)

    return GrievancePageResponse(
        grievances=[GrievanceResponse.from_db(g) for g in grievances],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch("/grievances/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(
    request: BulkStatusRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """
    Apply one status to many grievances. Each id succeeds or fails on its own.
    """
    store = GrievanceStore(db)
    try:
        results = store.bulk_set_status(
            request.grievance_ids,
            request.status,
            rejection_reason=request.rejection_reason,
        )
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    items = [
        BulkStatusItem(
            id=r["id"],
            grievance=GrievanceResponse.from_db(r["grievance"]) if r["grievance"] else None,
            error=r["error"],
            detail=r["detail"],
        )
        for r in results
    ]
    failed = sum(1 for item in items if item.error)
    return BulkStatusResponse(results=items, updated=len(items) - failed, failed=failed)


@router.get("/grievances/missing-coords", response_model=List[GrievanceResponse])
async def get_missing_coordinates(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """Resolved grievances that still need to be placed on the map."""
    grievances = GrievanceStore(db).list_missing_coordinates()
    return [GrievanceResponse.from_db(g) for g in grievances]
