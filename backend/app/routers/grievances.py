"""
Grievance API Routes

Citizen reporting, public transparency views and admin status changes.
Handlers stay thin: validation of the body is pydantic's job, every rule
about the lifecycle lives in GrievanceStore.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin, is_admin
from ..models.db_models import GrievanceCategory, GrievanceDB, GrievancePriority, UserDB
from ..models.schemas import GrievanceResponse
from ..services.grievance import GrievanceStore, GrievanceServiceError


router = APIRouter(prefix="/grievances", tags=["grievances"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateGrievanceRequest(BaseModel):
    """Request to report a new grievance."""
    title: str = Field(..., max_length=255, description="Short summary of the issue")
    description: str = Field(..., description="What is wrong")
    category: GrievanceCategory = Field(..., description="Issue category")
    location: Optional[str] = Field(None, max_length=500, description="Free-text address")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    priority: GrievancePriority = Field(default=GrievancePriority.MEDIUM)
    image_urls: List[str] = Field(default_factory=list, description="Uploaded image URLs")
    audio_url: Optional[str] = Field(None, description="Uploaded voice note URL")


class EmergencyReportRequest(BaseModel):
    """
    Request to report an emergency. Every field is optional here; the title
    defaults to "Emergency Report" but a location or coordinates are still required.
    """
    description: Optional[str] = None
    title: Optional[str] = Field(None, max_length=255)
    category: Optional[GrievanceCategory] = None
    location: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class StatusUpdateRequest(BaseModel):
    """Raw status string; unknown values are rejected by the state machine."""
    status: str = Field(..., description="pending, in_progress, resolved or rejected")
    rejection_reason: Optional[str] = Field(None, description="Shown to the citizen on rejection")


class ResolveWithProofRequest(BaseModel):
    proof_urls: List[str] = Field(..., description="At least one proof image URL")


class RejectRequest(BaseModel):
    reason: str = Field(..., description="Mandatory justification")


class CoordinatesRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GrievanceListResponse(BaseModel):
    grievances: List[GrievanceResponse]
    total: int


class PublicMapItem(BaseModel):
    """Map pin. Creator and media stay private."""
    id: str
    title: str
    status: str
    category: Optional[str] = None
    latitude: float
    longitude: float
    location: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, grievance: GrievanceDB) -> "PublicMapItem":
        return cls(
            id=grievance.id,
            title=grievance.title,
            status=grievance.status.value,
            category=grievance.category,
            latitude=grievance.latitude,
            longitude=grievance.longitude,
            location=grievance.location,
            created_at=grievance.created_at.isoformat() if grievance.created_at else None,
        )


class GalleryItem(BaseModel):
    """Resolved grievance shown with its proof images only."""
    id: str
    title: str
    category: Optional[str] = None
    resolution_proof_urls: List[str]
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, grievance: GrievanceDB) -> "GalleryItem":
        return cls(
            id=grievance.id,
            title=grievance.title,
            category=grievance.category,
            resolution_proof_urls=grievance.resolution_proof_urls or [],
            created_at=grievance.created_at.isoformat() if grievance.created_at else None,
        )


class PublicMapResponse(BaseModel):
    grievances: List[PublicMapItem]
    total: int


class GalleryResponse(BaseModel):
    grievances: List[GalleryItem]
    total: int


# =============================================================================
# CITIZEN ENDPOINTS
# =============================================================================

@router.post("", response_model=GrievanceResponse, status_code=201)
async def create_grievance(
    request: CreateGrievanceRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Report a grievance. Status always starts as pending.
    """
    store = GrievanceStore(db)
    try:
        grievance = store.create(
            user_id=current_user.id,
            title=request.title,
            description=request.description,
            category=request.category,
            location=request.location,
            latitude=request.latitude,
            longitude=request.longitude,
            priority=request.priority,
            image_urls=request.image_urls,
            audio_url=request.audio_url,
        )
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)


@router.post("/emergency", response_model=GrievanceResponse, status_code=201)
async def report_emergency(
    request: EmergencyReportRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Report an emergency. Admins are alerted immediately.
    """
    store = GrievanceStore(db)
    try:
        grievance = store.create_emergency(
            user_id=current_user.id,
            description=request.description,
            title=request.title,
            category=request.category.value if request.category else None,
            location=request.location,
            latitude=request.latitude,
            longitude=request.longitude,
        )
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)


@router.get("", response_model=GrievanceListResponse)
async def list_grievances(
    status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, description="Admins only; citizens always see their own"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    List grievances. Filters are exact-match and combined with AND.
    """
    creator_id = user_id if is_admin(current_user) else current_user.id

    store = GrievanceStore(db)
    grievances = store.list(
        creator_id=creator_id,
        status=status,
        category=category,
        descending=(order == "desc"),
    )
    return GrievanceListResponse(
        grievances=[GrievanceResponse.from_db(g) for g in grievances],
        total=len(grievances),
    )


# =============================================================================
# PUBLIC ENDPOINTS
# =============================================================================

@router.get("/public-map", response_model=PublicMapResponse)
async def public_map(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Geocoded grievances for the public map."""
    grievances = GrievanceStore(db).list_public_map(status=status)
    return PublicMapResponse(
        grievances=[PublicMapItem.from_db(g) for g in grievances],
        total=len(grievances),
    )


@router.get("/public-gallery", response_model=GalleryResponse)
async def public_gallery(db: Session = Depends(get_db)):
    """Resolved grievances with proof images, newest first."""
    grievances = GrievanceStore(db).list_public_gallery()
    return GalleryResponse(
        grievances=[GalleryItem.from_db(g) for g in grievances],
        total=len(grievances),
    )


@router.get("/{grievance_id}", response_model=GrievanceResponse)
async def get_grievance(
    grievance_id: str,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(get_current_user),
):
    """
    Get one grievance. Citizens can only read their own.
    """
    try:
        grievance = GrievanceStore(db).get(grievance_id)
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if grievance.user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=404, detail=f"Grievance {grievance_id} not found")

    return GrievanceResponse.from_db(grievance)


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@router.patch("/{grievance_id}/status", response_model=GrievanceResponse)
async def update_status(
    grievance_id: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """
    Change grievance status.

    Re-sending the current status succeeds without side effects.
    Resolved and rejected grievances cannot change again.
    """
    store = GrievanceStore(db)
    try:
        grievance = store.set_status(
            grievance_id,
            request.status,
            rejection_reason=request.rejection_reason,
        )
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)


@router.post("/{grievance_id}/resolve-with-proof", response_model=GrievanceResponse)
async def resolve_with_proof(
    grievance_id: str,
    request: ResolveWithProofRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Resolve a grievance, publishing proof images for transparency."""
    store = GrievanceStore(db)
    try:
        grievance = store.resolve_with_proof(grievance_id, request.proof_urls)
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)


@router.post("/{grievance_id}/reject", response_model=GrievanceResponse)
async def reject_grievance(
    grievance_id: str,
    request: RejectRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Reject a grievance with a justification the citizen will see."""
    store = GrievanceStore(db)
    try:
        grievance = store.reject(grievance_id, request.reason)
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)


@router.patch("/{grievance_id}/coords", response_model=GrievanceResponse)
async def set_coordinates(
    grievance_id: str,
    request: CoordinatesRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Manually place a grievance on the map."""
    store = GrievanceStore(db)
    try:
        grievance = store.set_coordinates(grievance_id, request.latitude, request.longitude)
    except GrievanceServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GrievanceResponse.from_db(grievance)
