"""
CivicEye - Authentication Router
Citizen sign-up, login and token introspection.
"""
from uuid import uuid4
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB, UserRole
from ..models.schemas import MessageResponse, UserResponse
from ..auth import hash_password, verify_password, create_access_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 8


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., description=f"At least {MIN_PASSWORD_LENGTH} characters")
    full_name: Optional[str] = Field(None, max_length=200)

    @field_validator('password')
    @classmethod
    def check_password_length(cls, v):
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Sign up as a citizen.
    Admins are promoted by another admin or by scripts/seed_admin.py.
    """
    email = _normalize_email(request.email)
    if db.query(UserDB.id).filter(UserDB.email == email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    db.add(UserDB(
        id=str(uuid4()),
        email=email,
        full_name=request.full_name.strip() if request.full_name else None,
        password_hash=hash_password(request.password),
        role=UserRole.CITIZEN.value,
    ))
    db.commit()

    logger.info(f"Citizen registered: {email}")
    return MessageResponse(message="User created successfully")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange email and password for a bearer token.
    """
    email = _normalize_email(request.email)
    user = db.query(UserDB).filter(UserDB.email == email).first()

    if user is None or not verify_password(request.password, user.password_hash):
        logger.warning(f"Failed login for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = user.role or UserRole.CITIZEN.value
    logger.info(f"User logged in: {email}")
    return TokenResponse(access_token=create_access_token(user.id, user.email, role), role=role)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserDB = Depends(get_current_user)):
    """Profile behind the presented token."""
    return UserResponse.from_db(current_user)
