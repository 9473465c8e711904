"""
CivicEye - Authentication Utilities
Password hashing, signed session tokens, and role-gated dependencies
"""
import os
from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models.db_models import UserDB, UserRole

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "civiceye-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

# Bearer token security
security = HTTPBearer()


def hash_password(password: str) -> str:
    """Salted bcrypt hash, stored as text."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(user_id: str, email: str, role: str = UserRole.CITIZEN.value) -> str:
    """Issue a token carrying the user id, email and role."""
    issued_at = datetime.utcnow()
    claims = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid token. Expired, tampered or malformed tokens yield None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> UserDB:
    """
    Resolve the bearer token to a stored account.

    The role is read from the database, not the token, so a demoted admin
    loses access without waiting for the token to expire.
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = decode_token(credentials.credentials)
    user_id = claims.get("sub") if claims else None
    if not user_id:
        raise unauthorized

    user = db.get(UserDB, user_id)
    if user is None:
        raise unauthorized
    return user


def is_admin(user: UserDB) -> bool:
    return user.role == UserRole.ADMIN.value


def require_role(*roles: UserRole) -> Callable:
    """Build a dependency that admits only the given roles."""
    allowed = {r.value for r in roles}

    async def dependency(current_user: UserDB = Depends(get_current_user)) -> UserDB:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required" if allowed == {UserRole.ADMIN.value} else "Insufficient role",
            )
        return current_user

    return dependency


# Gate for admin-only routes
require_admin = require_role(UserRole.ADMIN)
