#!/usr/bin/env python3
"""
Admin User Seed Script
Creates an admin user for the CivicEye admin console.

Usage:
    python -m scripts.seed_admin <email> <password> [full name]

Example:
    python -m scripts.seed_admin admin@civiceye.local securepassword123 "City Desk"
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.models.db_models import UserDB, UserRole
from app.auth import hash_password


def create_admin_user(email: str, password: str, full_name: str = None, db: Session = None) -> bool:
    """Create an admin user, or upgrade an existing account to admin."""
    owns_session = db is None
    if owns_session:
        # Ensure tables exist
        init_db()
        db = SessionLocal()

    try:
        existing = db.query(UserDB).filter(UserDB.email == email).first()

        if existing:
            if existing.role == UserRole.ADMIN.value:
                print(f"User '{email}' is already an admin.")
                return True
            existing.role = UserRole.ADMIN.value
            db.commit()
            print(f"Upgraded existing user '{email}' to admin role.")
            return True

        admin_user = UserDB(
            id=str(uuid4()),
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
        )

        db.add(admin_user)
        db.commit()

        print("Admin user created successfully!")
        print(f"  Email: {email}")
        print("  Role: admin")
        return True

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {e}")
        db.rollback()
        return False
    finally:
        if owns_session:
            db.close()


def main():
    if len(sys.argv) not in (3, 4):
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]
    full_name = sys.argv[3] if len(sys.argv) == 4 else None

    # Basic validation
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = create_admin_user(email, password, full_name)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
