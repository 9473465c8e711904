"""
Tests for the admin seed script.
"""
from app.auth import verify_password
from app.models.db_models import UserDB, UserRole
from scripts.seed_admin import create_admin_user


def test_creates_admin(db):
    assert create_admin_user("root@example.com", "supersecret", "City Desk", db=db) is True

    user = db.query(UserDB).filter(UserDB.email == "root@example.com").one()
    assert user.role == UserRole.ADMIN.value
    assert user.full_name == "City Desk"
    assert verify_password("supersecret", user.password_hash)


def test_upgrades_existing_citizen(db, citizen):
    assert create_admin_user(citizen.email, "ignored-password", db=db) is True

    db.refresh(citizen)
    assert citizen.role == UserRole.ADMIN.value
    assert db.query(UserDB).count() == 1


def test_existing_admin_is_left_alone(db, admin):
    assert create_admin_user(admin.email, "whatever123", db=db) is True
    assert db.query(UserDB).count() == 1
