"""
Shared fixtures.

Service tests get a fresh in-memory SQLite database built from the ORM
metadata. Router tests get a TestClient whose get_db is bound to it.
"""
import os

# app.database builds its engine at import time; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models.db_models import UserDB, UserRole
from app.auth import create_access_token, hash_password


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_user(db, email=None, role=UserRole.CITIZEN.value, password="password123"):
    user = UserDB(
        id=str(uuid4()),
        email=email or f"{uuid4().hex[:8]}@example.com",
        password_hash=hash_password(password),
        full_name="Test User",
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def citizen(db):
    return make_user(db, email="citizen@example.com")


@pytest.fixture
def other_citizen(db):
    return make_user(db, email="neighbor@example.com")


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def client(session_factory):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not entered as a context manager, so the lifespan (init_db) does not run
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_factory(db):
    def factory(email=None, role=UserRole.CITIZEN.value):
        return make_user(db, email=email, role=role)
    return factory


@pytest.fixture
def headers_for():
    return auth_headers
