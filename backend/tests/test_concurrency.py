"""
Concurrency tests.

Each worker gets its own session on a file-backed SQLite database, the
closest local stand-in for concurrent API requests.
"""
import threading
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models.db_models import (
    FeedbackDB, GrievanceStatus, NotificationDB, UserDB, UserRole,
)
from app.services.grievance import (
    Conflict, FeedbackRecorder, GrievanceServiceError, GrievanceStore, InvalidTransition,
)


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'civiceye.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def seeded(file_sessions):
    """A citizen and one pending grievance."""
    db = file_sessions()
    user = UserDB(
        id=str(uuid4()), email="race@example.com", password_hash="x", role=UserRole.CITIZEN.value,
    )
    db.add(user)
    db.commit()
    grievance = GrievanceStore(db).create(
        user_id=user.id, title="Race", description="Concurrent updates",
        category="road", location="Ring Road",
    )
    ids = (user.id, grievance.id)
    db.close()
    return ids


def _run_concurrently(workers):
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, work):
        barrier.wait()
        try:
            results[index] = work()
        except GrievanceServiceError as e:
            results[index] = e

    threads = [threading.Thread(target=run, args=(i, w)) for i, w in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_concurrent_feedback_yields_one_row(file_sessions, seeded):
    user_id, grievance_id = seeded
    db = file_sessions()
    GrievanceStore(db).set_status(grievance_id, "resolved")
    db.close()

    def submit(rating):
        def work():
            session = file_sessions()
            try:
                return FeedbackRecorder(session).submit(grievance_id, user_id, rating).id
            finally:
                session.close()
        return work

    results = _run_concurrently([submit(5), submit(4)])

    successes = [r for r in results if isinstance(r, str)]
    conflicts = [r for r in results if isinstance(r, Conflict)]
    assert len(successes) == 1
    assert len(conflicts) == 1

    db = file_sessions()
    assert db.query(FeedbackDB).filter(FeedbackDB.grievance_id == grievance_id).count() == 1
    db.close()


def test_racing_terminal_transitions(file_sessions, seeded):
    """Resolve and reject race; exactly one wins and the other sees a terminal state."""
    user_id, grievance_id = seeded

    def change(target):
        def work():
            session = file_sessions()
            try:
                return GrievanceStore(session).set_status(grievance_id, target).status
            finally:
                session.close()
        return work

    results = _run_concurrently([change("resolved"), change("rejected")])

    winners = [r for r in results if isinstance(r, GrievanceStatus)]
    losers = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(winners) == 1
    assert len(losers) == 1

    db = file_sessions()
    stored = GrievanceStore(db).get(grievance_id).status
    assert stored == winners[0]
    # Exactly one citizen notification, matching the winner
    notifications = db.query(NotificationDB).filter(NotificationDB.user_id == user_id).all()
    assert len(notifications) == 1
    db.close()


def test_stale_read_cannot_override_terminal_state(file_sessions, seeded):
    user_id, grievance_id = seeded
    stale = file_sessions()
    fresh = file_sessions()

    stale_store = GrievanceStore(stale)
    # Loaded while still pending
    assert stale_store.get(grievance_id).status == GrievanceStatus.PENDING

    GrievanceStore(fresh).set_status(grievance_id, "resolved")

    with pytest.raises(InvalidTransition) as exc_info:
        stale_store.set_status(grievance_id, "rejected")

    assert exc_info.value.current == "resolved"
    stale.close()
    fresh.close()

    db = file_sessions()
    assert GrievanceStore(db).get(grievance_id).status == GrievanceStatus.RESOLVED
    db.close()


def test_stale_read_same_target_becomes_noop(file_sessions, seeded):
    user_id, grievance_id = seeded
    stale = file_sessions()
    fresh = file_sessions()

    stale_store = GrievanceStore(stale)
    stale_store.get(grievance_id)
    GrievanceStore(fresh).set_status(grievance_id, "in_progress")

    result = stale_store.set_status(grievance_id, "in_progress")

    assert result.status == GrievanceStatus.IN_PROGRESS
    stale.close()
    fresh.close()
