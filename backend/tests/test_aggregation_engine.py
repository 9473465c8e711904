"""
Tests for AggregationEngine dashboard statistics.
"""
from dataclasses import asdict
from datetime import datetime, timedelta
from uuid import uuid4

from app.models.db_models import GrievanceDB, GrievanceStatus, UserDB
from app.services.grievance import AggregationEngine, GrievanceStore


def _add_grievance(db, user, category="road", status=GrievanceStatus.PENDING, created_at=None):
    grievance = GrievanceDB(
        id=str(uuid4()),
        user_id=user.id,
        title="t",
        description="d",
        category=category,
        status=status,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(grievance)
    db.commit()
    return grievance


class TestUserStats:

    def test_empty_database_yields_zeros(self, db, citizen):
        stats = AggregationEngine(db).user_stats(citizen.id)

        assert asdict(stats) == {
            "total_grievances": 0,
            "pending": 0,
            "in_progress": 0,
            "resolved": 0,
            "rejected": 0,
        }

    def test_counts_only_own_grievances(self, db, citizen, other_citizen):
        _add_grievance(db, citizen, status=GrievanceStatus.PENDING)
        _add_grievance(db, citizen, status=GrievanceStatus.RESOLVED)
        _add_grievance(db, citizen, status=GrievanceStatus.RESOLVED)
        _add_grievance(db, citizen, status=GrievanceStatus.REJECTED)
        _add_grievance(db, other_citizen, status=GrievanceStatus.IN_PROGRESS)

        stats = AggregationEngine(db).user_stats(citizen.id)

        assert stats.total_grievances == 4
        assert stats.pending == 1
        assert stats.in_progress == 0
        assert stats.resolved == 2
        assert stats.rejected == 1

    def test_reflects_status_changes_immediately(self, db, citizen):
        grievance = _add_grievance(db, citizen)
        engine = AggregationEngine(db)
        assert engine.user_stats(citizen.id).pending == 1

        GrievanceStore(db).set_status(grievance.id, "in_progress")

        stats = engine.user_stats(citizen.id)
        assert stats.pending == 0
        assert stats.in_progress == 1


class TestGlobalStats:

    def test_empty_database(self, db):
        stats = AggregationEngine(db).global_stats()

        assert stats.total_users == 0
        assert stats.total_grievances == 0
        assert stats.status_breakdown == {
            "pending": 0, "in_progress": 0, "resolved": 0, "rejected": 0,
        }
        assert stats.category_breakdown == {}

    def test_breakdowns_sum_to_total(self, db, citizen, admin):
        _add_grievance(db, citizen, category="road")
        _add_grievance(db, citizen, category="road", status=GrievanceStatus.RESOLVED)
        _add_grievance(db, citizen, category="water", status=GrievanceStatus.REJECTED)
        _add_grievance(db, citizen, category="legacy-category")
        _add_grievance(db, citizen, category=None)

        stats = AggregationEngine(db).global_stats()

        assert stats.total_grievances == 5
        assert sum(stats.status_breakdown.values()) == 5
        assert sum(stats.category_breakdown.values()) == 5
        assert stats.category_breakdown["road"] == 2
        assert stats.category_breakdown["legacy-category"] == 1
        assert stats.category_breakdown["null"] == 1

    def test_role_counts(self, db, citizen, other_citizen, admin):
        stats = AggregationEngine(db).global_stats()

        assert stats.total_users == 3
        assert stats.admin_users == 1
        assert stats.citizen_users == 2

    def test_time_windows(self, db, citizen):
        now = datetime(2026, 3, 31, 12, 0, 0)
        _add_grievance(db, citizen, created_at=now - timedelta(days=1))
        _add_grievance(db, citizen, created_at=now - timedelta(days=7))  # boundary, counted
        _add_grievance(db, citizen, created_at=now - timedelta(days=10))
        _add_grievance(db, citizen, created_at=now - timedelta(days=30))
        _add_grievance(db, citizen, created_at=now - timedelta(days=45))
        citizen.created_at = now - timedelta(days=20)
        db.commit()

        stats = AggregationEngine(db).global_stats(now=now)

        assert stats.new_grievances_last_week == 2
        assert stats.new_grievances_last_month == 4
        assert stats.new_users_last_week == 0
        assert stats.new_users_last_month == 1
        assert stats.total_grievances == 5

    def test_users_without_grievances_count(self, db, user_factory):
        for _ in range(3):
            user_factory()

        assert db.query(UserDB).count() == 3
        assert AggregationEngine(db).global_stats().total_users == 3
