"""
Aggregation Engine

Read-only dashboard statistics over grievances and users.

Nothing is cached: every call re-derives counts from the current rows, so the
numbers are exactly as fresh as the database read.

Signals computed:
- per-user status breakdown (citizen dashboard)
- global overview, status and category breakdowns (admin dashboard)
- new users / grievances in the last 7 and 30 days
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import GrievanceDB, GrievanceStatus, UserDB, UserRole

# Key used for grievances whose category is NULL
NULL_CATEGORY_KEY = "null"


@dataclass
class UserStats:
    """Grievance counts for one creator."""
    total_grievances: int = 0
    pending: int = 0
    in_progress: int = 0
    resolved: int = 0
    rejected: int = 0


@dataclass
class GlobalStats:
    """System-wide counts for the admin dashboard."""
    total_users: int = 0
    total_grievances: int = 0
    admin_users: int = 0
    citizen_users: int = 0
    status_breakdown: Dict[str, int] = field(default_factory=dict)
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    new_users_last_week: int = 0
    new_grievances_last_week: int = 0
    new_users_last_month: int = 0
    new_grievances_last_month: int = 0


class AggregationEngine:
    """
    Computes dashboard statistics.

    Windows are inclusive: a record created exactly at now - N days counts.
    """

    WEEK_DAYS = 7
    MONTH_DAYS = 30

    def __init__(self, db: Session):
        self.db = db

    def _status_counts(self, user_id: Optional[str] = None) -> Dict[str, int]:
        query = self.db.query(GrievanceDB.status, func.count(GrievanceDB.id))
        if user_id is not None:
            query = query.filter(GrievanceDB.user_id == user_id)
        rows = query.group_by(GrievanceDB.status).all()

        counts = {s.value: 0 for s in GrievanceStatus}
        for status, count in rows:
            counts[status.value] = count
        return counts

    def user_stats(self, user_id: str) -> UserStats:
        """Status breakdown of the grievances created by one user."""
        counts = self._status_counts(user_id)
        return UserStats(
            total_grievances=sum(counts.values()),
            pending=counts[GrievanceStatus.PENDING.value],
            in_progress=counts[GrievanceStatus.IN_PROGRESS.value],
            resolved=counts[GrievanceStatus.RESOLVED.value],
            rejected=counts[GrievanceStatus.REJECTED.value],
        )

    def category_breakdown(self) -> Dict[str, int]:
        """Grievance count per category, unknown and NULL categories included."""
        rows = self.db.query(
            GrievanceDB.category, func.count(GrievanceDB.id)
        ).group_by(GrievanceDB.category).all()

        breakdown: Dict[str, int] = {}
        for category, count in rows:
            key = category if category is not None else NULL_CATEGORY_KEY
            breakdown[key] = breakdown.get(key, 0) + count
        return breakdown

    def _count_since(self, model, boundary: datetime) -> int:
        return self.db.query(func.count(model.id)).filter(
            model.created_at >= boundary
        ).scalar() or 0

    def global_stats(self, now: Optional[datetime] = None) -> GlobalStats:
        """
        Totals across all grievances and users.

        Args:
            now: Reference time for the windows (naive UTC), defaults to utcnow
        """
        now = now or datetime.utcnow()
        last_week = now - timedelta(days=self.WEEK_DAYS)
        last_month = now - timedelta(days=self.MONTH_DAYS)

        role_rows = self.db.query(UserDB.role, func.count(UserDB.id)).group_by(UserDB.role).all()
        role_counts = {role: count for role, count in role_rows}

        status_counts = self._status_counts()

        return GlobalStats(
            total_users=sum(role_counts.values()),
            total_grievances=sum(status_counts.values()),
            admin_users=role_counts.get(UserRole.ADMIN.value, 0),
            citizen_users=role_counts.get(UserRole.CITIZEN.value, 0),
            status_breakdown=status_counts,
            category_breakdown=self.category_breakdown(),
            new_users_last_week=self._count_since(UserDB, last_week),
            new_grievances_last_week=self._count_since(GrievanceDB, last_week),
            new_users_last_month=self._count_since(UserDB, last_month),
            new_grievances_last_month=self._count_since(GrievanceDB, last_month),
        )
