"""
Feedback Recorder

Citizen satisfaction feedback for resolved grievances.

Rules, checked in order:
1. Rating is an integer in [1, 5]
2. The grievance exists
3. The grievance is RESOLVED
4. No feedback exists yet for this (grievance, user) pair

Rule 4 is also a unique constraint on the feedbacks table, so two
concurrent submissions that both pass the pre-check still yield exactly one
row; the loser's IntegrityError is reported as Conflict. Any other
integrity failure, such as a foreign key, is not.
"""
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import FeedbackDB, GrievanceDB, GrievanceStatus
from .errors import Conflict, InternalError, NotFound, PreconditionFailed, ValidationError

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

# Name of the (grievance_id, user_id) unique constraint on feedbacks
UNIQUE_CONSTRAINT = "uq_feedback_grievance_user"


class FeedbackRecorder:
    """Accepts and lists feedback."""

    def __init__(self, db: Session):
        self.db = db

    def submit(
        self,
        grievance_id: str,
        user_id: Optional[str],
        rating: int,
        comments: Optional[str] = None,
    ) -> FeedbackDB:
        """
        Record feedback for a resolved grievance.

        Raises:
            ValidationError: Rating missing, non-integer or outside [1, 5]
            NotFound: Grievance does not exist
            PreconditionFailed: Grievance is not resolved
            Conflict: This user already gave feedback on this grievance
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("rating must be an integer between 1 and 5")
        if rating < MIN_RATING or rating > MAX_RATING:
            raise ValidationError("rating must be 1-5")

        grievance = self.db.get(GrievanceDB, grievance_id)
        if grievance is None:
            raise NotFound(f"Grievance {grievance_id} not found")
        if grievance.status != GrievanceStatus.RESOLVED:
            raise PreconditionFailed("grievance not resolved")

        if self._find_existing(grievance_id, user_id) is not None:
            raise Conflict("Feedback already submitted")

        feedback = FeedbackDB(
            id=str(uuid4()),
            grievance_id=grievance_id,
            user_id=user_id,
            rating=rating,
            comments=comments.strip() if comments and comments.strip() else None,
        )
        self.db.add(feedback)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self._is_duplicate(e, grievance_id, user_id):
                logger.warning(f"Duplicate feedback rejected by constraint: grievance {grievance_id}, user {user_id}")
                raise Conflict("Feedback already submitted")
            if self.db.get(GrievanceDB, grievance_id) is None:
                # Deleted between the existence check and the insert
                raise NotFound(f"Grievance {grievance_id} not found")
            logger.exception(f"Integrity failure storing feedback for grievance {grievance_id}")
            raise InternalError() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Failed to store feedback for grievance {grievance_id}")
            raise InternalError() from e

        self.db.refresh(feedback)
        logger.info(f"Feedback recorded: grievance {grievance_id}, rating {rating}")
        return feedback

    def _find_existing(self, grievance_id: str, user_id: Optional[str]) -> Optional[FeedbackDB]:
        if user_id is None:
            # Anonymous feedback has no pair to be unique on
            return None
        return self.db.query(FeedbackDB).filter(
            FeedbackDB.grievance_id == grievance_id,
            FeedbackDB.user_id == user_id,
        ).first()

    def _is_duplicate(self, error: IntegrityError, grievance_id: str, user_id: Optional[str]) -> bool:
        """True when the failed insert collided with the one-per-user constraint."""
        if UNIQUE_CONSTRAINT in str(error.orig):
            return True
        if user_id is None:
            return False
        # SQLite does not name the constraint; look for the winning row instead
        return self.db.query(FeedbackDB.id).filter(
            FeedbackDB.grievance_id == grievance_id,
            FeedbackDB.user_id == user_id,
        ).first() is not None

    def list_for_admin(self) -> List[Dict[str, Any]]:
        """
        Every feedback with minimal grievance context.

        Context is looked up in one batched query; a grievance that cannot be
        found yields grievance=None instead of failing the listing.
        """
        feedbacks = self.db.query(FeedbackDB).order_by(FeedbackDB.created_at.desc()).all()

        grievance_ids = {f.grievance_id for f in feedbacks if f.grievance_id}
        grievances_by_id = {}
        if grievance_ids:
            rows = self.db.query(
                GrievanceDB.id, GrievanceDB.title, GrievanceDB.status, GrievanceDB.category,
            ).filter(GrievanceDB.id.in_(grievance_ids)).all()
            grievances_by_id = {
                row.id: {
                    "id": row.id,
                    "title": row.title,
                    "status": row.status.value if row.status else None,
                    "category": row.category,
                }
                for row in rows
            }

        return [
            {
                "id": f.id,
                "grievance_id": f.grievance_id,
                "user_id": f.user_id,
                "rating": f.rating,
                "comments": f.comments,
                "created_at": f.created_at,
                "grievance": grievances_by_id.get(f.grievance_id),
            }
            for f in feedbacks
        ]

    def list_public(self) -> List[FeedbackDB]:
        """
        Feedback worth showing publicly: non-empty comments or a rating.

        The submitter id is returned as-is; callers must not display it.
        """
        feedbacks = self.db.query(FeedbackDB).order_by(FeedbackDB.created_at.desc()).all()
        return [
            f for f in feedbacks
            if (f.comments and f.comments.strip()) or f.rating is not None
        ]
