"""
Grievance Store

Persistence and retrieval of grievances, and the only place a grievance
status is written.

Status writes are compare-and-set: the UPDATE is conditioned on the status
the state machine validated against. If another request changed the status
in between, the row count is zero, the record is re-read and the transition
is re-evaluated against the fresh state. A stale read can therefore never
apply a transition the state machine would reject.

Notifications are dispatched only after the status write has committed.
A failing notification is logged and never undoes the status change.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import uuid4
import logging
import os

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    GrievanceDB, GrievanceStatus, GrievanceCategory, GrievancePriority, NotificationType,
)
from .errors import (
    GrievanceServiceError, InternalError, InvalidTransition, NotFound, ValidationError,
)
from .geo import haversine_km, valid_coordinates
from .notification_dispatcher import NotificationDispatcher
from .state_machine import GrievanceStateMachine, parse_status

logger = logging.getLogger(__name__)

# Same-category grievances within this radius are treated as one hotspot
CLUSTER_RADIUS_KM = float(os.getenv("CLUSTER_RADIUS_KM", "2.0"))
CLUSTER_MIN_SIZE = int(os.getenv("CLUSTER_MIN_SIZE", "3"))

# Forward-only machine: at most two real transitions can race a single request
MAX_TRANSITION_ATTEMPTS = 3

CATEGORY_VALUES = {c.value for c in GrievanceCategory}


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class GrievanceStore:
    """
    Grievance persistence service.

    Coordinates:
    - State machine validation of status changes
    - Notification side effects (creator and admin)
    - Priority cluster detection on create
    """

    def __init__(self, db: Session, dispatcher: Optional[NotificationDispatcher] = None):
        """Initialize with database session."""
        self.db = db
        self.state_machine = GrievanceStateMachine()
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    # =========================================================================
    # CREATION
    # =========================================================================

    def create(
        self,
        user_id: str,
        title: str,
        description: str,
        category: Union[str, GrievanceCategory],
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        priority: GrievancePriority = GrievancePriority.MEDIUM,
        image_urls: Optional[List[str]] = None,
        audio_url: Optional[str] = None,
    ) -> GrievanceDB:
        """
        Create a grievance in PENDING status.

        Raises:
            ValidationError: Missing creator, blank title/description,
                unknown category, no location, or out-of-range coordinates
        """
        if _blank(user_id):
            raise ValidationError("Creator id is required")
        if _blank(title):
            raise ValidationError("Title must not be empty")
        if _blank(description):
            raise ValidationError("Description must not be empty")

        category_value = category.value if isinstance(category, GrievanceCategory) else category
        if category_value not in CATEGORY_VALUES:
            raise ValidationError(f"Invalid category: {category_value}")

        has_coords = latitude is not None or longitude is not None
        if has_coords and not valid_coordinates(latitude, longitude):
            raise ValidationError("Latitude must be within [-90, 90] and longitude within [-180, 180]")
        if _blank(location) and not has_coords:
            raise ValidationError("A location address or coordinates are required")

        now = datetime.utcnow()
        grievance = GrievanceDB(
            id=str(uuid4()),
            user_id=user_id,
            title=title.strip(),
            description=description.strip(),
            category=category_value,
            status=GrievanceStatus.PENDING,
            priority=GrievancePriority(priority),
            location=location.strip() if not _blank(location) else None,
            latitude=float(latitude) if has_coords else None,
            longitude=float(longitude) if has_coords else None,
            image_urls=list(image_urls or []),
            audio_url=audio_url,
            resolution_proof_urls=[],
            created_at=now,
            updated_at=now,
        )
        self.db.add(grievance)
        self.db.commit()
        self.db.refresh(grievance)

        logger.info(f"Grievance created: {grievance.id} ({category_value}) by user {user_id}")

        self._check_cluster(grievance)
        return grievance

    def create_emergency(
        self,
        user_id: str,
        description: Optional[str] = None,
        title: Optional[str] = None,
        category: Optional[str] = None,
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> GrievanceDB:
        """
        Create an emergency-priority grievance and alert every admin.
        """
        title = title if not _blank(title) else "Emergency Report"
        grievance = self.create(
            user_id=user_id,
            title=title,
            description=description if not _blank(description) else title,
            category=category or GrievanceCategory.EMERGENCY.value,
            location=location,
            latitude=latitude,
            longitude=longitude,
            priority=GrievancePriority.EMERGENCY,
        )

        try:
            self.dispatcher.notify_admins(
                title="Emergency reported",
                message=f"URGENT: {grievance.title} ({grievance.category}). Please review immediately.",
                notification_type=NotificationType.WARNING,
                grievance_id=grievance.id,
            )
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to alert admins about emergency grievance {grievance.id}")

        return grievance

    # =========================================================================
    # RETRIEVAL
    # =========================================================================

    def get(self, grievance_id: str) -> GrievanceDB:
        """
        Raises:
            NotFound: If no grievance has this id
        """
        grievance = self.db.get(GrievanceDB, grievance_id)
        if grievance is None:
            raise NotFound(f"Grievance {grievance_id} not found")
        return grievance

    def _query(
        self,
        creator_id: Optional[str] = None,
        status: Optional[Union[str, GrievanceStatus]] = None,
        category: Optional[str] = None,
    ):
        query = self.db.query(GrievanceDB)
        if creator_id is not None:
            query = query.filter(GrievanceDB.user_id == creator_id)
        if status is not None:
            query = query.filter(GrievanceDB.status == parse_status(status))
        if category is not None:
            query = query.filter(GrievanceDB.category == category)
        return query

    def list(
        self,
        creator_id: Optional[str] = None,
        status: Optional[Union[str, GrievanceStatus]] = None,
        category: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[GrievanceDB]:
        """
        List grievances matching every provided filter (exact equality).

        Ordered by creation time, newest first unless descending=False.
        """
        if status is not None and parse_status(status) is None:
            # No stored grievance can hold an unknown status
            return []

        order = GrievanceDB.created_at.desc() if descending else GrievanceDB.created_at.asc()
        query = self._query(creator_id, status, category).order_by(order)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(
        self,
        creator_id: Optional[str] = None,
        status: Optional[Union[str, GrievanceStatus]] = None,
        category: Optional[str] = None,
    ) -> int:
        if status is not None and parse_status(status) is None:
            return 0
        return self._query(creator_id, status, category).with_entities(
            func.count(GrievanceDB.id)
        ).scalar() or 0

    def recent(self, user_id: Optional[str] = None, limit: int = 5) -> List[GrievanceDB]:
        """Newest grievances, optionally only those of one creator."""
        return self.list(creator_id=user_id, limit=limit)

    def list_public_map(self, status: Optional[str] = None) -> List[GrievanceDB]:
        """Grievances that carry coordinates, for the public map."""
        if status is not None and parse_status(status) is None:
            return []
        query = self._query(status=status).filter(
            GrievanceDB.latitude.isnot(None),
            GrievanceDB.longitude.isnot(None),
        )
        return query.order_by(GrievanceDB.created_at.desc()).all()

    def list_public_gallery(self) -> List[GrievanceDB]:
        """Grievances with at least one resolution proof image, newest first."""
        rows = self._query(status=GrievanceStatus.RESOLVED).order_by(GrievanceDB.created_at.desc()).all()
        return [g for g in rows if g.resolution_proof_urls]

    def list_missing_coordinates(self) -> List[GrievanceDB]:
        """Resolved grievances lacking coordinates (admin helper)."""
        return self._query(status=GrievanceStatus.RESOLVED).filter(
            (GrievanceDB.latitude.is_(None)) | (GrievanceDB.longitude.is_(None))
        ).order_by(GrievanceDB.created_at.desc()).all()

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    def set_status(
        self,
        grievance_id: str,
        new_status: Union[str, GrievanceStatus],
        rejection_reason: Optional[str] = None,
        resolution_proof_urls: Optional[Sequence[str]] = None,
    ) -> GrievanceDB:
        """
        Move a grievance to a new status.

        A request for the current status is a no-op: nothing is written and
        no notification is sent. Proof images sent to an already resolved
        grievance are still stored.

        Raises:
            NotFound: If no grievance has this id
            InvalidTransition: If the state machine rejects the change
            ValidationError: If proof images accompany a non-RESOLVED target
        """
        if resolution_proof_urls and parse_status(new_status) != GrievanceStatus.RESOLVED:
            raise ValidationError("Resolution proof can only be attached when resolving")

        grievance = self.get(grievance_id)

        for attempt in range(MAX_TRANSITION_ATTEMPTS):
            previous = grievance.status
            target, is_noop = self.state_machine.validate(grievance_id, previous, new_status)
            if is_noop:
                if target == GrievanceStatus.RESOLVED and resolution_proof_urls:
                    return self._attach_proof(grievance, resolution_proof_urls)
                logger.info(f"Grievance {grievance_id} already {target.value}, nothing to do")
                return grievance

            values: Dict[Any, Any] = {
                GrievanceDB.status: target,
                GrievanceDB.updated_at: datetime.utcnow(),
            }
            if target == GrievanceStatus.REJECTED and not _blank(rejection_reason):
                values[GrievanceDB.rejection_reason] = rejection_reason.strip()
            if target == GrievanceStatus.RESOLVED and resolution_proof_urls:
                values[GrievanceDB.resolution_proof_urls] = list(resolution_proof_urls)

            try:
                updated = self.db.query(GrievanceDB).filter(
                    GrievanceDB.id == grievance_id,
                    GrievanceDB.status == previous,
                ).update(values, synchronize_session=False)
                if updated == 1:
                    self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception(f"Status write failed for grievance {grievance_id}")
                raise InternalError() from e

            if updated == 1:
                break

            # Lost the race: drop our view and look at what the winner wrote
            self.db.rollback()
            logger.warning(
                f"Grievance {grievance_id} changed concurrently (attempt {attempt + 1}), re-evaluating"
            )
            grievance = self.db.get(GrievanceDB, grievance_id, populate_existing=True)
            if grievance is None:
                raise NotFound(f"Grievance {grievance_id} not found")
        else:
            current = grievance.status.value if grievance.status else None
            raise InvalidTransition(grievance_id, current, str(getattr(new_status, "value", new_status)))

        self.db.refresh(grievance)
        logger.info(f"Grievance {grievance_id}: {previous.value} -> {target.value}")

        self._dispatch_status_notification(grievance, previous, target)
        return grievance

    def _attach_proof(self, grievance: GrievanceDB, proof_urls: Sequence[str]) -> GrievanceDB:
        """
        Replace the proof images of an already resolved grievance.

        The status does not change, so no notification is sent.
        """
        try:
            updated = self.db.query(GrievanceDB).filter(
                GrievanceDB.id == grievance.id,
                GrievanceDB.status == GrievanceStatus.RESOLVED,
            ).update({
                GrievanceDB.resolution_proof_urls: list(proof_urls),
                GrievanceDB.updated_at: datetime.utcnow(),
            }, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Proof write failed for grievance {grievance.id}")
            raise InternalError() from e

        if updated != 1:
            # RESOLVED is terminal, so only a deleted row gets here
            raise NotFound(f"Grievance {grievance.id} not found")

        self.db.refresh(grievance)
        logger.info(f"Grievance {grievance.id}: {len(proof_urls)} proof image(s) attached")
        return grievance

    def resolve_with_proof(self, grievance_id: str, proof_urls: Sequence[str]) -> GrievanceDB:
        """
        Resolve a grievance, attaching at least one proof image reference.

        On a grievance that is already resolved the proof is still stored.
        """
        urls = [u.strip() for u in (proof_urls or []) if not _blank(u)]
        if not urls:
            raise ValidationError("At least one proof image is required")
        return self.set_status(grievance_id, GrievanceStatus.RESOLVED, resolution_proof_urls=urls)

    def reject(self, grievance_id: str, reason: str) -> GrievanceDB:
        """
        Reject a grievance with a mandatory justification.
        """
        if _blank(reason):
            raise ValidationError("Rejection justification is required")
        return self.set_status(grievance_id, GrievanceStatus.REJECTED, rejection_reason=reason)

    def bulk_set_status(
        self,
        grievance_ids: Sequence[str],
        new_status: Union[str, GrievanceStatus],
        rejection_reason: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Apply set_status to each id independently.

        One failing id does not stop the others. Returns one result per id:
        {"id", "grievance", "error", "detail"} with grievance None on failure.
        """
        if not grievance_ids:
            raise ValidationError("Invalid grievance IDs")

        results = []
        for grievance_id in grievance_ids:
            try:
                grievance = self.set_status(grievance_id, new_status, rejection_reason=rejection_reason)
                results.append({"id": grievance_id, "grievance": grievance, "error": None, "detail": None})
            except GrievanceServiceError as e:
                results.append({"id": grievance_id, "grievance": None, "error": e.kind, "detail": str(e)})

        failed = sum(1 for r in results if r["error"])
        logger.info(f"Bulk status update to {new_status}: {len(results) - failed} ok, {failed} failed")
        return results

    # =========================================================================
    # LOCATION
    # =========================================================================

    def set_coordinates(self, grievance_id: str, latitude: float, longitude: float) -> GrievanceDB:
        """
        Raises:
            ValidationError: If coordinates are out of range
            NotFound: If no grievance has this id
        """
        if not valid_coordinates(latitude, longitude):
            raise ValidationError("Valid latitude and longitude are required")

        grievance = self.get(grievance_id)
        grievance.latitude = float(latitude)
        grievance.longitude = float(longitude)
        grievance.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(grievance)
        return grievance

    # =========================================================================
    # SIDE EFFECTS
    # =========================================================================

    def _dispatch_status_notification(
        self,
        grievance: GrievanceDB,
        previous: GrievanceStatus,
        current: GrievanceStatus,
    ) -> None:
        # The status write is already committed; a failure here must not surface
        try:
            self.dispatcher.on_status_change(grievance, previous, current)
        except Exception:
            self.db.rollback()
            logger.exception(
                f"Notification for grievance {grievance.id} ({previous.value} -> {current.value}) failed"
            )

    def _check_cluster(self, grievance: GrievanceDB) -> None:
        """
        Escalate a same-category hotspot to HIGH priority and alert admins.

        Runs after create. Best effort: failures are logged, never raised.
        """
        if grievance.latitude is None or grievance.longitude is None or not grievance.category:
            return

        try:
            candidates = self.db.query(GrievanceDB).filter(
                GrievanceDB.category == grievance.category,
                GrievanceDB.latitude.isnot(None),
                GrievanceDB.longitude.isnot(None),
            ).all()
            nearby = [
                g for g in candidates
                if haversine_km(grievance.latitude, grievance.longitude, g.latitude, g.longitude)
                <= CLUSTER_RADIUS_KM
            ]
            if len(nearby) < CLUSTER_MIN_SIZE:
                return

            escalated = [
                g for g in nearby
                if g.priority not in (GrievancePriority.HIGH, GrievancePriority.EMERGENCY)
            ]
            if not escalated:
                return

            for g in escalated:
                g.priority = GrievancePriority.HIGH
            self.db.commit()

            logger.info(
                f"Priority cluster: {len(nearby)} '{grievance.category}' grievances near {grievance.id}, "
                f"{len(escalated)} escalated"
            )
            self.dispatcher.notify_admins(
                title="Priority cluster detected",
                message=(
                    f"There are {len(nearby)} or more '{grievance.category}' issues within "
                    f"{CLUSTER_RADIUS_KM:g}km. These have been marked as priority."
                ),
                notification_type=NotificationType.WARNING,
                grievance_id=grievance.id,
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Cluster check failed for grievance {grievance.id}")
