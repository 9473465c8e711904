"""
Notification Dispatcher

Creates in-app notifications as side effects of grievance events and serves
the per-user notification inbox.

Citizen notifications are emitted only when a grievance enters RESOLVED or
REJECTED. Admin broadcasts are used for emergencies and priority clusters.
"""
from typing import List, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ...models.db_models import (
    GrievanceDB, GrievanceStatus, NotificationDB, NotificationType, UserDB, UserRole,
)
from .errors import NotFound
from .state_machine import GrievanceStateMachine

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Writes and reads the notifications table."""

    def __init__(self, db: Session):
        self.db = db
        self.state_machine = GrievanceStateMachine()

    # =========================================================================
    # GRIEVANCE EVENTS
    # =========================================================================

    def on_status_change(
        self,
        grievance: GrievanceDB,
        previous: GrievanceStatus,
        current: GrievanceStatus,
    ) -> Optional[NotificationDB]:
        """
        Notify the grievance creator about a committed status change.

        Returns the notification, or None when the change is silent
        (no-op or a non-terminal target).
        """
        if previous == current:
            return None

        notification_type = self.state_machine.get_notification_type(current)
        if notification_type is None:
            return None

        if current == GrievanceStatus.RESOLVED:
            title = "Grievance resolved"
            message = f'Your grievance "{grievance.title}" was marked resolved.'
            if grievance.resolution_proof_urls:
                message += " Proof uploaded for transparency."
        else:
            title = "Grievance rejected"
            message = f'Your grievance "{grievance.title}" was rejected.'
            if grievance.rejection_reason:
                message += f" Reason: {grievance.rejection_reason}"

        notification = self._build(
            user_id=grievance.user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            grievance_id=grievance.id,
        )
        self.db.add(notification)
        self.db.commit()

        logger.info(f"Notified user {grievance.user_id}: grievance {grievance.id} {current.value}")
        return notification

    def notify_admins(
        self,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.WARNING,
        grievance_id: Optional[str] = None,
    ) -> List[NotificationDB]:
        """Broadcast one notification to every admin account."""
        admin_ids = [
            row.id for row in
            self.db.query(UserDB.id).filter(UserDB.role == UserRole.ADMIN.value).all()
        ]

        notifications = [
            self._build(
                user_id=admin_id,
                title=title,
                message=message,
                notification_type=notification_type,
                grievance_id=grievance_id,
            )
            for admin_id in admin_ids
        ]
        if notifications:
            self.db.add_all(notifications)
            self.db.commit()

        logger.info(f"Broadcast '{title}' to {len(notifications)} admin(s)")
        return notifications

    # =========================================================================
    # INBOX
    # =========================================================================

    def list_for_user(self, user_id: str) -> List[NotificationDB]:
        """All notifications for a user, newest first."""
        return (
            self.db.query(NotificationDB)
            .filter(NotificationDB.user_id == user_id)
            .order_by(NotificationDB.created_at.desc())
            .all()
        )

    def get(self, notification_id: str) -> NotificationDB:
        notification = self.db.get(NotificationDB, notification_id)
        if notification is None:
            raise NotFound(f"Notification {notification_id} not found")
        return notification

    def mark_read(self, notification_id: str) -> NotificationDB:
        """Set the read flag. Marking an already-read notification is harmless."""
        notification = self.get(notification_id)
        if not notification.read:
            notification.read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def clear_for_user(self, user_id: str) -> int:
        """Delete every notification of a user. Returns the number removed."""
        removed = self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()

        logger.info(f"Cleared {removed} notification(s) for user {user_id}")
        return removed

    @staticmethod
    def _build(
        user_id: str,
        title: str,
        message: str,
        notification_type: NotificationType,
        grievance_id: Optional[str] = None,
    ) -> NotificationDB:
        return NotificationDB(
            id=str(uuid4()),
            user_id=user_id,
            grievance_id=grievance_id,
            title=title,
            message=message,
            type=notification_type,
            read=False,
        )
