"""
Tests for NotificationDispatcher and its coupling to status changes.
"""
from unittest.mock import MagicMock

import pytest

from app.models.db_models import GrievanceStatus, NotificationDB, NotificationType
from app.services.grievance import GrievanceStore, NotFound, NotificationDispatcher


def _grievance(db, user, title="Overflowing bin"):
    return GrievanceStore(db).create(
        user_id=user.id,
        title=title,
        description="Bin has not been emptied",
        category="garbage",
        location="Park Road",
    )


class TestOnStatusChange:

    def test_noop_is_silent(self, db, citizen):
        grievance = _grievance(db, citizen)
        dispatcher = NotificationDispatcher(db)

        result = dispatcher.on_status_change(grievance, GrievanceStatus.PENDING, GrievanceStatus.PENDING)

        assert result is None
        assert db.query(NotificationDB).count() == 0

    def test_in_progress_is_silent(self, db, citizen):
        grievance = _grievance(db, citizen)
        dispatcher = NotificationDispatcher(db)

        result = dispatcher.on_status_change(grievance, GrievanceStatus.PENDING, GrievanceStatus.IN_PROGRESS)

        assert result is None

    def test_resolved_notification(self, db, citizen):
        grievance = _grievance(db, citizen)
        dispatcher = NotificationDispatcher(db)

        notification = dispatcher.on_status_change(
            grievance, GrievanceStatus.IN_PROGRESS, GrievanceStatus.RESOLVED,
        )

        assert notification.user_id == citizen.id
        assert notification.type == NotificationType.SUCCESS
        assert notification.title == "Grievance resolved"
        assert notification.message == 'Your grievance "Overflowing bin" was marked resolved.'
        assert notification.read is False

    def test_rejected_without_reason(self, db, citizen):
        grievance = _grievance(db, citizen)
        dispatcher = NotificationDispatcher(db)

        notification = dispatcher.on_status_change(
            grievance, GrievanceStatus.PENDING, GrievanceStatus.REJECTED,
        )

        assert notification.type == NotificationType.ERROR
        assert "Reason" not in notification.message


class TestNotificationFailure:

    def test_status_survives_failing_dispatcher(self, db, citizen):
        """A crashing notifier is logged; the committed status stands."""
        failing = MagicMock()
        failing.on_status_change.side_effect = RuntimeError("mail server down")
        store = GrievanceStore(db, dispatcher=failing)
        grievance = GrievanceStore(db).create(
            user_id=citizen.id, title="Leak", description="Pipe leak",
            category="water", location="Block C",
        )

        result = store.set_status(grievance.id, "resolved")

        assert result.status == GrievanceStatus.RESOLVED
        failing.on_status_change.assert_called_once()
        db.expire_all()
        assert GrievanceStore(db).get(grievance.id).status == GrievanceStatus.RESOLVED
        assert db.query(NotificationDB).count() == 0

    def test_noop_never_reaches_dispatcher(self, db, citizen):
        dispatcher = MagicMock()
        store = GrievanceStore(db, dispatcher=dispatcher)
        grievance = store.create(
            user_id=citizen.id, title="Leak", description="Pipe leak",
            category="water", location="Block C",
        )

        store.set_status(grievance.id, "pending")

        dispatcher.on_status_change.assert_not_called()


class TestInbox:

    def test_list_mark_read_and_clear(self, db, citizen, other_citizen):
        store = GrievanceStore(db)
        mine = _grievance(db, citizen, title="mine")
        theirs = _grievance(db, other_citizen, title="theirs")
        store.set_status(mine.id, "resolved")
        store.set_status(theirs.id, "rejected")
        dispatcher = NotificationDispatcher(db)

        inbox = dispatcher.list_for_user(citizen.id)
        assert len(inbox) == 1

        read = dispatcher.mark_read(inbox[0].id)
        assert read.read is True
        # Idempotent
        assert dispatcher.mark_read(inbox[0].id).read is True

        assert dispatcher.clear_for_user(citizen.id) == 1
        assert dispatcher.list_for_user(citizen.id) == []
        assert len(dispatcher.list_for_user(other_citizen.id)) == 1

    def test_mark_read_unknown(self, db):
        with pytest.raises(NotFound):
            NotificationDispatcher(db).mark_read("missing")

    def test_notify_admins_reaches_every_admin(self, db, citizen, user_factory):
        admins = [user_factory(role="admin") for _ in range(2)]
        dispatcher = NotificationDispatcher(db)

        sent = dispatcher.notify_admins("Heads up", "Something happened")

        assert sorted(n.user_id for n in sent) == sorted(a.id for a in admins)
        assert dispatcher.list_for_user(citizen.id) == []

    def test_notify_admins_without_admins(self, db, citizen):
        assert NotificationDispatcher(db).notify_admins("Heads up", "Nobody listening") == []
