"""Unit tests for the notification store.

Tests cover:
- Validation of kind and message before any write
- Visibility (own records plus broadcasts), ordering and pagination
- Mark read ownership rules and idempotency
- Mark all read, counts, delete, purge
- Reminder dedupe lookups
- Bulk create with per-record fallback
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from lunch_notify.core.errors import Forbidden, InvalidKind, NotFound, ValidationError
from lunch_notify.models.notification import Notification
from lunch_notify.models.reminder_marker import ReminderMarker
from lunch_notify.services import notification_store as store

pytestmark = pytest.mark.unit

MONDAY_1045 = datetime(2026, 10, 19, 10, 45, tzinfo=timezone.utc)


def _count(db) -> int:
    return db.query(Notification).count()


def _add_at(db, created_at: datetime, kind: str = "order_reminder", tag: str = "ad_hoc", recipient_id=None):
    row = Notification(recipient_id=recipient_id, kind=kind, tag=tag, message="m", read=False, created_at=created_at)
    db.add(row)
    db.commit()
    return row


class TestCreate:
    """Tests for create_notification / create_broadcast."""

    def test_creates_unread_targeted_record(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "  Your order is in  ")
        assert row.id is not None
        assert row.recipient_id == "alice"
        assert row.read is False
        assert row.tag == "ad_hoc"
        assert row.message == "Your order is in"

    def test_broadcast_has_no_recipient(self, db) -> None:
        row = store.create_broadcast(db, "menu_updated", "New menu")
        assert row.recipient_id is None
        assert store.notification_to_dict(row)["broadcast"] is True

    def test_unknown_kind_rejected_without_write(self, db) -> None:
        with pytest.raises(InvalidKind):
            store.create_notification(db, "alice", "lunch_party", "hi")
        assert _count(db) == 0

    @pytest.mark.parametrize("message", ["", "   ", "x" * 501])
    def test_bad_message_rejected_without_write(self, db, message: str) -> None:
        with pytest.raises(ValidationError):
            store.create_notification(db, "alice", "order_confirmed", message)
        assert _count(db) == 0

    def test_message_of_exactly_max_length_is_accepted(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "x" * 500)
        assert len(row.message) == 500


class TestCreateMany:
    """Tests for create_many."""

    def test_one_record_per_distinct_recipient(self, db) -> None:
        result = store.create_many(db, ["a", "b", "a", ""], "order_modified", "changed")
        assert [r.recipient_id for r in result.created] == ["a", "b"]
        assert result.failed == []
        assert _count(db) == 2

    def test_empty_list_creates_nothing(self, db) -> None:
        result = store.create_many(db, [], "order_modified", "changed")
        assert result.created == [] and result.failed == []

    def test_falls_back_to_single_inserts_when_bulk_fails(self, db) -> None:
        with patch.object(db, "add_all", side_effect=SQLAlchemyError("bulk insert refused")):
            result = store.create_many(db, ["a", "b"], "order_modified", "changed")
        assert len(result.created) == 2
        assert _count(db) == 2

    def test_partial_failure_keeps_created_records(self, db) -> None:
        original_add = db.add

        def flaky_add(row, *args, **kwargs):
            if getattr(row, "recipient_id", None) == "b":
                raise SQLAlchemyError("row rejected")
            return original_add(row, *args, **kwargs)

        with patch.object(db, "add_all", side_effect=SQLAlchemyError("bulk insert refused")), patch.object(
            db, "add", side_effect=flaky_add
        ):
            result = store.create_many(db, ["a", "b", "c"], "order_modified", "changed")
        assert [r.recipient_id for r in result.created] == ["a", "c"]
        assert result.failed == ["b"]
        assert {r.recipient_id for r in db.query(Notification).all()} == {"a", "c"}


class TestListFor:
    """Tests for list_for visibility, ordering and paging."""

    def test_sees_own_and_broadcasts_only(self, db) -> None:
        store.create_notification(db, "alice", "order_confirmed", "for alice")
        store.create_notification(db, "bob", "order_confirmed", "for bob")
        store.create_broadcast(db, "menu_updated", "for everyone")
        messages = {r.message for r in store.list_for(db, "alice")}
        assert messages == {"for alice", "for everyone"}

    def test_newest_first_with_skip_and_limit(self, db) -> None:
        base = datetime(2026, 10, 1, tzinfo=timezone.utc)
        for i in range(5):
            _add_at(db, base + timedelta(minutes=i), recipient_id="alice")
        rows = store.list_for(db, "alice", limit=2, skip=1)
        assert [r.created_at.replace(tzinfo=None) for r in rows] == [
            (base + timedelta(minutes=3)).replace(tzinfo=None),
            (base + timedelta(minutes=2)).replace(tzinfo=None),
        ]

    def test_unread_only(self, db) -> None:
        first = store.create_notification(db, "alice", "order_confirmed", "one")
        store.create_notification(db, "alice", "order_confirmed", "two")
        store.mark_read(db, first.id, "alice")
        assert [r.message for r in store.list_for(db, "alice", unread_only=True)] == ["two"]

    def test_kind_filter(self, db) -> None:
        store.create_notification(db, "alice", "order_confirmed", "confirmed")
        store.create_broadcast(db, "menu_updated", "menu")
        assert [r.message for r in store.list_for(db, "alice", kinds=["order_confirmed"])] == ["confirmed"]


class TestMarkRead:
    """Tests for mark_read ownership rules."""

    def test_owner_can_mark_read(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        updated = store.mark_read(db, row.id, "alice")
        assert updated.read is True
        assert updated.read_at is not None

    def test_other_user_is_forbidden_and_state_unchanged(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        with pytest.raises(Forbidden):
            store.mark_read(db, row.id, "bob")
        db.expire_all()
        assert db.get(Notification, row.id).read is False

    def test_anyone_can_mark_a_broadcast(self, db) -> None:
        row = store.create_broadcast(db, "menu_updated", "menu")
        assert store.mark_read(db, row.id, "bob").read is True

    def test_admin_may_mark_any_record(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        assert store.mark_read(db, row.id, "boss", is_admin=True).read is True

    def test_missing_record(self, db) -> None:
        with pytest.raises(NotFound):
            store.mark_read(db, 9999, "alice")

    def test_idempotent(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        first = store.mark_read(db, row.id, "alice").read_at
        second = store.mark_read(db, row.id, "alice").read_at
        assert first == second


class TestMarkAllReadAndCounts:
    """Tests for mark_all_read and count_unread."""

    def test_marks_own_and_broadcast_records(self, db) -> None:
        store.create_notification(db, "alice", "order_confirmed", "mine")
        store.create_notification(db, "bob", "order_confirmed", "not mine")
        store.create_broadcast(db, "menu_updated", "everyone")
        assert store.count_unread(db, "alice") == {"total": 2, "unread": 2}

        assert store.mark_all_read(db, "alice") == 2

        assert store.count_unread(db, "alice") == {"total": 2, "unread": 0}
        assert store.count_unread(db, "bob") == {"total": 2, "unread": 1}

    def test_nothing_to_mark(self, db) -> None:
        assert store.mark_all_read(db, "alice") == 0

    def test_counts_limited_to_kinds(self, db) -> None:
        store.create_notification(db, "alice", "order_confirmed", "mine")
        store.create_broadcast(db, "menu_updated", "everyone")
        assert store.count_unread(db, "alice", kinds=["order_confirmed"]) == {"total": 1, "unread": 1}
        assert store.count_unread(db, "alice", kinds=[]) == {"total": 0, "unread": 0}


class TestListSince:
    """Tests for list_since."""

    def test_only_newer_visible_records_oldest_first(self, db) -> None:
        first = store.create_notification(db, "alice", "order_confirmed", "old")
        store.create_notification(db, "bob", "order_confirmed", "not mine")
        store.create_broadcast(db, "menu_updated", "everyone")
        store.create_notification(db, "alice", "order_modified", "newest")

        rows = store.list_since(db, "alice", first.id)

        assert [r.message for r in rows] == ["everyone", "newest"]


class TestDelete:
    """Tests for delete_notification."""

    def test_owner_deletes(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        store.delete_notification(db, row.id, "alice")
        assert _count(db) == 0

    def test_cannot_delete_someone_elses(self, db) -> None:
        row = store.create_notification(db, "alice", "order_confirmed", "hi")
        with pytest.raises(Forbidden):
            store.delete_notification(db, row.id, "bob")

    def test_cannot_delete_broadcast(self, db) -> None:
        row = store.create_broadcast(db, "menu_updated", "menu")
        with pytest.raises(Forbidden):
            store.delete_notification(db, row.id, "alice")


class TestPurge:
    """Tests for purge_older_than."""

    def test_deletes_only_old_records_and_markers(self, db) -> None:
        now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        _add_at(db, now - timedelta(days=31))
        _add_at(db, now - timedelta(days=29))
        db.add(ReminderMarker(reminder="order_reminder", local_date="2026-09-01", fired_at=now - timedelta(days=48)))
        db.add(ReminderMarker(reminder="order_reminder", local_date="2026-10-16", fired_at=now - timedelta(days=3)))
        db.commit()

        assert store.purge_older_than(db, 30, now=now) == 1

        assert _count(db) == 1
        assert [m.local_date for m in db.query(ReminderMarker).all()] == ["2026-10-16"]


class TestExistsReminderSentToday:
    """Tests for exists_reminder_sent_today."""

    def test_scheduled_record_today(self, db) -> None:
        _add_at(db, MONDAY_1045 - timedelta(minutes=15), tag="scheduled_reminder")
        assert store.exists_reminder_sent_today(db, "order_reminder", MONDAY_1045, tz=timezone.utc) is True

    def test_yesterday_does_not_count(self, db) -> None:
        _add_at(db, MONDAY_1045 - timedelta(days=1), tag="scheduled_reminder")
        assert store.exists_reminder_sent_today(db, "order_reminder", MONDAY_1045, tz=timezone.utc) is False

    def test_ad_hoc_send_counts_when_any_tag_matches(self, db) -> None:
        _add_at(db, MONDAY_1045 - timedelta(minutes=5), kind="order_reminder", tag="ad_hoc")
        assert store.exists_reminder_sent_today(db, "order_reminder", MONDAY_1045, tz=timezone.utc) is True

    def test_ad_hoc_send_does_not_count_when_tag_required(self, db) -> None:
        _add_at(db, MONDAY_1045 - timedelta(minutes=5), kind="menu_updated", tag="ad_hoc")
        assert (
            store.exists_reminder_sent_today(
                db, "menu_updated", MONDAY_1045, tag="scheduled_reminder", tz=timezone.utc
            )
            is False
        )

    def test_scheduled_send_counts_when_tag_required(self, db) -> None:
        _add_at(db, MONDAY_1045 - timedelta(minutes=5), kind="menu_updated", tag="scheduled_reminder")
        assert (
            store.exists_reminder_sent_today(
                db, "menu_updated", MONDAY_1045, tag="scheduled_reminder", tz=timezone.utc
            )
            is True
        )


class TestSystemStats:
    """Tests for system_stats."""

    def test_counts_by_kind(self, db) -> None:
        store.create_notification(db, "alice", "order_confirmed", "one")
        store.create_broadcast(db, "menu_updated", "menu")
        stats = store.system_stats(db)
        assert stats["total"] == 2
        assert stats["broadcast"] == 1
        assert stats["targeted"] == 1
        assert stats["by_kind"] == {"order_confirmed": 1, "menu_updated": 1}
        assert len(stats["recent"]) == 2
