"""
Notification store: create, list, mark read, count, purge.

Visibility rule for every read path: a user sees records addressed to them plus
broadcasts (recipient_id IS NULL). Store failures on these paths surface as
TransientStoreError; ownership and existence checks raise Forbidden / NotFound.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, NamedTuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lunch_notify.core.constants import (
    LIST_DEFAULT_LIMIT,
    LIST_MAX_LIMIT,
    MESSAGE_MAX_LENGTH,
    NOTIFICATION_KINDS,
    NOTIFICATION_TAGS,
    SYSTEM_STATS_RECENT_LIMIT,
    TAG_AD_HOC,
)
from lunch_notify.core.errors import Forbidden, InvalidKind, NotFound, TransientStoreError, ValidationError
from lunch_notify.core.timeutil import as_utc, local_day_bounds_utc, local_now, utcnow
from lunch_notify.models.notification import Notification
from lunch_notify.models.reminder_marker import ReminderMarker

logger = logging.getLogger(__name__)


class BulkCreateResult(NamedTuple):
    created: list[Notification]
    failed: list[str]


@contextmanager
def _store_call(db: Session, operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Notification store %s failed", operation)
        raise TransientStoreError("Notification store unavailable", detail=str(e)) from e


def validate_kind(kind: str) -> str:
    if kind not in NOTIFICATION_KINDS:
        raise InvalidKind(f"Invalid notification type: {kind}")
    return kind


def validate_message(message: str) -> str:
    text = (message or "").strip() if isinstance(message, str) else ""
    if not text:
        raise ValidationError("Message is required")
    if len(text) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Message must be at most {MESSAGE_MAX_LENGTH} characters")
    return text


def _validate_tag(tag: str) -> str:
    if tag not in NOTIFICATION_TAGS:
        raise ValidationError(f"Invalid notification tag: {tag}")
    return tag


def _visible_to(user_id: str):
    return or_(Notification.recipient_id == user_id, Notification.recipient_id.is_(None))


def notification_to_dict(row: Notification) -> dict[str, Any]:
    read_at = as_utc(row.read_at)
    created_at = as_utc(row.created_at)
    return {
        "id": row.id,
        "recipient_id": row.recipient_id,
        "broadcast": row.recipient_id is None,
        "kind": row.kind,
        "tag": row.tag,
        "message": row.message,
        "read": bool(row.read),
        "read_at": read_at.isoformat() if read_at else None,
        "created_at": created_at.isoformat() if created_at else None,
    }


# --- Create ---


def create_notification(
    db: Session,
    recipient_id: str | None,
    kind: str,
    message: str,
    tag: str = TAG_AD_HOC,
    *,
    commit: bool = True,
) -> Notification:
    """Create one record. recipient_id=None makes it a broadcast."""
    row = Notification(
        recipient_id=recipient_id,
        kind=validate_kind(kind),
        tag=_validate_tag(tag),
        message=validate_message(message),
        read=False,
    )
    with _store_call(db, "create"):
        db.add(row)
        if commit:
            db.commit()
        else:
            db.flush()
    return row


def create_broadcast(
    db: Session, kind: str, message: str, tag: str = TAG_AD_HOC, *, commit: bool = True
) -> Notification:
    return create_notification(db, None, kind, message, tag, commit=commit)


def create_many(
    db: Session,
    recipient_ids: Iterable[str],
    kind: str,
    message: str,
    tag: str = TAG_AD_HOC,
    *,
    commit: bool = True,
) -> BulkCreateResult:
    """
    One record per distinct recipient. Tries a single bulk insert; if that fails, retries
    record by record so the ones that can be written stand and the rest are reported in failed.
    """
    kind = validate_kind(kind)
    tag = _validate_tag(tag)
    text = validate_message(message)
    ids = list(dict.fromkeys(r for r in recipient_ids if r))
    if not ids:
        return BulkCreateResult([], [])

    def _row(rid: str) -> Notification:
        return Notification(recipient_id=rid, kind=kind, tag=tag, message=text, read=False)

    created: list[Notification] = []
    failed: list[str] = []
    rows = [_row(rid) for rid in ids]
    try:
        with db.begin_nested():
            db.add_all(rows)
        created = rows
    except SQLAlchemyError as e:
        logger.warning("Bulk insert of %s %s notifications failed, retrying one by one: %s", len(ids), kind, e)
        for rid in ids:
            row = _row(rid)
            try:
                with db.begin_nested():
                    db.add(row)
                created.append(row)
            except SQLAlchemyError as row_err:
                logger.warning("Could not create %s notification for %s: %s", kind, rid, row_err)
                failed.append(rid)
    if commit:
        with _store_call(db, "create_many"):
            db.commit()
    return BulkCreateResult(created, failed)


# --- Read ---


def get_notification(db: Session, notification_id: int) -> Notification:
    with _store_call(db, "get"):
        row = db.get(Notification, notification_id)
    if row is None:
        raise NotFound("Notification not found")
    return row


def list_for(
    db: Session,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = LIST_DEFAULT_LIMIT,
    skip: int = 0,
    kinds: Iterable[str] | None = None,
) -> list[Notification]:
    """Records addressed to user_id plus broadcasts, newest first."""
    limit = max(1, min(int(limit), LIST_MAX_LIMIT))
    skip = max(0, int(skip))
    with _store_call(db, "list"):
        q = db.query(Notification).filter(_visible_to(user_id))
        if unread_only:
            q = q.filter(Notification.read.is_(False))
        if kinds is not None:
            q = q.filter(Notification.kind.in_(list(kinds)))
        return (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )


def count_unread(db: Session, user_id: str, *, kinds: Iterable[str] | None = None) -> dict[str, int]:
    """Total and unread counts visible to user_id, optionally limited to kinds."""
    with _store_call(db, "count"):
        q = db.query(func.count(Notification.id)).filter(_visible_to(user_id))
        if kinds is not None:
            q = q.filter(Notification.kind.in_(list(kinds)))
        total = q.scalar() or 0
        unread = q.filter(Notification.read.is_(False)).scalar() or 0
    return {"total": int(total), "unread": int(unread)}


def list_since(
    db: Session, user_id: str, after_id: int, *, limit: int = LIST_MAX_LIMIT
) -> list[Notification]:
    """Records visible to user_id created after the record after_id, oldest first."""
    with _store_call(db, "list_since"):
        return (
            db.query(Notification)
            .filter(_visible_to(user_id), Notification.id > after_id)
            .order_by(Notification.id)
            .limit(limit)
            .all()
        )


def exists_reminder_sent_today(
    db: Session,
    kind: str,
    now: datetime | None = None,
    *,
    tag: str | None = None,
    tz: tzinfo | None = None,
) -> bool:
    """Any record of kind created during today in the reminder timezone. tag=None matches any tag."""
    local = local_now(now, tz)
    start, end = local_day_bounds_utc(local.date(), local.tzinfo)
    with _store_call(db, "exists_reminder_sent_today"):
        q = db.query(Notification.id).filter(
            Notification.kind == kind,
            Notification.created_at >= start,
            Notification.created_at < end,
        )
        if tag is not None:
            q = q.filter(Notification.tag == tag)
        row = q.first()
    return row is not None


def system_stats(db: Session) -> dict[str, Any]:
    with _store_call(db, "stats"):
        total = db.query(func.count(Notification.id)).scalar() or 0
        broadcast = db.query(func.count(Notification.id)).filter(Notification.recipient_id.is_(None)).scalar() or 0
        unread = db.query(func.count(Notification.id)).filter(Notification.read.is_(False)).scalar() or 0
        by_kind = dict(db.query(Notification.kind, func.count(Notification.id)).group_by(Notification.kind).all())
        recent = (
            db.query(Notification)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(SYSTEM_STATS_RECENT_LIMIT)
            .all()
        )
    return {
        "total": int(total),
        "broadcast": int(broadcast),
        "targeted": int(total) - int(broadcast),
        "unread": int(unread),
        "by_kind": {k: int(v) for k, v in by_kind.items()},
        "recent": [notification_to_dict(r) for r in recent],
    }


# --- Update / delete ---


def mark_read(db: Session, notification_id: int, user_id: str, *, is_admin: bool = False) -> Notification:
    """Owner, broadcast, or admin only. Idempotent: read_at keeps the first read time."""
    row = get_notification(db, notification_id)
    if not (is_admin or row.recipient_id is None or row.recipient_id == user_id):
        raise Forbidden("Access denied")
    if not row.read:
        with _store_call(db, "mark_read"):
            row.read = True
            row.read_at = utcnow()
            db.commit()
    return row


def mark_all_read(db: Session, user_id: str) -> int:
    """Mark every unread record visible to user_id (broadcasts included) as read."""
    with _store_call(db, "mark_all_read"):
        updated = (
            db.query(Notification)
            .filter(_visible_to(user_id), Notification.read.is_(False))
            .update({Notification.read: True, Notification.read_at: utcnow()}, synchronize_session=False)
        )
        db.commit()
    return int(updated or 0)


def delete_notification(db: Session, notification_id: int, user_id: str) -> None:
    """Users may delete their own targeted records; broadcasts are shared and stay."""
    row = get_notification(db, notification_id)
    if row.recipient_id is None:
        raise Forbidden("Broadcast notifications cannot be deleted")
    if row.recipient_id != user_id:
        raise Forbidden("Access denied")
    with _store_call(db, "delete"):
        db.delete(row)
        db.commit()


def purge_older_than(db: Session, days: int, now: datetime | None = None) -> int:
    """Delete records created more than `days` ago, and reminder markers older than that date."""
    cutoff = as_utc(now or utcnow()) - timedelta(days=days)
    cutoff_date = local_now(cutoff).date().isoformat()
    with _store_call(db, "purge"):
        deleted = (
            db.query(Notification)
            .filter(Notification.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.query(ReminderMarker).filter(ReminderMarker.local_date < cutoff_date).delete(synchronize_session=False)
        db.commit()
    logger.info("Purged %s notifications older than %s days", deleted, days)
    return int(deleted or 0)


def get_many(db: Session, notification_ids: Iterable[int]) -> list[Notification]:
    ids = list(notification_ids)
    if not ids:
        return []
    with _store_call(db, "get_many"):
        return db.query(Notification).filter(Notification.id.in_(ids)).order_by(Notification.id).all()
