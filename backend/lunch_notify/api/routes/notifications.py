"""
Notifications API: list, counts, live stream, mark read, delete, and admin sends.

Every route acts as the authenticated caller (bearer token). A caller sees their own
records plus broadcasts; creating notifications is admin-only.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from lunch_notify.api.deps import Caller, dispatcher_dep, get_caller, require_admin
from lunch_notify.config import settings
from lunch_notify.core.constants import LIST_DEFAULT_LIMIT, LIST_MAX_LIMIT
from lunch_notify.core.errors import NotFound, TransientStoreError
from lunch_notify.db.session import get_db, get_session_factory
from lunch_notify.models.user import User
from lunch_notify.services import notification_store as store
from lunch_notify.services.dispatcher import Dispatcher, Target
from lunch_notify.services.notification_stream import notification_events
from lunch_notify.services.preferences import preferences_for_user, visible_kinds

router = APIRouter()
logger = logging.getLogger(__name__)


# --- List ---


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    limit: int = Query(LIST_DEFAULT_LIMIT, ge=1, le=LIST_MAX_LIMIT),
    skip: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    filtered: bool = Query(False),
) -> dict[str, Any]:
    """
    List the caller's notifications and broadcasts, newest first.
    filtered=true hides kinds the caller has opted out of in their preferences; the counts follow it.
    """
    kinds = None
    if filtered:
        kinds = visible_kinds(preferences_for_user(db.get(User, caller.user_id)))
    rows = store.list_for(db, caller.user_id, unread_only=unread_only, limit=limit, skip=skip, kinds=kinds)
    counts = store.count_unread(db, caller.user_id, kinds=kinds)
    return {
        "notifications": [store.notification_to_dict(r) for r in rows],
        "unread_count": counts["unread"],
        "total": counts["total"],
    }


@router.get("/notifications/counts")
def notification_counts(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> dict[str, int]:
    return store.count_unread(db, caller.user_id)


@router.get("/notifications/stream")
def stream_notifications(
    caller: Caller = Depends(get_caller),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> StreamingResponse:
    """Server-sent events: the caller's latest notifications, then each new one as it arrives."""
    events = notification_events(
        session_factory,
        caller.user_id,
        poll_seconds=settings.notification_stream_poll_seconds,
        max_seconds=settings.notification_stream_max_seconds,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# --- Admin: create ---


class CreateNotificationBody(BaseModel):
    recipient_id: str | None = Field(None, description="Target user; omit to broadcast to everyone")
    kind: str
    message: str


@router.post("/notifications", status_code=201)
def create_notification(
    body: CreateNotificationBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
    dispatcher: Dispatcher = Depends(dispatcher_dep),
) -> dict[str, Any]:
    """Send one notification to a user, or a broadcast when recipient_id is omitted."""
    store.validate_kind(body.kind)
    store.validate_message(body.message)
    recipient_id = (body.recipient_id or "").strip()
    if recipient_id:
        if db.get(User, recipient_id) is None:
            raise NotFound("User not found")
        target = Target.user(recipient_id)
    else:
        target = Target.broadcast()
    result = dispatcher.notify(db, target, body.kind, body.message)
    if not result.created:
        raise TransientStoreError("Notification could not be created", detail=", ".join(result.failed_records))
    row = store.get_notification(db, result.notification_ids[0])
    logger.info("Admin %s created %s notification %s", caller.user_id, body.kind, row.id)
    return {"notification": store.notification_to_dict(row), "delivery": result.to_dict()}


class SystemNotificationBody(BaseModel):
    kind: str
    message: str
    user_ids: list[str] | None = Field(None, max_length=1000)


@router.post("/notifications/system", status_code=201)
def create_system_notification(
    body: SystemNotificationBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
    dispatcher: Dispatcher = Depends(dispatcher_dep),
) -> dict[str, Any]:
    """Send to the listed users (unknown ids are ignored), or broadcast when user_ids is empty."""
    store.validate_kind(body.kind)
    store.validate_message(body.message)
    if body.user_ids:
        wanted = list(dict.fromkeys(u.strip() for u in body.user_ids if u and u.strip()))
        existing = {r[0] for r in db.query(User.id).filter(User.id.in_(wanted)).all()}
        ids = [u for u in wanted if u in existing]
        if not ids:
            raise NotFound("No valid users found")
        target = Target.users(ids)
    else:
        target = Target.broadcast()
    result = dispatcher.notify(db, target, body.kind, body.message)
    if not result.created:
        raise TransientStoreError("Notifications could not be created", detail=", ".join(result.failed_records))
    rows = store.get_many(db, result.notification_ids)
    logger.info("Admin %s sent system %s notification to %s records", caller.user_id, body.kind, result.created)
    return {
        "notifications": [store.notification_to_dict(r) for r in rows],
        "count": result.created,
        "delivery": result.to_dict(),
    }


@router.get("/notifications/system")
def system_notification_stats(
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    return store.system_stats(db)


# --- Mark read / delete ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> dict[str, Any]:
    """Mark a single notification as read. Only its recipient (or an admin) may; broadcasts are open to all."""
    row = store.mark_read(db, notification_id, caller.user_id, is_admin=caller.is_admin)
    return {"ok": True, "notification": store.notification_to_dict(row)}


@router.post("/notifications/mark-all-read")
def mark_all_read(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    """Mark everything the caller can see as read, broadcasts included ('Clear all' in UI)."""
    updated = store.mark_all_read(db, caller.user_id)
    return {"ok": True, "marked_count": updated}


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> dict[str, Any]:
    store.delete_notification(db, notification_id, caller.user_id)
    return {"ok": True, "id": notification_id}
