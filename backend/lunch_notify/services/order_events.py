"""
Notification hooks for order and menu events raised by the ordering CRUD layer.

Every hook is best-effort: the triggering operation has already succeeded, so failures
here are logged and reported as None instead of propagating.
"""
import logging
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from lunch_notify.core.constants import (
    ADMIN_ROLES,
    KIND_MENU_UPDATED,
    KIND_ORDER_CONFIRMED,
    KIND_ORDER_MODIFIED,
    MESSAGE_MAX_LENGTH,
)
from lunch_notify.models.user import User
from lunch_notify.services.dispatcher import DispatchResult, Dispatcher, Target

logger = logging.getLogger(__name__)

ORDER_CREATED = "created"
ORDER_UPDATED = "updated"
ORDER_CANCELLED = "cancelled"

_ACTION_TEXT = {
    ORDER_CREATED: "placed a new",
    ORDER_UPDATED: "modified their",
    ORDER_CANCELLED: "cancelled their",
}

ORDER_STATUS_CONFIRMED = "confirmed"
ORDERS_PROCESSED_MESSAGE = "Your lunch order has been processed and confirmed!"
DETAILS_ELLIPSIS = "..."


def format_order_date(order_date: date) -> str:
    return order_date.strftime("%a %b %d %Y")


def _safe_notify(db: Session, dispatcher: Dispatcher, target: Target, kind: str, message: str, event: str):
    try:
        return dispatcher.notify(db, target, kind, message)
    except Exception as e:
        db.rollback()
        logger.exception("Notification for %s failed (kind=%s): %s", event, kind, e)
        return None


def notify_order_change(
    db: Session,
    dispatcher: Dispatcher,
    actor: User,
    change: str,
    order_date: date,
    details: str = "",
) -> DispatchResult | None:
    """A regular user created, modified or cancelled their order: tell every admin individually."""
    if actor.role in ADMIN_ROLES:
        return None
    action = _ACTION_TEXT.get(change)
    if action is None:
        logger.warning("Unknown order change %r from user %s; no admin notification", change, actor.id)
        return None
    name = (actor.name or actor.email or "A user").strip()
    message = f"{name} {action} order: for {format_order_date(order_date)}"
    details = (details or "").strip()
    if details:
        room = MESSAGE_MAX_LENGTH - len(message) - len(" ()")
        if len(details) > room:
            details = details[: max(room - len(DETAILS_ELLIPSIS), 0)] + DETAILS_ELLIPSIS
        message = f"{message} ({details})"
    message = message[:MESSAGE_MAX_LENGTH]
    return _safe_notify(db, dispatcher, Target.admins(), KIND_ORDER_MODIFIED, message, f"order {change}")


def notify_order_status(
    db: Session, dispatcher: Dispatcher, owner_id: str, order_date: date, status: str
) -> DispatchResult | None:
    """An admin changed an order's status: tell its owner."""
    kind = KIND_ORDER_CONFIRMED if status == ORDER_STATUS_CONFIRMED else KIND_ORDER_MODIFIED
    message = f"Your order for {format_order_date(order_date)} has been {status}"
    return _safe_notify(db, dispatcher, Target.user(owner_id), kind, message, "order status change")


def notify_orders_processed(db: Session, dispatcher: Dispatcher, user_ids: Iterable[str]) -> DispatchResult | None:
    ids = list(user_ids)
    if not ids:
        return None
    return _safe_notify(
        db, dispatcher, Target.users(ids), KIND_ORDER_CONFIRMED, ORDERS_PROCESSED_MESSAGE, "orders processed"
    )


def notify_menu_updated(db: Session, dispatcher: Dispatcher, menu_name: str) -> DispatchResult | None:
    message = f"New menu available: {menu_name.strip()}" if menu_name and menu_name.strip() else "A new menu is available"
    return _safe_notify(db, dispatcher, Target.broadcast(), KIND_MENU_UPDATED, message, "menu update")
