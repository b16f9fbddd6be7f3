"""
Per-user notification preferences: evaluation, validation and persistence.

Evaluation is pure and fails closed: stored values outside the known enums are treated
as the most conservative setting (frequency -> none, delivery -> in-app only, toggles -> off).
Writes go through parse_preferences, which rejects anything outside the enums.
"""
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from lunch_notify.core.constants import (
    CHANNEL_EMAIL,
    CHANNEL_IN_APP,
    DELIVERY_BOTH,
    DELIVERY_EMAIL,
    DELIVERY_IN_APP,
    DELIVERY_METHODS,
    FREQUENCIES,
    FREQUENCY_ALL,
    FREQUENCY_IMPORTANT_ONLY,
    FREQUENCY_NONE,
    KIND_MENU_UPDATED,
    KIND_ORDER_CONFIRMED,
    KIND_ORDER_MODIFIED,
    KIND_ORDER_REMINDER,
    NOTIFICATION_KINDS,
)
from lunch_notify.core.errors import NotFound, ValidationError
from lunch_notify.models.user import User
from lunch_notify.services.importance import is_important

logger = logging.getLogger(__name__)

# kind -> preference toggle that governs it
KIND_TOGGLES = {
    KIND_ORDER_REMINDER: "order_reminders",
    KIND_ORDER_CONFIRMED: "order_confirmations",
    KIND_ORDER_MODIFIED: "order_modifications",
    KIND_MENU_UPDATED: "menu_updates",
}

_DELIVERY_CHANNELS = {
    DELIVERY_IN_APP: frozenset({CHANNEL_IN_APP}),
    DELIVERY_EMAIL: frozenset({CHANNEL_EMAIL}),
    DELIVERY_BOTH: frozenset({CHANNEL_IN_APP, CHANNEL_EMAIL}),
}


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_reminders: StrictBool = True
    order_confirmations: StrictBool = True
    order_modifications: StrictBool = True
    menu_updates: StrictBool = True
    delivery_method: str = DELIVERY_IN_APP
    frequency: str = FREQUENCY_ALL


DEFAULT_PREFERENCES = NotificationPreferences()


def should_receive(preferences: NotificationPreferences, kind: str) -> bool:
    """
    Whether a user with these preferences wants this kind on external channels.
    none -> never; important_only -> only important kinds; then the per-kind toggle.
    """
    toggle = KIND_TOGGLES.get(kind)
    if toggle is None:
        return False
    frequency = preferences.frequency
    if frequency not in (FREQUENCY_ALL, FREQUENCY_IMPORTANT_ONLY):
        return False
    if frequency == FREQUENCY_IMPORTANT_ONLY and not is_important(kind):
        return False
    return getattr(preferences, toggle, False) is True


def delivery_channels(preferences: NotificationPreferences) -> frozenset:
    return _DELIVERY_CHANNELS.get(preferences.delivery_method, _DELIVERY_CHANNELS[DELIVERY_IN_APP])


def visible_kinds(preferences: NotificationPreferences) -> list[str]:
    """Kinds the user has not opted out of (used by the filtered in-app listing)."""
    return sorted(k for k in NOTIFICATION_KINDS if should_receive(preferences, k))


def parse_preferences(payload: Any) -> NotificationPreferences:
    """Strict validation for writes. Missing fields take defaults; wrong types or unknown values are rejected."""
    if not isinstance(payload, dict):
        raise ValidationError("Preferences must be an object")
    try:
        prefs = NotificationPreferences.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "preferences"
        raise ValidationError(f"Invalid value for {field}", detail=first.get("msg")) from e
    if prefs.delivery_method not in DELIVERY_METHODS:
        raise ValidationError("Invalid delivery method. Must be one of: in_app, email, both")
    if prefs.frequency not in FREQUENCIES:
        raise ValidationError("Invalid frequency. Must be one of: all, important_only, none")
    return prefs


def preferences_from_stored(raw: Any) -> NotificationPreferences:
    """Lenient read of the stored JSON. None/empty -> defaults; malformed values fail closed."""
    if not raw:
        return DEFAULT_PREFERENCES
    if not isinstance(raw, dict):
        logger.warning("Stored notification preferences are not an object; using in-app only")
        return NotificationPreferences.model_construct(
            **{**DEFAULT_PREFERENCES.model_dump(), "frequency": FREQUENCY_NONE}
        )
    values = DEFAULT_PREFERENCES.model_dump()
    for toggle in KIND_TOGGLES.values():
        if toggle in raw:
            values[toggle] = raw[toggle] is True
    if "delivery_method" in raw:
        method = raw["delivery_method"]
        values["delivery_method"] = method if method in DELIVERY_METHODS else DELIVERY_IN_APP
    if "frequency" in raw:
        frequency = raw["frequency"]
        values["frequency"] = frequency if frequency in FREQUENCIES else FREQUENCY_NONE
    return NotificationPreferences.model_construct(**values)


def preferences_for_user(user: User | None) -> NotificationPreferences:
    if user is None:
        return DEFAULT_PREFERENCES
    return preferences_from_stored(user.notification_preferences)


def get_preferences(db: Session, user_id: str) -> NotificationPreferences:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return preferences_for_user(user)


def set_preferences(db: Session, user_id: str, payload: Any) -> NotificationPreferences:
    prefs = parse_preferences(payload)
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    user.notification_preferences = prefs.model_dump()
    db.commit()
    logger.info("Updated notification preferences for user %s", user_id)
    return prefs
