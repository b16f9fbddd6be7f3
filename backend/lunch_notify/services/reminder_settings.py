"""Reminder times: stored single row, falling back to MENU_UPDATE_REMINDER_TIME / ORDER_REMINDER_TIME."""
import logging
from dataclasses import asdict, dataclass

from sqlalchemy.orm import Session

from lunch_notify.config import settings
from lunch_notify.core.errors import ValidationError
from lunch_notify.core.timeutil import parse_hhmm
from lunch_notify.models.reminder_settings import REMINDER_SETTINGS_ROW_ID, ReminderSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderTimes:
    menu_update_reminder_time: str
    order_reminder_time: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def default_reminder_times() -> ReminderTimes:
    return ReminderTimes(
        menu_update_reminder_time=settings.menu_update_reminder_time,
        order_reminder_time=settings.order_reminder_time,
    )


def get_reminder_settings(db: Session) -> ReminderTimes:
    row = db.get(ReminderSettings, REMINDER_SETTINGS_ROW_ID)
    if row is None:
        return default_reminder_times()
    return ReminderTimes(
        menu_update_reminder_time=row.menu_update_reminder_time,
        order_reminder_time=row.order_reminder_time,
    )


def _checked(field: str, value: str) -> str:
    try:
        parse_hhmm(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}. Use HH:MM (24-hour)", detail=str(e)) from e
    return value.strip()


def update_reminder_settings(
    db: Session,
    updated_by: str,
    *,
    menu_update_reminder_time: str | None = None,
    order_reminder_time: str | None = None,
) -> ReminderTimes:
    """Partial update; omitted fields keep their current value."""
    current = get_reminder_settings(db)
    menu_time = (
        _checked("menu_update_reminder_time", menu_update_reminder_time)
        if menu_update_reminder_time is not None
        else current.menu_update_reminder_time
    )
    order_time = (
        _checked("order_reminder_time", order_reminder_time)
        if order_reminder_time is not None
        else current.order_reminder_time
    )
    row = db.get(ReminderSettings, REMINDER_SETTINGS_ROW_ID)
    if row is None:
        row = ReminderSettings(id=REMINDER_SETTINGS_ROW_ID)
        db.add(row)
    row.menu_update_reminder_time = menu_time
    row.order_reminder_time = order_time
    row.updated_by = updated_by
    db.commit()
    logger.info("Reminder times updated by %s: menu=%s order=%s", updated_by, menu_time, order_time)
    return ReminderTimes(menu_update_reminder_time=menu_time, order_reminder_time=order_time)
