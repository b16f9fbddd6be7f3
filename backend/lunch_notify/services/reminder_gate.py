"""
Scheduled reminders: decide on each scheduler tick whether today's reminder fires.

A reminder fires at most once per local date, on weekdays, once local time has reached
its configured HH:MM (and within REMINDER_CATCHUP_MINUTES of it, so a late tick still
sends while a tick after lunch does not). The decision point is the insert of a
(reminder, local_date) marker row under a unique constraint: only the tick whose
insert lands owns the fire, and the marker commits with the notification records.
Any order_reminder created today counts as sent, including one an admin sent by hand;
menu_updated only counts when tagged as the scheduled reminder.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lunch_notify.core.constants import (
    KIND_MENU_UPDATED,
    KIND_ORDER_REMINDER,
    MENU_UPDATE_REMINDER_MESSAGE,
    ORDER_REMINDER_MESSAGE,
    REMINDER_MENU_UPDATE,
    REMINDER_ORDER,
    TAG_SCHEDULED_REMINDER,
)
from lunch_notify.core.errors import NotificationError
from lunch_notify.core.timeutil import local_now, parse_hhmm, reminder_tz, utcnow
from lunch_notify.models.reminder_marker import ReminderMarker
from lunch_notify.services.dispatcher import Dispatcher, Target
from lunch_notify.services.notification_store import exists_reminder_sent_today
from lunch_notify.services.reminder_settings import get_reminder_settings

logger = logging.getLogger(__name__)

FIRED = "fired"
SKIPPED = "skipped"

# How long after the configured time a missed reminder may still go out
REMINDER_CATCHUP_MINUTES = 180


@dataclass(frozen=True)
class ScheduledReminder:
    key: str
    kind: str
    message: str
    target: Target
    time_field: str
    # Tag a record must carry to count as today's send; None counts any record of the kind
    sent_tag: str | None = None


SCHEDULED_REMINDERS = (
    ScheduledReminder(
        key=REMINDER_MENU_UPDATE,
        kind=KIND_MENU_UPDATED,
        message=MENU_UPDATE_REMINDER_MESSAGE,
        target=Target.admins(),
        time_field="menu_update_reminder_time",
        sent_tag=TAG_SCHEDULED_REMINDER,
    ),
    ScheduledReminder(
        key=REMINDER_ORDER,
        kind=KIND_ORDER_REMINDER,
        message=ORDER_REMINDER_MESSAGE,
        target=Target.broadcast(),
        time_field="order_reminder_time",
    ),
)


def is_weekday(day: date) -> bool:
    return day.weekday() < 5


def window_state(local: datetime, trigger: time) -> str | None:
    """None when the window is open, else the reason it is not."""
    if not is_weekday(local.date()):
        return "weekend"
    elapsed = (local.hour * 60 + local.minute) - (trigger.hour * 60 + trigger.minute)
    if elapsed < 0:
        return "before_window"
    if elapsed >= REMINDER_CATCHUP_MINUTES:
        return "window_closed"
    return None


def marker_exists(db: Session, reminder: str, local_date: str) -> bool:
    return (
        db.query(ReminderMarker.id)
        .filter(ReminderMarker.reminder == reminder, ReminderMarker.local_date == local_date)
        .first()
        is not None
    )


def claim_marker(db: Session, reminder: str, local_date: str) -> bool:
    """Insert today's marker inside the caller's transaction. True only for the inserting caller."""
    values = {"reminder": reminder, "local_date": local_date, "fired_at": utcnow()}
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(ReminderMarker).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(ReminderMarker).values(**values)
    else:
        try:
            with db.begin_nested():
                db.add(ReminderMarker(**values))
            return True
        except IntegrityError:
            return False
    stmt = stmt.on_conflict_do_nothing(index_elements=["reminder", "local_date"])
    return db.execute(stmt).rowcount == 1


def evaluate_reminder(
    db: Session, dispatcher: Dispatcher, reminder: ScheduledReminder, local: datetime, trigger: time
) -> tuple[str, str]:
    """(FIRED|SKIPPED, reason). Errors are logged and reported as skipped; the next tick retries."""
    closed = window_state(local, trigger)
    if closed:
        return SKIPPED, closed
    local_date = local.date().isoformat()
    try:
        if marker_exists(db, reminder.key, local_date) or exists_reminder_sent_today(
            db, reminder.kind, local, tag=reminder.sent_tag, tz=local.tzinfo
        ):
            return SKIPPED, "already_sent"
        if not claim_marker(db, reminder.key, local_date):
            return SKIPPED, "already_sent"
        result = dispatcher.notify(db, reminder.target, reminder.kind, reminder.message, tag=TAG_SCHEDULED_REMINDER)
    except (NotificationError, SQLAlchemyError) as e:
        db.rollback()
        logger.exception("Reminder %s for %s failed; will retry next tick: %s", reminder.key, local_date, e)
        return SKIPPED, "error"
    logger.info(
        "Reminder %s fired for %s: %s records, email %s/%s, push %s/%s",
        reminder.key,
        local_date,
        result.created,
        result.delivered["email"],
        result.attempted["email"],
        result.delivered["push"],
        result.attempted["push"],
    )
    return FIRED, "sent"


def run_scheduler_tick(
    db: Session, dispatcher: Dispatcher, now: datetime | None = None, tz: tzinfo | None = None
) -> dict:
    """
    Evaluate every scheduled reminder once. Safe to call any number of times per day from
    any number of processes: each reminder fires at most once per local date.
    Returns {"menu_update_reminder": fired|skipped, "order_reminder": fired|skipped, "details": {...}}.
    """
    local = local_now(now, tz or reminder_tz())
    times = get_reminder_settings(db)
    out: dict = {}
    details: dict[str, str] = {}
    for reminder in SCHEDULED_REMINDERS:
        try:
            trigger = parse_hhmm(getattr(times, reminder.time_field))
        except ValueError:
            logger.warning("Invalid %s %r; reminder skipped", reminder.time_field, getattr(times, reminder.time_field))
            status, reason = SKIPPED, "invalid_time"
        else:
            status, reason = evaluate_reminder(db, dispatcher, reminder, local, trigger)
        if status == SKIPPED:
            # Release locks held by the read transaction
            db.rollback()
        out[reminder.key] = status
        details[reminder.key] = reason
    out["details"] = details
    return out
