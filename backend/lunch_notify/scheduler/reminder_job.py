"""
Scheduled jobs: reminder tick (every minute) and notification retention (daily).

Each run opens its own session; failures are logged and rolled back so the scheduler
keeps running and the next tick retries.
"""
import logging

from lunch_notify.config import settings
from lunch_notify.db.session import SessionLocal
from lunch_notify.services.dispatcher import get_dispatcher
from lunch_notify.services.notification_store import purge_older_than
from lunch_notify.services.reminder_gate import FIRED, run_scheduler_tick

logger = logging.getLogger(__name__)


def run_reminder_tick_job() -> None:
    db = SessionLocal()
    try:
        result = run_scheduler_tick(db, get_dispatcher())
        if FIRED in (result.get("menu_update_reminder"), result.get("order_reminder")):
            logger.info("Reminder tick: %s", result)
        else:
            logger.debug("Reminder tick: %s", result)
    except Exception as e:
        logger.exception("Reminder tick failed: %s", e)
        db.rollback()
    finally:
        db.close()


def run_retention_job() -> None:
    db = SessionLocal()
    try:
        purge_older_than(db, settings.notifications_retention_days)
    except Exception as e:
        logger.exception("Notification retention job failed: %s", e)
        db.rollback()
    finally:
        db.close()
