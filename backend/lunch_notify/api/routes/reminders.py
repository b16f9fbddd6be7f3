"""Scheduler tick endpoint (external cron) and reminder time settings."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlalchemy.orm import Session

from lunch_notify.api.deps import Caller, dispatcher_dep, get_caller, require_admin
from lunch_notify.config import settings
from lunch_notify.core.errors import Forbidden
from lunch_notify.db.session import get_db
from lunch_notify.services.dispatcher import Dispatcher
from lunch_notify.services.reminder_gate import run_scheduler_tick
from lunch_notify.services.reminder_settings import get_reminder_settings, update_reminder_settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.api_route("/cron", methods=["GET", "POST"])
def cron_tick(
    db: Session = Depends(get_db),
    dispatcher: Dispatcher = Depends(dispatcher_dep),
    x_cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
) -> dict[str, Any]:
    """
    Run one scheduler tick. Safe to hit every minute from any number of cron sources:
    each reminder fires at most once per day. Requires X-Cron-Secret when CRON_SECRET is set.
    """
    if settings.cron_secret and x_cron_secret != settings.cron_secret:
        raise Forbidden("Invalid cron secret")
    result = run_scheduler_tick(db, dispatcher)
    logger.info("Cron tick: %s", result)
    return {"ok": True, "result": result}


@router.get("/settings")
def read_reminder_settings(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    return {"settings": get_reminder_settings(db).to_dict()}


class ReminderSettingsBody(BaseModel):
    menu_update_reminder_time: str | None = None
    order_reminder_time: str | None = None


@router.put("/settings")
def write_reminder_settings(
    body: ReminderSettingsBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    times = update_reminder_settings(
        db,
        caller.user_id,
        menu_update_reminder_time=body.menu_update_reminder_time,
        order_reminder_time=body.order_reminder_time,
    )
    return {"ok": True, "settings": times.to_dict()}
