"""Notification preferences of the calling user."""
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from lunch_notify.api.deps import Caller, get_caller
from lunch_notify.db.session import get_db
from lunch_notify.services.preferences import get_preferences, set_preferences

router = APIRouter()


@router.get("/preferences")
def read_preferences(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    return {"preferences": get_preferences(db, caller.user_id).model_dump()}


@router.put("/preferences")
def update_preferences(
    payload: Any = Body(...),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> dict[str, Any]:
    """Replace preferences. Omitted fields reset to defaults; unknown values are rejected with 400."""
    prefs = set_preferences(db, caller.user_id, payload)
    return {"ok": True, "preferences": prefs.model_dump()}
