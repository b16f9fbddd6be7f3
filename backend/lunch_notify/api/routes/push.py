"""Push notification registration: device tokens for the calling user."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from lunch_notify.api.deps import Caller, get_caller
from lunch_notify.db.session import get_db
from lunch_notify.models.push_token import PushToken

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs device token (hex string)")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push_token(
    body: RegisterPushBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Register a device for push notifications.
    Call this from the app after receiving the device token from APNs.
    Idempotent: same token is upserted (owner and updated_at refreshed).
    """
    token_str = body.device_token.strip()
    existing = db.query(PushToken).filter(PushToken.device_token == token_str).first()
    if existing:
        existing.user_id = caller.user_id
        existing.platform = body.platform
        existing.updated_at = datetime.now(timezone.utc)
        db.commit()
        return {"ok": True, "message": "Token already registered"}
    db.add(PushToken(user_id=caller.user_id, device_token=token_str, platform=body.platform))
    db.commit()
    logger.info("Registered push token for user=%s platform=%s", caller.user_id, body.platform)
    return {"ok": True, "message": "Token registered"}


@router.delete("/push/register/{device_token}")
def unregister_push_token(device_token: str, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    deleted = (
        db.query(PushToken)
        .filter(PushToken.device_token == device_token.strip(), PushToken.user_id == caller.user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return {"ok": True, "removed": deleted}
