"""Device push token for sending notifications via APNs. A user may have several devices."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from lunch_notify.db.base import Base


class PushToken(Base):
    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    device_token = Column(String(256), nullable=False, unique=True, index=True)
    platform = Column(String(16), nullable=False, server_default="ios")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
