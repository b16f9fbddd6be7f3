"""User as seen by the notification service.

Rows are owned by the CRUD layer; this service reads role/email/name and writes only
notification_preferences (JSON; lenient on read, strict on write).
"""
from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from lunch_notify.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False, default="")
    role = Column(String(16), nullable=False, default="user", server_default="user", index=True)
    notification_preferences = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
