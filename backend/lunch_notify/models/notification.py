"""Notification record: one in-app notification, targeted or broadcast.

recipient_id: user id, or NULL for a broadcast visible to every user.
kind: closed set (order_reminder, order_confirmed, order_modified, menu_updated).
tag: ad_hoc or scheduled_reminder; lets reminder dedupe ignore ad hoc sends of the same kind.
read: single shared flag (broadcasts have one flag for everyone).
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, false

from lunch_notify.core.timeutil import utcnow
from lunch_notify.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "read"),
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_kind_tag_created", "kind", "tag", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=True, index=True)
    kind = Column(String(32), nullable=False, index=True)
    tag = Column(String(32), nullable=False, default="ad_hoc", server_default="ad_hoc")
    message = Column(String(500), nullable=False)
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    read_at = Column(DateTime(timezone=True), nullable=True)
    # Set in Python so ordering keeps sub-second precision on every backend
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    @property
    def is_broadcast(self) -> bool:
        return self.recipient_id is None
