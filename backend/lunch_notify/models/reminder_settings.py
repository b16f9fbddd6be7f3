"""Reminder times (single row, id=1). Absent row means config defaults."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from lunch_notify.db.base import Base

REMINDER_SETTINGS_ROW_ID = 1


class ReminderSettings(Base):
    __tablename__ = "reminder_settings"

    id = Column(Integer, primary_key=True, default=REMINDER_SETTINGS_ROW_ID)
    menu_update_reminder_time = Column(String(5), nullable=False)
    order_reminder_time = Column(String(5), nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
