"""Reminder marker: at most one row per (reminder, local_date).

Inserting the row is the atomic claim on today's fire; it commits together with the
reminder's notification records, so a failed dispatch leaves no marker behind.
"""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from lunch_notify.core.timeutil import utcnow
from lunch_notify.db.base import Base


class ReminderMarker(Base):
    __tablename__ = "reminder_markers"
    __table_args__ = (UniqueConstraint("reminder", "local_date", name="uq_reminder_markers_reminder_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    reminder = Column(String(32), nullable=False)
    local_date = Column(String(10), nullable=False)  # YYYY-MM-DD in the reminder timezone
    fired_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
