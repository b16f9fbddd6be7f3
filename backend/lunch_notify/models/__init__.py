from lunch_notify.models.notification import Notification
from lunch_notify.models.push_token import PushToken
from lunch_notify.models.reminder_marker import ReminderMarker
from lunch_notify.models.reminder_settings import ReminderSettings
from lunch_notify.models.user import User

__all__ = [
    "Notification",
    "PushToken",
    "ReminderMarker",
    "ReminderSettings",
    "User",
]
