from lunch_notify.services.dispatcher import DispatchResult, Dispatcher, Target, get_dispatcher
from lunch_notify.services.importance import is_important
from lunch_notify.services.preferences import NotificationPreferences, delivery_channels, should_receive
from lunch_notify.services.reminder_gate import run_scheduler_tick

__all__ = [
    "DispatchResult",
    "Dispatcher",
    "NotificationPreferences",
    "Target",
    "delivery_channels",
    "get_dispatcher",
    "is_important",
    "run_scheduler_tick",
    "should_receive",
]
