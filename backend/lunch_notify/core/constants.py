"""
Centralized constants for notifications, reminders and scheduler jobs.

Change kinds, job IDs or limits here instead of scattering literals across services and routes.
"""

# Notification kinds (closed set; anything else is rejected before a write)
KIND_ORDER_REMINDER = "order_reminder"
KIND_ORDER_CONFIRMED = "order_confirmed"
KIND_ORDER_MODIFIED = "order_modified"
KIND_MENU_UPDATED = "menu_updated"
NOTIFICATION_KINDS = frozenset(
    {KIND_ORDER_REMINDER, KIND_ORDER_CONFIRMED, KIND_ORDER_MODIFIED, KIND_MENU_UPDATED}
)

# Record tags: scheduled reminders are told apart from ad hoc sends of the same kind
TAG_AD_HOC = "ad_hoc"
TAG_SCHEDULED_REMINDER = "scheduled_reminder"
NOTIFICATION_TAGS = frozenset({TAG_AD_HOC, TAG_SCHEDULED_REMINDER})

# Preference enums
DELIVERY_IN_APP = "in_app"
DELIVERY_EMAIL = "email"
DELIVERY_BOTH = "both"
DELIVERY_METHODS = frozenset({DELIVERY_IN_APP, DELIVERY_EMAIL, DELIVERY_BOTH})

FREQUENCY_ALL = "all"
FREQUENCY_IMPORTANT_ONLY = "important_only"
FREQUENCY_NONE = "none"
FREQUENCIES = frozenset({FREQUENCY_ALL, FREQUENCY_IMPORTANT_ONLY, FREQUENCY_NONE})

# Channels
CHANNEL_IN_APP = "in_app"
CHANNEL_EMAIL = "email"
CHANNEL_PUSH = "push"

# Roles
ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERUSER = "superuser"
ROLES = frozenset({ROLE_USER, ROLE_ADMIN, ROLE_SUPERUSER})
ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPERUSER})

# Scheduled reminders (marker keys; one fire per key per local date)
REMINDER_ORDER = "order_reminder"
REMINDER_MENU_UPDATE = "menu_update_reminder"
ORDER_REMINDER_MESSAGE = "Please place your lunch order for today!"
MENU_UPDATE_REMINDER_MESSAGE = "Reminder: please update today's lunch menu before orders open."

# Scheduler job IDs (must match ids used in main.py add_job)
REMINDER_TICK_JOB_ID = "reminder_tick"
RETENTION_JOB_ID = "notifications_retention"
RETENTION_JOB_HOUR = 3
RETENTION_JOB_MINUTE = 15

# Limits: hard caps so DB and response size stay bounded
MESSAGE_MAX_LENGTH = 500
LIST_DEFAULT_LIMIT = 50
LIST_MAX_LIMIT = 200
SYSTEM_STATS_RECENT_LIMIT = 10
ERROR_MESSAGE_MAX_LENGTH = 500
