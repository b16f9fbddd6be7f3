"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts the
registered models match this list.
"""
ALL_TABLE_NAMES = (
    "users",
    "notifications",
    "push_tokens",
    "reminder_markers",
    "reminder_settings",
)

# Tables cleared when resetting notification state. Order matters for FK if any.
NOTIFICATION_TABLE_NAMES = (
    "notifications",
    "reminder_markers",
)
