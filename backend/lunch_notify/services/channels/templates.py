"""Email subjects/bodies and push titles per notification kind."""
from html import escape

from lunch_notify.core.constants import (
    KIND_MENU_UPDATED,
    KIND_ORDER_CONFIRMED,
    KIND_ORDER_MODIFIED,
    KIND_ORDER_REMINDER,
)

EMAIL_SUBJECTS = {
    KIND_ORDER_REMINDER: "Daily Lunch Order Reminder",
    KIND_ORDER_CONFIRMED: "Your Lunch Order is Confirmed",
    KIND_ORDER_MODIFIED: "Your Lunch Order has been Modified",
    KIND_MENU_UPDATED: "New Menu Available",
}

PUSH_TITLES = {
    KIND_ORDER_REMINDER: "Lunch order reminder",
    KIND_ORDER_CONFIRMED: "Order confirmed",
    KIND_ORDER_MODIFIED: "Order updated",
    KIND_MENU_UPDATED: "New menu",
}

DEFAULT_SUBJECT = "Daily Lunch Notification"


def email_subject(kind: str) -> str:
    return EMAIL_SUBJECTS.get(kind, DEFAULT_SUBJECT)


def push_title(kind: str) -> str:
    return PUSH_TITLES.get(kind, "Daily Lunch")


def email_text(name: str | None, message: str, app_url: str) -> str:
    greeting = f"Hi {name.strip()}," if name and name.strip() else "Hi,"
    return (
        f"{greeting}\n\n{message}\n\n"
        "Best regards,\nDaily Lunch Ordering System\n\n"
        f"You can manage your notification preferences at {app_url.rstrip('/')}/settings"
    )


def email_html(name: str | None, message: str, app_url: str) -> str:
    greeting = f"Hi {escape(name.strip())}," if name and name.strip() else "Hi,"
    settings_url = escape(f"{app_url.rstrip('/')}/settings")
    return (
        "<div style='font-family:sans-serif;max-width:600px'>"
        f"<p>{greeting}</p>"
        f"<p>{escape(message)}</p>"
        "<p>Best regards,<br>Daily Lunch Ordering System</p>"
        "<hr>"
        f"<p style='font-size:12px;color:#666'>Manage your notification preferences at "
        f"<a href='{settings_url}'>{settings_url}</a></p>"
        "</div>"
    )
