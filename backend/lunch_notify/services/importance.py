"""Which notification kinds count as important (survive frequency=important_only)."""
from lunch_notify.core.constants import (
    KIND_ORDER_CONFIRMED,
    KIND_ORDER_MODIFIED,
    KIND_ORDER_REMINDER,
)

IMPORTANT_KINDS = frozenset({KIND_ORDER_REMINDER, KIND_ORDER_CONFIRMED, KIND_ORDER_MODIFIED})


def is_important(kind: str) -> bool:
    return kind in IMPORTANT_KINDS
