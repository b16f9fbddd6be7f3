from lunch_notify.db.base import Base
from lunch_notify.db.session import SessionLocal, build_engine, create_all, engine, get_db
from lunch_notify.db.tables import ALL_TABLE_NAMES, NOTIFICATION_TABLE_NAMES

__all__ = [
    "get_db",
    "engine",
    "build_engine",
    "create_all",
    "SessionLocal",
    "Base",
    "ALL_TABLE_NAMES",
    "NOTIFICATION_TABLE_NAMES",
]
