"""
Database session and engine.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from lunch_notify.config import settings
from lunch_notify.db.base import Base


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine for url. SQLite (local dev, tests) gets thread-shareable connections and a busy timeout."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 15)
        return create_engine(url, connect_args=connect_args, **kwargs)
    return create_engine(
        url,
        pool_size=kwargs.pop("pool_size", 8),
        max_overflow=kwargs.pop("max_overflow", 10),
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
        **kwargs,
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all(bind: Engine | None = None) -> None:
    """Create every model table (tests and local SQLite; production uses alembic)."""
    import lunch_notify.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_session_factory() -> sessionmaker:
    """For long-lived responses (streams) that open their own short sessions."""
    return SessionLocal
