"""
FastAPI app entrypoint.

Notifications for the daily lunch ordering app: in-app records, preferences,
scheduled reminders, email and push.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from lunch_notify.api.routes import notifications, preferences, push, reminders
from lunch_notify.config import settings
from lunch_notify.core.constants import (
    REMINDER_TICK_JOB_ID,
    RETENTION_JOB_HOUR,
    RETENTION_JOB_ID,
    RETENTION_JOB_MINUTE,
)
from lunch_notify.core.errors import install_error_handlers
from lunch_notify.scheduler.reminder_job import run_reminder_tick_job, run_retention_job
from lunch_notify.services.dispatcher import shutdown_dispatcher

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Scheduler: reminder tick every minute, retention sweep once a day
_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        _scheduler.add_job(
            run_reminder_tick_job,
            "interval",
            seconds=settings.reminder_tick_seconds,
            id=REMINDER_TICK_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        _scheduler.add_job(
            run_retention_job,
            "cron",
            hour=RETENTION_JOB_HOUR,
            minute=RETENTION_JOB_MINUTE,
            id=RETENTION_JOB_ID,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("Scheduler started; reminder tick every %ss", settings.reminder_tick_seconds)
    else:
        logger.info("SCHEDULER_ENABLED=false; reminders run only via /cron")
    yield
    if settings.scheduler_enabled:
        _scheduler.shutdown(wait=False)
    shutdown_dispatcher()


app = FastAPI(title="Daily Lunch Notifications", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app, include_detail=not settings.is_production)

app.include_router(notifications.router, tags=["notifications"])
app.include_router(preferences.router, prefix="/user", tags=["preferences"])
app.include_router(push.router, tags=["push"])
app.include_router(reminders.router, tags=["reminders"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Daily Lunch Notifications API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
