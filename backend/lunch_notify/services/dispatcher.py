"""
Dispatcher: turn one notification request into in-app records plus best-effort
email/push deliveries.

Records are written first and committed; external sends run afterwards on a shared
thread pool and are bounded by CHANNEL_TIMEOUT_SECONDS. A failed or slow send is
logged (recipient, kind, channel) and counted in the result, never raised.
"""
import logging
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lunch_notify.core.constants import ADMIN_ROLES, CHANNEL_EMAIL, CHANNEL_PUSH, TAG_AD_HOC
from lunch_notify.core.errors import TransientStoreError
from lunch_notify.models.push_token import PushToken
from lunch_notify.models.user import User
from lunch_notify.services import notification_store as store
from lunch_notify.services.channels import templates
from lunch_notify.services.channels.base import EmailSender, PushSender
from lunch_notify.services.preferences import delivery_channels, preferences_for_user, should_receive

logger = logging.getLogger(__name__)

TARGET_USER = "user"
TARGET_USERS = "users"
TARGET_BROADCAST = "broadcast"
TARGET_ADMINS = "admins"

_SEND_POOL_WORKERS = 8


@dataclass(frozen=True)
class Target:
    mode: str
    user_ids: tuple[str, ...] = ()

    @classmethod
    def user(cls, user_id: str) -> "Target":
        return cls(TARGET_USER, (user_id,))

    @classmethod
    def users(cls, user_ids) -> "Target":
        return cls(TARGET_USERS, tuple(user_ids))

    @classmethod
    def broadcast(cls) -> "Target":
        return cls(TARGET_BROADCAST)

    @classmethod
    def admins(cls) -> "Target":
        """Every admin and superuser, resolved when the notification is dispatched."""
        return cls(TARGET_ADMINS)


def _channel_counts() -> dict[str, int]:
    return {CHANNEL_EMAIL: 0, CHANNEL_PUSH: 0}


@dataclass
class DispatchResult:
    created: int = 0
    recipients: int = 0
    notification_ids: list[int] = field(default_factory=list)
    failed_records: list[str] = field(default_factory=list)
    attempted: dict[str, int] = field(default_factory=_channel_counts)
    delivered: dict[str, int] = field(default_factory=_channel_counts)
    failed: dict[str, int] = field(default_factory=_channel_counts)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def admin_user_ids(db: Session) -> list[str]:
    rows = db.query(User.id).filter(User.role.in_(ADMIN_ROLES)).order_by(User.id).all()
    return [r[0] for r in rows]


class Dispatcher:
    def __init__(
        self,
        email_sender: EmailSender,
        push_sender: PushSender,
        *,
        timeout: float = 10.0,
        app_url: str = "http://localhost:3000",
        executor: ThreadPoolExecutor | None = None,
    ):
        self.email_sender = email_sender
        self.push_sender = push_sender
        self.timeout = timeout
        self.app_url = app_url
        self._executor = executor or ThreadPoolExecutor(
            max_workers=_SEND_POOL_WORKERS, thread_name_prefix="notify-send"
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    # --- Records ---

    def _resolve_ids(self, db: Session, target: Target) -> list[str]:
        if target.mode == TARGET_ADMINS:
            return admin_user_ids(db)
        if target.mode in (TARGET_USER, TARGET_USERS):
            return list(dict.fromkeys(uid for uid in target.user_ids if uid))
        raise ValueError(f"Unknown notification target: {target.mode}")

    def notify(self, db: Session, target: Target, kind: str, message: str, *, tag: str = TAG_AD_HOC) -> DispatchResult:
        """
        Create records for target and fan out to external channels.
        Raises InvalidKind / ValidationError before any write, TransientStoreError if the
        records cannot be committed. Channel failures only show up in the result counts.
        """
        kind = store.validate_kind(kind)
        text = store.validate_message(message)
        result = DispatchResult()

        if target.mode == TARGET_BROADCAST:
            rows = [store.create_broadcast(db, kind, text, tag, commit=False)]
            recipient_ids = None
        else:
            recipient_ids = self._resolve_ids(db, target)
            bulk = store.create_many(db, recipient_ids, kind, text, tag, commit=False)
            rows = bulk.created
            result.failed_records = list(bulk.failed)
            recipient_ids = [r.recipient_id for r in rows]
        notification_ids = [r.id for r in rows]
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Could not commit %s notification records", kind)
            raise TransientStoreError("Notification store unavailable", detail=str(e)) from e

        result.created = len(rows)
        result.notification_ids = notification_ids
        if result.failed_records:
            logger.warning(
                "%s notification: %s records created, %s failed", kind, result.created, len(result.failed_records)
            )
        users = self._load_users(db, recipient_ids)
        result.recipients = len(users) if recipient_ids is None else len(recipient_ids)
        self._deliver(db, users, kind, text, result)
        return result

    # --- External channels ---

    def _load_users(self, db: Session, recipient_ids: list[str] | None) -> list[User]:
        """Users to consider for email/push. None means every user (broadcast)."""
        try:
            q = db.query(User)
            if recipient_ids is not None:
                if not recipient_ids:
                    return []
                q = q.filter(User.id.in_(recipient_ids))
            return q.all()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not load recipients for external delivery; in-app records stand")
            return []

    def _push_tokens(self, db: Session, user_ids: list[str]) -> dict[str, list[str]]:
        tokens: dict[str, list[str]] = defaultdict(list)
        if not user_ids:
            return tokens
        try:
            rows = db.query(PushToken.user_id, PushToken.device_token).filter(PushToken.user_id.in_(user_ids)).all()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not load push tokens; skipping push delivery")
            return tokens
        for user_id, device_token in rows:
            tokens[user_id].append(device_token)
        return tokens

    def _deliver(self, db: Session, users: list[User], kind: str, message: str, result: DispatchResult) -> None:
        wanted = [(u, preferences_for_user(u)) for u in users]
        wanted = [(u, p) for u, p in wanted if should_receive(p, kind)]
        if not wanted:
            return
        tokens = self._push_tokens(db, [u.id for u, _ in wanted])
        subject = templates.email_subject(kind)
        title = templates.push_title(kind)
        pending: list[tuple[str, str, Future]] = []
        for user, prefs in wanted:
            if CHANNEL_EMAIL in delivery_channels(prefs) and user.email:
                html = templates.email_html(user.name, message, self.app_url)
                text = templates.email_text(user.name, message, self.app_url)
                pending.append(
                    self._submit(CHANNEL_EMAIL, user.id, self.email_sender.send, user.email, subject, html, text)
                )
            for device_token in tokens.get(user.id, ()):
                pending.append(
                    self._submit(CHANNEL_PUSH, user.id, self.push_sender.send, device_token, title, message, {"kind": kind})
                )
        for channel, _, _ in pending:
            result.attempted[channel] += 1
        done, _ = wait([f for _, _, f in pending], timeout=self.timeout)
        for channel, user_id, future in pending:
            if future not in done:
                future.cancel()
                logger.warning(
                    "Notification send timed out after %ss (recipient=%s kind=%s channel=%s)",
                    self.timeout, user_id, kind, channel,
                )
                result.failed[channel] += 1
                continue
            err = future.exception()
            if err is not None:
                logger.warning(
                    "Notification send raised (recipient=%s kind=%s channel=%s): %s", user_id, kind, channel, err
                )
                result.failed[channel] += 1
            elif future.result():
                result.delivered[channel] += 1
            else:
                logger.info("Notification send failed (recipient=%s kind=%s channel=%s)", user_id, kind, channel)
                result.failed[channel] += 1

    def _submit(self, channel: str, user_id: str, fn: Callable[..., bool], *args) -> tuple[str, str, Future]:
        return channel, user_id, self._executor.submit(fn, *args)


_default_dispatcher: Dispatcher | None = None


def get_dispatcher() -> Dispatcher:
    """Process-wide dispatcher built from settings (FastAPI dependency and scheduler jobs)."""
    global _default_dispatcher
    if _default_dispatcher is None:
        from lunch_notify.config import settings
        from lunch_notify.services.channels import build_email_sender, build_push_sender

        _default_dispatcher = Dispatcher(
            build_email_sender(settings),
            build_push_sender(settings),
            timeout=settings.channel_timeout_seconds,
            app_url=settings.app_base_url,
        )
    return _default_dispatcher


def shutdown_dispatcher() -> None:
    global _default_dispatcher
    if _default_dispatcher is not None:
        _default_dispatcher.shutdown()
        _default_dispatcher = None
