"""
Live notification feed as server-sent events.

The first event carries the caller's latest records (own plus broadcasts). After that the
feed polls the store and emits only records newer than the last one sent. A feed ends after
max_seconds; EventSource clients reconnect on their own.
"""
import json
import logging
import time
from typing import Callable, Iterator

from sqlalchemy.orm import Session

from lunch_notify.core.errors import TransientStoreError
from lunch_notify.services import notification_store as store

logger = logging.getLogger(__name__)

STREAM_INITIAL_LIMIT = 10


def sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def notification_events(
    session_factory: Callable[[], Session],
    user_id: str,
    *,
    poll_seconds: float = 5.0,
    max_seconds: float = 300.0,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[str]:
    deadline = clock() + max_seconds
    with session_factory() as db:
        rows = store.list_for(db, user_id, limit=STREAM_INITIAL_LIMIT)
        last_id = max((r.id for r in rows), default=0)
        yield sse_event({"notifications": [store.notification_to_dict(r) for r in rows]})

    while clock() < deadline:
        sleep(poll_seconds)
        # Fresh session per poll so each read sees newly committed records
        try:
            with session_factory() as db:
                rows = store.list_since(db, user_id, last_id)
                payload = [store.notification_to_dict(r) for r in rows]
        except TransientStoreError:
            logger.warning("Notification stream poll failed for %s; retrying", user_id)
            continue
        if rows:
            last_id = rows[-1].id
            yield sse_event({"notifications": payload})
