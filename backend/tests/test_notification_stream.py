"""Unit tests for the server-sent notification feed."""
import json

import pytest

from lunch_notify.services import notification_store as store
from lunch_notify.services.notification_stream import notification_events, sse_event

pytestmark = pytest.mark.unit


def _payload(event: str) -> dict:
    assert event.startswith("data: ") and event.endswith("\n\n")
    return json.loads(event[len("data: "):])


class FakeClock:
    """Advances one second per sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.on_sleep = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += 1.0
        if self.on_sleep is not None:
            self.on_sleep()


class TestSseEvent:
    def test_format(self) -> None:
        assert sse_event({"a": 1}) == 'data: {"a": 1}\n\n'


class TestNotificationEvents:
    """Tests for notification_events."""

    def test_initial_event_holds_latest_ten(self, db, session_factory) -> None:
        for i in range(12):
            store.create_notification(db, "alice", "order_confirmed", f"n{i}")
        clock = FakeClock()

        events = list(notification_events(session_factory, "alice", max_seconds=0, clock=clock, sleep=clock.sleep))

        assert len(events) == 1
        messages = [n["message"] for n in _payload(events[0])["notifications"]]
        assert messages == [f"n{i}" for i in range(11, 1, -1)]

    def test_new_records_follow_and_old_ones_are_not_repeated(self, db, session_factory) -> None:
        store.create_notification(db, "alice", "order_confirmed", "before")
        clock = FakeClock()
        sent = []

        def add_one() -> None:
            if not sent:
                with session_factory() as other:
                    store.create_broadcast(other, "menu_updated", "new menu")
                    store.create_notification(other, "bob", "order_confirmed", "for bob")
                sent.append(True)

        clock.on_sleep = add_one

        events = list(notification_events(session_factory, "alice", max_seconds=3, clock=clock, sleep=clock.sleep))

        assert len(events) == 2
        assert [n["message"] for n in _payload(events[0])["notifications"]] == ["before"]
        assert [n["message"] for n in _payload(events[1])["notifications"]] == ["new menu"]

    def test_empty_feed_still_sends_initial_event(self, session_factory) -> None:
        clock = FakeClock()
        events = list(notification_events(session_factory, "alice", max_seconds=0, clock=clock, sleep=clock.sleep))
        assert _payload(events[0]) == {"notifications": []}
