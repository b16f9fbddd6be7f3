"""Unit tests for importance classification and preference evaluation.

Tests cover:
- Importance of each notification kind
- frequency=none / important_only / all gating
- Delivery method to channel mapping
- Strict parsing for writes, fail-closed reading of stored values
- Reading and writing preferences for a user
"""
import pytest

from lunch_notify.core.constants import NOTIFICATION_KINDS
from lunch_notify.core.errors import NotFound, ValidationError
from lunch_notify.services.importance import is_important
from lunch_notify.services.preferences import (
    DEFAULT_PREFERENCES,
    NotificationPreferences,
    delivery_channels,
    get_preferences,
    parse_preferences,
    preferences_from_stored,
    set_preferences,
    should_receive,
    visible_kinds,
)

pytestmark = pytest.mark.unit


def prefs(**overrides) -> NotificationPreferences:
    return NotificationPreferences(**overrides)


class TestIsImportant:
    """Tests for is_important."""

    @pytest.mark.parametrize("kind", ["order_reminder", "order_confirmed", "order_modified"])
    def test_order_kinds_are_important(self, kind: str) -> None:
        assert is_important(kind) is True

    def test_menu_update_is_not_important(self) -> None:
        assert is_important("menu_updated") is False

    def test_unknown_kind_is_not_important(self) -> None:
        assert is_important("weekly_digest") is False


class TestShouldReceive:
    """Tests for should_receive."""

    @pytest.mark.parametrize("kind", sorted(NOTIFICATION_KINDS))
    def test_frequency_none_suppresses_everything(self, kind: str) -> None:
        """Toggles do not matter once frequency is none."""
        assert should_receive(prefs(frequency="none"), kind) is False

    @pytest.mark.parametrize("kind", sorted(NOTIFICATION_KINDS))
    def test_defaults_receive_everything(self, kind: str) -> None:
        assert should_receive(DEFAULT_PREFERENCES, kind) is True

    def test_important_only_drops_menu_updates(self) -> None:
        p = prefs(frequency="important_only", menu_updates=True)
        assert should_receive(p, "menu_updated") is False

    def test_important_only_still_needs_the_toggle(self) -> None:
        p = prefs(frequency="important_only", order_reminders=False)
        assert should_receive(p, "order_reminder") is False
        assert should_receive(p, "order_confirmed") is True

    def test_per_kind_toggle_with_frequency_all(self) -> None:
        p = prefs(order_modifications=False)
        assert should_receive(p, "order_modified") is False
        assert should_receive(p, "order_reminder") is True

    def test_unknown_kind_is_refused(self) -> None:
        assert should_receive(DEFAULT_PREFERENCES, "weekly_digest") is False

    def test_unknown_frequency_fails_closed(self) -> None:
        p = NotificationPreferences.model_construct(**{**DEFAULT_PREFERENCES.model_dump(), "frequency": "hourly"})
        assert should_receive(p, "order_reminder") is False


class TestDeliveryChannels:
    """Tests for delivery_channels."""

    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            ("in_app", {"in_app"}),
            ("email", {"email"}),
            ("both", {"in_app", "email"}),
        ],
    )
    def test_known_methods(self, method: str, expected: set[str]) -> None:
        assert delivery_channels(prefs(delivery_method=method)) == expected

    def test_unknown_method_means_in_app_only(self) -> None:
        p = NotificationPreferences.model_construct(
            **{**DEFAULT_PREFERENCES.model_dump(), "delivery_method": "carrier_pigeon"}
        )
        assert delivery_channels(p) == {"in_app"}


class TestVisibleKinds:
    """Tests for visible_kinds."""

    def test_important_only_hides_menu_updates(self) -> None:
        assert "menu_updated" not in visible_kinds(prefs(frequency="important_only"))

    def test_none_hides_everything(self) -> None:
        assert visible_kinds(prefs(frequency="none")) == []


class TestParsePreferences:
    """Tests for strict parsing of preference writes."""

    def test_valid_payload(self) -> None:
        p = parse_preferences({"delivery_method": "both", "frequency": "important_only", "menu_updates": False})
        assert p.delivery_method == "both"
        assert p.frequency == "important_only"
        assert p.menu_updates is False
        assert p.order_reminders is True

    def test_rejects_unknown_delivery_method(self) -> None:
        with pytest.raises(ValidationError, match="delivery method"):
            parse_preferences({"delivery_method": "sms"})

    def test_rejects_unknown_frequency(self) -> None:
        with pytest.raises(ValidationError, match="frequency"):
            parse_preferences({"frequency": "hourly"})

    def test_rejects_non_boolean_toggle(self) -> None:
        with pytest.raises(ValidationError, match="order_reminders"):
            parse_preferences({"order_reminders": "yes"})

    def test_rejects_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            parse_preferences({"sms_alerts": True})

    def test_rejects_non_object(self) -> None:
        with pytest.raises(ValidationError):
            parse_preferences(["all"])


class TestPreferencesFromStored:
    """Tests for lenient reads of stored preferences."""

    def test_missing_means_defaults(self) -> None:
        assert preferences_from_stored(None) == DEFAULT_PREFERENCES
        assert preferences_from_stored({}) == DEFAULT_PREFERENCES

    def test_partial_document_keeps_defaults_for_the_rest(self) -> None:
        p = preferences_from_stored({"menu_updates": False})
        assert p.menu_updates is False
        assert p.order_reminders is True
        assert p.frequency == "all"

    def test_corrupt_values_fail_closed(self) -> None:
        p = preferences_from_stored({"frequency": "sometimes", "delivery_method": "fax", "order_reminders": "yes"})
        assert p.frequency == "none"
        assert p.delivery_method == "in_app"
        assert p.order_reminders is False
        assert should_receive(p, "order_confirmed") is False


class TestGetAndSetPreferences:
    """Tests for persisting preferences on the user row."""

    def test_defaults_for_new_user(self, db, make_user) -> None:
        make_user("alice")
        assert get_preferences(db, "alice") == DEFAULT_PREFERENCES

    def test_set_then_get(self, db, make_user) -> None:
        make_user("alice")
        set_preferences(db, "alice", {"delivery_method": "email", "frequency": "important_only"})
        db.expire_all()
        p = get_preferences(db, "alice")
        assert p.delivery_method == "email"
        assert p.frequency == "important_only"

    def test_invalid_write_leaves_stored_value(self, db, make_user) -> None:
        make_user("alice", preferences={"frequency": "none"})
        with pytest.raises(ValidationError):
            set_preferences(db, "alice", {"frequency": "often"})
        assert get_preferences(db, "alice").frequency == "none"

    def test_unknown_user(self, db) -> None:
        with pytest.raises(NotFound):
            get_preferences(db, "ghost")
