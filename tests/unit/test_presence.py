from __future__ import annotations

from chat_sync.services.presence import PresenceTracker, TypingSignal
from tests.conftest import ME, FixedClock


def test_repeated_true_then_false_leaves_empty_set():
    tracker = PresenceTracker()

    tracker.set_typing("A", True)
    tracker.set_typing("A", True)
    tracker.set_typing("A", False)

    assert tracker.typing_users() == frozenset()


def test_set_typing_reports_visible_changes():
    tracker = PresenceTracker()

    assert tracker.set_typing("A", True) is True
    assert tracker.set_typing("A", True) is False
    assert tracker.set_typing("B", False) is False
    assert tracker.set_typing("A", False) is True


def test_own_typing_echo_is_not_reported():
    tracker = PresenceTracker(self_id=ME)

    tracker.set_typing(ME, True)

    assert tracker.typing_users() == frozenset()


def test_no_ttl_means_indicator_stays():
    clock = FixedClock()
    tracker = PresenceTracker(clock=clock)
    tracker.set_typing("A", True)

    clock.advance(3600)

    assert tracker.is_typing("A")


def test_ttl_expires_stale_indicators():
    clock = FixedClock()
    tracker = PresenceTracker(ttl_seconds=5, clock=clock)
    tracker.set_typing("A", True)
    clock.advance(3)
    tracker.set_typing("B", True)

    clock.advance(3)

    assert tracker.typing_users() == frozenset({"B"})


def test_ttl_is_refreshed_by_repeated_true():
    clock = FixedClock()
    tracker = PresenceTracker(ttl_seconds=5, clock=clock)
    tracker.set_typing("A", True)
    clock.advance(4)
    tracker.set_typing("A", True)
    clock.advance(4)

    assert tracker.is_typing("A")


def test_clear():
    tracker = PresenceTracker()
    tracker.set_typing("A", True)
    tracker.clear()
    assert tracker.typing_users() == frozenset()


def test_typing_signal_fires_only_on_transitions():
    signal = TypingSignal()

    assert signal.update("h") is True
    assert signal.update("he") is None
    assert signal.update("hel") is None
    assert signal.update("") is False
    assert signal.update("") is None
    assert signal.update("x") is True
    assert signal.active is True

    signal.reset()
    assert signal.active is False
