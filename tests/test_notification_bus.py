"""
Tests for the in-process notification bus.
"""

import logging

from core.store.bus import NotificationBus, StoreEvent


class TestNotificationBus:
    """Test subscribe/emit/unsubscribe behaviour"""

    def test_emit_in_subscription_order(self):
        bus = NotificationBus()
        calls = []
        bus.subscribe(StoreEvent.ITEM_ADDED, lambda p: calls.append(("first", p)))
        bus.subscribe("item-added", lambda p: calls.append(("second", p)))

        called = bus.emit(StoreEvent.ITEM_ADDED, "payload")

        assert called == 2
        assert calls == [("first", "payload"), ("second", "payload")]

    def test_events_are_separate(self):
        bus = NotificationBus()
        calls = []
        bus.subscribe(StoreEvent.ITEM_REMOVED, calls.append)

        assert bus.emit(StoreEvent.ITEM_ADDED, 1) == 0
        assert calls == []

    def test_unsubscribe(self):
        bus = NotificationBus()
        calls = []
        token = bus.subscribe(StoreEvent.LOADED, calls.append)

        assert bus.unsubscribe(token) is True
        assert bus.unsubscribe(token) is False
        bus.emit(StoreEvent.LOADED)

        assert calls == []
        assert bus.handler_count() == 0

    def test_subscribe_during_emit_waits_for_next_emit(self):
        """Test handlers added while emitting are not called for that emit"""
        bus = NotificationBus()
        calls = []

        def late(payload):
            calls.append(("late", payload))

        def first(payload):
            calls.append(("first", payload))
            bus.subscribe(StoreEvent.LOADED, late)

        bus.subscribe(StoreEvent.LOADED, first)

        bus.emit(StoreEvent.LOADED, 1)
        assert calls == [("first", 1)]

        bus.emit(StoreEvent.LOADED, 2)
        assert ("late", 2) in calls

    def test_unsubscribe_during_emit_keeps_snapshot(self):
        """Test a handler removed mid-emit still runs for the emit in progress"""
        bus = NotificationBus()
        calls = []
        tokens = {}

        def first(payload):
            calls.append("first")
            bus.unsubscribe(tokens["second"])

        tokens["first"] = bus.subscribe(StoreEvent.LOADED, first)
        tokens["second"] = bus.subscribe(StoreEvent.LOADED, lambda p: calls.append("second"))

        bus.emit(StoreEvent.LOADED)
        bus.emit(StoreEvent.LOADED)

        assert calls == ["first", "second", "first"]

    def test_failing_handler_logged(self, caplog):
        """Test one failing handler does not stop the others"""
        bus = NotificationBus()
        calls = []

        def broken(payload):
            raise RuntimeError("boom")

        bus.subscribe(StoreEvent.ITEM_UPDATED, broken)
        bus.subscribe(StoreEvent.ITEM_UPDATED, calls.append)

        with caplog.at_level(logging.ERROR, logger="core.store.bus"):
            bus.emit(StoreEvent.ITEM_UPDATED, "record")

        assert calls == ["record"]
        assert "boom" in caplog.text

    def test_handler_count_and_clear(self):
        bus = NotificationBus()
        bus.subscribe(StoreEvent.LOADED, print)
        bus.subscribe(StoreEvent.ITEM_ADDED, print)
        bus.subscribe(StoreEvent.ITEM_ADDED, print)

        assert bus.handler_count() == 3
        assert bus.handler_count(StoreEvent.ITEM_ADDED) == 2

        bus.clear()

        assert bus.handler_count() == 0
