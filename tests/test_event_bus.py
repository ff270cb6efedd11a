"""Tests for the event bus."""

from media_session.event_bus import EventBus


def test_publish_reaches_listeners_in_order() -> None:
    bus = EventBus()
    received = []
    bus.subscribe("topic", lambda data: received.append(("a", data["value"])))
    bus.subscribe("topic", lambda data: received.append(("b", data["value"])))

    bus.publish("topic", {"value": 1})

    assert received == [("a", 1), ("b", 1)]


def test_failing_listener_does_not_stop_delivery() -> None:
    bus = EventBus()
    received = []

    def _broken(_data):
        raise RuntimeError("boom")

    bus.subscribe("topic", _broken)
    bus.subscribe("topic", received.append)

    bus.publish("topic")

    assert received == [{"__topic": "topic"}]


def test_unsubscribe() -> None:
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe("topic", received.append)

    unsubscribe()
    bus.publish("topic")

    assert received == []

