"""
Tests for the event bus
"""

from dispatch_engine.events import EngineEvent, EventBus, NullEventBus


def _event(name="booking_created"):
    return EngineEvent(event=name, subject_id="bk_1")


def test_subscribers_receive_matching_events():
    bus = EventBus()
    created, everything = [], []
    bus.subscribe("booking_created", created.append)
    bus.subscribe("*", everything.append)

    bus.publish(_event())
    bus.publish(_event("pricing_updated"))

    assert [e.event for e in created] == ["booking_created"]
    assert [e.event for e in everything] == ["booking_created", "pricing_updated"]


def test_failing_handler_is_isolated():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe("booking_created", broken)
    bus.subscribe("booking_created", received.append)

    assert bus.publish(_event()) == 1
    assert len(received) == 1


def test_unsubscribe():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe("booking_created", received.append)

    unsubscribe()
    bus.publish(_event())

    assert received == []


def test_null_bus_drops_events():
    bus = NullEventBus()
    received = []
    bus.subscribe("*", received.append)

    assert bus.publish(_event()) == 0
    assert received == []
