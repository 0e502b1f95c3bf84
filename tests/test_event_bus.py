"""
Tests for the event bus and domain events.
"""

import asyncio
import gc
from dataclasses import dataclass
from datetime import datetime

import pytest

from music_collection.events import (
    DomainEvent,
    EventBus,
    EventHandler,
    EventPriority,
    TrackDeleted,
    TrackPlayed,
)


@dataclass(kw_only=True)
class CustomEvent(DomainEvent):
    """Test event."""
    data: str = "default"


class RecordingHandler(EventHandler):
    """Test event handler."""

    def __init__(self):
        self.handled_events = []

    async def handle(self, event: DomainEvent) -> None:
        self.handled_events.append(event)

    @property
    def event_types(self):
        return [CustomEvent]


@pytest.fixture
def event_bus():
    """Create fresh event bus for each test."""
    bus = EventBus()
    yield bus
    bus.clear()


class TestDomainEvent:
    """Test DomainEvent base class."""

    def test_defaults(self):
        event = DomainEvent()
        assert event.event_id.startswith("evt_")
        assert isinstance(event.timestamp, datetime)
        assert event.timestamp.tzinfo is not None
        assert event.aggregate_id is None
        assert event.metadata == {}

    def test_aggregate_type_defaults_to_class_name(self):
        event = CustomEvent(aggregate_id="agg_123")
        assert event.aggregate_type == "CustomEvent"

    def test_to_dict(self):
        event = TrackPlayed(aggregate_id="t1", track_id="t1", play_count=3, listener_id=None)
        data = event.to_dict()
        assert data["event_type"] == "TrackPlayed"
        assert data["aggregate_id"] == "t1"
        assert data["data"]["play_count"] == 3


class TestEventBus:
    """Test publishing and subscribing."""

    @pytest.mark.asyncio
    async def test_subscribe_and_publish(self, event_bus):
        received = []

        async def handler(event):
            received.append(event.data)

        event_bus.subscribe(CustomEvent, handler)
        await event_bus.publish(CustomEvent(data="hello"))
        assert received == ["hello"]

    @pytest.mark.asyncio
    async def test_sync_handlers_are_supported(self, event_bus):
        received = []

        def handler(event):
            received.append(event)

        event_bus.subscribe(CustomEvent, handler)
        await event_bus.publish(CustomEvent())
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_register_handler_object(self, event_bus):
        handler = RecordingHandler()
        event_bus.register(handler)
        await event_bus.publish(CustomEvent(data="x"))
        assert [e.data for e in handler.handled_events] == ["x"]

    @pytest.mark.asyncio
    async def test_parent_type_subscribers_receive_subclasses(self, event_bus):
        received = []

        async def handler(event):
            received.append(type(event).__name__)

        event_bus.subscribe(DomainEvent, handler)
        await event_bus.publish(CustomEvent())
        assert received == ["CustomEvent"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        received = []

        async def handler(event):
            received.append(event)

        event_bus.subscribe(CustomEvent, handler)
        event_bus.unsubscribe(CustomEvent, handler)
        await event_bus.publish(CustomEvent())
        assert received == []

    @pytest.mark.asyncio
    async def test_handlers_are_weakly_referenced(self, event_bus):
        handler = RecordingHandler()
        event_bus.register(handler)
        del handler
        gc.collect()
        # Nothing left to deliver to; must not raise
        await event_bus.publish(CustomEvent())

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self, event_bus):
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def working(event):
            received.append(event)

        event_bus.subscribe(CustomEvent, broken)
        event_bus.subscribe(CustomEvent, working)
        await event_bus.publish(CustomEvent())
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_critical_events_run_handlers_in_order(self, event_bus):
        order = []

        async def slow(event):
            await asyncio.sleep(0.01)
            order.append("slow")

        async def fast(event):
            order.append("fast")

        event_bus.subscribe(TrackDeleted, slow)
        event_bus.subscribe(TrackDeleted, fast)
        await event_bus.publish(
            TrackDeleted(aggregate_id="t", track_id="t", owner_id="o"), priority=EventPriority.CRITICAL
        )
        assert order == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_normal_events_fan_out(self, event_bus):
        order = []

        async def slow(event):
            await asyncio.sleep(0.01)
            order.append("slow")

        async def fast(event):
            order.append("fast")

        event_bus.subscribe(CustomEvent, slow)
        event_bus.subscribe(CustomEvent, fast)
        await event_bus.publish(CustomEvent())
        assert order == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_middleware(self, event_bus):
        received = []

        async def tag(event):
            event.metadata["seen"] = True
            return event

        async def handler(event):
            received.append(event.metadata)

        event_bus.add_middleware(tag)
        event_bus.subscribe(CustomEvent, handler)
        await event_bus.publish(CustomEvent())
        assert received == [{"seen": True}]

    @pytest.mark.asyncio
    async def test_event_store(self, event_bus):
        await event_bus.publish(CustomEvent(aggregate_id="a"))
        await event_bus.publish(CustomEvent(aggregate_id="b"))
        await event_bus.publish(TrackDeleted(aggregate_id="a", track_id="a", owner_id="o"))

        assert len(event_bus.get_events(aggregate_id="a")) == 2
        assert len(event_bus.get_events(event_type=TrackDeleted)) == 1

    @pytest.mark.asyncio
    async def test_event_store_is_bounded(self):
        bus = EventBus(max_events_in_memory=2)
        for i in range(5):
            await bus.publish(CustomEvent(data=str(i)))
        assert [e.data for e in bus.get_events()] == ["3", "4"]
