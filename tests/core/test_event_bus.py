"""
EventBus - Unit Tests

Covers:
- Subscription/unsubscription
- Async and sync publishing
- Error isolation between handlers
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from wcs_toolbox.core.events import EventBus, Events


@pytest.fixture
def event_bus():
    """Create a test EventBus instance."""
    return EventBus(MagicMock(), MagicMock())


class TestEventBusSubscription:
    """Test event subscription functionality."""

    def test_starts_empty(self, event_bus):
        assert event_bus._subscribers == {}

    def test_subscribe_duplicate_handler(self, event_bus):
        """Subscribing the same handler twice keeps one entry."""
        def handler(data):
            pass

        event_bus.subscribe(Events.TASK_CHANGED, handler)
        event_bus.subscribe(Events.TASK_CHANGED, handler)

        assert event_bus._subscribers[Events.TASK_CHANGED] == [handler]

    def test_unsubscribe(self, event_bus):
        def handler(data):
            pass

        event_bus.subscribe(Events.TASK_CHANGED, handler)
        event_bus.unsubscribe(Events.TASK_CHANGED, handler)

        assert handler not in event_bus._subscribers[Events.TASK_CHANGED]

    def test_unsubscribe_unknown_is_noop(self, event_bus):
        event_bus.unsubscribe("nonexistent.event", lambda data: None)

    @pytest.mark.asyncio
    async def test_lifecycle(self, event_bus):
        event_bus.subscribe(Events.TASK_CHANGED, lambda data: None)
        await event_bus.initialize()
        assert event_bus.is_ready is True

        await event_bus.shutdown()
        assert event_bus.is_ready is False
        assert event_bus._subscribers == {}


class TestEventBusPublishing:
    """Test event publishing functionality."""

    @pytest.mark.asyncio
    async def test_publish_sync_and_async_handlers(self, event_bus):
        received = []

        def sync_handler(data):
            received.append(("sync", data))

        async def async_handler(data):
            received.append(("async", data))

        event_bus.subscribe("test.event", sync_handler)
        event_bus.subscribe("test.event", async_handler)
        await event_bus.publish("test.event", 42)

        assert received == [("sync", 42), ("async", 42)]

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self, event_bus):
        await event_bus.publish("nobody.listens", {"data": "test"})

    @pytest.mark.asyncio
    async def test_publish_sync_schedules_async_handlers(self, event_bus):
        received = []

        async def handler(data):
            received.append(data)

        event_bus.subscribe(Events.TASK_LIST_CHANGED, handler)
        event_bus.publish_sync(Events.TASK_LIST_CHANGED, [1, 2])
        assert received == []

        await asyncio.sleep(0)
        assert received == [[1, 2]]

    def test_publish_sync_calls_sync_handlers_immediately(self, event_bus):
        received = []
        event_bus.subscribe(Events.TASK_CHANGED, received.append)
        event_bus.publish_sync(Events.TASK_CHANGED, "task")
        assert received == ["task"]


class TestEventBusErrorHandling:
    """A failing handler does not stop the others."""

    @pytest.mark.asyncio
    async def test_error_isolated(self, event_bus):
        received = []

        def broken(data):
            raise RuntimeError("handler error")

        event_bus.subscribe("test.event", broken)
        event_bus.subscribe("test.event", received.append)

        await event_bus.publish("test.event", 1)
        event_bus.publish_sync("test.event", 2)

        assert received == [1, 2]
