"""
EventBus - Unified Event System

Provides a single event bus for decoupled publish/subscribe communication
between the task queue and whatever presents its state.
"""
import asyncio
import inspect
from typing import Any, Callable, Dict, List
from loguru import logger

from wcs_toolbox.core.base_system import BaseSystem
from .constants import Events


class EventBus(BaseSystem):
    """
    Application-wide pub/sub.

    Usage:
        event_bus.subscribe("task.changed", on_task_changed)
        event_bus.publish_sync("task.changed", task)
    """

    def __init__(self, locator, config):
        super().__init__(locator, config)
        self._subscribers: Dict[str, List[Callable]] = {}

    async def initialize(self):
        if hasattr(self.config, "on_changed"):
            self.config.on_changed.connect(self._on_config_changed)
        logger.info("EventBus initialized")
        await super().initialize()

    async def shutdown(self):
        if hasattr(self.config, "on_changed"):
            self.config.on_changed.disconnect(self._on_config_changed)
        self._subscribers.clear()
        await super().shutdown()

    def _on_config_changed(self, section: str, key: str, value: Any):
        self.publish_sync(Events.CONFIG_CHANGED, {"section": section, "key": key, "value": value})

    def subscribe(self, event: str, handler: Callable) -> None:
        """
        Subscribe to an event.

        Args:
            event: Event name (e.g., "task.changed")
            handler: Callback function (sync or async)
        """
        handlers = self._subscribers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Subscribed to {event}: {getattr(handler, '__name__', handler)}")

    def unsubscribe(self, event: str, handler: Callable) -> None:
        if event in self._subscribers and handler in self._subscribers[event]:
            self._subscribers[event].remove(handler)
            logger.debug(f"Unsubscribed from {event}: {getattr(handler, '__name__', handler)}")

    async def publish(self, event: str, data: Any = None) -> None:
        """
        Publish an event to all subscribers, awaiting async ones in order.
        """
        for handler in list(self._subscribers.get(event, [])):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(data)
                else:
                    handler(data)
            except Exception as e:
                logger.error(f"Error in handler for {event}: {e}")

    def publish_sync(self, event: str, data: Any = None) -> None:
        """
        Publish an event without suspending.

        Sync handlers run immediately; async handlers are scheduled on the running loop.
        """
        for handler in list(self._subscribers.get(event, [])):
            try:
                if inspect.iscoroutinefunction(handler):
                    asyncio.get_running_loop().create_task(handler(data))
                else:
                    handler(data)
            except Exception as e:
                logger.error(f"Error in sync handler for {event}: {e}")
