from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from loguru import logger

if TYPE_CHECKING:
    from .locator import ServiceLocator
    from .config import ConfigManager


class BaseSystem(ABC):
    """
    Abstract Base Class for all core systems (EventBus, TaskQueue, ...).
    Ensures consistent initialization and access to the locator and config.
    """
    def __init__(self, locator: 'ServiceLocator', config: 'ConfigManager'):
        self.locator = locator
        self.config = config
        self._is_ready = False

    @abstractmethod
    async def initialize(self):
        """
        Async initialization logic.
        Called by the ServiceLocator during startup.
        """
        self._is_ready = True
        logger.debug(f"{self.__class__.__name__} ready")

    @abstractmethod
    async def shutdown(self):
        """
        Cleanup logic.
        """
        self._is_ready = False

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    async def __aenter__(self):
        """Async context manager entry: Initialize system."""
        if not self._is_ready:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit: Shutdown system."""
        if self._is_ready:
            await self.shutdown()
