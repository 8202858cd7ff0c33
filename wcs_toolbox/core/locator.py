from typing import Dict, List, Optional, Type, TypeVar
from loguru import logger

from .config import ConfigManager
from .base_system import BaseSystem

T = TypeVar("T", bound=BaseSystem)


class ServiceLocator:
    """
    Process-wide registry of systems.

    Systems are started in registration order and stopped in reverse order.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ServiceLocator, cls).__new__(cls)
            cls._instance.is_ready = False
            cls._instance.config = None
            cls._instance._systems = {}
            cls._instance._order = []
        return cls._instance

    @classmethod
    def reset(cls):
        """Drop the singleton (tests, or a full application restart)."""
        cls._instance = None

    def init(self, config_path: str = "config.json", config: Optional[ConfigManager] = None):
        if self.is_ready:
            return
        self.config = config or ConfigManager(config_path)
        self.is_ready = True

    def register_system(self, system_cls: Type[T]) -> T:
        """Instantiate and register a system. Registering the same class twice returns the existing one."""
        if system_cls in self._systems:
            return self._systems[system_cls]
        instance = system_cls(self, self.config)
        self._systems[system_cls] = instance
        self._order.append(system_cls)
        logger.debug(f"Registered system: {system_cls.__name__}")
        return instance

    def get_system(self, system_cls: Type[T]) -> T:
        """Raises KeyError when the system is not registered."""
        try:
            return self._systems[system_cls]
        except KeyError:
            raise KeyError(f"System not registered: {system_cls.__name__}") from None

    def has_system(self, system_cls: Type[BaseSystem]) -> bool:
        return system_cls in self._systems

    @property
    def systems(self) -> List[BaseSystem]:
        return [self._systems[cls] for cls in self._order]

    async def start_all(self):
        for system in self.systems:
            if not system.is_ready:
                await system.initialize()
        logger.info(f"Started {len(self._order)} systems")

    async def stop_all(self):
        for system in reversed(self.systems):
            if system.is_ready:
                try:
                    await system.shutdown()
                except Exception as e:
                    logger.error(f"Failed to stop {system.__class__.__name__}: {e}")
        logger.info("All systems stopped")


# Global access
sl = ServiceLocator()
