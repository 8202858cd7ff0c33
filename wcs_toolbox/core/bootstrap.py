"""
Bootstrap helpers for the toolbox.

Wires config, logging, the event bus, the task queue and the bundled handlers.
"""
from typing import List, Optional, Type

from loguru import logger

from .locator import ServiceLocator
from .base_system import BaseSystem
from .config import ConfigManager
from .events import EventBus, Events
from .tasks import TaskQueue


class ApplicationBuilder:
    """
    Fluent builder for toolbox applications.

    Example:
        locator = await (ApplicationBuilder("WCS Toolbox", "config.json")
                         .with_logging()
                         .with_default_handlers()
                         .build())
        queue = locator.get_system(TaskQueue)
    """

    def __init__(self, name: str = "WCS Toolbox", config_path: str = "config.json",
                 config: Optional[ConfigManager] = None):
        self.name = name
        self.config_path = config_path
        self._config = config
        self._systems: List[Type[BaseSystem]] = []
        self._logging_configured = False
        self._default_handlers = False

    def with_logging(self, enable: bool = True):
        """
        Configure loguru sinks from the general config section on build.

        Returns:
            Self for chaining
        """
        self._logging_configured = enable
        return self

    def with_default_handlers(self, enable: bool = True):
        """
        Register the bundled task handlers on the TaskQueue.

        Returns:
            Self for chaining
        """
        self._default_handlers = enable
        return self

    def add_system(self, system_cls: Type[BaseSystem]):
        """
        Register an additional system, started after the EventBus and TaskQueue.

        Returns:
            Self for chaining
        """
        self._systems.append(system_cls)
        return self

    async def build(self) -> ServiceLocator:
        """
        Initialize and start all systems.

        Returns:
            ServiceLocator instance with all systems started
        """
        locator = ServiceLocator()
        locator.init(self.config_path, config=self._config)

        if self._logging_configured:
            from .logging import setup_logging
            setup_logging(locator.config.data.general)
        logger.info(f"Starting {self.name}")

        locator.register_system(EventBus)
        queue = locator.register_system(TaskQueue)
        for sys_cls in self._systems:
            locator.register_system(sys_cls)

        if self._default_handlers:
            from wcs_toolbox.handlers import register_default_handlers
            register_default_handlers(queue, locator.config)

        await locator.start_all()
        await locator.get_system(EventBus).publish(Events.APP_STARTED, self.name)
        return locator

    def run(self, on_ready=None) -> int:
        """
        Build and run inside a Qt application on the qasync loop.

        Blocks until the application quits. See wcs_toolbox.ui.app.run_app.
        """
        from wcs_toolbox.ui.app import run_app
        return run_app(self, on_ready=on_ready)
