"""
Qt application runner.

Runs the asyncio loop inside Qt's event loop (qasync) so queue handlers and
bridge slots share one thread.
"""
import asyncio
import sys
from typing import Any, Callable, Optional

from PySide6.QtWidgets import QApplication
from qasync import QEventLoop
from loguru import logger

from wcs_toolbox.core.bootstrap import ApplicationBuilder
from wcs_toolbox.core.locator import ServiceLocator
from wcs_toolbox.core.tasks import TaskQueue
from .bridge import TaskQueueBridge


def run_app(
    builder: Optional[ApplicationBuilder] = None,
    on_ready: Optional[Callable[[ServiceLocator, TaskQueueBridge], Any]] = None,
    app_name: str = "WCS Toolbox",
    config_path: str = "config.json",
) -> int:
    """
    Start the toolbox inside a Qt application and block until it quits.

    on_ready receives the started locator and a TaskQueueBridge; use it to
    load QML or show widgets.

    Example:
        def show(locator, bridge):
            engine.rootContext().setContextProperty("tasks", bridge)
            engine.load("main.qml")

        run_app(on_ready=show)
    """
    if builder is None:
        builder = ApplicationBuilder(app_name, config_path).with_logging().with_default_handlers()

    app = QApplication.instance() or QApplication(sys.argv)
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    locator = None
    bridge = None
    try:
        locator = loop.run_until_complete(builder.build())
        bridge = TaskQueueBridge(locator.get_system(TaskQueue))
        if on_ready is not None:
            on_ready(locator, bridge)
        logger.info(f"{builder.name} started successfully")
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    finally:
        if bridge is not None:
            bridge.detach()
        if locator is not None:
            loop.run_until_complete(locator.stop_all())
        loop.close()
    return 0
