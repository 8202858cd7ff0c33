"""
Toolbox Core - Application Infrastructure.

Provides:
- ServiceLocator: system registry and lifecycle
- BaseSystem: abstract base for all systems
- ConfigManager: configuration with persistence
- EventBus / Signal: notifications
- TaskQueue: bounded in-process task execution

Usage:
    from wcs_toolbox.core import ApplicationBuilder, TaskQueue

    locator = await ApplicationBuilder("WCS Toolbox").with_default_handlers().build()
    queue = locator.get_system(TaskQueue)
    task_id = queue.submit("pack-images", {"folders": [...], "targetPath": "out"})
"""
from .base_system import BaseSystem
from .locator import ServiceLocator, sl
from .config import (
    ConfigManager,
    AppConfig,
    GeneralSettings,
    TaskQueueSettings,
    ShortcutSettings,
    ArchiveSettings,
    EpubSettings,
    CrawlerSettings,
)
from .events import Signal, EventBus, Events
from .tasks import (
    Task,
    TaskStatus,
    InvalidTransitionError,
    ProgressReporter,
    HandlerRegistry,
    UnknownTaskTypeError,
    TaskQueue,
)
from .bootstrap import ApplicationBuilder
from .logging import setup_logging

__all__ = [
    "BaseSystem",
    "ServiceLocator",
    "sl",
    "ConfigManager",
    "AppConfig",
    "GeneralSettings",
    "TaskQueueSettings",
    "ShortcutSettings",
    "ArchiveSettings",
    "EpubSettings",
    "CrawlerSettings",
    "Signal",
    "EventBus",
    "Events",
    "Task",
    "TaskStatus",
    "InvalidTransitionError",
    "ProgressReporter",
    "HandlerRegistry",
    "UnknownTaskTypeError",
    "TaskQueue",
    "ApplicationBuilder",
    "setup_logging",
]
