"""
Core tasks module - in-process task queue.
"""
from .models import Task, TaskStatus, InvalidTransitionError, TERMINAL_STATUSES
from .progress import ProgressReporter
from .registry import HandlerRegistry, TaskHandler, UnknownTaskTypeError
from .system import TaskQueue

__all__ = [
    "Task",
    "TaskStatus",
    "InvalidTransitionError",
    "TERMINAL_STATUSES",
    "ProgressReporter",
    "HandlerRegistry",
    "TaskHandler",
    "UnknownTaskTypeError",
    "TaskQueue",
]
