"""
Task handler registry.

Maps a task type tag (e.g. "pack-images") to the handler that performs it.
"""
import asyncio
import inspect
from functools import partial
from typing import Any, Callable, Dict, List, Protocol, Union, runtime_checkable
from loguru import logger

from .progress import ProgressReporter


@runtime_checkable
class TaskHandler(Protocol):
    """
    Capability every handler object implements.

    run() may be a coroutine function or a plain function; plain functions are
    executed in the default thread pool so they never block the event loop.
    """

    def run(self, data: Any, progress: ProgressReporter) -> Any:
        ...


HandlerLike = Union[TaskHandler, Callable[[Any, ProgressReporter], Any]]


class UnknownTaskTypeError(KeyError):
    def __init__(self, task_type: str):
        super().__init__(task_type)
        self.task_type = task_type

    def __str__(self) -> str:
        return f"Unknown task type: {self.task_type}"


class HandlerRegistry:
    def __init__(self):
        self._handlers: Dict[str, HandlerLike] = {}

    def register(self, task_type: str, handler: HandlerLike, replace: bool = False) -> None:
        """Register a handler object (with run()) or a callable(data, progress)."""
        if not task_type:
            raise ValueError("Task type must be a non-empty string")
        if not callable(getattr(handler, "run", handler)):
            raise TypeError(f"Handler for '{task_type}' is not callable")
        if task_type in self._handlers and not replace:
            raise ValueError(f"Handler already registered for '{task_type}'")
        self._handlers[task_type] = handler
        logger.debug(f"Registered task handler: {task_type}")

    def unregister(self, task_type: str) -> bool:
        return self._handlers.pop(task_type, None) is not None

    def resolve(self, task_type: str) -> HandlerLike:
        try:
            return self._handlers[task_type]
        except KeyError:
            raise UnknownTaskTypeError(task_type) from None

    def get(self, task_type: str):
        return self._handlers.get(task_type)

    def types(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


async def invoke_handler(handler: HandlerLike, data: Any, progress: ProgressReporter) -> Any:
    """Run a handler to completion whatever its flavor (async, sync, or returning an awaitable)."""
    run = getattr(handler, "run", handler)
    if inspect.iscoroutinefunction(run):
        return await run(data, progress)

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, partial(run, data, progress))
    if inspect.isawaitable(result):
        result = await result
    return result
