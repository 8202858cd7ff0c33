import asyncio
import copy
import itertools
from typing import Any, Dict, List, Optional, Set
from loguru import logger

from ..base_system import BaseSystem
from ..events import Events, EventBus, Signal
from .models import Task, TaskStatus, TERMINAL_STATUSES
from .progress import ProgressReporter
from .registry import HandlerLike, HandlerRegistry, UnknownTaskTypeError, invoke_handler

DEFAULT_MAX_CONCURRENT = 2


class TaskQueue(BaseSystem):
    """
    In-process task queue with a global concurrency bound.

    Owns every Task record. All mutation happens on the event loop thread
    (single writer); handlers run as supervised asyncio jobs and talk back only
    through their ProgressReporter, their return value, or their exception.

    Admission is FIFO by (created_at, id) and runs synchronously after every
    submission and every completion, so a free slot never outlives the event
    that freed it.

    Signals:
        task_changed(Task): every transition and progress change of one task
        task_list_changed(List[Task]): after bulk operations (clear_completed)
    """

    def __init__(self, locator=None, config=None, registry: Optional[HandlerRegistry] = None,
                 max_concurrent: Optional[int] = None):
        super().__init__(locator, config)
        self._max_concurrent = self._resolve_max_concurrent(config, max_concurrent)
        self.registry = registry or HandlerRegistry()

        self._tasks: Dict[int, Task] = {}
        self._ids = itertools.count(1)
        self._running: Set[int] = set()
        self._jobs: Dict[int, asyncio.Task] = {}
        self._accepting = True
        self._bus: Optional[EventBus] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.task_changed = Signal("TaskChanged")
        self.task_list_changed = Signal("TaskListChanged")

    @staticmethod
    def _resolve_max_concurrent(config, override: Optional[int]) -> int:
        if override is None:
            settings = getattr(getattr(config, "data", None), "tasks", None)
            value = getattr(settings, "max_concurrent", DEFAULT_MAX_CONCURRENT)
            override = value if isinstance(value, int) else DEFAULT_MAX_CONCURRENT
        if override < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {override}")
        return override

    async def initialize(self):
        logger.info(f"TaskQueue initializing (max_concurrent={self._max_concurrent})...")
        self._accepting = True
        self._loop = asyncio.get_running_loop()
        if self.locator is not None and hasattr(self.locator, "get_system"):
            try:
                self._bus = self.locator.get_system(EventBus)
            except KeyError:
                logger.debug("TaskQueue: EventBus not registered, using signals only")

        if hasattr(self.config, "on_changed"):
            self.config.on_changed.connect(self._on_config_changed)

        await super().initialize()
        # work submitted before the loop was running
        self._admit_pending()

    async def shutdown(self):
        """Stop admitting work and interrupt running handlers."""
        self._accepting = False
        jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
            logger.warning(f"TaskQueue: interrupted {len(jobs)} running task(s)")
        for task_id in list(self._running):
            # a job cancelled before its first step never runs _run's except clause
            self.fail_task(task_id, "Interrupted by shutdown")
        if hasattr(self.config, "on_changed"):
            self.config.on_changed.disconnect(self._on_config_changed)
        await super().shutdown()

    def _on_config_changed(self, section: str, key: str, value):
        if section == "tasks" and key == "max_concurrent":
            logger.info(f"Task concurrency changed to {value} (restart required)")

    # ---- handler registration ----

    def register_handler(self, task_type: str, handler: HandlerLike, replace: bool = False) -> None:
        self.registry.register(task_type, handler, replace=replace)

    # ---- queries ----

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def running_count(self) -> int:
        return len(self._running)

    def get(self, task_id: int) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.snapshot() if task is not None else None

    def list_all(self) -> List[Task]:
        """Snapshot of all tasks, newest first."""
        ordered = sorted(self._tasks.values(), key=lambda t: (t.created_at, t.id), reverse=True)
        return [t.snapshot() for t in ordered]

    # ---- commands ----

    def submit(self, task_type: str, data: Any = None, name: str = "") -> int:
        """
        Record a new task and admit work if a slot is free.

        Never waits for execution. An unregistered type still yields an id: the
        task is recorded directly as failed so the caller can track it.
        """
        task_id = next(self._ids)
        task = Task(id=task_id, type=task_type, name=name or task_type, data=copy.deepcopy(data))

        if task_type not in self.registry:
            error = str(UnknownTaskTypeError(task_type))
            task.status = TaskStatus.FAILED
            task.error = error
            task.completed_at = task.created_at
            self._tasks[task_id] = task
            logger.warning(f"Task {task_id} rejected: {error}")
            self._publish(task)
            return task_id

        self._tasks[task_id] = task
        logger.info(f"Task submitted: {task.name} ({task_id}) [type={task_type}]")
        self._publish(task)
        self._admit_pending()
        return task_id

    def cancel(self, task_id: int) -> bool:
        """Cancel a task that has not started yet. Running tasks are never interrupted."""
        task = self._tasks.get(task_id)
        if task is None or task.status is not TaskStatus.PENDING:
            return False
        task.transition_to(TaskStatus.CANCELLED)
        logger.info(f"Task {task_id} cancelled")
        self._publish(task)
        return True

    def clear_completed(self) -> int:
        """Remove every completed, failed, or cancelled task. Returns the number removed."""
        finished = [tid for tid, t in self._tasks.items() if t.status in TERMINAL_STATUSES]
        for tid in finished:
            del self._tasks[tid]
        logger.info(f"Cleared {len(finished)} finished task(s)")
        self._publish_list()
        return len(finished)

    def report_progress(self, task_id: int, percent: int) -> bool:
        """
        Update a running task's progress.

        Values are clamped to 0..100 and never move backwards while running.
        Ignored for tasks that are not running.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status is not TaskStatus.RUNNING:
            return False
        value = max(0, min(100, int(percent)))
        if value <= task.progress:
            return False
        task.progress = value
        self._publish(task)
        return True

    def complete_task(self, task_id: int, result: Any = None) -> bool:
        """running -> completed, then backfill the freed slot."""
        task = self._tasks.get(task_id)
        if task is None or task.status is not TaskStatus.RUNNING:
            logger.debug(f"complete_task ignored for task {task_id} (not running)")
            return False
        task.transition_to(TaskStatus.COMPLETED, result=result)
        self._release(task_id)
        logger.info(f"Task {task_id} completed: {task.name}")
        self._publish(task)
        self._admit_pending()
        return True

    def fail_task(self, task_id: int, error_message: str) -> bool:
        """running -> failed, then backfill the freed slot."""
        task = self._tasks.get(task_id)
        if task is None or task.status is not TaskStatus.RUNNING:
            logger.debug(f"fail_task ignored for task {task_id} (not running)")
            return False
        self._record_failure(task, error_message)
        self._admit_pending()
        return True

    def _record_failure(self, task: Task, error_message: str) -> None:
        task.transition_to(TaskStatus.FAILED, error=error_message)
        self._release(task.id)
        logger.error(f"Task {task.id} failed: {task.error}")
        self._publish(task)

    # ---- scheduling ----

    def _admit_pending(self) -> None:
        """
        Start the oldest pending tasks until the concurrency bound is reached.

        Runs on the loop thread. Called from anywhere else it is handed to the
        loop captured by initialize() (it runs once that loop resumes), or deferred
        until initialize() when there is no loop yet.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._admit_pending)
            else:
                logger.debug("TaskQueue: no running event loop, admission deferred")
            return

        while self._accepting and len(self._running) < self._max_concurrent:
            pending = [t for t in self._tasks.values() if t.status is TaskStatus.PENDING]
            if not pending:
                break
            self._start(min(pending, key=lambda t: (t.created_at, t.id)), loop)

    def _start(self, task: Task, loop: asyncio.AbstractEventLoop) -> None:
        task.transition_to(TaskStatus.RUNNING)
        self._running.add(task.id)
        logger.debug(f"Task {task.id} admitted ({len(self._running)}/{self._max_concurrent} running)")
        self._publish(task)

        handler = self.registry.get(task.type)
        if handler is None:
            # unregistered between submission and admission; the caller keeps admitting
            self._record_failure(task, str(UnknownTaskTypeError(task.type)))
            return

        reporter = ProgressReporter(task.id, self.report_progress, loop)
        job = loop.create_task(self._run(task.id, handler, copy.deepcopy(task.data), reporter),
                               name=f"task-{task.id}-{task.type}")
        self._jobs[task.id] = job

    async def _run(self, task_id: int, handler: HandlerLike, data: Any, reporter: ProgressReporter):
        try:
            result = await invoke_handler(handler, data, reporter)
        except asyncio.CancelledError:
            self.fail_task(task_id, "Interrupted by shutdown")
            raise
        except Exception as e:
            logger.opt(exception=e).debug(f"Handler for task {task_id} raised")
            self.fail_task(task_id, str(e) or e.__class__.__name__)
        else:
            self.complete_task(task_id, result)
        finally:
            self._jobs.pop(task_id, None)

    def _release(self, task_id: int) -> None:
        self._running.discard(task_id)

    # ---- notifications ----

    def _publish(self, task: Task) -> None:
        snapshot = task.snapshot()
        self.task_changed.emit(snapshot)
        if self._bus is not None:
            self._bus.publish_sync(Events.TASK_CHANGED, snapshot)

    def _publish_list(self) -> None:
        tasks = self.list_all()
        self.task_list_changed.emit(tasks)
        if self._bus is not None:
            self._bus.publish_sync(Events.TASK_LIST_CHANGED, tasks)
