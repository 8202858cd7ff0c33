import asyncio
from typing import Callable


class ProgressReporter:
    """
    Progress callback scoped to a single task invocation.

    Handlers only ever see this object, never the task record or the queue.
    Safe to call from worker threads: calls are marshalled back onto the loop
    that owns the queue.
    """

    def __init__(self, task_id: int, sink: Callable[[int, int], None],
                 loop: asyncio.AbstractEventLoop):
        self._task_id = task_id
        self._sink = sink
        self._loop = loop

    @property
    def task_id(self) -> int:
        return self._task_id

    def __call__(self, percent: float) -> None:
        self.report(percent)

    def report(self, percent: float) -> None:
        value = int(round(percent))
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._sink(self._task_id, value)
        else:
            self._loop.call_soon_threadsafe(self._sink, self._task_id, value)

    def advance(self, done: int, total: int) -> None:
        """Report done/total items as a rounded percentage."""
        if total <= 0:
            return
        self.report(done / total * 100)
