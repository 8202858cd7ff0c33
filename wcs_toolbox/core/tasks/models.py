"""
Task record and lifecycle state machine.

    pending -> running     [admission]
    pending -> cancelled   [explicit cancel]
    running -> completed   [handler returns result]
    running -> failed      [handler raises]

completed, failed and cancelled are terminal.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}
)

VALID_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.CANCELLED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised for a status change outside the task state machine."""

    def __init__(self, task_id: int, current: TaskStatus, target: TaskStatus):
        super().__init__(f"Task {task_id}: invalid transition {current.value} -> {target.value}")
        self.task_id = task_id
        self.current = current
        self.target = target


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Task(BaseModel):
    """
    One unit of submitted work.

    Serializes with camelCase aliases (createdAt, startedAt, ...) for the presentation layer.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    type: str
    name: str = ""
    data: Any = None
    status: TaskStatus = TaskStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can_transition_to(self, target: TaskStatus) -> bool:
        return target in VALID_TRANSITIONS[self.status]

    def transition_to(self, target: TaskStatus, *, result: Any = None, error: Optional[str] = None,
                      at: Optional[datetime] = None) -> None:
        """
        Apply a state machine transition and stamp the matching timestamp.

        result is stored only on completed, error only on failed.
        """
        if not self.can_transition_to(target):
            raise InvalidTransitionError(self.id, self.status, target)

        now = at or utc_now()
        self.status = target
        if target is TaskStatus.RUNNING:
            self.started_at = now
            self.progress = 0
        elif target is TaskStatus.COMPLETED:
            self.result = result
            self.progress = 100
            self.completed_at = now
        elif target is TaskStatus.FAILED:
            self.error = error or "Unknown error"
            self.completed_at = now
        elif target is TaskStatus.CANCELLED:
            self.completed_at = now

    def snapshot(self) -> "Task":
        """Detached copy safe to hand to observers."""
        return self.model_copy(deep=True)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
