"""
Task record and state machine tests.
"""
from datetime import datetime, timezone

import pytest

from wcs_toolbox.core.tasks import InvalidTransitionError, Task, TaskStatus, TERMINAL_STATUSES


@pytest.fixture
def task():
    return Task(id=1, type="pack-images", data={"folders": []})


class TestTransitions:
    """Allowed and forbidden status changes."""

    def test_new_task_is_pending(self, task):
        assert task.status is TaskStatus.PENDING
        assert task.progress == 0
        assert task.started_at is None
        assert task.created_at.tzinfo is not None

    def test_start_sets_started_at(self, task):
        task.transition_to(TaskStatus.RUNNING)
        assert task.status is TaskStatus.RUNNING
        assert task.started_at is not None

    def test_complete_stores_result(self, task):
        task.transition_to(TaskStatus.RUNNING)
        task.progress = 40
        task.transition_to(TaskStatus.COMPLETED, result={"success": 3}, error="ignored")
        assert task.result == {"success": 3}
        assert task.error is None
        assert task.progress == 100
        assert task.completed_at is not None

    def test_fail_stores_error(self, task):
        task.transition_to(TaskStatus.RUNNING)
        task.transition_to(TaskStatus.FAILED, error="disk full", result="ignored")
        assert task.error == "disk full"
        assert task.result is None

    def test_fail_without_message(self, task):
        task.transition_to(TaskStatus.RUNNING)
        task.transition_to(TaskStatus.FAILED)
        assert task.error == "Unknown error"

    def test_cancel_pending(self, task):
        task.transition_to(TaskStatus.CANCELLED)
        assert task.is_terminal

    def test_explicit_timestamp(self, task):
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        task.transition_to(TaskStatus.RUNNING, at=at)
        assert task.started_at == at

    @pytest.mark.parametrize("target", [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.PENDING])
    def test_pending_cannot_skip_running(self, task, target):
        with pytest.raises(InvalidTransitionError):
            task.transition_to(target)

    def test_running_cannot_be_cancelled(self, task):
        task.transition_to(TaskStatus.RUNNING)
        assert not task.can_transition_to(TaskStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError) as exc:
            task.transition_to(TaskStatus.CANCELLED)
        assert exc.value.current is TaskStatus.RUNNING
        assert exc.value.target is TaskStatus.CANCELLED

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_are_final(self, terminal):
        task = Task(id=2, type="x", status=terminal)
        for target in TaskStatus:
            assert not task.can_transition_to(target)


class TestSerialization:
    """Snapshots and camelCase output."""

    def test_snapshot_is_deep(self, task):
        snapshot = task.snapshot()
        snapshot.data["folders"].append("x")
        assert task.data == {"folders": []}

    def test_to_dict_uses_camel_case(self, task):
        payload = task.to_dict()
        assert payload["status"] == "pending"
        assert "createdAt" in payload
        assert "startedAt" in payload
        assert "completedAt" in payload
        assert "created_at" not in payload

    def test_status_is_string_enum(self):
        assert TaskStatus("running") is TaskStatus.RUNNING
        assert TaskStatus.FAILED == "failed"
