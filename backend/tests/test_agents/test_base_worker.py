"""Tests for BaseWorker — status management, timing, failure tracking."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

import pytest

from app.agents.base import BaseWorker
from app.models.task import Task, TaskResult


class FlakyWorker(BaseWorker):
    def __init__(self, role: str, failures: int = 0):
        super().__init__(role)
        self.failures = failures
        self.states_seen: list[str] = []

    async def run(self, task: Task) -> TaskResult:
        self.states_seen.append(self.status.state)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("transient")
        return TaskResult(action="ok", decision="done")


def _task() -> Task:
    return Task(id="bw-1", description="Check the build", assigned_role="qa")


def test_init_sets_idle_status():
    worker = FlakyWorker("qa")
    assert worker.role == "qa"
    assert worker.status.state == "idle"
    assert not worker.is_busy
    print("  PASS: init_sets_idle_status")


def test_execute_success_stamps_result():
    worker = FlakyWorker("qa")
    result = asyncio.run(worker.execute(_task()))
    assert result.task_id == "bw-1"
    assert result.role == "qa"
    assert result.duration_ms >= 0
    assert worker.status.tasks_completed == 1
    print("  PASS: execute_success_stamps_result")


def test_execute_sets_busy_then_idle():
    worker = FlakyWorker("qa")
    asyncio.run(worker.execute(_task()))
    assert worker.states_seen == ["busy"]
    assert worker.status.state == "idle"
    assert worker.status.current_task_id is None
    assert worker.status.last_active is not None
    print("  PASS: execute_sets_busy_then_idle")


def test_failure_propagates_and_counts():
    worker = FlakyWorker("qa", failures=2)
    for _ in range(2):
        with pytest.raises(RuntimeError, match="transient"):
            asyncio.run(worker.execute(_task()))
    assert worker.status.consecutive_failures == 2
    assert worker.status.state == "idle"

    asyncio.run(worker.execute(_task()))
    assert worker.status.consecutive_failures == 0
    assert worker.status.tasks_completed == 1
    print("  PASS: failure_propagates_and_counts")


def test_mark_busy_reserves_worker():
    worker = FlakyWorker("qa")
    worker.mark_busy(_task())
    assert worker.is_busy
    assert worker.status.current_task_id == "bw-1"
    print("  PASS: mark_busy_reserves_worker")


def test_one_task_at_a_time():
    class SlowWorker(BaseWorker):
        def __init__(self):
            super().__init__("ops")
            self.active = 0
            self.peak = 0

        async def run(self, task):
            self.active += 1
            self.peak = max(self.peak, self.active)
            await asyncio.sleep(0.01)
            self.active -= 1
            return TaskResult()

    async def scenario():
        worker = SlowWorker()
        await asyncio.gather(*(worker.execute(Task(description=f"t{i}", assigned_role="ops")) for i in range(3)))
        return worker

    worker = asyncio.run(scenario())
    assert worker.peak == 1
    assert worker.status.tasks_completed == 3
    print("  PASS: one_task_at_a_time")
