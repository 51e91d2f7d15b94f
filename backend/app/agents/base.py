"""BaseWorker — abstract base class for every role worker.

Design decisions:
- A worker is bound to exactly one role and runs at most one task at a time
  (per-worker asyncio.Lock; the orchestrator and workflow engine share it)
- execute() wraps the subclass's run() with status management and timing
- Failures propagate to the caller; retry policy belongs to the orchestrator
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from app.models.agent import WorkerStatus
from app.models.task import Task, TaskResult

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """Abstract base class for role workers.

    Subclasses must implement:
    - run(task) -> TaskResult: Core execution logic

    Usage:
        class EchoWorker(BaseWorker):
            async def run(self, task: Task) -> TaskResult:
                return TaskResult(action=task.description, decision="done")

        worker = EchoWorker("ops")
        result = await worker.execute(task)
    """

    def __init__(self, role: str) -> None:
        self._role = role
        self.status = WorkerStatus(role=role)
        self._lock = asyncio.Lock()
        # Task ids holding the worker: dispatched-but-waiting and running
        self._reserved: set[str] = set()

    @property
    def role(self) -> str:
        return self._role

    @property
    def is_busy(self) -> bool:
        return bool(self._reserved) or self._lock.locked()

    def mark_busy(self, task: Task) -> None:
        """Reserve the worker for `task` before its execution is scheduled."""
        self._reserved.add(task.id)
        self.status.state = "busy"
        self.status.current_task_id = task.id

    def _release(self, task: Task) -> None:
        """Drop `task`'s reservation; idle only once no other task holds the worker."""
        self._reserved.discard(task.id)
        self.status.last_active = datetime.now(timezone.utc)
        if self._reserved:
            self.status.current_task_id = next(iter(self._reserved))
            return
        self.status.state = "idle"
        self.status.current_task_id = None

    async def execute(self, task: Task) -> TaskResult:
        """Run the task with status management and timing.

        1. Status management (idle -> busy -> idle)
        2. Duration measurement
        3. Result stamped with task id and role
        """
        async with self._lock:
            self.mark_busy(task)
            start_time = time.time()
            try:
                result = await self.run(task)
            except Exception:
                self.status.consecutive_failures += 1
                logger.warning("Worker %s failed on task %s", self.role, task.id)
                raise
            finally:
                self._release(task)

            result.task_id = task.id
            result.role = self.role
            result.duration_ms = int((time.time() - start_time) * 1000)
            self.status.tasks_completed += 1
            self.status.consecutive_failures = 0
            return result

    @abstractmethod
    async def run(self, task: Task) -> TaskResult:
        """Core worker logic. Subclasses implement this.

        Args:
            task: The task to carry out.

        Returns:
            TaskResult; set `handoff` / `escalate` to signal the orchestrator.
        """
        ...
