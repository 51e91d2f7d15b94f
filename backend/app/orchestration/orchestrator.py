"""Task Orchestrator — queue, scheduling tick, and completion handling.

Lifecycle of a task:
    pending -> queued -> in_progress -> completed | escalated | failed
                 ^            |
                 +-- retry ---+   (score decays, up to max_retries attempts)

The orchestrator owns the pending queue, the in-progress map, completion
history, permanent failures, and the pending escalation list. Workers are
shared with the workflow engine through the WorkerRegistry.

Usage:
    orchestrator = TaskOrchestrator(registry, events=hub)
    orchestrator.enqueue(Task(description="Approve Q3 budget", assigned_role="cfo"))
    await orchestrator.tick()              # dispatch ready work
    await orchestrator.wait_until_idle()   # let in-flight tasks finish
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from app.agents.base import BaseWorker
from app.agents.registry import WorkerRegistry
from app.audit.decision_log import DecisionLog
from app.config import PriorityTier, settings
from app.db.task_store import TaskStore
from app.engines.escalation.engine import EscalationEngine
from app.events.hub import EventHub
from app.models.decision import DecisionEntry
from app.models.escalation import EscalationRecord
from app.models.orchestrator import DailySummary, OrchestratorStatus, RoleSummary
from app.models.task import FailedTask, Task, TaskOutcome, TaskResult
from app.orchestration import dependencies, priority
from app.orchestration.scheduler import TickScheduler

logger = logging.getLogger(__name__)


class TaskOrchestrator:
    """Matches ready tasks to idle workers under a global concurrency ceiling."""

    def __init__(
        self,
        registry: WorkerRegistry | None = None,
        *,
        events: EventHub | None = None,
        store: TaskStore | None = None,
        escalation_engine: EscalationEngine | None = None,
        decision_log: DecisionLog | None = None,
        max_concurrent: int | None = None,
        max_retries: int | None = None,
        retry_decay: int | None = None,
        tick_interval: float | None = None,
    ) -> None:
        self.registry = registry if registry is not None else WorkerRegistry()
        self.events = events if events is not None else EventHub()
        self.store = store
        self.escalation_engine = escalation_engine
        self.decision_log = decision_log
        self.max_concurrent = max_concurrent if max_concurrent is not None else settings.max_concurrent_tasks
        self.max_retries = max_retries if max_retries is not None else settings.max_task_retries
        self.retry_decay = retry_decay if retry_decay is not None else settings.retry_priority_decay

        self._queue: list[Task] = []
        self._in_progress: dict[str, Task] = {}
        self._running: dict[str, asyncio.Task] = {}
        self._tasks: dict[str, Task] = {}
        self._completed_ids: set[str] = set()
        self._released_ids: set[str] = set()
        self.history: list[TaskOutcome] = []
        self.failures: list[FailedTask] = []
        self.escalations: list[EscalationRecord] = []

        self.scheduler = TickScheduler(self.tick, interval_seconds=tick_interval)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def register(self, worker: BaseWorker) -> None:
        """Add a worker to the pool. Raises DuplicateWorkerError on a taken role."""
        self.registry.register(worker)
        logger.info("Registered worker: %s", worker.role)

    def enqueue(self, task: Task) -> None:
        """Score the task and insert it into the pending queue."""
        if any(t.id == task.id for t in self._queue):
            logger.warning("Task %s is already queued", task.id)
            return
        task.priority_score = priority.score(task, self.ready_ids())
        task.status = "queued"
        task.touch()
        self._tasks[task.id] = task
        self._insert(task)
        self._store_call("save_task", task)
        self.events.publish(
            "task.queued",
            task_id=task.id,
            role=task.assigned_role,
            score=task.priority_score,
        )
        logger.info("Queued task %s for %s (score: %d)", task.id, task.assigned_role, task.priority_score)

    def _insert(self, task: Task) -> None:
        self._queue.append(task)
        # list.sort is stable, so equal scores keep arrival order
        self._queue.sort(key=lambda t: -t.priority_score)

    def load_pending(self) -> int:
        """Re-queue unfinished tasks and pending escalations from the store.

        Completed tasks and resolved escalations are restored as satisfied
        prerequisites first, so reloaded dependents can still become ready.

        Returns:
            Number of tasks re-queued (0 without a store).
        """
        if self.store is None:
            return 0
        # Prerequisites satisfied before the restart
        self._completed_ids.update(self._store_call("load_completed_ids") or ())
        self._released_ids.update(self._store_call("load_released_ids") or ())
        tasks = self._store_call("load_pending_tasks") or []
        escalations = self._store_call("load_pending_escalations") or []
        known = {e.id for e in self.escalations}
        self.escalations.extend(e for e in escalations if e.id not in known)
        for task in tasks:
            self.enqueue(task)
        logger.info("Loaded %d pending tasks and %d escalations from store", len(tasks), len(escalations))
        return len(tasks)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def ready_ids(self) -> set[str]:
        """Ids that satisfy a prerequisite: completed tasks and resolved escalations."""
        return self._completed_ids | self._released_ids

    def _next_ready_task(self, role: str, ready: set[str]) -> Task | None:
        for task in self._queue:
            if task.assigned_role == role and dependencies.is_ready(task, ready):
                return task
        return None

    async def tick(self) -> list[Task]:
        """Dispatch ready tasks to idle workers.

        Workers are scanned in registration order; each idle worker takes the
        highest-scored ready task for its role. Dispatch stops once
        `max_concurrent` tasks are in progress.

        Returns:
            The tasks dispatched this tick (empty when there is nothing to do).
        """
        dispatched: list[Task] = []
        if not self._queue:
            return dispatched

        ready = self.ready_ids()
        for worker in self.registry.workers():
            if len(self._in_progress) >= self.max_concurrent:
                break
            if worker.is_busy:
                continue
            task = self._next_ready_task(worker.role, ready)
            if task is None:
                continue
            self._queue.remove(task)
            self._dispatch(worker, task)
            dispatched.append(task)

        if dispatched:
            logger.debug("Tick dispatched %d task(s)", len(dispatched))
        return dispatched

    def _dispatch(self, worker: BaseWorker, task: Task) -> None:
        worker.mark_busy(task)
        task.status = "in_progress"
        task.touch()
        self._in_progress[task.id] = task
        self._store_call("update_task_status", task.id, "in_progress")
        self.events.publish("task.dispatched", task_id=task.id, role=worker.role)
        logger.info("Assigning task %s to %s", task.id, worker.role)
        self._running[task.id] = asyncio.create_task(self._run(worker, task))

    async def _run(self, worker: BaseWorker, task: Task) -> None:
        try:
            try:
                result = await worker.execute(task)
            except Exception as e:
                logger.error("Task %s failed on %s: %s", task.id, worker.role, e)
                self.events.publish(
                    "agent.error", task_id=task.id, role=worker.role, error=str(e),
                )
                self.fail(task, e)
                return
            try:
                self.complete(task, result)
            except Exception as e:
                logger.error("Post-completion handling failed for %s: %s", task.id, e, exc_info=True)
        finally:
            self._running.pop(task.id, None)

    async def wait_until_idle(self) -> None:
        """Wait for every in-flight task to finish."""
        while self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)

    async def run_until_idle(self, max_ticks: int = 100) -> int:
        """Tick and drain repeatedly until no work can be dispatched.

        Returns:
            Number of ticks that dispatched work.
        """
        productive = 0
        for _ in range(max_ticks):
            dispatched = await self.tick()
            if not dispatched and not self._running:
                break
            if dispatched:
                productive += 1
            await self.wait_until_idle()
        return productive

    async def start(self, interval: float | None = None) -> None:
        """Start the periodic tick loop."""
        if interval is not None:
            self.scheduler.interval_seconds = interval
        await self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    # ------------------------------------------------------------------
    # Completion handling
    # ------------------------------------------------------------------

    def complete(self, task: Task, result: TaskResult) -> TaskOutcome:
        """Record a finished task, then act on its handoff / escalation signals."""
        self._in_progress.pop(task.id, None)
        role = task.assigned_role

        reasons: list[str] = []
        if result.escalate:
            reasons.append(result.escalate_reason or "Worker requested an executive decision")
        escalation_priority: PriorityTier | None = None
        if self.escalation_engine is not None and settings.auto_escalation_enabled:
            verdict = self.escalation_engine.evaluate(task, result, role)
            reasons.extend(r for r in verdict.reasons if r not in reasons)
            if reasons:
                escalation_priority = self.escalation_engine.resolve_priority(reasons, task.priority)

        task.status = "completed"
        task.touch()
        self._tasks[task.id] = task
        if not reasons:
            self._completed_ids.add(task.id)
        outcome = TaskOutcome(task_id=task.id, role=role, escalated=bool(reasons), result=result)
        self.history.append(outcome)
        self._store_call("update_task_status", task.id, "completed")
        self._log_decision(task, result, escalated=bool(reasons), reason="; ".join(reasons))
        self.events.publish("task.completed", task_id=task.id, role=role, decision=result.decision)
        logger.info("Task %s completed by %s", task.id, role)

        target = result.handoff.target_role if result.handoff is not None else None
        if target and target not in self.registry:
            logger.warning("Task %s hands off to unknown role %s; handoff dropped", task.id, target)
        elif target:
            self.handoff(
                role,
                target,
                result.handoff.context,
                task,
                deliverables=result.handoff.deliverables,
            )

        if reasons:
            self.escalate(
                task,
                role,
                "; ".join(reasons),
                result.recommendation or result.action,
                priority=escalation_priority,
            )
        return outcome

    def fail(self, task: Task, error: Exception | str) -> None:
        """Decay and re-queue a failed task, or fail it permanently.

        Each failure lowers the score by `retry_decay` (never below 0) and
        bumps the retry count; the task is re-queued with that score while
        the count is under `max_retries`.
        """
        self._in_progress.pop(task.id, None)
        message = f"{type(error).__name__}: {error}" if isinstance(error, Exception) else str(error)
        task.priority_score = max(0, task.priority_score - self.retry_decay)
        task.retry_count += 1
        task.touch()

        if task.retry_count < self.max_retries:
            task.status = "queued"
            self._insert(task)
            self._store_call(
                "update_task_status", task.id, "queued",
                {"retry_count": task.retry_count, "priority_score": task.priority_score},
            )
            self.events.publish(
                "task.retry",
                task_id=task.id,
                role=task.assigned_role,
                retry_count=task.retry_count,
                score=task.priority_score,
                error=message,
            )
            logger.warning(
                "Task %s failed (attempt %d/%d), re-queued with score %d",
                task.id, task.retry_count, self.max_retries, task.priority_score,
            )
            return

        task.status = "failed"
        record = FailedTask(
            task_id=task.id,
            role=task.assigned_role,
            error=message,
            retry_count=task.retry_count,
            final_score=task.priority_score,
        )
        self.failures.append(record)
        self._store_call(
            "update_task_status", task.id, "failed",
            {
                "retry_count": task.retry_count,
                "priority_score": task.priority_score,
                "status_reason": message,
            },
        )
        self.events.publish(
            "task.failed", task_id=task.id, role=task.assigned_role, error=message,
            retry_count=task.retry_count,
        )
        logger.error("Task %s permanently failed after %d attempts: %s", task.id, task.retry_count, message)

    def handoff(
        self,
        from_role: str,
        to_role: str,
        context: str,
        originating_task: Task,
        deliverables: list[str] | tuple[str, ...] = (),
    ) -> Task:
        """Create and enqueue a follow-up task for `to_role`."""
        metadata: dict[str, Any] = {
            "parent_task_id": originating_task.id,
            "deliverables": list(deliverables),
            "handoff_from": from_role,
        }
        if "workflow_id" in originating_task.metadata:
            metadata["workflow_id"] = originating_task.metadata["workflow_id"]

        new_task = Task(
            id=f"handoff-{uuid4().hex[:12]}",
            description=f"[Handoff from {from_role.upper()}] {context}",
            assigned_role=to_role,
            priority=originating_task.priority,
            metadata=metadata,
        )
        self.enqueue(new_task)
        self.events.publish(
            "handoff.created",
            task_id=new_task.id,
            role=to_role,
            from_role=from_role,
            parent_task_id=originating_task.id,
        )
        logger.info("Handoff from %s to %s (%s)", from_role, to_role, new_task.id)
        return new_task

    def escalate(
        self,
        task: Task,
        role: str,
        reason: str,
        recommendation: str = "",
        priority: PriorityTier | None = None,
    ) -> EscalationRecord:
        """Add an escalation to the pending list. Scheduling continues."""
        record = EscalationRecord(
            task_id=task.id,
            role=role,
            reason=reason,
            recommendation=recommendation,
            priority=priority or task.priority,
        )
        self.escalations.append(record)
        self._completed_ids.discard(task.id)
        task.status = "escalated"
        task.touch()
        self._store_call("update_task_status", task.id, "escalated", {"status_reason": reason})
        self._store_call("save_escalation", record)
        self.events.publish(
            "escalation.created",
            task_id=task.id,
            role=role,
            escalation_id=record.id,
            reason=reason,
            priority=record.priority,
        )
        logger.info("Escalation from %s on %s: %s", role, task.id, reason)
        return record

    def resolve_escalation(self, escalation_id: str, decision: Any) -> EscalationRecord | None:
        """Resolve a pending escalation. Repeat calls and unknown ids are no-ops.

        Resolution releases tasks that list the escalated task as a prerequisite.
        """
        record = next((e for e in self.escalations if e.id == escalation_id), None)
        if record is None:
            return None
        if not record.is_pending:
            return record

        record.status = "resolved"
        record.decision = decision
        record.resolved_at = datetime.now(timezone.utc)
        self._released_ids.add(record.task_id)
        self._store_call("resolve_escalation_record", escalation_id, decision)
        self.events.publish(
            "escalation.resolved",
            task_id=record.task_id,
            role=record.role,
            escalation_id=record.id,
            decision=decision,
        )
        logger.info("Escalation %s resolved", escalation_id)
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def queue(self) -> list[Task]:
        """Snapshot of the pending queue, highest score first."""
        return list(self._queue)

    @property
    def in_progress(self) -> list[Task]:
        return list(self._in_progress.values())

    def pending_escalations(self) -> list[EscalationRecord]:
        return [e for e in self.escalations if e.is_pending]

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def get_status(self) -> OrchestratorStatus:
        return OrchestratorStatus(
            running=self.scheduler.is_running,
            registered_workers=len(self.registry),
            queue_depth=len(self._queue),
            in_progress=len(self._in_progress),
            completed=len(self.history),
            failed=len(self.failures),
            pending_escalations=len(self.pending_escalations()),
            workers=self.registry.list_statuses(),
            recent_failures=self.failures[-10:],
        )

    def get_daily_summary(self, since: datetime | None = None) -> DailySummary:
        """Aggregate activity since `since` (UTC midnight today by default)."""
        if since is None:
            since = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        elif since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        summary = DailySummary(since=since, pending_decisions=self.pending_escalations())
        for outcome in self.history:
            if outcome.completed_at < since:
                continue
            counts = summary.by_role.setdefault(outcome.role, RoleSummary())
            summary.completed += 1
            counts.completed += 1
            if outcome.escalated:
                summary.escalated += 1
                counts.escalated += 1
            else:
                summary.auto_resolved += 1
        for failure in self.failures:
            if failure.failed_at < since:
                continue
            summary.failed += 1
            summary.by_role.setdefault(failure.role, RoleSummary()).failed += 1
        return summary

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _store_call(self, method: str, *args):
        """Call a store method; on error log it and carry on in memory."""
        if self.store is None:
            return None
        fn = getattr(self.store, method, None)
        if fn is None:
            return None
        try:
            return fn(*args)
        except Exception as e:
            logger.error("Task store %s failed: %s", method, e)
            return None

    def _log_decision(self, task: Task, result: TaskResult, escalated: bool, reason: str) -> None:
        if self.decision_log is None:
            return
        self.decision_log.log(DecisionEntry(
            task_id=task.id,
            role=task.assigned_role,
            decision=result.decision,
            action=result.action,
            escalated=escalated,
            escalate_reason=reason,
            handoff_to=result.handoff.target_role if result.handoff else None,
            workflow_id=task.metadata.get("workflow_id"),
        ))
