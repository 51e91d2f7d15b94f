"""TaskStore — optional persistence collaborator for the orchestrator.

The orchestrator only talks to the `TaskStore` protocol. `SQLTaskStore` is
the SQLModel-backed implementation; any object with the same methods can be
injected instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from app.models.escalation import EscalationRecord, EscalationRow
from app.models.task import Task, TaskRecord

logger = logging.getLogger(__name__)

# Tasks in these states are picked up again on startup; in_progress means the
# process stopped mid-execution.
RELOADABLE_STATES = ("pending", "queued", "in_progress")


@runtime_checkable
class TaskStore(Protocol):
    def load_pending_tasks(self) -> list[Task]:
        ...

    def save_task(self, task: Task) -> Task:
        ...

    def update_task_status(self, task_id: str, status: str, fields: dict[str, Any] | None = None) -> None:
        ...

    def save_escalation(self, record: EscalationRecord) -> None:
        ...

    def resolve_escalation_record(self, escalation_id: str, decision: Any) -> None:
        ...


class SQLTaskStore:
    """Stores tasks and escalations in the `task_record` / `escalation_record` tables.

    Usage:
        engine = create_db_engine()
        create_db_and_tables(engine)
        store = SQLTaskStore(engine)
        orchestrator = TaskOrchestrator(registry, store=store)
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # --- tasks ---

    def load_pending_tasks(self) -> list[Task]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(TaskRecord)
                .where(col(TaskRecord.status).in_(RELOADABLE_STATES))
                .order_by(TaskRecord.id)
            ).all()
            return [row.to_task() for row in rows]

    def save_task(self, task: Task) -> Task:
        """Insert or update the task row; sets `task.storage_id`."""
        with Session(self._engine) as session:
            row = session.exec(select(TaskRecord).where(TaskRecord.task_id == task.id)).first()
            if row is None:
                row = TaskRecord.from_task(task)
            else:
                row.status = task.status
                row.priority_score = task.priority_score
                row.retry_count = task.retry_count
                row.blocked_by = list(task.blocked_by)
                row.task_metadata = dict(task.metadata)
                row.updated_at = task.updated_at
            session.add(row)
            session.commit()
            session.refresh(row)
            task.storage_id = row.id
        return task

    def update_task_status(self, task_id: str, status: str, fields: dict[str, Any] | None = None) -> None:
        """Set the status of a stored task plus any extra column values.

        Unknown task ids are ignored.
        """
        with Session(self._engine) as session:
            row = session.exec(select(TaskRecord).where(TaskRecord.task_id == task_id)).first()
            if row is None:
                logger.debug("update_task_status: no stored task %s", task_id)
                return
            row.status = status
            for key, value in (fields or {}).items():
                if hasattr(row, key):
                    setattr(row, key, value)
            row.updated_at = datetime.now(timezone.utc)
            if status == "completed" and row.completed_at is None:
                row.completed_at = row.updated_at
            session.add(row)
            session.commit()

    def get_task(self, task_id: str) -> Task | None:
        with Session(self._engine) as session:
            row = session.exec(select(TaskRecord).where(TaskRecord.task_id == task_id)).first()
            return row.to_task() if row else None

    # --- escalations ---

    def save_escalation(self, record: EscalationRecord) -> None:
        with Session(self._engine) as session:
            session.merge(EscalationRow.from_record(record))
            session.commit()

    def resolve_escalation_record(self, escalation_id: str, decision: Any) -> None:
        with Session(self._engine) as session:
            row = session.get(EscalationRow, escalation_id)
            if row is None:
                return
            row.status = "resolved"
            row.decision = decision
            row.resolved_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()

    def load_pending_escalations(self) -> list[EscalationRecord]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(EscalationRow)
                .where(EscalationRow.status == "pending")
                .order_by(EscalationRow.created_at)
            ).all()
            return [row.to_record() for row in rows]

    # --- prerequisite state ---

    def load_completed_ids(self) -> set[str]:
        """Ids of tasks that completed without escalation."""
        with Session(self._engine) as session:
            return set(session.exec(
                select(TaskRecord.task_id).where(TaskRecord.status == "completed")
            ).all())

    def load_released_ids(self) -> set[str]:
        """Task ids whose escalation has been resolved."""
        with Session(self._engine) as session:
            return set(session.exec(
                select(EscalationRow.task_id).where(EscalationRow.status == "resolved")
            ).all())
