"""Task models.

Includes: Task (Pydantic), TaskResult (Pydantic), HandoffRequest (Pydantic),
          TaskOutcome / FailedTask (Pydantic), TaskRecord (SQL).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField

from app.config import PriorityTier

# === Task States ===

TaskStatus = Literal[
    "pending", "queued", "in_progress", "completed", "failed", "escalated",
]

TERMINAL_TASK_STATES = {"completed", "failed", "escalated"}


def _task_id() -> str:
    return f"task-{uuid4().hex[:12]}"


# === Pydantic-only models ===


class Task(BaseModel):
    """A unit of work assigned to a role.

    `id` is the stable external id; `storage_id` is filled in by a TaskStore
    once the task has been persisted.
    """

    id: str = Field(default_factory=_task_id)
    storage_id: int | None = None
    description: str
    assigned_role: str
    status: TaskStatus = "pending"
    priority: PriorityTier = "MEDIUM"
    priority_score: int = 0
    due_date: datetime | None = None
    blocked_by: list[str] = Field(default_factory=list)
    retry_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)  # notes, workflow, parent_task_id, ...
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def notes(self) -> str:
        return str(self.metadata.get("notes", ""))

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class HandoffRequest(BaseModel):
    """A worker's request to pass remaining work to another role."""

    target_role: str | None = None
    context: str = ""
    deliverables: list[str] = Field(default_factory=list)


class TaskResult(BaseModel):
    """Standardized output from a worker execution.

    Handoff and escalation are signalled through `handoff` and `escalate`;
    the orchestrator and workflow engine inspect them after the run.
    """

    task_id: str = ""
    role: str = ""
    analysis: str = ""
    action: str = ""
    decision: str = ""
    output: Any = None
    handoff: HandoffRequest | None = None
    escalate: bool = False
    escalate_reason: str = ""
    recommendation: str = ""
    raw_content: str = ""
    duration_ms: int = 0
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def text(self) -> str:
        """All free-text sections joined, for rule matching."""
        return " ".join(part for part in (self.analysis, self.action, self.decision) if part)


class TaskOutcome(BaseModel):
    """History entry for a task that ran to completion (possibly escalated)."""

    task_id: str
    role: str
    escalated: bool = False
    result: TaskResult
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FailedTask(BaseModel):
    """A task that exhausted its retries."""

    task_id: str
    role: str
    error: str
    retry_count: int
    final_score: int
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# === SQL Tables ===


class TaskRecord(SQLModel, table=True):
    """Persisted copy of a Task, keyed by the external task id."""

    __tablename__ = "task_record"

    id: int | None = SQLField(default=None, primary_key=True)
    task_id: str = SQLField(index=True, unique=True)
    description: str = ""
    assigned_role: str = SQLField(index=True)
    status: str = SQLField(default="pending", index=True)
    status_reason: str = ""
    priority: str = "MEDIUM"
    priority_score: int = 0
    due_date: datetime | None = None
    blocked_by: list[str] = SQLField(default_factory=list, sa_column=Column(JSON))
    retry_count: int = 0
    task_metadata: dict = SQLField(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskRecord":
        return cls(
            task_id=task.id,
            description=task.description,
            assigned_role=task.assigned_role,
            status=task.status,
            priority=task.priority,
            priority_score=task.priority_score,
            due_date=task.due_date,
            blocked_by=list(task.blocked_by),
            retry_count=task.retry_count,
            task_metadata=dict(task.metadata),
            created_at=task.created_at,
            updated_at=task.updated_at,
        )

    def to_task(self) -> Task:
        return Task(
            id=self.task_id,
            storage_id=self.id,
            description=self.description,
            assigned_role=self.assigned_role,
            status=self.status,
            priority=self.priority,
            priority_score=self.priority_score,
            due_date=self.due_date,
            blocked_by=list(self.blocked_by or []),
            retry_count=self.retry_count,
            metadata=dict(self.task_metadata or {}),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
