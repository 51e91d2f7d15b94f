"""Event models published by the orchestrator and workflow engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

EventType = Literal[
    "task.queued",
    "task.dispatched",
    "task.completed",
    "task.retry",
    "task.failed",
    "handoff.created",
    "escalation.created",
    "escalation.resolved",
    "agent.error",
    "workflow.started",
    "workflow.step_completed",
    "workflow.step_skipped",
    "workflow.step_error",
    "workflow.escalated",
    "workflow.completed",
    "workflow.failed",
]


class OrchestratorEvent(BaseModel):
    """Schema for every event handed to subscribers."""

    event_type: EventType
    task_id: str | None = None
    role: str | None = None
    workflow_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
