"""Administrative views over the orchestrator state."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.agent import WorkerStatus
from app.models.escalation import EscalationRecord
from app.models.task import FailedTask


class OrchestratorStatus(BaseModel):
    """Snapshot returned by TaskOrchestrator.get_status()."""

    running: bool = False
    registered_workers: int = 0
    queue_depth: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    pending_escalations: int = 0
    workers: list[WorkerStatus] = Field(default_factory=list)
    recent_failures: list[FailedTask] = Field(default_factory=list)


class RoleSummary(BaseModel):
    completed: int = 0
    escalated: int = 0
    failed: int = 0


class DailySummary(BaseModel):
    """Activity since a cutoff (UTC midnight by default)."""

    since: datetime
    completed: int = 0
    auto_resolved: int = 0
    escalated: int = 0
    failed: int = 0
    pending_decisions: list[EscalationRecord] = Field(default_factory=list)
    by_role: dict[str, RoleSummary] = Field(default_factory=dict)
