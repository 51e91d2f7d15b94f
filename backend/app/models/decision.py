"""Decision audit models."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class DecisionEntry(BaseModel):
    """One audited worker decision (orchestrated task or workflow step)."""

    id: str = Field(default_factory=lambda: f"dec-{uuid4().hex[:12]}")
    task_id: str
    role: str
    decision: str = ""
    action: str = ""
    escalated: bool = False
    escalate_reason: str = ""
    handoff_to: str | None = None
    workflow_id: str | None = None
    workflow_instance_id: str | None = None
    step: str | None = None
    logged_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RoleDecisionCounts(BaseModel):
    total: int = 0
    escalated: int = 0


class DecisionStats(BaseModel):
    """Aggregate counts over the audit trail."""

    total: int = 0
    escalated: int = 0
    by_role: dict[str, RoleDecisionCounts] = Field(default_factory=dict)
