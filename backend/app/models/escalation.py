"""Escalation models.

Includes: EscalationVerdict (Pydantic), EscalationRecord (Pydantic),
          EscalationRow (SQL).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField

from app.config import PriorityTier

EscalationStatus = Literal["pending", "resolved"]


class EscalationVerdict(BaseModel):
    """Result of running the escalation rule set. Not persisted."""

    should_escalate: bool = False
    reasons: list[str] = Field(default_factory=list)
    priority: PriorityTier = "MEDIUM"

    @property
    def summary(self) -> str:
        return "; ".join(self.reasons)


class EscalationRecord(BaseModel):
    """A decision waiting on a human.

    Only `status`, `decision` and `resolved_at` change after creation.
    """

    id: str = Field(default_factory=lambda: f"esc-{uuid4().hex[:12]}")
    task_id: str
    role: str
    reason: str
    recommendation: str = ""
    priority: PriorityTier = "MEDIUM"
    status: EscalationStatus = "pending"
    decision: Any = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


class EscalationRow(SQLModel, table=True):
    """Persisted escalation record."""

    __tablename__ = "escalation_record"

    id: str = SQLField(primary_key=True)
    task_id: str = SQLField(index=True)
    role: str
    reason: str = ""
    recommendation: str = ""
    priority: str = "MEDIUM"
    status: str = SQLField(default="pending", index=True)
    decision: Any = SQLField(default=None, sa_column=Column(JSON))
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    resolved_at: datetime | None = None

    @classmethod
    def from_record(cls, record: EscalationRecord) -> "EscalationRow":
        return cls(**record.model_dump())

    def to_record(self) -> EscalationRecord:
        return EscalationRecord(
            id=self.id,
            task_id=self.task_id,
            role=self.role,
            reason=self.reason,
            recommendation=self.recommendation,
            priority=self.priority,
            status=self.status,
            decision=self.decision,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
        )
