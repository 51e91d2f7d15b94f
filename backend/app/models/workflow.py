"""Workflow models.

Includes: WorkflowStepDef, WorkflowDefinition, StepResult, WorkflowInstance
(all Pydantic; workflow instances live in memory for the life of the engine).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from app.config import PriorityTier
from app.models.task import TaskResult

# === Workflow States ===

WorkflowState = Literal["running", "completed", "escalated", "failed"]

StepStatus = Literal["completed", "skipped", "error", "failed", "escalated"]

BUILTIN_CONDITIONS = {"previous_step_succeeded", "previous_step_failed"}

StepCondition = Callable[[dict, list], bool]


class WorkflowStepDef(BaseModel):
    """Definition of a workflow step (template, not instance).

    `task_template` may contain {{variable}} placeholders resolved from the
    instance context. `condition` is either a built-in name or a callable
    taking (context, step_results).
    """

    name: str
    role: str
    task_template: str = ""
    priority: PriorityTier = "MEDIUM"
    condition: str | StepCondition | None = None

    @field_validator("condition")
    @classmethod
    def _known_condition(cls, value):
        if isinstance(value, str) and value not in BUILTIN_CONDITIONS:
            raise ValueError(
                f"Unknown step condition '{value}'. "
                f"Use one of {sorted(BUILTIN_CONDITIONS)} or a callable."
            )
        return value


class WorkflowDefinition(BaseModel):
    """An ordered list of role steps."""

    id: str
    name: str
    description: str = ""
    steps: list[WorkflowStepDef] = Field(min_length=1)


class StepResult(BaseModel):
    """Outcome of one step of a workflow instance."""

    index: int
    step: str
    role: str
    status: StepStatus
    result: TaskResult | None = None
    error: str | None = None
    reason: str = ""
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def executed(self) -> bool:
        return self.status != "skipped"

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class WorkflowInstance(BaseModel):
    """A running or finished execution of a WorkflowDefinition."""

    id: str = Field(default_factory=lambda: f"wf-{uuid4().hex[:12]}")
    definition_id: str
    status: WorkflowState = "running"
    context: dict[str, Any] = Field(default_factory=dict)
    current_step: int = 0
    step_results: list[StepResult] = Field(default_factory=list)
    escalation_reason: str = ""
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def skipped_steps(self) -> list[StepResult]:
        return [r for r in self.step_results if r.status == "skipped"]

    @property
    def executed_steps(self) -> list[StepResult]:
        return [r for r in self.step_results if r.executed]
