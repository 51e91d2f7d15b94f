"""Workflow API endpoints — list definitions, start and inspect instances.

GET  /api/v1/workflows — registered workflow definitions
POST /api/v1/workflows/{id}/start — run a workflow to completion/escalation/failure
GET  /api/v1/workflows/instances — all instances (optionally by state)
GET  /api/v1/workflows/instances/{id} — one instance with its step history
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.models.task import TaskResult
from app.models.workflow import WorkflowDefinition, WorkflowInstance
from app.workflows.engine import WorkflowEngine, WorkflowNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["workflows"])

# Module-level reference, set by main.py at startup
_engine: WorkflowEngine | None = None


def set_dependencies(engine: WorkflowEngine | None) -> None:
    """Wire up dependencies (called from main.py lifespan)."""
    global _engine
    _engine = engine


def _get_engine() -> WorkflowEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Workflow engine not initialized.")
    return _engine


# === Request / Response Models ===


class StepSummary(BaseModel):
    name: str
    role: str
    condition: str | None = None


class WorkflowSummary(BaseModel):
    """A workflow definition as shown to clients."""

    id: str
    name: str
    description: str = ""
    steps: list[StepSummary] = Field(default_factory=list)


class StartWorkflowRequest(BaseModel):
    context: dict[str, Any] = Field(default_factory=dict)


class WorkflowStatusResponse(BaseModel):
    """Full workflow instance status."""

    id: str
    definition_id: str
    state: str
    current_step: int
    step_history: list[dict] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    escalation_reason: str = ""
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None


def _summarize(definition: WorkflowDefinition) -> WorkflowSummary:
    return WorkflowSummary(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        steps=[
            StepSummary(
                name=s.name,
                role=s.role,
                condition="custom" if callable(s.condition) else s.condition,
            )
            for s in definition.steps
        ],
    )


def _to_response(instance: WorkflowInstance) -> WorkflowStatusResponse:
    # Step outputs are already in step_history
    context = {k: v for k, v in instance.context.items() if not isinstance(v, TaskResult)}
    return WorkflowStatusResponse(
        id=instance.id,
        definition_id=instance.definition_id,
        state=instance.status,
        current_step=instance.current_step,
        step_history=[r.model_dump(mode="json") for r in instance.step_results],
        context=context,
        escalation_reason=instance.escalation_reason,
        error=instance.error,
        started_at=instance.started_at,
        completed_at=instance.completed_at,
    )


# === Endpoints ===


@router.get("/workflows", response_model=list[WorkflowSummary])
async def list_workflows() -> list[WorkflowSummary]:
    return [_summarize(d) for d in _get_engine().list_definitions()]


@router.post("/workflows/{definition_id}/start", response_model=WorkflowStatusResponse)
async def start_workflow(definition_id: str, request: StartWorkflowRequest) -> WorkflowStatusResponse:
    """Start a workflow and return the finished instance."""
    engine = _get_engine()
    try:
        instance = await engine.start(definition_id, request.context)
    except WorkflowNotFoundError:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {definition_id}")
    logger.info("Workflow %s finished as %s", instance.id, instance.status)
    return _to_response(instance)


@router.get("/workflows/instances", response_model=list[WorkflowStatusResponse])
async def list_instances(state: str | None = None) -> list[WorkflowStatusResponse]:
    return [_to_response(i) for i in _get_engine().list_instances(state)]


@router.get("/workflows/instances/{instance_id}", response_model=WorkflowStatusResponse)
async def get_instance(instance_id: str) -> WorkflowStatusResponse:
    instance = _get_engine().get_instance(instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"Workflow instance not found: {instance_id}")
    return _to_response(instance)
