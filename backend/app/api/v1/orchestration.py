"""Orchestration API endpoints — queue work, inspect state, resolve escalations.

GET  /api/v1/orchestrator/status — queue depth, worker states, recent failures
GET  /api/v1/orchestrator/summary — daily summary (completed/escalated/failed by role)
POST /api/v1/orchestrator/tick — run one scheduling step
POST /api/v1/tasks — enqueue a task
GET  /api/v1/tasks — pending queue, highest score first
GET  /api/v1/tasks/{id} — one task
GET  /api/v1/escalations — escalation list (pending by default)
POST /api/v1/escalations/{id}/resolve — record a human decision
GET  /api/v1/decisions — recent audit trail entries
GET  /api/v1/decisions/stats — audit counts by role
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.audit.decision_log import DecisionLog
from app.config import PriorityTier
from app.models.decision import DecisionEntry, DecisionStats
from app.models.escalation import EscalationRecord
from app.models.orchestrator import DailySummary, OrchestratorStatus
from app.models.task import Task
from app.orchestration.orchestrator import TaskOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["orchestration"])

# Module-level references, set by main.py at startup
_orchestrator: TaskOrchestrator | None = None
_decision_log: DecisionLog | None = None


def set_dependencies(
    orchestrator: TaskOrchestrator | None,
    decision_log: DecisionLog | None = None,
) -> None:
    """Wire up dependencies (called from main.py lifespan)."""
    global _orchestrator, _decision_log
    _orchestrator = orchestrator
    _decision_log = decision_log


def _get_orchestrator() -> TaskOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized.")
    return _orchestrator


def _get_decision_log() -> DecisionLog:
    if _decision_log is None:
        raise HTTPException(status_code=503, detail="Decision log not initialized.")
    return _decision_log


# === Request / Response Models ===


class CreateTaskRequest(BaseModel):
    """Request to enqueue a new task."""

    description: str = Field(min_length=1, max_length=4000)
    assigned_role: str = Field(min_length=1, max_length=50)
    priority: PriorityTier = "MEDIUM"
    due_date: datetime | None = None
    blocked_by: list[str] = Field(default_factory=list, max_length=50)
    notes: str = Field(default="", max_length=4000)
    id: str | None = Field(default=None, max_length=100)


class TickResponse(BaseModel):
    dispatched: list[str]
    queue_depth: int
    in_progress: int


class ResolveEscalationRequest(BaseModel):
    decision: Any


# === Orchestrator ===


@router.get("/orchestrator/status", response_model=OrchestratorStatus)
async def get_status() -> OrchestratorStatus:
    return _get_orchestrator().get_status()


@router.get("/orchestrator/summary", response_model=DailySummary)
async def get_summary(since: datetime | None = None) -> DailySummary:
    """Activity since `since` (UTC midnight today when omitted)."""
    return _get_orchestrator().get_daily_summary(since)


@router.post("/orchestrator/tick", response_model=TickResponse)
async def run_tick(wait: bool = False) -> TickResponse:
    """Dispatch ready tasks. With `wait=true`, return after they finish."""
    orchestrator = _get_orchestrator()
    dispatched = await orchestrator.tick()
    if wait:
        await orchestrator.wait_until_idle()
    return TickResponse(
        dispatched=[t.id for t in dispatched],
        queue_depth=len(orchestrator.queue),
        in_progress=len(orchestrator.in_progress),
    )


# === Tasks ===


@router.post("/tasks", response_model=Task, status_code=201)
async def create_task(request: CreateTaskRequest) -> Task:
    orchestrator = _get_orchestrator()
    if request.id and orchestrator.get_task(request.id) is not None:
        raise HTTPException(status_code=409, detail=f"Task already exists: {request.id}")

    fields = request.model_dump(exclude={"notes", "id"})
    if request.id:
        fields["id"] = request.id
    task = Task(**fields, metadata={"notes": request.notes} if request.notes else {})
    orchestrator.enqueue(task)
    return task


@router.get("/tasks", response_model=list[Task])
async def list_queue() -> list[Task]:
    return _get_orchestrator().queue


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str) -> Task:
    task = _get_orchestrator().get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return task


# === Escalations ===


@router.get("/escalations", response_model=list[EscalationRecord])
async def list_escalations(status: Literal["pending", "resolved", "all"] = "pending") -> list[EscalationRecord]:
    orchestrator = _get_orchestrator()
    if status == "pending":
        return orchestrator.pending_escalations()
    if status == "resolved":
        return [e for e in orchestrator.escalations if not e.is_pending]
    return list(orchestrator.escalations)


@router.post("/escalations/{escalation_id}/resolve", response_model=EscalationRecord)
async def resolve_escalation(escalation_id: str, request: ResolveEscalationRequest) -> EscalationRecord:
    record = _get_orchestrator().resolve_escalation(escalation_id, request.decision)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Escalation not found: {escalation_id}")
    return record


# === Decision audit ===


@router.get("/decisions", response_model=list[DecisionEntry])
async def list_decisions(
    limit: int = 50,
    role: str | None = None,
    task_id: str | None = None,
    escalated: bool | None = None,
) -> list[DecisionEntry]:
    limit = max(1, min(limit, 500))
    return _get_decision_log().recent(limit=limit, role=role, task_id=task_id, escalated=escalated)


@router.get("/decisions/stats", response_model=DecisionStats)
async def decision_stats(since: datetime | None = None) -> DecisionStats:
    return _get_decision_log().stats(since)
