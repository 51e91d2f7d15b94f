"""Runtime wiring — builds the object graph once and hands it to callers.

The worker registry, event hub, escalation engine and decision log are shared
by the orchestrator and the workflow engine. Nothing here is a module-level
singleton; FastAPI's lifespan and the CLIs each build their own Runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine

from app.agents.registry import WorkerRegistry, create_registry, load_all_specs
from app.audit.decision_log import DecisionLog
from app.config import settings
from app.db.task_store import TaskStore
from app.engines.escalation.engine import EscalationEngine, EscalationThresholds, role_rules_from_specs
from app.events.hub import EventHub
from app.llm.layer import Responder, create_responder
from app.models.agent import RoleSpec
from app.orchestration.orchestrator import TaskOrchestrator
from app.workflows.definitions import register_default_workflows
from app.workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    registry: WorkerRegistry
    events: EventHub
    escalation_engine: EscalationEngine
    decision_log: DecisionLog
    orchestrator: TaskOrchestrator
    workflows: WorkflowEngine
    store: TaskStore | None = None
    db_engine: Engine | None = None


def build_escalation_engine(specs: list[RoleSpec]) -> EscalationEngine:
    """Default thresholds with role limits taken from the role specs."""
    thresholds = EscalationThresholds()
    thresholds.role_rules.update(role_rules_from_specs(specs))
    return EscalationEngine(thresholds)


def _build_store() -> tuple[TaskStore | None, Engine | None]:
    if not settings.persistence_enabled:
        return None, None
    try:
        from app.db.database import create_db_and_tables, create_db_engine
        from app.db.task_store import SQLTaskStore

        engine = create_db_engine()
        create_db_and_tables(engine)
        return SQLTaskStore(engine), engine
    except Exception as e:
        logger.error("Task store unavailable, running in memory only: %s", e)
        return None, None


def build_runtime(
    responder: Responder | None = None,
    specs: list[RoleSpec] | None = None,
    store: TaskStore | None = None,
    with_default_workflows: bool = True,
) -> Runtime:
    """Assemble registry, orchestrator and workflow engine.

    Args:
        responder: Text generator for role workers (configured default if None).
        specs: Role specs (all YAML specs if None).
        store: Task store; when None one is built if persistence is enabled.
        with_default_workflows: Register the built-in workflows.
    """
    specs = specs if specs is not None else load_all_specs()
    responder = responder or create_responder()

    db_engine = None
    if store is None:
        store, db_engine = _build_store()

    registry = create_registry(responder, specs)
    events = EventHub()
    escalation_engine = build_escalation_engine(specs)
    decision_log = DecisionLog()

    orchestrator = TaskOrchestrator(
        registry,
        events=events,
        store=store,
        escalation_engine=escalation_engine,
        decision_log=decision_log,
    )
    workflows = WorkflowEngine(
        registry,
        events=events,
        escalation_engine=escalation_engine,
        decision_log=decision_log,
        orchestrator=orchestrator,
    )
    if with_default_workflows:
        register_default_workflows(workflows)

    logger.info(
        "Runtime ready: %d workers, %d workflows, persistence=%s",
        len(registry), len(workflows.list_definitions()), store is not None,
    )
    return Runtime(
        registry=registry,
        events=events,
        escalation_engine=escalation_engine,
        decision_log=decision_log,
        orchestrator=orchestrator,
        workflows=workflows,
        store=store,
        db_engine=db_engine,
    )
