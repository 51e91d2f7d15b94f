"""Workflow Engine — ordered role steps with conditions and escalation stop.

A workflow instance walks its definition's steps in order:

- a step whose condition is false is recorded as skipped
- a step whose role has no worker is recorded as an error; the walk continues
- a worker exception fails the instance and stops the walk
- an escalation (worker flag or rule engine verdict) stops the walk
- otherwise the result is merged into the context and the walk continues

Instance states follow a small transition table; terminal states never move.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from app.agents.registry import WorkerRegistry
from app.audit.decision_log import DecisionLog
from app.config import settings
from app.engines.escalation.engine import EscalationEngine
from app.events.hub import EventHub
from app.models.decision import DecisionEntry
from app.models.task import Task, TaskResult
from app.models.workflow import (
    StepResult,
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowStepDef,
)

if TYPE_CHECKING:
    from app.orchestration.orchestrator import TaskOrchestrator

logger = logging.getLogger(__name__)

# === State Transition Table ===
# Key: (from_state, to_state) -> guard description
# Absent pair -> illegal transition

LEGAL_TRANSITIONS: dict[tuple[str, str], str] = {
    ("running", "completed"): "Final step finished",
    ("running", "escalated"): "Step result requires an executive decision",
    ("running", "failed"): "Worker raised while executing a step",
}

TERMINAL_STATES = {"completed", "escalated", "failed"}

TEMPLATE_VAR = re.compile(r"\{\{(\w+)\}\}")


class IllegalTransitionError(Exception):
    """Raised when attempting an illegal state transition."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal transition: {from_state} → {to_state}. "
            f"See LEGAL_TRANSITIONS for valid transitions."
        )


class WorkflowNotFoundError(KeyError):
    """Raised when starting a workflow id that was never registered."""


def render_template(template: str, context: dict[str, Any]) -> str:
    """Substitute {{var}} tokens from `context`; unknown tokens stay verbatim."""

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        value = context.get(key)
        return match.group(0) if value is None else str(value)

    return TEMPLATE_VAR.sub(_sub, template)


def _last_executed(step_results: list[StepResult]) -> StepResult | None:
    for result in reversed(step_results):
        if result.executed:
            return result
    return None


def evaluate_condition(step: WorkflowStepDef, context: dict[str, Any], step_results: list[StepResult]) -> bool:
    """True when the step should run.

    "Previous step" is the last executed (non-skipped) step; with none, both
    built-in conditions are false.
    """
    condition = step.condition
    if condition is None:
        return True
    if callable(condition):
        return bool(condition(context, step_results))

    previous = _last_executed(step_results)
    if previous is None:
        return False
    if condition == "previous_step_succeeded":
        return previous.succeeded
    if condition == "previous_step_failed":
        return not previous.succeeded
    return True


class WorkflowEngine:
    """Runs registered workflow definitions against the shared worker pool.

    Usage:
        engine = WorkflowEngine(registry, events=hub)
        engine.register(WorkflowDefinition(
            id="vendor-evaluation",
            name="Vendor Evaluation",
            steps=[
                WorkflowStepDef(name="Assess", role="coo", task_template="Assess {{vendorName}}"),
                WorkflowStepDef(name="Legal", role="clo", condition="previous_step_succeeded"),
            ],
        ))
        instance = await engine.start("vendor-evaluation", {"vendorName": "Acme"})
    """

    def __init__(
        self,
        registry: WorkerRegistry,
        *,
        events: EventHub | None = None,
        escalation_engine: EscalationEngine | None = None,
        decision_log: DecisionLog | None = None,
        orchestrator: TaskOrchestrator | None = None,
    ) -> None:
        self.registry = registry
        self.events = events if events is not None else EventHub()
        self.escalation_engine = escalation_engine
        self.decision_log = decision_log
        self.orchestrator = orchestrator
        self._definitions: dict[str, WorkflowDefinition] = {}
        self._instances: dict[str, WorkflowInstance] = {}

    # --- definitions ---

    def register(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        if definition.id in self._definitions:
            logger.warning("Replacing workflow definition: %s", definition.id)
        self._definitions[definition.id] = definition
        logger.info("Registered workflow: %s (%d steps)", definition.name, len(definition.steps))
        return definition

    def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        return self._definitions.get(definition_id)

    def list_definitions(self) -> list[WorkflowDefinition]:
        return list(self._definitions.values())

    # --- instances ---

    def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        return self._instances.get(instance_id)

    def list_instances(self, status: str | None = None) -> list[WorkflowInstance]:
        return [i for i in self._instances.values() if status is None or i.status == status]

    def transition(self, instance: WorkflowInstance, to_state: str) -> None:
        """Transition a workflow to a new state with guard enforcement.

        Raises:
            IllegalTransitionError: If the transition is not legal.
        """
        from_state = instance.status
        if from_state in TERMINAL_STATES or (from_state, to_state) not in LEGAL_TRANSITIONS:
            raise IllegalTransitionError(from_state, to_state)
        instance.status = to_state
        instance.completed_at = datetime.now(timezone.utc)

    async def start(self, definition_id: str, initial_context: dict[str, Any] | None = None) -> WorkflowInstance:
        """Create an instance and run it until it completes, escalates or fails.

        Raises:
            WorkflowNotFoundError: If `definition_id` is not registered.
        """
        definition = self._definitions.get(definition_id)
        if definition is None:
            raise WorkflowNotFoundError(f"Workflow not found: {definition_id}")

        instance = WorkflowInstance(definition_id=definition_id, context=dict(initial_context or {}))
        self._instances[instance.id] = instance
        self.events.publish("workflow.started", workflow_id=instance.id, definition_id=definition_id)
        logger.info("Starting workflow %s (%s)", definition.name, instance.id)

        await self._execute(definition, instance)
        return instance

    async def _execute(self, definition: WorkflowDefinition, instance: WorkflowInstance) -> None:
        total = len(definition.steps)
        for index, step in enumerate(definition.steps):
            instance.current_step = index
            logger.debug("Workflow %s step %d/%d: %s", instance.id, index + 1, total, step.name)

            try:
                should_run = evaluate_condition(step, instance.context, instance.step_results)
            except Exception as e:
                self._fail(instance, index, step, f"Condition error: {type(e).__name__}: {e}")
                return
            if not should_run:
                instance.step_results.append(StepResult(
                    index=index, step=step.name, role=step.role, status="skipped",
                    reason="Condition not met",
                ))
                self.events.publish(
                    "workflow.step_skipped", workflow_id=instance.id, role=step.role, step=step.name,
                )
                continue

            worker = self.registry.get(step.role)
            if worker is None:
                error = f"Worker not found: {step.role}"
                logger.warning("Workflow %s: %s", instance.id, error)
                instance.step_results.append(StepResult(
                    index=index, step=step.name, role=step.role, status="error", error=error,
                ))
                self.events.publish(
                    "workflow.step_error", workflow_id=instance.id, role=step.role,
                    step=step.name, error=error,
                )
                continue

            task = self._build_task(definition, instance, step, index)
            try:
                result = await worker.execute(task)
            except Exception as e:
                self._fail(instance, index, step, f"{type(e).__name__}: {e}")
                return

            reason = self._escalation_reason(task, result, step.role)
            self._log_decision(definition, instance, step, task, result, reason)

            if reason is not None:
                instance.step_results.append(StepResult(
                    index=index, step=step.name, role=step.role, status="escalated",
                    result=result, reason=reason,
                ))
                instance.escalation_reason = reason
                self.transition(instance, "escalated")
                if self.orchestrator is not None:
                    self.orchestrator.escalate(
                        task, step.role, reason, result.recommendation or result.action,
                    )
                self.events.publish(
                    "workflow.escalated", workflow_id=instance.id, role=step.role,
                    step=step.name, reason=reason,
                )
                logger.info("Workflow %s escalated at step %s", instance.id, step.name)
                return

            instance.step_results.append(StepResult(
                index=index, step=step.name, role=step.role, status="completed", result=result,
            ))
            instance.context[f"step_{index}_output"] = result
            instance.context["last_output"] = result
            self.events.publish(
                "workflow.step_completed", workflow_id=instance.id, role=step.role, step=step.name,
            )

        self.transition(instance, "completed")
        self.events.publish("workflow.completed", workflow_id=instance.id, definition_id=definition.id)
        logger.info("Completed workflow %s (%s)", definition.name, instance.id)

    def _fail(self, instance: WorkflowInstance, index: int, step: WorkflowStepDef, error: str) -> None:
        logger.error("Workflow %s failed at step %s: %s", instance.id, step.name, error)
        instance.step_results.append(StepResult(
            index=index, step=step.name, role=step.role, status="failed", error=error,
        ))
        instance.error = error
        self.transition(instance, "failed")
        self.events.publish(
            "workflow.failed", workflow_id=instance.id, role=step.role,
            step=step.name, error=error,
        )

    def _build_task(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstance,
        step: WorkflowStepDef,
        index: int,
    ) -> Task:
        previous = _last_executed(instance.step_results)
        previous_output = ""
        if previous is not None and previous.result is not None:
            previous_output = f"{previous.step} ({previous.role}): {previous.result.decision or previous.result.action}"
        return Task(
            id=f"{instance.id}-step-{index}",
            description=render_template(step.task_template or step.name, instance.context),
            assigned_role=step.role,
            priority=step.priority,
            metadata={
                "workflow_id": definition.id,
                "workflow_instance_id": instance.id,
                "step": step.name,
                "previous_output": previous_output,
            },
        )

    def _escalation_reason(self, task: Task, result: TaskResult, role: str) -> str | None:
        if result.escalate:
            return result.escalate_reason or "Worker requested an executive decision"
        if self.escalation_engine is not None and settings.auto_escalation_enabled:
            verdict = self.escalation_engine.evaluate(task, result, role)
            if verdict.should_escalate:
                return verdict.summary
        return None

    def _log_decision(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstance,
        step: WorkflowStepDef,
        task: Task,
        result: TaskResult,
        reason: str | None,
    ) -> None:
        if self.decision_log is None:
            return
        self.decision_log.log(DecisionEntry(
            task_id=task.id,
            role=step.role,
            decision=result.decision,
            action=result.action,
            escalated=reason is not None,
            escalate_reason=reason or "",
            handoff_to=result.handoff.target_role if result.handoff else None,
            workflow_id=definition.id,
            workflow_instance_id=instance.id,
            step=step.name,
        ))
