"""Tests for the built-in business workflows run through a full runtime."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

from app.llm.layer import AcknowledgeResponder
from app.llm.mock_layer import MockResponder
from app.runtime import build_runtime
from app.workflows.definitions import (
    DEFAULT_WORKFLOWS,
    SECURITY_INCIDENT,
    register_default_workflows,
)
from app.workflows.engine import WorkflowEngine, evaluate_condition


def test_register_default_workflows():
    from app.agents.registry import WorkerRegistry

    engine = WorkflowEngine(WorkerRegistry())
    registered = register_default_workflows(engine)
    assert [d.id for d in registered] == [
        "new-feature", "vendor-evaluation", "new-hire-onboarding", "security-incident",
    ]
    assert len(engine.list_definitions()) == 4
    print("  PASS: register_default_workflows")


def test_follow_up_steps_require_previous_success():
    for definition in DEFAULT_WORKFLOWS:
        assert definition.steps[0].condition is None
        for step in definition.steps[1:]:
            assert step.condition == "previous_step_succeeded" or callable(step.condition)
    print("  PASS: follow_up_steps_require_previous_success")


def test_communication_step_only_for_customer_impact():
    step = SECURITY_INCIDENT.steps[3]
    assert step.role == "cmo"
    assert evaluate_condition(step, {"customerImpact": True}, [])
    assert not evaluate_condition(step, {"customerImpact": "yes"}, [])
    assert not evaluate_condition(step, {}, [])
    print("  PASS: communication_step_only_for_customer_impact")


def test_new_feature_completes_with_acknowledging_responder():
    runtime = build_runtime(responder=AcknowledgeResponder())
    instance = asyncio.run(runtime.workflows.start("new-feature", {"featureName": "Dark mode"}))

    assert instance.status == "completed"
    assert [r.role for r in instance.step_results] == ["cpo", "cto", "devops", "qa", "coo"]
    assert all(r.status == "completed" for r in instance.step_results)
    assert "Dark mode" in instance.step_results[0].result.analysis
    assert len(runtime.decision_log) == 5
    print("  PASS: new_feature_completes_with_acknowledging_responder")


def test_new_hire_onboarding_renders_all_variables():
    mock = MockResponder()
    runtime = build_runtime(responder=mock)
    instance = asyncio.run(runtime.workflows.start(
        "new-hire-onboarding", {"employeeName": "Sam Rivera", "role": "Backend Engineer"},
    ))
    assert instance.status == "completed"
    first_prompt = mock.calls_for("chro")[0]["prompt"]
    assert first_prompt.startswith("Complete HR onboarding checklist for: Sam Rivera - Backend Engineer")
    print("  PASS: new_hire_onboarding_renders_all_variables")


def test_vendor_evaluation_escalates_on_cfo_amount():
    mock = MockResponder({
        "cfo": (
            "ANALYSIS: Three-year license.\n"
            "ACTION: Negotiate a discount.\n"
            "DECISION: Spend $80,000 on the annual license.\n"
            "HANDOFF: None\n"
            "ESCALATE: NO"
        ),
    })
    runtime = build_runtime(responder=mock)
    instance = asyncio.run(runtime.workflows.start("vendor-evaluation", {"vendorName": "Acme"}))

    assert instance.status == "escalated"
    assert [r.role for r in instance.step_results] == ["coo", "cfo"]
    assert "CFO authority ($25,000)" in instance.escalation_reason
    assert mock.calls_for("ciso") == []
    assert len(runtime.orchestrator.pending_escalations()) == 1
    print("  PASS: vendor_evaluation_escalates_on_cfo_amount")


def test_security_incident_escalates_at_assessment():
    runtime = build_runtime(responder=AcknowledgeResponder())
    instance = asyncio.run(runtime.workflows.start(
        "security-incident", {"incidentDescription": "leaked API token", "customerImpact": True},
    ))
    assert instance.status == "escalated"
    assert len(instance.step_results) == 1
    assert 'Risk indicator detected: "security incident"' in instance.escalation_reason
    pending = runtime.orchestrator.pending_escalations()
    assert pending[0].priority == "CRITICAL"
    print("  PASS: security_incident_escalates_at_assessment")
