"""Tests for EscalationEngine — rule families, aggregation, priority resolution."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

import pytest

from app.agents.registry import load_all_specs
from app.engines.escalation import (
    EscalationEngine,
    EscalationRule,
    EscalationThresholds,
    RoleRule,
    role_rules_from_specs,
)
from app.models.task import Task, TaskResult


def _task(description: str, role: str = "ops", priority: str = "MEDIUM", notes: str = "") -> Task:
    metadata = {"notes": notes} if notes else {}
    return Task(description=description, assigned_role=role, priority=priority, metadata=metadata)


def _result(**kwargs) -> TaskResult:
    defaults = {"analysis": "Reviewed", "action": "Proceed", "decision": "Approved"}
    defaults.update(kwargs)
    return TaskResult(**defaults)


# === Financial Thresholds ===


def test_invoice_over_devops_ceiling_escalates():
    engine = EscalationEngine()
    engine.update_thresholds(role_rules={"devops": {"escalate_above": 5000}})
    verdict = engine.evaluate(_task("Pay the $15,000 invoice", role="devops"), _result(), "devops")
    assert verdict.should_escalate
    assert verdict.reasons == ["Financial amount $15,000 exceeds DEVOPS authority ($5,000)"]
    print("  PASS: invoice_over_devops_ceiling_escalates")


def test_role_ceiling_replaces_global_thresholds():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Approve $20,000 for the audit tooling", role="cfo"), None, "cfo")
    assert not verdict.should_escalate
    print("  PASS: role_ceiling_replaces_global_thresholds")


def test_amount_equal_to_ceiling_does_not_escalate():
    engine = EscalationEngine()
    assert not engine.evaluate(_task("Approve $25,000 spend"), None, "cfo").should_escalate
    assert engine.evaluate(_task("Approve $25,001 spend"), None, "cfo").should_escalate
    print("  PASS: amount_equal_to_ceiling_does_not_escalate")


def test_single_expense_threshold_without_role_rule():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Buy $12,000 of laptops"), None, "ops")
    assert verdict.reasons == [
        "Financial amount $12,000 exceeds single expense threshold ($10,000)"
    ]
    assert not engine.evaluate(_task("Buy $9,000 of laptops"), None, "ops").should_escalate
    print("  PASS: single_expense_threshold_without_role_rule")


def test_contract_threshold_applies_when_contract_mentioned():
    engine = EscalationEngine()
    over = engine.evaluate(_task("Sign the support contract worth $60,000"), None, "ops")
    assert over.reasons == ["Contract value $60,000 exceeds threshold ($50,000)"]

    under = engine.evaluate(_task("Sign the support contract worth $40,000"), None, "ops")
    assert not under.should_escalate
    print("  PASS: contract_threshold_applies_when_contract_mentioned")


def test_first_amount_over_threshold_is_cited():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Choose between $2,000, $14,000 and $30,000 plans"), None, "ops")
    assert len(verdict.reasons) == 1
    assert "$14,000" in verdict.reasons[0]
    print("  PASS: first_amount_over_threshold_is_cited")


# === Keyword Families ===


def test_explicit_marker():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("This requires CEO approval before launch"), None, "ops")
    assert verdict.reasons == ['Task explicitly marked for executive approval: "ceo approval"']
    print("  PASS: explicit_marker")


def test_risk_keyword_found_in_result_text():
    engine = EscalationEngine()
    result = _result(analysis="The customer is threatening a lawsuit over the outage")
    verdict = engine.evaluate(_task("Reply to the customer"), result, "ops")
    assert verdict.reasons == ['Risk indicator detected: "lawsuit"']
    print("  PASS: risk_keyword_found_in_result_text")


def test_strategic_keyword_found_in_notes():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Draft the Q4 plan", notes="Includes a new market entry"), None, "ops")
    assert verdict.reasons == ['Strategic decision required: "new market"']
    print("  PASS: strategic_keyword_found_in_notes")


def test_role_mandatory_phrase():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Prepare the contract signature pages"), None, "clo")
    assert verdict.reasons == ['CLO role requires executive approval for: "contract signature"']
    assert not engine.evaluate(_task("Prepare the contract signature pages"), None, "coo").should_escalate
    print("  PASS: role_mandatory_phrase")


def test_all_rule_families_aggregate():
    engine = EscalationEngine()
    task = _task("Executive approval needed for the $80,000 acquisition of a partnership firm")
    verdict = engine.evaluate(task, None, "ops")
    assert len(verdict.reasons) == 4
    assert verdict.reasons[0].startswith("Task explicitly marked")
    assert verdict.reasons[1].startswith("Financial amount $80,000")
    assert verdict.reasons[2] == 'Risk indicator detected: "acquisition"'
    assert verdict.reasons[3] == 'Strategic decision required: "partnership"'
    assert verdict.summary == "; ".join(verdict.reasons)
    print("  PASS: all_rule_families_aggregate")


def test_benign_task_does_not_escalate():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Update the onboarding checklist"), _result(), "ops")
    assert not verdict.should_escalate
    assert verdict.reasons == []
    print("  PASS: benign_task_does_not_escalate")


# === Custom Rules ===


def test_custom_rule_added_to_reasons():
    engine = EscalationEngine()
    engine.add_rule(EscalationRule(
        name="weekend_deploy",
        condition=lambda task, result, role: "weekend deploy" in task.description.lower(),
        reason="Weekend deploys need sign-off",
    ))
    verdict = engine.evaluate(_task("Schedule a weekend deploy"), None, "devops")
    assert verdict.reasons == ["Weekend deploys need sign-off"]
    print("  PASS: custom_rule_added_to_reasons")


def test_custom_rule_exception_propagates():
    def broken(task, result, role):
        raise RuntimeError("rule bug")

    engine = EscalationEngine(custom_rules=[EscalationRule(name="broken", condition=broken)])
    with pytest.raises(RuntimeError, match="rule bug"):
        engine.evaluate(_task("anything"), None, "ops")
    print("  PASS: custom_rule_exception_propagates")


# === Priority Resolution ===


@pytest.mark.parametrize("tier", ["LOW", "MEDIUM", "HIGH", "CRITICAL"])
@pytest.mark.parametrize(
    "description",
    ["Buy $12,000 of laptops", "Possible data breach in billing", "Weigh a product pivot"],
)
def test_priority_never_below_task_tier(tier, description):
    rank = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}
    verdict = EscalationEngine().evaluate(_task(description, priority=tier), None, "ops")
    assert verdict.should_escalate
    assert rank[verdict.priority] >= rank[tier]


def test_critical_indicator_raises_priority():
    engine = EscalationEngine()
    verdict = engine.evaluate(_task("Possible data breach in billing", priority="LOW"), None, "ops")
    assert verdict.priority == "CRITICAL"
    print("  PASS: critical_indicator_raises_priority")


def test_resolve_priority_rules():
    engine = EscalationEngine()
    assert engine.resolve_priority(["Something"], "LOW") == "MEDIUM"
    assert engine.resolve_priority(["Something"], "HIGH") == "HIGH"
    assert engine.resolve_priority(["Something"], "CRITICAL") == "CRITICAL"
    assert engine.resolve_priority(["Legal review required"], "MEDIUM") == "CRITICAL"
    assert engine.resolve_priority([], "MEDIUM") == "MEDIUM"
    print("  PASS: resolve_priority_rules")


# === Configuration ===


def test_update_thresholds_merges_role_rules():
    engine = EscalationEngine()
    updated = engine.update_thresholds(single_expense=500, role_rules={"qa": RoleRule(escalate_above=3000)})
    assert updated.single_expense == 500
    assert engine.thresholds.role_rules["qa"].escalate_above == 3000
    assert engine.thresholds.role_rules["cfo"].escalate_above == 25000
    assert engine.evaluate(_task("Order $600 of test devices"), None, "ops").should_escalate
    print("  PASS: update_thresholds_merges_role_rules")


def test_thresholds_default_from_settings():
    thresholds = EscalationThresholds()
    assert thresholds.single_expense == 10000
    assert thresholds.contract_value == 50000
    print("  PASS: thresholds_default_from_settings")


def test_role_rules_from_bundled_specs():
    rules = role_rules_from_specs(load_all_specs())
    assert rules["devops"].escalate_above == 5000
    assert rules["qa"].escalate_above == 3000
    assert "contract signature" in rules["clo"].always_escalate
    assert "ceo" not in rules
    print("  PASS: role_rules_from_bundled_specs")
