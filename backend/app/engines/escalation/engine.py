"""Escalation Engine — decides when a task outcome needs human sign-off.

All rule families run on every evaluation and the verdict aggregates every
trigger (OR semantics, not first-match):

  1. Explicit markers      ("requires executive approval", "ceo approval", ...)
  2. Financial thresholds  (role ceiling, else contract / single-expense ceiling)
  3. Risk keywords         (legal liability, data breach, lawsuit, ...)
  4. Strategic keywords    (new market, product pivot, fundraising, ...)
  5. Role mandatory phrases
  6. Caller-supplied custom rules

Priority only ever moves up from the task's declared tier.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from pydantic import BaseModel, Field

from app.config import PriorityTier, settings
from app.engines.escalation.extraction import (
    extract_amounts,
    find_phrase,
    format_amount,
    mentions_contract,
)
from app.models.agent import RoleSpec
from app.models.escalation import EscalationVerdict
from app.models.task import Task, TaskResult

logger = logging.getLogger(__name__)

PRIORITY_RANK: dict[str, int] = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}

DEFAULT_EXPLICIT_MARKERS = [
    "requires executive approval",
    "executive approval",
    "executive decision",
    "ceo approval",
    "ceo decision",
    "requires ceo",
    "escalate to ceo",
    "board approval",
]

DEFAULT_RISK_KEYWORDS = [
    "legal liability",
    "compliance violation",
    "security incident",
    "data breach",
    "regulatory",
    "lawsuit",
    "termination",
    "acquisition",
    "merger",
]

DEFAULT_STRATEGIC_KEYWORDS = [
    "strategic direction",
    "company policy",
    "organizational change",
    "new market",
    "product pivot",
    "partnership",
    "investment",
    "fundraising",
]

DEFAULT_CRITICAL_INDICATORS = [
    "security",
    "breach",
    "legal",
    "compliance",
    "liability",
    "urgent",
]


class RoleRule(BaseModel):
    """Authority limits for one role."""

    escalate_above: float | None = None
    always_escalate: list[str] = Field(default_factory=list)


def _default_role_rules() -> dict[str, RoleRule]:
    return {
        "cfo": RoleRule(escalate_above=25_000, always_escalate=["major investment", "audit finding"]),
        "cto": RoleRule(
            escalate_above=15_000,
            always_escalate=["architecture change", "vendor switch", "security vulnerability"],
        ),
        "clo": RoleRule(always_escalate=["contract signature", "legal settlement", "regulatory filing"]),
        "chro": RoleRule(always_escalate=["executive hiring", "termination", "compensation change"]),
        "ciso": RoleRule(
            always_escalate=["security breach", "incident response", "vulnerability disclosure"],
        ),
    }


class EscalationThresholds(BaseModel):
    """Configurable thresholds and keyword sets."""

    single_expense: float = Field(default_factory=lambda: settings.single_expense_threshold)
    contract_value: float = Field(default_factory=lambda: settings.contract_value_threshold)
    explicit_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_EXPLICIT_MARKERS))
    risk_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_RISK_KEYWORDS))
    strategic_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_STRATEGIC_KEYWORDS))
    critical_indicators: list[str] = Field(default_factory=lambda: list(DEFAULT_CRITICAL_INDICATORS))
    role_rules: dict[str, RoleRule] = Field(default_factory=_default_role_rules)


@dataclass
class EscalationRule:
    """A caller-supplied predicate. `condition(task, result, role) -> bool`."""

    name: str
    condition: Callable[[Task, TaskResult | None, str], bool]
    reason: str = "Custom escalation rule triggered"


def role_rules_from_specs(specs: Iterable[RoleSpec]) -> dict[str, RoleRule]:
    """Build role rules from role specs (only roles that declare limits)."""
    rules: dict[str, RoleRule] = {}
    for spec in specs:
        if spec.escalate_above is None and not spec.always_escalate:
            continue
        rules[spec.id] = RoleRule(
            escalate_above=spec.escalate_above,
            always_escalate=list(spec.always_escalate),
        )
    return rules


def _content(task: Task, result: TaskResult | None) -> str:
    parts = [task.description, task.notes]
    if result is not None:
        parts.append(result.text)
    return " ".join(p for p in parts if p)


class EscalationEngine:
    """Evaluates a (task, result, role) triple against the rule set.

    Usage:
        engine = EscalationEngine()
        engine.add_rule(EscalationRule(
            name="weekend_deploy",
            condition=lambda task, result, role: "weekend deploy" in task.description.lower(),
            reason="Weekend deploys need sign-off",
        ))
        verdict = engine.evaluate(task, result, role="cto")
        if verdict.should_escalate:
            orchestrator.escalate(task, "cto", verdict.summary, result.action, verdict.priority)
    """

    def __init__(
        self,
        thresholds: EscalationThresholds | None = None,
        custom_rules: list[EscalationRule] | None = None,
    ) -> None:
        self._thresholds = thresholds or EscalationThresholds()
        self.custom_rules: list[EscalationRule] = list(custom_rules or [])

    @property
    def thresholds(self) -> EscalationThresholds:
        return self._thresholds

    def evaluate(self, task: Task, result: TaskResult | None, role: str) -> EscalationVerdict:
        """Run every rule family and aggregate the triggers.

        Args:
            task: The task (description and notes are inspected).
            result: Worker result, if any (analysis/action/decision inspected).
            role: Role that handled the task.

        Returns:
            EscalationVerdict with one reason per triggering rule.
        """
        content = _content(task, result)
        reasons: list[str] = []

        for check in (
            self._check_explicit_markers,
            self._check_financial_thresholds,
            self._check_risk_keywords,
            self._check_strategic_keywords,
            self._check_role_rules,
        ):
            reason = check(content, role)
            if reason:
                reasons.append(reason)

        reasons.extend(self._check_custom_rules(task, result, role))

        verdict = EscalationVerdict(
            should_escalate=bool(reasons),
            reasons=reasons,
            priority=self.resolve_priority(reasons, task.priority),
        )
        if verdict.should_escalate:
            logger.info(
                "Escalation verdict for %s (%s): %s [%s]",
                task.id, role, verdict.summary, verdict.priority,
            )
        return verdict

    # --- rule families ---

    def _check_explicit_markers(self, content: str, role: str) -> str | None:
        marker = find_phrase(content, self._thresholds.explicit_markers)
        if marker:
            return f'Task explicitly marked for executive approval: "{marker}"'
        return None

    def _check_financial_thresholds(self, content: str, role: str) -> str | None:
        amounts = extract_amounts(content)
        if not amounts:
            return None

        role_rule = self._thresholds.role_rules.get(role)
        role_ceiling = role_rule.escalate_above if role_rule else None
        is_contract = mentions_contract(content)

        for amount in amounts:
            if role_ceiling is not None:
                if amount > role_ceiling:
                    return (
                        f"Financial amount {format_amount(amount)} exceeds "
                        f"{role.upper()} authority ({format_amount(role_ceiling)})"
                    )
                continue
            if is_contract:
                if amount > self._thresholds.contract_value:
                    return (
                        f"Contract value {format_amount(amount)} exceeds threshold "
                        f"({format_amount(self._thresholds.contract_value)})"
                    )
                continue
            if amount > self._thresholds.single_expense:
                return (
                    f"Financial amount {format_amount(amount)} exceeds single expense "
                    f"threshold ({format_amount(self._thresholds.single_expense)})"
                )
        return None

    def _check_risk_keywords(self, content: str, role: str) -> str | None:
        keyword = find_phrase(content, self._thresholds.risk_keywords)
        if keyword:
            return f'Risk indicator detected: "{keyword}"'
        return None

    def _check_strategic_keywords(self, content: str, role: str) -> str | None:
        keyword = find_phrase(content, self._thresholds.strategic_keywords)
        if keyword:
            return f'Strategic decision required: "{keyword}"'
        return None

    def _check_role_rules(self, content: str, role: str) -> str | None:
        role_rule = self._thresholds.role_rules.get(role)
        if role_rule is None or not role_rule.always_escalate:
            return None
        trigger = find_phrase(content, role_rule.always_escalate)
        if trigger:
            return f'{role.upper()} role requires executive approval for: "{trigger}"'
        return None

    def _check_custom_rules(self, task: Task, result: TaskResult | None, role: str) -> list[str]:
        return [rule.reason for rule in self.custom_rules if rule.condition(task, result, role)]

    # --- priority ---

    def resolve_priority(self, reasons: list[str], task_priority: PriorityTier) -> PriorityTier:
        """MEDIUM, raised to CRITICAL on critical indicators, never below the task tier."""
        priority: PriorityTier = "MEDIUM"
        reason_text = " ".join(reasons).lower()

        if reasons and find_phrase(reason_text, self._thresholds.critical_indicators):
            priority = "CRITICAL"

        if task_priority == "CRITICAL":
            priority = "CRITICAL"
        elif task_priority == "HIGH" and priority == "MEDIUM":
            priority = "HIGH"

        return priority

    # --- configuration ---

    def add_rule(self, rule: EscalationRule) -> None:
        self.custom_rules.append(rule)

    def update_thresholds(self, **changes) -> EscalationThresholds:
        """Replace threshold fields; `role_rules` entries are merged by role."""
        role_rules = changes.pop("role_rules", None)
        updated = self._thresholds.model_copy(update=changes)
        if role_rules:
            merged = dict(updated.role_rules)
            for role, rule in role_rules.items():
                merged[role] = rule if isinstance(rule, RoleRule) else RoleRule(**rule)
            updated = updated.model_copy(update={"role_rules": merged})
        self._thresholds = updated
        return updated
