"""Escalation rule engine — decides when a result needs executive sign-off."""

from app.engines.escalation.engine import (
    EscalationEngine,
    EscalationRule,
    EscalationThresholds,
    RoleRule,
    role_rules_from_specs,
)
from app.models.escalation import EscalationVerdict

__all__ = [
    "EscalationEngine",
    "EscalationRule",
    "EscalationThresholds",
    "EscalationVerdict",
    "RoleRule",
    "role_rules_from_specs",
]
