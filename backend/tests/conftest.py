"""Shared test fixtures for the orchestrator backend tests."""

import os
import sys

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")
os.environ.setdefault("PERSISTENCE_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DECISION_LOG_PATH", "")

from app.agents.registry import create_registry, load_all_specs
from app.audit.decision_log import DecisionLog
from app.events.hub import EventHub
from app.llm.mock_layer import MockResponder

ESCALATING_REPLY = (
    "ANALYSIS: The spend is above my authority.\n"
    "ACTION: Prepare the purchase order.\n"
    "DECISION: Hold pending approval.\n"
    "HANDOFF: None\n"
    "ESCALATE: YES: exceeds delegated budget"
)

HANDOFF_REPLY = (
    "ANALYSIS: Needs an architecture review.\n"
    "ACTION: Drafted requirements.\n"
    "DECISION: Proceed with the build.\n"
    "HANDOFF: Hand off to cto for the architecture review\n"
    "ESCALATE: NO"
)


@pytest.fixture
def mock_responder():
    """MockResponder that approves everything by default."""
    return MockResponder()


@pytest.fixture
def role_specs():
    return load_all_specs()


@pytest.fixture
def registry(mock_responder, role_specs):
    """A registry with one RoleWorker per bundled role spec."""
    return create_registry(mock_responder, role_specs)


@pytest.fixture
def event_hub():
    return EventHub(history_size=100)


@pytest.fixture
def decision_log():
    return DecisionLog(path="")


@pytest.fixture
def reset_api_dependencies():
    """Clear module-level API wiring after a test."""
    yield
    from app.api.health import set_runtime
    from app.api.v1.orchestration import set_dependencies as set_orchestration_deps
    from app.api.v1.workflows import set_dependencies as set_workflow_deps

    set_runtime(None)
    set_orchestration_deps(None, None)
    set_workflow_deps(None)
