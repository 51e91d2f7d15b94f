"""Tests for the task and workflow CLIs."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

import pytest

from app.config import settings
from app.skills.task_cli import load_task_file, run_tasks
from app.skills.workflow_cli import parse_vars, run_workflow
from app.workflows.engine import WorkflowNotFoundError

TASK_FILE = """\
- id: budget-q3
  description: Approve the Q3 marketing budget of $40,000
  assigned_role: cfo
  priority: HIGH
- id: announce
  description: Draft the launch announcement
  assigned_role: cmo
  blocked_by: [budget-q3]
  notes: Wait for the budget
"""


@pytest.fixture
def offline(monkeypatch):
    """Force the acknowledging responder."""
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    monkeypatch.setattr(settings, "persistence_enabled", False)


# === workflow_cli ===


def test_parse_vars():
    assert parse_vars(["featureName=Dark mode", "team=web=ui"]) == {
        "featureName": "Dark mode",
        "team": "web=ui",
    }
    assert parse_vars(None) == {}
    with pytest.raises(ValueError):
        parse_vars(["novalue"])
    with pytest.raises(ValueError):
        parse_vars(["=x"])
    print("  PASS: parse_vars")


def test_run_workflow(offline):
    result = asyncio.run(run_workflow("new-feature", {"featureName": "Dark mode"}))
    assert result["status"] == "completed"
    assert len(result["step_results"]) == 5
    print("  PASS: run_workflow")


def test_run_unknown_workflow(offline):
    with pytest.raises(WorkflowNotFoundError):
        asyncio.run(run_workflow("nope", {}))
    print("  PASS: run_unknown_workflow")


# === task_cli ===


def test_load_task_file(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text(TASK_FILE)
    tasks = load_task_file(path)
    assert [t.id for t in tasks] == ["budget-q3", "announce"]
    assert tasks[0].priority == "HIGH"
    assert tasks[1].blocked_by == ["budget-q3"]
    assert tasks[1].notes == "Wait for the budget"
    print("  PASS: load_task_file")


def test_load_task_file_rejects_mapping(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text("description: not a list\n")
    with pytest.raises(ValueError):
        load_task_file(path)
    print("  PASS: load_task_file_rejects_mapping")


def test_run_tasks_blocks_on_escalation(tmp_path, offline):
    path = tmp_path / "tasks.yaml"
    path.write_text(TASK_FILE)
    summary = asyncio.run(run_tasks(load_task_file(path)))

    assert summary["completed"] == 1
    assert summary["escalated"] == 1
    assert summary["by_role"]["cfo"]["escalated"] == 1
    assert summary["pending_decisions"][0]["task_id"] == "budget-q3"
    assert summary["still_queued"] == ["announce"]
    print("  PASS: run_tasks_blocks_on_escalation")
