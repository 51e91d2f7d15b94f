"""Tests for priority scoring — tier weights, due-date boosts, unblocked boost."""

import os
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

from app.models.task import Task
from app.orchestration.priority import due_boost, score

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _task(priority="MEDIUM", due=None, blocked_by=None) -> Task:
    return Task(
        description="Review quarterly numbers",
        assigned_role="cfo",
        priority=priority,
        due_date=due,
        blocked_by=blocked_by or [],
    )


# === Tier Weights ===


def test_tier_weights_without_due_date():
    assert score(_task("CRITICAL"), now=NOW) == 100
    assert score(_task("HIGH"), now=NOW) == 75
    assert score(_task("MEDIUM"), now=NOW) == 50
    assert score(_task("LOW"), now=NOW) == 25
    print("  PASS: tier_weights_without_due_date")


def test_critical_without_due_date_ignores_completed_set():
    task = _task("CRITICAL")
    assert score(task) == 100
    assert score(task, completed_ids={"a", "b"}) == 100
    print("  PASS: critical_without_due_date_ignores_completed_set")


# === Due Date Boosts ===


def test_overdue_medium_task_scores_100():
    task = _task("MEDIUM", due=NOW - timedelta(days=1))
    assert score(task, now=NOW) == 100
    print("  PASS: overdue_medium_task_scores_100")


def test_due_boost_windows():
    assert due_boost(None, NOW) == 0
    assert due_boost(NOW - timedelta(minutes=1), NOW) == 50
    assert due_boost(NOW + timedelta(hours=23), NOW) == 30
    assert due_boost(NOW + timedelta(hours=48), NOW) == 15
    assert due_boost(NOW + timedelta(hours=72), NOW) == 0
    assert due_boost(NOW + timedelta(days=10), NOW) == 0
    print("  PASS: due_boost_windows")


def test_naive_due_date_treated_as_utc():
    naive = (NOW + timedelta(hours=2)).replace(tzinfo=None)
    assert due_boost(naive, NOW) == 30
    print("  PASS: naive_due_date_treated_as_utc")


# === Unblocked Boost ===


def test_unblocked_boost_when_all_prerequisites_done():
    task = _task("HIGH", blocked_by=["a", "b"])
    assert score(task, completed_ids={"a", "b"}, now=NOW) == 85
    print("  PASS: unblocked_boost_when_all_prerequisites_done")


def test_no_unblocked_boost_when_partially_done():
    task = _task("HIGH", blocked_by=["a", "b"])
    assert score(task, completed_ids={"a"}, now=NOW) == 75
    print("  PASS: no_unblocked_boost_when_partially_done")


def test_no_unblocked_boost_without_prerequisites():
    task = _task("LOW")
    assert score(task, completed_ids={"a"}, now=NOW) == 25
    print("  PASS: no_unblocked_boost_without_prerequisites")


def test_boosts_stack():
    task = _task("CRITICAL", due=NOW + timedelta(hours=5), blocked_by=["a"])
    assert score(task, completed_ids={"a"}, now=NOW) == 140
    print("  PASS: boosts_stack")


if __name__ == "__main__":
    print("Testing priority scoring:")
    test_tier_weights_without_due_date()
    test_critical_without_due_date_ignores_completed_set()
    test_overdue_medium_task_scores_100()
    test_due_boost_windows()
    test_naive_due_date_treated_as_utc()
    test_unblocked_boost_when_all_prerequisites_done()
    test_no_unblocked_boost_when_partially_done()
    test_no_unblocked_boost_without_prerequisites()
    test_boosts_stack()
    print("\nAll priority tests passed!")
