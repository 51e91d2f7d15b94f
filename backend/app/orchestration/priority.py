"""Priority scoring for the pending queue.

Base weight comes from the declared tier; due dates and freshly resolved
prerequisites add boosts. Higher scores are dispatched first.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timezone

from app.models.task import Task

PRIORITY_WEIGHTS: dict[str, int] = {
    "CRITICAL": 100,
    "HIGH": 75,
    "MEDIUM": 50,
    "LOW": 25,
}
DEFAULT_WEIGHT = 50

OVERDUE_BOOST = 50
DUE_WITHIN_DAY_BOOST = 30
DUE_WITHIN_THREE_DAYS_BOOST = 15
UNBLOCKED_BOOST = 10


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def due_boost(due_date: datetime | None, now: datetime | None = None) -> int:
    """Boost for time sensitivity; 0 when there is no due date."""
    if due_date is None:
        return 0
    now = _as_utc(now or datetime.now(timezone.utc))
    hours_until_due = (_as_utc(due_date) - now).total_seconds() / 3600

    if hours_until_due < 0:
        return OVERDUE_BOOST
    if hours_until_due < 24:
        return DUE_WITHIN_DAY_BOOST
    if hours_until_due < 72:
        return DUE_WITHIN_THREE_DAYS_BOOST
    return 0


def score(
    task: Task,
    completed_ids: Collection[str] | None = None,
    now: datetime | None = None,
) -> int:
    """Compute the urgency score of a task.

    The unblocked boost only applies to a task that declares prerequisites
    and has all of them in `completed_ids`.

    Args:
        task: Task to score.
        completed_ids: Ids of tasks that have completed.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Integer score.
    """
    value = PRIORITY_WEIGHTS.get(task.priority, DEFAULT_WEIGHT)
    value += due_boost(task.due_date, now)

    if task.blocked_by and completed_ids is not None:
        if all(dep in completed_ids for dep in task.blocked_by):
            value += UNBLOCKED_BOOST

    return value
