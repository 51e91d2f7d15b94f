"""Dependency resolution — is a task's prerequisite list satisfied?"""

from __future__ import annotations

from collections.abc import Collection, Iterable

from app.models.task import Task


def is_ready(task: Task, completed_ids: Collection[str]) -> bool:
    """True iff every prerequisite of `task` is in `completed_ids`.

    An empty prerequisite list is always ready. There is no partial
    readiness.
    """
    return all(dep in completed_ids for dep in task.blocked_by)


def unresolved(task: Task, completed_ids: Collection[str]) -> list[str]:
    """Prerequisite ids that have not completed yet, in declared order."""
    return [dep for dep in task.blocked_by if dep not in completed_ids]


def find_cycles(tasks: Iterable[Task]) -> list[list[str]]:
    """Find prerequisite cycles among `tasks`.

    Tasks on a cycle can never become ready. Each cycle is returned once,
    as the list of task ids along it. Prerequisites outside `tasks` are
    ignored.
    """
    graph = {t.id: [dep for dep in t.blocked_by] for t in tasks}
    visiting: set[str] = set()
    done: set[str] = set()
    seen_cycles: set[frozenset[str]] = set()
    cycles: list[list[str]] = []

    def visit(node: str, path: list[str]) -> None:
        visiting.add(node)
        path.append(node)
        for dep in graph.get(node, []):
            if dep not in graph:
                continue
            if dep in visiting:
                cycle = path[path.index(dep):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(list(cycle))
            elif dep not in done:
                visit(dep, path)
        path.pop()
        visiting.discard(node)
        done.add(node)

    for task_id in graph:
        if task_id not in done:
            visit(task_id, [])
    return cycles
