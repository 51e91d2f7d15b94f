"""CLI entry point for running a batch of tasks through the orchestrator.

Usage:
    cd backend && python -m app.skills.task_cli --tasks tasks.yaml

Task file format (YAML list):
    - id: budget-q3
      description: Approve the Q3 marketing budget of $40,000
      assigned_role: cfo
      priority: HIGH
    - description: Draft the launch announcement
      assigned_role: cmo
      blocked_by: [budget-q3]

Ticks until no more work can be dispatched, then prints the daily summary.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

import yaml

from app.models.task import Task
from app.runtime import build_runtime

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def load_task_file(path: str | Path) -> list[Task]:
    """Parse a YAML list of task mappings.

    Raises:
        ValueError: If the file is not a list of mappings.
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path}: expected a list of task mappings")
    tasks = []
    for item in data:
        item = dict(item)
        notes = item.pop("notes", None)
        if notes:
            item.setdefault("metadata", {})["notes"] = notes
        tasks.append(Task(**item))
    return tasks


async def run_tasks(tasks: list[Task], max_ticks: int = 100) -> dict:
    """Enqueue tasks, tick until idle, return the summary as a dict."""
    runtime = build_runtime()
    orchestrator = runtime.orchestrator
    for task in tasks:
        orchestrator.enqueue(task)
    ticks = await orchestrator.run_until_idle(max_ticks=max_ticks)
    logger.info("Finished after %d productive tick(s)", ticks)

    summary = orchestrator.get_daily_summary().model_dump(mode="json")
    summary["still_queued"] = [t.id for t in orchestrator.queue]
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Run tasks through the orchestrator")
    parser.add_argument("--tasks", "-t", required=True, help="YAML task file")
    parser.add_argument("--max-ticks", type=int, default=100, help="Tick limit")
    parser.add_argument("--output", "-o", help="Output JSON file path")
    args = parser.parse_args()

    try:
        tasks = load_task_file(args.tasks)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    logger.info("Loaded %d task(s) from %s", len(tasks), args.tasks)
    result = asyncio.run(run_tasks(tasks, args.max_ticks))

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result, f, indent=2, default=str)
        logger.info("Results written to %s", args.output)
    else:
        print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
