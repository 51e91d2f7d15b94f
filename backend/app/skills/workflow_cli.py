"""CLI entry point for running a built-in workflow.

Usage:
    cd backend && python -m app.skills.workflow_cli --workflow new-feature --var featureName="Dark mode"
    cd backend && python -m app.skills.workflow_cli --list

Runs against the configured responder (the acknowledging responder when no
API key is set) and prints the finished instance as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from app.runtime import build_runtime
from app.workflows.engine import WorkflowNotFoundError

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_vars(pairs: list[str] | None) -> dict[str, str]:
    """["k=v", ...] -> {"k": "v"}. Raises ValueError on a pair without '='."""
    context: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got: {pair!r}")
        context[key.strip()] = value
    return context


async def run_workflow(workflow_id: str, context: dict[str, str]) -> dict:
    """Run one workflow to completion, escalation or failure.

    Returns:
        The instance as a JSON-compatible dict.
    """
    runtime = build_runtime()
    instance = await runtime.workflows.start(workflow_id, context)
    return instance.model_dump(mode="json")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a built-in workflow")
    parser.add_argument("--workflow", "-w", help="Workflow id (e.g. new-feature)")
    parser.add_argument("--var", "-v", action="append", help="Context variable key=value (repeatable)")
    parser.add_argument("--list", action="store_true", help="List workflow ids and exit")
    parser.add_argument("--output", "-o", help="Output JSON file path")
    args = parser.parse_args()

    if args.list:
        for definition in build_runtime().workflows.list_definitions():
            print(f"{definition.id}\t{definition.name}")
        return
    if not args.workflow:
        parser.error("--workflow is required unless --list is given")

    try:
        context = parse_vars(args.var)
    except ValueError as e:
        parser.error(str(e))

    logger.info("Starting workflow %s with %d variable(s)", args.workflow, len(context))
    try:
        result = asyncio.run(run_workflow(args.workflow, context))
    except WorkflowNotFoundError as e:
        parser.error(str(e))

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result, f, indent=2, default=str)
        logger.info("Results written to %s", args.output)
    else:
        print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
