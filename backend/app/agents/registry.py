"""Worker Registry — the shared role -> worker pool.

Design decisions:
- One worker per role; duplicate registration is rejected
- Registration order is preserved (the scheduling tick scans in this order)
- Owned by the runtime and passed to the orchestrator and workflow engine
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from app.models.agent import RoleSpec, WorkerStatus

if TYPE_CHECKING:
    from app.agents.base import BaseWorker
    from app.llm.layer import Responder

logger = logging.getLogger(__name__)

SPECS_DIR = Path(__file__).parent / "specs"


class DuplicateWorkerError(ValueError):
    """Raised when a second worker is registered for an existing role."""


class WorkerRegistry:
    """Manages all worker instances and their runtime state."""

    def __init__(self) -> None:
        self._workers: dict[str, BaseWorker] = {}

    def __contains__(self, role: str) -> bool:
        return role in self._workers

    def __len__(self) -> int:
        return len(self._workers)

    def register(self, worker: BaseWorker) -> None:
        """Register a worker instance."""
        if worker.role in self._workers:
            raise DuplicateWorkerError(f"Worker already registered for role: {worker.role}")
        self._workers[worker.role] = worker

    def get(self, role: str) -> BaseWorker | None:
        """Get worker by role."""
        return self._workers.get(role)

    def get_or_raise(self, role: str) -> BaseWorker:
        """Get worker by role, raising if not found."""
        worker = self._workers.get(role)
        if worker is None:
            raise KeyError(f"Worker not found: {role}")
        return worker

    def workers(self) -> list[BaseWorker]:
        """All workers, in registration order."""
        return list(self._workers.values())

    def roles(self) -> list[str]:
        return list(self._workers)

    def list_statuses(self) -> list[WorkerStatus]:
        """List runtime status for all workers."""
        return [w.status for w in self._workers.values()]


def load_spec(spec_id: str, specs_dir: Path = SPECS_DIR) -> RoleSpec:
    """Load a RoleSpec from a YAML file."""
    spec_path = specs_dir / f"{spec_id}.yaml"
    if not spec_path.exists():
        raise FileNotFoundError(f"Role spec not found: {spec_path}")
    data = yaml.safe_load(spec_path.read_text(encoding="utf-8"))
    return RoleSpec(**data)


def load_all_specs(specs_dir: Path = SPECS_DIR) -> list[RoleSpec]:
    """Load every role spec in `specs_dir`, sorted by file name."""
    return [load_spec(path.stem, specs_dir) for path in sorted(specs_dir.glob("*.yaml"))]


def create_registry(responder: Responder, specs: list[RoleSpec] | None = None) -> WorkerRegistry:
    """Factory: create a WorkerRegistry with one RoleWorker per role spec."""
    from app.agents.role_worker import RoleWorker

    registry = WorkerRegistry()
    for spec in specs if specs is not None else load_all_specs():
        registry.register(RoleWorker(spec=spec, responder=responder))
        logger.info("Registered worker: %s", spec.id)
    return registry
