"""Health check endpoint — dependency checks for the orchestrator runtime.

Checks: responder configuration, task store, tick scheduler, worker pool.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from app.runtime import Runtime

router = APIRouter()

VERSION = "0.1.0"

_runtime: Runtime | None = None


def set_runtime(runtime: Runtime | None) -> None:
    """Wire up the runtime (called from main.py lifespan)."""
    global _runtime
    _runtime = runtime


class HealthStatus(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    version: str
    checks: dict[str, dict]
    dependencies: dict[str, str]
    timestamp: datetime


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Check all runtime dependencies."""
    checks: dict[str, dict] = {}
    overall_healthy = True
    has_warning = False

    # 1. Responder
    api_key = settings.anthropic_api_key
    if api_key and api_key != "test":
        checks["responder"] = {"status": "ok", "detail": f"anthropic ({settings.responder_model})"}
    else:
        checks["responder"] = {"status": "warning", "detail": "ANTHROPIC_API_KEY not set (acknowledge mode)"}
        has_warning = True

    # 2. Task store
    if not settings.persistence_enabled:
        checks["database"] = {"status": "disabled", "detail": "set PERSISTENCE_ENABLED=true to persist tasks"}
    elif _runtime is None or _runtime.db_engine is None:
        checks["database"] = {"status": "error", "detail": "task store unavailable (running in memory)"}
        overall_healthy = False
    else:
        try:
            from sqlalchemy import text

            with _runtime.db_engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            checks["database"] = {"status": "ok", "detail": "connected"}
        except Exception as e:
            checks["database"] = {"status": "error", "detail": str(e)}
            overall_healthy = False

    if _runtime is None:
        checks["scheduler"] = {"status": "error", "detail": "runtime not initialized"}
        checks["workers"] = {"status": "error", "detail": "runtime not initialized"}
        overall_healthy = False
    else:
        # 3. Tick scheduler
        sched = _runtime.orchestrator.scheduler.get_status()
        if not sched["enabled"]:
            checks["scheduler"] = {"status": "disabled", "detail": "set SCHEDULER_ENABLED=true to tick automatically"}
        elif sched["last_error"]:
            checks["scheduler"] = {"status": "warning", "detail": sched["last_error"]}
            has_warning = True
        else:
            checks["scheduler"] = {
                "status": "ok" if sched["running"] else "warning",
                "detail": f"ticks={sched['ticks']}, interval={sched['interval_seconds']}s",
            }
            has_warning = has_warning or not sched["running"]

        # 4. Worker pool
        count = len(_runtime.registry)
        if count:
            checks["workers"] = {"status": "ok", "detail": f"{count} registered"}
        else:
            checks["workers"] = {"status": "warning", "detail": "no workers registered"}
            has_warning = True

    dependencies = {name: check["status"] for name, check in checks.items()}

    if overall_healthy:
        status = "degraded" if has_warning else "healthy"
    else:
        status = "unhealthy"

    return HealthStatus(
        status=status,
        version=VERSION,
        checks=checks,
        dependencies=dependencies,
        timestamp=datetime.now(timezone.utc),
    )
