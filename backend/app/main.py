"""Task Orchestration FastAPI Application.

Entry point for the backend server. The lifespan builds the runtime
(workers, orchestrator, workflow engine), wires it into the API modules,
reloads unfinished work from the task store, and starts the tick scheduler.

Run with:
    cd backend && uvicorn app.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.health import router as health_router
from app.api.health import set_runtime as set_health_runtime
from app.api.v1.orchestration import router as orchestration_router
from app.api.v1.orchestration import set_dependencies as set_orchestration_deps
from app.api.v1.workflows import router as workflows_router
from app.api.v1.workflows import set_dependencies as set_workflow_deps
from app.config import settings
from app.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    runtime = build_runtime()

    set_health_runtime(runtime)
    set_orchestration_deps(runtime.orchestrator, runtime.decision_log)
    set_workflow_deps(runtime.workflows)

    try:
        runtime.orchestrator.load_pending()
    except Exception as e:
        logger.warning("Reload of pending tasks skipped (non-fatal): %s", e)

    await runtime.orchestrator.start()
    app.state.runtime = runtime

    yield

    runtime.orchestrator.stop()


app = FastAPI(
    title="Task Orchestrator",
    description="Role-based task orchestration with executive escalation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


# Global exception handler: internal details stay out of responses
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        raise exc
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# Routes
app.include_router(health_router)
app.include_router(orchestration_router)
app.include_router(workflows_router)


@app.get("/")
async def root():
    return {"name": "Task Orchestrator", "version": "0.1.0", "status": "running"}
