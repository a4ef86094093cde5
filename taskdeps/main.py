"""
TaskDeps — FastAPI Application
================================
Application factory with lifecycle management and middleware pipeline.

Usage:
    uvicorn taskdeps.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from taskdeps.api.errors import taskdeps_error_handler
from taskdeps.api.health import router as health_router
from taskdeps.api.routes import dependencies_router
from taskdeps.core.config import get_settings
from taskdeps.core.exceptions import TaskDepsError
from taskdeps.core.logging import configure_logging, get_logger
from taskdeps.core.middleware import CorrelationMiddleware
from taskdeps.orchestrator import OrchestratorRegistry


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle.

    Startup: configure logging.
    Shutdown: drop every in-memory project graph.
    """
    logger = get_logger("taskdeps.main")

    # ── Startup ──────────────────────────────────────────────────────
    configure_logging()
    logger.info("app.starting", environment=get_settings().environment.value)
    yield

    # ── Shutdown ─────────────────────────────────────────────────────
    registry: OrchestratorRegistry = application.state.registry
    projects = registry.projects()
    for project_id in projects:
        registry.drop(project_id)
    logger.info("app.stopped", projects=len(projects))


def create_app(registry: OrchestratorRegistry | None = None) -> FastAPI:
    """Application factory.  ``registry`` defaults to one with an open task lookup."""
    settings = get_settings()

    application = FastAPI(
        title="TaskDeps",
        description="Task dependency graph engine",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    application.state.registry = registry or OrchestratorRegistry(settings=settings)

    # ── Middleware ───────────────────────────────────────────────────
    application.add_middleware(CorrelationMiddleware)
    application.add_exception_handler(TaskDepsError, taskdeps_error_handler)

    # ── Routers ──────────────────────────────────────────────────────
    application.include_router(health_router)
    application.include_router(dependencies_router)

    return application


# Module-level instance for ``uvicorn taskdeps.main:app``
app = create_app()
