"""
TaskDeps — API Dependencies
=============================
Shared FastAPI dependency injectors for the HTTP adapter.

The orchestrator registry lives on ``app.state`` so tests can build an
application around their own registry and task lookup.
"""

from __future__ import annotations

from fastapi import Depends, Request

from taskdeps.core.middleware import correlation_id_ctx
from taskdeps.orchestrator import DependencyOrchestrator, OrchestratorRegistry


def get_registry(request: Request) -> OrchestratorRegistry:
    """Return the application's per-project orchestrator registry."""
    return request.app.state.registry


def get_orchestrator(
    project_id: str,
    registry: OrchestratorRegistry = Depends(get_registry),
) -> DependencyOrchestrator:
    """Return the orchestrator owning ``project_id``'s graph (created on first use)."""
    return registry.get(project_id)


def get_correlation_id() -> str | None:
    """
    Return the correlation ID for the current request.

    Populated by ``CorrelationMiddleware`` on every request.
    """
    return correlation_id_ctx.get(None)
