"""
TaskDeps — Health Endpoint
============================
Liveness plus a count of the project graphs held in memory.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from taskdeps.api.deps import get_registry
from taskdeps.core.config import get_settings
from taskdeps.orchestrator import OrchestratorRegistry

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    environment: str
    projects: int


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Engine health check",
)
def health_check(
    registry: OrchestratorRegistry = Depends(get_registry),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        environment=get_settings().environment.value,
        projects=len(registry.projects()),
    )
