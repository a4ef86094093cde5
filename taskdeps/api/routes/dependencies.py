"""
TaskDeps — Dependency API Routes
==================================
JSON bodies mapped 1:1 onto ``DependencyOrchestrator`` calls.  Each project
id selects its own graph.

Handlers are plain ``def``: the engine is synchronous and takes thread
locks, so FastAPI runs them in its worker thread pool.

Usage:
    POST   /api/v1/projects/{project_id}/dependencies/{task_id}   : Add
    PUT    /api/v1/projects/{project_id}/dependencies/{task_id}   : Replace
    DELETE /api/v1/projects/{project_id}/dependencies/{task_id}   : Remove
    GET    /api/v1/projects/{project_id}/dependencies/{task_id}   : List
    POST   /api/v1/projects/{project_id}/analyze
    POST   /api/v1/projects/{project_id}/critical-path
    POST   /api/v1/projects/{project_id}/conflicts/detect
    POST   /api/v1/projects/{project_id}/conflicts/{conflict_id}/resolve
    POST   /api/v1/projects/{project_id}/impact/{task_id}
    GET    /api/v1/projects/{project_id}/statistics
    GET    /api/v1/projects/{project_id}/analytics
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from taskdeps.api.deps import get_orchestrator
from taskdeps.graph import EdgeSpec
from taskdeps.impact import ImpactContext
from taskdeps.orchestrator import DependencyOrchestrator

router = APIRouter(prefix="/api/v1/projects/{project_id}", tags=["dependencies"])


# ── Request Schemas ─────────────────────────────────────────────────────


class EdgeSpecRequest(BaseModel):
    """One outgoing dependency.  Unknown fields are kept as edge metadata."""

    model_config = ConfigDict(extra="allow")

    task_id: str = Field(..., description="Task the source task depends on.")
    kind: str | None = Field(None, description="depends_on, blocks, related_to or prerequisite.")
    strength: float | None = Field(None, description="Weight in [0, 1].")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_spec(self) -> EdgeSpec:
        extra = dict(self.model_extra or {})
        return EdgeSpec(
            target=self.task_id,
            kind=self.kind,
            strength=self.strength,
            metadata={**self.metadata, **extra},
        )


class DependenciesRequest(BaseModel):
    dependencies: list[EdgeSpecRequest] = Field(default_factory=list)


class RemoveDependenciesRequest(BaseModel):
    dependency_ids: list[str] = Field(
        ..., description="Edge ids (``a->b``) or target task ids."
    )


class TaskSetRequest(BaseModel):
    task_ids: list[str] = Field(default_factory=list)


class CriticalPathRequest(TaskSetRequest):
    include_metrics: bool = False


class ResolveConflictRequest(BaseModel):
    strategy: str | None = Field(
        None, description="Strategy name; omitted means the first applicable one."
    )
    options: dict[str, Any] = Field(default_factory=dict)
    apply: bool = Field(False, description="Execute graph-level actions right away.")


class ImpactRequest(BaseModel):
    change_type: str
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    delay_hours: float = 0.0
    delay_days: float = 0.0


# ── Dependencies ────────────────────────────────────────────────────────


@router.post("/dependencies/{task_id}", status_code=201, summary="Add dependencies")
def add_dependencies(
    task_id: str,
    body: DependenciesRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    result = engine.add_dependencies(task_id, [d.to_spec() for d in body.dependencies])
    return result.to_dict()


@router.put("/dependencies/{task_id}", summary="Replace dependencies")
def update_dependencies(
    task_id: str,
    body: DependenciesRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    result = engine.update_dependencies(task_id, [d.to_spec() for d in body.dependencies])
    return result.to_dict()


@router.delete("/dependencies/{task_id}", summary="Remove dependencies")
def remove_dependencies(
    task_id: str,
    body: RemoveDependenciesRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return engine.remove_dependencies(task_id, body.dependency_ids).to_dict()


@router.get("/dependencies/{task_id}", summary="List dependencies")
def get_dependencies(
    task_id: str,
    include_transitive: bool = Query(False),
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return engine.get_dependencies(task_id, include_transitive=include_transitive)


# ── Analysis ────────────────────────────────────────────────────────────


@router.post("/analyze", summary="Analyze a task set")
def analyze(
    body: TaskSetRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return engine.analyze(body.task_ids).to_dict()


@router.post("/critical-path", summary="Longest critical path")
def critical_path(
    body: CriticalPathRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    response: dict[str, Any] = {
        "critical_path": engine.get_critical_path(task_ids=body.task_ids),
    }
    if body.include_metrics and body.task_ids:
        response["metrics"] = engine.critical_path_metrics(body.task_ids)
    return response


# ── Conflicts ───────────────────────────────────────────────────────────


@router.post("/conflicts/detect", summary="Detect conflicts")
def detect_conflicts(
    body: TaskSetRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    conflicts = engine.detect_conflicts(body.task_ids)
    return {"conflicts": [c.to_dict() for c in conflicts]}


@router.post("/conflicts/{conflict_id}/resolve", summary="Resolve a conflict")
def resolve_conflict(
    conflict_id: str,
    body: ResolveConflictRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    if body.strategy is None:
        resolution = engine.auto_resolve(conflict_id, body.options)
    else:
        resolution = engine.resolve_conflict(conflict_id, body.strategy, body.options)

    response: dict[str, Any] = {
        "conflict_id": conflict_id,
        "resolved": resolution is not None,
        "resolution": resolution.to_dict() if resolution else None,
    }
    if resolution is not None and body.apply:
        response["applied"] = engine.apply_resolution(conflict_id).to_dict()
    return response


# ── Impact & statistics ─────────────────────────────────────────────────


@router.post("/impact/{task_id}", summary="Analyze the impact of a change")
def analyze_impact(
    task_id: str,
    body: ImpactRequest,
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    context = ImpactContext(
        project_id=engine.project_id,
        added=tuple(body.added),
        removed=tuple(body.removed),
        modified=tuple(body.modified),
        delay_hours=body.delay_hours,
        delay_days=body.delay_days,
    )
    return engine.analyze_impact(task_id, body.change_type, context).to_dict()


@router.get("/statistics", summary="Graph, conflict and impact statistics")
def statistics(
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return engine.statistics()


@router.get("/analytics", summary="Complexity, conflict and cycle rates")
def analytics(
    engine: DependencyOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    return engine.analytics()
