"""
TaskDeps — Orchestration
==========================
Facade composing the graph, conflict and impact components.

Public API:
    DependencyOrchestrator - One graph behind a synchronous API
    OrchestratorRegistry - One orchestrator per project
"""

from taskdeps.orchestrator.engine import (
    AddDependenciesResult,
    ApplyResolutionResult,
    DependencyAnalysis,
    DependencyOrchestrator,
    GraphValidation,
    OrchestratorRegistry,
    RemoveDependenciesResult,
    UpdateDependenciesResult,
)

__all__ = [
    "AddDependenciesResult",
    "ApplyResolutionResult",
    "DependencyAnalysis",
    "DependencyOrchestrator",
    "GraphValidation",
    "OrchestratorRegistry",
    "RemoveDependenciesResult",
    "UpdateDependenciesResult",
]
