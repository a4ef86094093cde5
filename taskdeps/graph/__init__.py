"""
TaskDeps — Dependency Graph
=============================
Edge storage and the read-only analyses that walk it.

Public API:
    DependencyStore - Forward/reverse adjacency under a reader/writer lock
    CycleDetector - Circular dependency search
    CriticalPathAnalyzer - Longest dependency chains within a task set
"""

from taskdeps.graph.models import (
    Cycle,
    DependencyEdge,
    DependencyKind,
    EdgeChangeSet,
    EdgeSpec,
    edge_id,
)
from taskdeps.graph.store import DependencyStore, validate_task_id
from taskdeps.graph.cycles import CycleDetector
from taskdeps.graph.critical_path import (
    CriticalPathAnalysis,
    CriticalPathAnalyzer,
    CriticalTask,
    Criticality,
)

__all__ = [
    "Cycle",
    "DependencyEdge",
    "DependencyKind",
    "EdgeChangeSet",
    "EdgeSpec",
    "edge_id",
    "DependencyStore",
    "validate_task_id",
    "CycleDetector",
    "CriticalPathAnalysis",
    "CriticalPathAnalyzer",
    "CriticalTask",
    "Criticality",
]
