"""
TaskDeps — Conflicts
======================
Detection of scheduling, resource, priority and dependency conflicts, and
strategy-based resolution proposals.

Public API:
    ConflictDetector - The four detectors
    ConflictResolver - Conflict/resolution bookkeeping and dispatch
    Strategy, StrategyRegistry, default_registry - Pluggable strategies
"""

from taskdeps.conflicts.models import (
    Conflict,
    ConflictStatus,
    ConflictType,
    Resolution,
    ResolutionAction,
    conflict_id,
)
from taskdeps.conflicts.detectors import ConflictDetector
from taskdeps.conflicts.strategies import Strategy, StrategyRegistry, default_registry
from taskdeps.conflicts.resolver import ConflictResolver

__all__ = [
    "Conflict",
    "ConflictStatus",
    "ConflictType",
    "Resolution",
    "ResolutionAction",
    "conflict_id",
    "ConflictDetector",
    "Strategy",
    "StrategyRegistry",
    "default_registry",
    "ConflictResolver",
]
