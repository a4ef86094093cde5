"""
TaskDeps — Conflict Resolver
==============================
Keeps detected conflicts and the resolutions proposed for them.

A conflict counts as resolved once a resolution has been recorded for it.
Resolved conflicts are retained; detecting the same conflict again (same
id) keeps its resolved status and its resolution.

Usage:
    resolver = ConflictResolver(ConflictDetector(store, lookup))
    for conflict in resolver.detect_conflicts(["task_1", "task_2"]):
        resolution = resolver.auto_resolve(conflict)   # None if no strategy fits
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Iterable, Mapping

from taskdeps.core.concurrency import Deadline
from taskdeps.core.exceptions import ConflictNotFoundError, ValidationError
from taskdeps.core.logging import get_logger
from taskdeps.conflicts.detectors import ConflictDetector
from taskdeps.conflicts.models import Conflict, Resolution
from taskdeps.conflicts.strategies import Strategy, StrategyRegistry, default_registry

logger = get_logger(__name__)


class ConflictResolver:
    """Conflict bookkeeping plus strategy dispatch."""

    def __init__(
        self,
        detector: ConflictDetector,
        registry: StrategyRegistry | None = None,
    ) -> None:
        self._detector = detector
        self.registry = registry or default_registry()
        self._conflicts: dict[str, Conflict] = {}
        self._resolutions: dict[str, Resolution] = {}
        self._lock = threading.Lock()

    # ── Detection ───────────────────────────────────────────────────────

    def detect_conflicts(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        """
        Detect and store conflicts among ``task_ids``.

        Returns the stored instances, so a conflict resolved earlier comes
        back with ``status == resolved``.
        """
        detected = self._detector.detect(task_ids, deadline)
        stored: list[Conflict] = []
        with self._lock:
            for conflict in detected:
                existing = self._conflicts.get(conflict.id)
                if existing is not None and existing.is_resolved:
                    stored.append(existing)
                    continue
                self._conflicts[conflict.id] = conflict
                stored.append(conflict)
        return stored

    # ── Resolution ──────────────────────────────────────────────────────

    def select_strategy(self, conflict: Conflict) -> Strategy | None:
        return self.registry.select(conflict)

    def auto_resolve(
        self, conflict: Conflict, options: Mapping[str, Any] | None = None
    ) -> Resolution | None:
        """Apply the first matching strategy; ``None`` when none matches."""
        strategy = self.registry.select(conflict)
        if strategy is None:
            logger.info(
                "conflict.no_strategy",
                conflict_id=conflict.id,
                conflict_type=conflict.type.value,
            )
            return None
        return self._record(conflict, strategy.resolve(conflict, options))

    def resolve_conflict(
        self,
        conflict_id: str,
        strategy_name: str,
        options: Mapping[str, Any] | None = None,
    ) -> Resolution:
        """
        Apply a named strategy to a stored conflict.

        Raises:
            ConflictNotFoundError: no conflict with that id was detected.
            StrategyNotFoundError: the conflict's type has no such strategy.
            ValidationError: the strategy lacks the details it needs.
        """
        conflict = self.get_conflict(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)
        strategy = self.registry.get(conflict.type, strategy_name)
        if not strategy.can_resolve(conflict):
            raise ValidationError(
                f"Strategy {strategy_name!r} cannot resolve conflict {conflict_id!r}"
            )
        return self._record(conflict, strategy.resolve(conflict, options))

    def _record(self, conflict: Conflict, resolution: Resolution) -> Resolution:
        with self._lock:
            stored = self._conflicts.setdefault(conflict.id, conflict)
            stored.mark_resolved(resolution)
            self._resolutions[conflict.id] = resolution
        logger.info(
            "conflict.resolved",
            conflict_id=conflict.id,
            strategy=resolution.strategy_name,
            actions=[a.action for a in resolution.actions],
        )
        return resolution

    # ── Queries ─────────────────────────────────────────────────────────

    def get_conflict(self, conflict_id: str) -> Conflict | None:
        with self._lock:
            return self._conflicts.get(conflict_id)

    def get_conflicts_for_task(self, task_id: str) -> list[Conflict]:
        with self._lock:
            return [c for c in self._conflicts.values() if c.involves(task_id)]

    def all_conflicts(self) -> list[Conflict]:
        with self._lock:
            return list(self._conflicts.values())

    def get_resolution(self, conflict_id: str) -> Resolution | None:
        with self._lock:
            return self._resolutions.get(conflict_id)

    def all_resolutions(self) -> list[Resolution]:
        with self._lock:
            return list(self._resolutions.values())

    def statistics(self) -> dict[str, Any]:
        with self._lock:
            conflicts = list(self._conflicts.values())
            resolved = len(self._resolutions)
        total = len(conflicts)
        return {
            "total_conflicts": total,
            "resolved_conflicts": resolved,
            "unresolved_conflicts": total - resolved,
            "resolution_rate": resolved / total if total else 0.0,
            "conflicts_by_type": dict(Counter(c.type.value for c in conflicts)),
            "conflicts_by_severity": dict(Counter(c.severity.value for c in conflicts)),
        }

    def clear(self) -> None:
        with self._lock:
            self._conflicts.clear()
            self._resolutions.clear()
