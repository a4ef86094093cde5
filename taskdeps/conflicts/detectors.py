"""
TaskDeps — Conflict Detection
===============================
Four independent detectors over a set of tasks.  Task attributes come from
the injected ``TaskLookup``; edges come from the ``DependencyStore``.

scheduling
    Edge ``a -> b`` inside the set where ``a`` starts before ``b``'s
    deadline.  ``high`` when the overlap exceeds 8 hours, else ``medium``.
resource
    Two tasks sharing a resource whose schedule windows overlap.  ``high``.
priority
    Edge ``a -> b`` where ``a`` outranks ``b`` (a priority inversion).
    ``high`` when the gap is two ranks or more, else ``medium``.
dependency
    One conflict per cycle (``critical`` for a self-loop, else ``high``)
    and one ``medium`` conflict per edge whose target the lookup does not
    know (an orphaned dependency).

Tasks without the attributes a detector needs are skipped by it.
"""

from __future__ import annotations

from datetime import datetime
from itertools import combinations
from typing import Iterable

from taskdeps.core.concurrency import Deadline
from taskdeps.core.logging import get_logger
from taskdeps.core.task_types import Severity, TaskLookup, task_exists
from taskdeps.conflicts.models import Conflict, ConflictType, conflict_id
from taskdeps.graph.cycles import CycleDetector
from taskdeps.graph.store import DependencyStore

logger = get_logger(__name__)

SCHEDULING_OVERLAP_HIGH_HOURS = 8.0
PRIORITY_GAP_HIGH = 2


def _hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


class ConflictDetector:
    """Runs the scheduling, resource, priority and dependency detectors."""

    def __init__(
        self,
        store: DependencyStore,
        lookup: TaskLookup,
        cycle_detector: CycleDetector | None = None,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._cycles = cycle_detector or CycleDetector(store)

    def detect(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        """All conflicts among ``task_ids``, detector by detector."""
        query = list(dict.fromkeys(task_ids))
        if not query:
            return []
        deadline = deadline or Deadline.never()
        with self._store.read_locked():
            conflicts = [
                *self.detect_scheduling(query, deadline),
                *self.detect_resource(query, deadline),
                *self.detect_priority(query, deadline),
                *self.detect_dependency(query, deadline),
            ]
        if conflicts:
            logger.info(
                "conflicts.detected",
                tasks=len(query),
                conflicts=len(conflicts),
                types=sorted({c.type.value for c in conflicts}),
            )
        return conflicts

    # ── Detectors ───────────────────────────────────────────────────────

    def detect_scheduling(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        deadline = deadline or Deadline.never()
        conflicts: list[Conflict] = []
        for dependent, dependency in self._edges_within(task_ids, deadline):
            a = self._lookup.get(dependent)
            b = self._lookup.get(dependency)
            if a is None or b is None or a.start is None or b.deadline is None:
                continue
            if a.start >= b.deadline:
                continue
            overlap = _hours(a.start, b.deadline)
            severity = (
                Severity.HIGH if overlap > SCHEDULING_OVERLAP_HIGH_HOURS else Severity.MEDIUM
            )
            conflicts.append(Conflict(
                id=conflict_id(ConflictType.SCHEDULING, (dependent, dependency)),
                type=ConflictType.SCHEDULING,
                severity=severity,
                task_ids=(dependent, dependency),
                description=(
                    f"Task {dependent} starts before its dependency {dependency} is due"
                ),
                details={
                    "dependent": dependent,
                    "dependency": dependency,
                    "dependent_start": a.start.isoformat(),
                    "dependency_deadline": b.deadline.isoformat(),
                    "overlap_hours": overlap,
                },
            ))
        return conflicts

    def detect_resource(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        deadline = deadline or Deadline.never()
        scheduled = []
        for task_id in dict.fromkeys(task_ids):
            attrs = self._lookup.get(task_id)
            if attrs is not None and attrs.resource and attrs.has_window:
                scheduled.append(attrs)

        conflicts: list[Conflict] = []
        for a, b in combinations(scheduled, 2):
            deadline.check("conflicts.resource")
            if a.resource != b.resource:
                continue
            if not (a.start < b.deadline and b.start < a.deadline):
                continue
            pair = tuple(sorted((a.task_id, b.task_id)))
            conflicts.append(Conflict(
                id=conflict_id(ConflictType.RESOURCE, pair, a.resource),
                type=ConflictType.RESOURCE,
                severity=Severity.HIGH,
                task_ids=(a.task_id, b.task_id),
                description=f"Tasks {a.task_id} and {b.task_id} both need {a.resource}",
                details={
                    "resource": a.resource,
                    "windows": {
                        t.task_id: {
                            "start": t.start.isoformat(),
                            "deadline": t.deadline.isoformat(),
                        }
                        for t in (a, b)
                    },
                    "overlap_hours": _hours(max(a.start, b.start), min(a.deadline, b.deadline)),
                },
            ))
        return conflicts

    def detect_priority(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        deadline = deadline or Deadline.never()
        conflicts: list[Conflict] = []
        for dependent, dependency in self._edges_within(task_ids, deadline):
            a = self._lookup.get(dependent)
            b = self._lookup.get(dependency)
            if a is None or b is None:
                continue
            gap = a.priority.rank - b.priority.rank
            if gap <= 0:
                continue
            conflicts.append(Conflict(
                id=conflict_id(ConflictType.PRIORITY, (dependent, dependency)),
                type=ConflictType.PRIORITY,
                severity=Severity.HIGH if gap >= PRIORITY_GAP_HIGH else Severity.MEDIUM,
                task_ids=(dependent, dependency),
                description=(
                    f"{a.priority.value.capitalize()} priority task {dependent} depends on "
                    f"{b.priority.value} priority task {dependency}"
                ),
                details={
                    "high_priority_task": {"id": dependent, "priority": a.priority.value},
                    "low_priority_task": {"id": dependency, "priority": b.priority.value},
                    "dependency": f"{dependent} depends on {dependency}",
                    "priority_gap": gap,
                },
            ))
        return conflicts

    def detect_dependency(
        self, task_ids: Iterable[str], deadline: Deadline | None = None
    ) -> list[Conflict]:
        deadline = deadline or Deadline.never()
        query = list(dict.fromkeys(task_ids))
        conflicts: dict[str, Conflict] = {}

        for found in self._cycles.detect_cycles(query, deadline):
            # Walked from its smallest id whichever seed found it
            cycle = found.normalised()
            cid = conflict_id(ConflictType.DEPENDENCY, cycle.members, "cycle")
            if cid in conflicts:
                continue
            conflicts[cid] = Conflict(
                id=cid,
                type=ConflictType.DEPENDENCY,
                severity=Severity.CRITICAL if cycle.is_self_loop else Severity.HIGH,
                task_ids=cycle.members,
                description=(
                    f"Task {cycle.path[0]} depends on itself"
                    if cycle.is_self_loop
                    else "Circular dependency detected"
                ),
                details={
                    "kind": "circular_dependency",
                    "cycle": list(cycle.path),
                    "dependencies": [{"from": a, "to": b} for a, b in cycle.edges],
                },
            )

        for source in query:
            for target in self._store.get_targets(source):
                deadline.check("conflicts.dependency")
                if task_exists(self._lookup, target):
                    continue
                cid = conflict_id(ConflictType.DEPENDENCY, (source, target), "orphan")
                conflicts[cid] = Conflict(
                    id=cid,
                    type=ConflictType.DEPENDENCY,
                    severity=Severity.MEDIUM,
                    task_ids=(source, target),
                    description=f"Task {source} depends on unknown task {target}",
                    details={
                        "kind": "orphaned_dependency",
                        "dependencies": [{"from": source, "to": target}],
                    },
                )
        return list(conflicts.values())

    # ── Helpers ─────────────────────────────────────────────────────────

    def _edges_within(
        self, task_ids: Iterable[str], deadline: Deadline
    ) -> list[tuple[str, str]]:
        """Non-loop edges whose both ends are in ``task_ids``."""
        query = list(dict.fromkeys(task_ids))
        members = set(query)
        edges: list[tuple[str, str]] = []
        with self._store.read_locked() as store:
            for source in query:
                deadline.check("conflicts.edges")
                for target in store.get_targets(source):
                    if target in members and target != source:
                        edges.append((source, target))
        return edges
