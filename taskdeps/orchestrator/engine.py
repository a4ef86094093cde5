"""
TaskDeps — Dependency Orchestrator
====================================
The only component external callers talk to.  Composes the store, cycle
detector, critical-path analyzer, conflict resolver and impact analyzer
behind a small synchronous API.

Flow of a mutation:
    validate -> store mutation -> cycle / conflict detection
    -> optional auto-resolution -> impact analysis -> result object

Cycles are reported as ``GraphInvariantWarning`` instances in results and
logged; they never abort a call.  Every long analysis runs under a
``Deadline`` built from ``analysis_timeout_seconds``.

Usage:
    engine = DependencyOrchestrator(lookup=InMemoryTaskLookup(tasks))
    result = engine.add_dependencies("task_1", [EdgeSpec("task_2")])
    engine.get_critical_path(task_ids=["task_1", "task_2"])
"""

from __future__ import annotations

import csv
import io
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from taskdeps.core.concurrency import Deadline
from taskdeps.core.config import Settings, get_settings
from taskdeps.core.exceptions import (
    ConflictNotFoundError,
    GraphInvariantWarning,
    ResolutionNotFoundError,
    ValidationError,
)
from taskdeps.core.logging import graph_scope, get_logger
from taskdeps.core.task_types import (
    ChangeType,
    OpenTaskLookup,
    TaskLookup,
    task_exists,
)
from taskdeps.conflicts import (
    Conflict,
    ConflictDetector,
    ConflictResolver,
    Resolution,
    ResolutionAction,
    StrategyRegistry,
)
from taskdeps.graph import (
    CriticalPathAnalysis,
    CriticalPathAnalyzer,
    Cycle,
    CycleDetector,
    DependencyEdge,
    DependencyStore,
    EdgeChangeSet,
    EdgeSpec,
    validate_task_id,
)
from taskdeps.impact import ImpactAnalyzer, ImpactContext, ImpactReport

logger = get_logger(__name__)

LONG_CRITICAL_PATH = 5
HIGH_COMPLEXITY = 3.0
HIGH_CONFLICT_RATE = 0.1
HIGH_CIRCULAR_RATE = 0.05
EXPORT_FORMATS = ("json", "csv")


# ── Result objects ──────────────────────────────────────────────────────


def _warning_summary(conflicts: list[Conflict], cycles: list[Cycle]) -> list[dict[str, Any]]:
    warnings: list[dict[str, Any]] = []
    if conflicts:
        warnings.append({
            "type": "conflicts",
            "severity": "medium",
            "message": f"{len(conflicts)} dependency conflicts detected",
            "count": len(conflicts),
        })
    if cycles:
        warnings.append({
            "type": "circular_dependencies",
            "severity": "high",
            "message": f"{len(cycles)} circular dependencies detected",
            "count": len(cycles),
        })
    return warnings


@dataclass
class AddDependenciesResult:
    task_id: str
    changes: EdgeChangeSet
    cycles: list[Cycle] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    resolutions: list[Resolution] = field(default_factory=list)

    @property
    def warnings(self) -> list[GraphInvariantWarning]:
        return [GraphInvariantWarning(c.path) for c in self.cycles]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "task_id": self.task_id,
            "dependencies": self.changes.to_dict(),
            "circular_dependencies": [w.to_dict() for w in self.warnings],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "resolutions": [r.to_dict() for r in self.resolutions],
            "warnings": _warning_summary(self.conflicts, self.cycles),
        }


@dataclass
class UpdateDependenciesResult:
    task_id: str
    changes: EdgeChangeSet
    impact: ImpactReport
    cycles: list[Cycle] = field(default_factory=list)

    @property
    def warnings(self) -> list[GraphInvariantWarning]:
        return [GraphInvariantWarning(c.path) for c in self.cycles]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "task_id": self.task_id,
            "changes": self.changes.to_dict(),
            "impact": self.impact.to_dict(),
            "circular_dependencies": [w.to_dict() for w in self.warnings],
        }


@dataclass
class RemoveDependenciesResult:
    task_id: str
    removed: tuple[DependencyEdge, ...]
    impact: ImpactReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "task_id": self.task_id,
            "removed_dependencies": [e.to_dict() for e in self.removed],
            "impact": self.impact.to_dict(),
        }


@dataclass
class DependencyAnalysis:
    task_ids: tuple[str, ...]
    project_id: str | None
    dependencies: dict[str, dict[str, Any]]
    cycles: list[Cycle]
    conflicts: list[Conflict]
    critical_paths: CriticalPathAnalysis | None
    impacts: dict[str, ImpactReport]
    recommendations: list[dict[str, str]]
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_ids": list(self.task_ids),
            "project_id": self.project_id,
            "analyzed_at": self.analyzed_at.isoformat(),
            "dependencies": self.dependencies,
            "circular_dependencies": [c.to_dict() for c in self.cycles],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "critical_paths": self.critical_paths.to_dict() if self.critical_paths else None,
            "impact_analysis": {t: r.to_dict() for t, r in self.impacts.items()},
            "recommendations": self.recommendations,
        }


@dataclass
class ApplyResolutionResult:
    conflict_id: str
    strategy_name: str
    applied: list[ResolutionAction] = field(default_factory=list)
    deferred: list[ResolutionAction] = field(default_factory=list)
    changes: list[EdgeChangeSet] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "conflict_id": self.conflict_id,
            "strategy": self.strategy_name,
            "applied": [a.to_dict() for a in self.applied],
            "deferred": [a.to_dict() for a in self.deferred],
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass
class GraphValidation:
    cycles: list[Cycle]
    orphaned: list[DependencyEdge]
    self_dependencies: list[DependencyEdge]

    @property
    def valid(self) -> bool:
        return not (self.cycles or self.orphaned or self.self_dependencies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "circular_dependencies": [c.to_dict() for c in self.cycles],
            "orphaned_dependencies": [e.to_dict() for e in self.orphaned],
            "self_dependencies": [e.to_dict() for e in self.self_dependencies],
        }


# ── Orchestrator ────────────────────────────────────────────────────────


class DependencyOrchestrator:
    """
    Facade over one dependency graph.

    Thread safety: the store serialises writers; conflict and impact
    bookkeeping carry their own locks.  Results are plain objects owned by
    the caller.
    """

    def __init__(
        self,
        store: DependencyStore | None = None,
        lookup: TaskLookup | None = None,
        settings: Settings | None = None,
        project_id: str | None = None,
        strategies: StrategyRegistry | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.project_id = project_id
        self.store = store or DependencyStore()
        self.lookup = lookup or OpenTaskLookup()
        self.cycles = CycleDetector(self.store)
        self.critical_paths = CriticalPathAnalyzer(
            self.store,
            max_depth=self.settings.max_path_depth,
            max_analyses=self.settings.max_stored_analyses,
        )
        self.conflicts = ConflictResolver(
            ConflictDetector(self.store, self.lookup, self.cycles), strategies
        )
        self.impact = ImpactAnalyzer(
            self.store,
            self.lookup,
            default_delay_hours=self.settings.default_dependency_delay_hours,
            max_history=self.settings.max_impact_history,
        )

    def _deadline(self) -> Deadline:
        return Deadline.after(self.settings.analysis_timeout_seconds)

    def _scope(self, project_id: str | None) -> str | None:
        return project_id or self.project_id

    # ── Validation ──────────────────────────────────────────────────────

    def _coerce_specs(self, task_id: str, specs: Iterable[Any]) -> list[EdgeSpec]:
        coerced: list[EdgeSpec] = []
        for spec in specs:
            if isinstance(spec, EdgeSpec):
                coerced.append(spec)
            elif isinstance(spec, Mapping):
                coerced.append(EdgeSpec.from_dict(spec))
            elif isinstance(spec, str):
                coerced.append(EdgeSpec(spec))
            else:
                raise ValidationError(
                    f"Cannot interpret dependency {spec!r}", task_id=task_id
                )
        return coerced

    def _require_task(self, task_id: str, *, field_name: str = "task_id") -> None:
        validate_task_id(task_id, field_name=field_name)
        if not task_exists(self.lookup, task_id):
            raise ValidationError(f"Unknown task {task_id!r}", task_id=task_id)

    def _validated_specs(self, task_id: str, specs: Iterable[Any]) -> list[EdgeSpec]:
        self._require_task(task_id)
        coerced = self._coerce_specs(task_id, specs)
        for spec in coerced:
            self._require_task(spec.target, field_name="dependency target")
        return coerced

    def _report_cycles(self, cycles: list[Cycle]) -> None:
        for cycle in cycles:
            warning = GraphInvariantWarning(cycle.path)
            logger.warning("graph.cycle_detected", cycle=list(cycle.path), message=str(warning))

    # ── Mutations ───────────────────────────────────────────────────────

    def add_dependencies(
        self,
        task_id: str,
        specs: Iterable[EdgeSpec | Mapping[str, Any] | str],
        project_id: str | None = None,
    ) -> AddDependenciesResult:
        """
        Add or merge edges ``task_id -> target``.

        Raises ``ValidationError`` for an empty id, an unknown task, an
        unknown kind or a strength outside [0, 1]; nothing is applied then.
        """
        with graph_scope(self._scope(project_id)):
            validated = self._validated_specs(task_id, specs)
            changes = self.store.add_edges(task_id, validated)

            involved = [task_id, *(s.target for s in validated)]
            deadline = self._deadline()
            cycles = self.cycles.detect_cycles(involved, deadline)
            self._report_cycles(cycles)
            conflicts = self.conflicts.detect_conflicts(involved, deadline)

            resolutions: list[Resolution] = []
            if self.settings.auto_resolve_conflicts:
                for conflict in conflicts:
                    if conflict.is_resolved:
                        continue
                    resolution = self.conflicts.auto_resolve(conflict)
                    if resolution is not None:
                        resolutions.append(resolution)

            logger.info(
                "dependencies.added",
                task_id=task_id,
                added=len(changes.added),
                updated=len(changes.updated),
                cycles=len(cycles),
                conflicts=len(conflicts),
            )
            return AddDependenciesResult(task_id, changes, cycles, conflicts, resolutions)

    def update_dependencies(
        self,
        task_id: str,
        specs: Iterable[EdgeSpec | Mapping[str, Any] | str],
        project_id: str | None = None,
    ) -> UpdateDependenciesResult:
        """Make ``specs`` the full outgoing edge set of ``task_id`` and assess the change."""
        scope = self._scope(project_id)
        with graph_scope(scope):
            validated = self._validated_specs(task_id, specs)
            changes = self.store.replace_edges(task_id, validated)

            cycles: list[Cycle] = []
            if changes.added:
                cycles = self.cycles.detect_cycles([task_id], self._deadline())
                self._report_cycles(cycles)

            impact = self.impact.analyze_impact(
                task_id,
                ChangeType.DEPENDENCY_UPDATE,
                ImpactContext(
                    project_id=scope,
                    added=tuple(e.to_task for e in changes.added),
                    removed=tuple(e.to_task for e in changes.removed),
                    modified=tuple(e.to_task for e in changes.updated),
                ),
            )
            logger.info(
                "dependencies.updated",
                task_id=task_id,
                added=len(changes.added),
                updated=len(changes.updated),
                removed=len(changes.removed),
                impact_level=impact.impact_level.value,
            )
            return UpdateDependenciesResult(task_id, changes, impact, cycles)

    def remove_dependencies(
        self,
        task_id: str,
        edge_ids: Iterable[str],
        project_id: str | None = None,
    ) -> RemoveDependenciesResult:
        """
        Remove edges of ``task_id`` given as edge ids or target ids.

        The impact is assessed before the edges go; unknown ids are ignored.
        """
        scope = self._scope(project_id)
        with graph_scope(scope):
            validate_task_id(task_id)
            identifiers = list(edge_ids)
            planned = [
                e for e in self.store.get_edges(task_id)
                if e.id in identifiers or e.to_task in identifiers
            ]
            impact = self.impact.analyze_impact(
                task_id,
                ChangeType.DEPENDENCY_REMOVAL,
                ImpactContext(project_id=scope, removed=tuple(e.to_task for e in planned)),
            )
            changes = self.store.remove_edges(task_id, identifiers)
            logger.info("dependencies.removed", task_id=task_id, removed=len(changes.removed))
            return RemoveDependenciesResult(task_id, changes.removed, impact)

    # ── Queries ─────────────────────────────────────────────────────────

    def get_dependencies(
        self, task_id: str, include_transitive: bool = False
    ) -> dict[str, Any]:
        validate_task_id(task_id)
        with self.store.read_locked() as store:
            listing: dict[str, Any] = {
                "task_id": task_id,
                "dependencies": [e.to_dict() for e in store.get_edges(task_id)],
                "dependents": sorted(store.get_dependents(task_id)),
            }
            if include_transitive:
                listing["transitive"] = [
                    {**edge.to_dict(), "depth": depth}
                    for edge, depth in store.dependency_chain(task_id)
                    if depth > 1
                ]
        listing["conflicts"] = [c.to_dict() for c in self.conflicts.get_conflicts_for_task(task_id)]
        return listing

    def analyze(
        self, task_ids: Iterable[str], project_id: str | None = None
    ) -> DependencyAnalysis:
        """
        Bundle cycles, conflicts, critical paths and per-task impact for a
        task set.  An empty set yields an empty analysis.
        """
        scope = self._scope(project_id)
        query = tuple(dict.fromkeys(validate_task_id(t) for t in task_ids))
        with graph_scope(scope):
            if not query:
                return DependencyAnalysis((), scope, {}, [], [], None, {}, [])

            deadline = self._deadline()
            dependencies = {t: self.get_dependencies(t, include_transitive=True) for t in query}
            cycles = self.cycles.detect_cycles(query, deadline)
            self._report_cycles(cycles)
            conflicts = self.conflicts.detect_conflicts(query, deadline)
            critical = self.critical_paths.analyze(query, scope, deadline)
            impacts = {
                t: self.impact.analyze_impact(t, ChangeType.GENERIC, ImpactContext(project_id=scope))
                for t in query
            }
            analysis = DependencyAnalysis(
                task_ids=query,
                project_id=scope,
                dependencies=dependencies,
                cycles=cycles,
                conflicts=conflicts,
                critical_paths=critical,
                impacts=impacts,
                recommendations=_analysis_recommendations(conflicts, cycles, critical),
            )
            logger.info(
                "dependencies.analyzed",
                tasks=len(query),
                cycles=len(cycles),
                conflicts=len(conflicts),
                longest_path=len(critical.longest_path),
            )
            return analysis

    def get_critical_path(
        self,
        project_id: str | None = None,
        task_ids: Iterable[str] | None = None,
    ) -> list[str]:
        """Longest critical path; analyzes ``task_ids`` first if never analyzed."""
        scope = self._scope(project_id)
        task_ids = list(task_ids or ())
        with graph_scope(scope):
            if task_ids and self.critical_paths.get_analysis(task_ids, scope) is None:
                self.critical_paths.analyze(task_ids, scope, self._deadline())
            return self.critical_paths.get_critical_path(scope, task_ids)

    def critical_path_metrics(
        self, task_ids: Iterable[str], project_id: str | None = None
    ) -> dict[str, Any]:
        scope = self._scope(project_id)
        task_ids = list(task_ids)
        with graph_scope(scope):
            if self.critical_paths.get_analysis(task_ids, scope) is None:
                self.critical_paths.analyze(task_ids, scope, self._deadline())
            return self.critical_paths.metrics(task_ids, scope)

    # ── Conflicts ───────────────────────────────────────────────────────

    def detect_conflicts(
        self, task_ids: Iterable[str], project_id: str | None = None
    ) -> list[Conflict]:
        with graph_scope(self._scope(project_id)):
            return self.conflicts.detect_conflicts(task_ids, self._deadline())

    def auto_resolve(
        self, conflict_id: str, options: Mapping[str, Any] | None = None
    ) -> Resolution | None:
        conflict = self.conflicts.get_conflict(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)
        with graph_scope(self.project_id):
            return self.conflicts.auto_resolve(conflict, options)

    def resolve_conflict(
        self,
        conflict_id: str,
        strategy_name: str,
        options: Mapping[str, Any] | None = None,
    ) -> Resolution:
        with graph_scope(self.project_id):
            return self.conflicts.resolve_conflict(conflict_id, strategy_name, options)

    def apply_resolution(self, conflict_id: str) -> ApplyResolutionResult:
        """
        Execute the graph-level actions of a recorded resolution.

        ``remove_dependency`` actions are applied through the store; every
        other action concerns task attributes and is returned as deferred.
        """
        resolution = self.conflicts.get_resolution(conflict_id)
        if resolution is None:
            raise ResolutionNotFoundError(conflict_id)

        result = ApplyResolutionResult(conflict_id, resolution.strategy_name)
        with graph_scope(self.project_id):
            for action in resolution.actions:
                if action.action != "remove_dependency":
                    result.deferred.append(action)
                    continue
                source = action.params.get("from", action.task_id)
                target = action.params["to"]
                result.changes.append(self.store.remove_edges(source, [target]))
                result.applied.append(action)
            logger.info(
                "resolution.applied",
                conflict_id=conflict_id,
                strategy=resolution.strategy_name,
                applied=len(result.applied),
                deferred=len(result.deferred),
            )
        return result

    # ── Impact ──────────────────────────────────────────────────────────

    def analyze_impact(
        self,
        task_id: str,
        change_type: ChangeType | str,
        context: ImpactContext | Mapping[str, Any] | None = None,
        project_id: str | None = None,
    ) -> ImpactReport:
        scope = self._scope(project_id)
        if context is None:
            context = ImpactContext(project_id=scope)
        with graph_scope(scope):
            return self.impact.analyze_impact(task_id, change_type, context)

    def complete_task(self, task_id: str, project_id: str | None = None) -> ImpactReport:
        return self.analyze_impact(task_id, ChangeType.TASK_COMPLETION, project_id=project_id)

    def delay_task(
        self,
        task_id: str,
        delay_hours: float = 0.0,
        delay_days: float = 0.0,
        project_id: str | None = None,
    ) -> ImpactReport:
        context = ImpactContext(
            project_id=self._scope(project_id), delay_hours=delay_hours, delay_days=delay_days
        )
        return self.analyze_impact(task_id, ChangeType.TASK_DELAY, context, project_id)

    def cancel_task(self, task_id: str, project_id: str | None = None) -> ImpactReport:
        return self.analyze_impact(task_id, ChangeType.TASK_CANCELLATION, project_id=project_id)

    # ── Whole-graph views ───────────────────────────────────────────────

    def validate_graph(self) -> GraphValidation:
        with graph_scope(self.project_id), self.store.read_locked() as store:
            cycles = self.cycles.detect_cycles(store.tasks(), self._deadline())
            edges = store.all_edges()
        orphaned = [
            e for e in edges
            if not task_exists(self.lookup, e.from_task) or not task_exists(self.lookup, e.to_task)
        ]
        return GraphValidation(
            cycles=cycles,
            orphaned=orphaned,
            self_dependencies=[e for e in edges if e.is_self_loop],
        )

    def statistics(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "graph": self.store.statistics(),
            "known_cycles": len(self.cycles.known_cycles()),
            "critical_paths": self.critical_paths.statistics(),
            "conflicts": self.conflicts.statistics(),
            "impact": self.impact.statistics(),
            "analytics": self.analytics(),
        }

    def analytics(self) -> dict[str, Any]:
        """
        Graph health rates.

        complexity = edges / tasks, conflict rate = stored conflicts / edges,
        circular rate = known cycles / edges.  Each rate above its threshold
        adds a recommendation.
        """
        with self.store.read_locked() as store:
            total_tasks = len(store.tasks())
            total_edges = store.edge_count()
        conflicts = self.conflicts.all_conflicts()
        cycles = self.cycles.known_cycles()
        paths = self.critical_paths.all_critical_paths()

        complexity = total_edges / total_tasks if total_tasks else 0.0
        conflict_rate = len(conflicts) / total_edges if total_edges else 0.0
        circular_rate = len(cycles) / total_edges if total_edges else 0.0

        recommendations: list[dict[str, str]] = []
        if complexity > HIGH_COMPLEXITY:
            recommendations.append({
                "type": "complexity",
                "message": "High dependency complexity detected",
                "action": "Consider simplifying task dependencies",
            })
        if conflict_rate > HIGH_CONFLICT_RATE:
            recommendations.append({
                "type": "conflicts",
                "message": "High conflict rate detected",
                "action": "Review and resolve dependency conflicts",
            })
        if circular_rate > HIGH_CIRCULAR_RATE:
            recommendations.append({
                "type": "circular_dependencies",
                "message": "Circular dependencies detected",
                "action": "Remove circular dependency chains",
            })

        return {
            "total_tasks": total_tasks,
            "total_dependencies": total_edges,
            "critical_paths": len(paths),
            "conflicts": len(conflicts),
            "dependency_complexity": complexity,
            "conflict_rate": conflict_rate,
            "circular_dependency_rate": circular_rate,
            "average_critical_path_length": (
                sum(len(p) for p in paths) / len(paths) if paths else 0.0
            ),
            "recommendations": recommendations,
        }

    def export(self, format: str = "json") -> str:
        """Serialise every edge as JSON or CSV."""
        if format not in EXPORT_FORMATS:
            raise ValidationError(
                f"Unsupported export format {format!r} (allowed: {', '.join(EXPORT_FORMATS)})"
            )
        with self.store.read_locked() as store:
            tasks = store.tasks()
            edges = store.all_edges()

        if format == "json":
            return json.dumps(
                {
                    "project_id": self.project_id,
                    "exported_at": datetime.now(timezone.utc).isoformat(),
                    "tasks": tasks,
                    "dependencies": [e.to_dict() for e in edges],
                },
                indent=2,
            )

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["from_task", "to_task", "kind", "strength", "created_at", "updated_at"])
        for e in edges:
            writer.writerow([
                e.from_task,
                e.to_task,
                e.kind.value,
                e.strength,
                e.created_at.isoformat(),
                e.updated_at.isoformat(),
            ])
        return buffer.getvalue()

    def visualization(self, task_ids: Iterable[str] | None = None) -> dict[str, Any]:
        """Nodes and edges (transitive from ``task_ids``) for a graph view."""
        with self.store.read_locked() as store:
            roots = list(dict.fromkeys(task_ids)) if task_ids is not None else store.tasks()
            edges: dict[str, DependencyEdge] = {}
            for root in roots:
                for edge, _depth in store.dependency_chain(root, self.settings.max_path_depth):
                    edges.setdefault(edge.id, edge)

        node_ids = dict.fromkeys(roots)
        for edge in edges.values():
            node_ids.setdefault(edge.from_task, None)
            node_ids.setdefault(edge.to_task, None)

        nodes = []
        for task_id in node_ids:
            attrs = self.lookup.get(task_id)
            nodes.append({
                "id": task_id,
                "priority": attrs.priority.value if attrs else None,
                "resource": attrs.resource if attrs else None,
            })
        return {
            "nodes": nodes,
            "dependencies": [
                {"from": e.from_task, "to": e.to_task, "kind": e.kind.value, "strength": e.strength}
                for e in edges.values()
            ],
            "metadata": {
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "total_tasks": len(nodes),
                "total_dependencies": len(edges),
            },
        }


def _analysis_recommendations(
    conflicts: list[Conflict],
    cycles: list[Cycle],
    critical: CriticalPathAnalysis,
) -> list[dict[str, str]]:
    recommendations: list[dict[str, str]] = []
    if conflicts:
        recommendations.append({
            "type": "conflict_resolution",
            "priority": "high",
            "message": "Resolve dependency conflicts to improve task flow",
            "action": "Review and resolve conflicting dependencies",
        })
    if cycles:
        recommendations.append({
            "type": "circular_dependency_removal",
            "priority": "critical",
            "message": "Remove circular dependencies to prevent deadlocks",
            "action": "Break circular dependency chains",
        })
    if len(critical.longest_path) > LONG_CRITICAL_PATH:
        recommendations.append({
            "type": "critical_path_optimization",
            "priority": "medium",
            "message": "Critical path is very long, consider breaking down tasks",
            "action": "Break down complex tasks into smaller ones",
        })
    return recommendations


# ── Per-project registry ────────────────────────────────────────────────


class OrchestratorRegistry:
    """One orchestrator, and therefore one graph, per project."""

    def __init__(
        self,
        lookup: TaskLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._lookup = lookup
        self._settings = settings
        self._engines: dict[str, DependencyOrchestrator] = {}
        self._lock = threading.Lock()

    def get(self, project_id: str) -> DependencyOrchestrator:
        validate_task_id(project_id, field_name="project_id")
        with self._lock:
            engine = self._engines.get(project_id)
            if engine is None:
                engine = DependencyOrchestrator(
                    lookup=self._lookup,
                    settings=self._settings,
                    project_id=project_id,
                )
                self._engines[project_id] = engine
                logger.info("orchestrator.created", project_id=project_id)
            return engine

    def projects(self) -> list[str]:
        with self._lock:
            return list(self._engines)

    def drop(self, project_id: str) -> bool:
        with self._lock:
            return self._engines.pop(project_id, None) is not None
