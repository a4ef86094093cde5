"""
TaskDeps — Critical Path Analysis
===================================
Longest dependency chains within a query set of tasks.

For a query set Q, the successors of a task are its dependency targets
that are also in Q.  Starting from each seed, every maximal path is
enumerated depth-first.  A path ends at a sink (no successor in Q), at a
task whose successors are all already on the path, or once it is longer
than ``max_depth`` tasks.  The paths of the seed's maximum length are its
critical paths.  Seeds already covered by an earlier seed's critical paths
are skipped.

Criticality of a task = (critical paths containing it) / (all critical
paths of the query): 1.0 is ``high``, above 0.5 is ``medium``.

Enumeration is exhaustive and can grow exponentially with the graph's
width; it is bounded by ``max_depth`` and by the caller's ``Deadline``.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any, Iterable

from taskdeps.core.concurrency import Deadline
from taskdeps.core.logging import DEFAULT_SCOPE, get_logger
from taskdeps.graph.store import DependencyStore

logger = get_logger(__name__)

MAX_PATH_DEPTH = 20
MAX_STORED_ANALYSES = 500
BOTTLENECK_RATIO = 0.8
LONG_PATH_THRESHOLD = 10
LOW_COMPLEXITY_THRESHOLD = 0.3

Path = tuple[str, ...]
AnalysisKey = tuple[str, tuple[str, ...]]


class Criticality(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class CriticalTask:
    task_id: str
    frequency: int
    ratio: float
    criticality: Criticality

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "frequency": self.frequency,
            "ratio": self.ratio,
            "criticality": self.criticality.value,
        }


@dataclass(frozen=True)
class CriticalPathAnalysis:
    """Stored result of one ``analyze`` call."""

    key: AnalysisKey
    task_ids: tuple[str, ...]
    project_id: str | None
    critical_paths: tuple[Path, ...]
    critical_tasks: tuple[CriticalTask, ...]
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def longest_path(self) -> Path:
        """First-found path of maximum length; empty when there are none."""
        longest: Path = ()
        for path in self.critical_paths:
            if len(path) > len(longest):
                longest = path
        return longest

    def criticality_of(self, task_id: str) -> Criticality | None:
        for task in self.critical_tasks:
            if task.task_id == task_id:
                return task.criticality
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_ids": list(self.task_ids),
            "project_id": self.project_id,
            "critical_paths": [list(p) for p in self.critical_paths],
            "longest_path": list(self.longest_path),
            "critical_tasks": [t.to_dict() for t in self.critical_tasks],
            "analyzed_at": self.analyzed_at.isoformat(),
        }


def analysis_key(task_ids: Iterable[str], project_id: str | None) -> AnalysisKey:
    return (project_id or DEFAULT_SCOPE, tuple(sorted(set(task_ids))))


def rank_critical_tasks(paths: Iterable[Path]) -> tuple[CriticalTask, ...]:
    """Frequency of each task across ``paths``, keeping high/medium ones."""
    paths = list(paths)
    total = len(paths)
    if total == 0:
        return ()
    frequency: Counter[str] = Counter()
    for path in paths:
        frequency.update(dict.fromkeys(path, 1))
    ranked: list[CriticalTask] = []
    for task_id, count in frequency.items():
        ratio = count / total
        if count == total:
            ranked.append(CriticalTask(task_id, count, ratio, Criticality.HIGH))
        elif ratio > 0.5:
            ranked.append(CriticalTask(task_id, count, ratio, Criticality.MEDIUM))
    ranked.sort(key=lambda t: t.frequency, reverse=True)
    return tuple(ranked)


class CriticalPathAnalyzer:
    """Enumerates and stores critical paths per (project, task set)."""

    def __init__(
        self,
        store: DependencyStore,
        max_depth: int = MAX_PATH_DEPTH,
        max_analyses: int = MAX_STORED_ANALYSES,
    ) -> None:
        self._store = store
        self._max_depth = max_depth
        self._max_analyses = max_analyses
        self._analyses: dict[AnalysisKey, CriticalPathAnalysis] = {}
        self._lock = threading.Lock()

    def _snapshot(self) -> list[CriticalPathAnalysis]:
        with self._lock:
            return list(self._analyses.values())

    # ── Analysis ────────────────────────────────────────────────────────

    def analyze(
        self,
        task_ids: Iterable[str],
        project_id: str | None = None,
        deadline: Deadline | None = None,
    ) -> CriticalPathAnalysis:
        """
        Compute and store the critical paths of ``task_ids``.

        Raises ``AnalysisTimeoutError`` / ``AnalysisCancelledError`` when
        ``deadline`` runs out; nothing is stored in that case.
        """
        deadline = deadline or Deadline.never()
        query = tuple(dict.fromkeys(task_ids))
        members = frozenset(query)

        critical: list[Path] = []
        covered: set[str] = set()
        with self._store.read_locked() as store:
            for seed in query:
                if seed in covered:
                    continue
                paths = self._enumerate(store, seed, members, deadline)
                longest = max(len(p) for p in paths)
                seed_critical = [p for p in paths if len(p) == longest]
                for path in seed_critical:
                    covered.update(path)
                critical.extend(seed_critical)

        key = analysis_key(query, project_id)
        analysis = CriticalPathAnalysis(
            key=key,
            task_ids=query,
            project_id=project_id,
            critical_paths=tuple(critical),
            critical_tasks=rank_critical_tasks(critical),
        )
        with self._lock:
            # Re-insertion moves the key to the end; eviction drops the oldest.
            self._analyses.pop(key, None)
            self._analyses[key] = analysis
            overflow = len(self._analyses) - self._max_analyses
            for stale in list(self._analyses)[:max(overflow, 0)]:
                del self._analyses[stale]
        logger.info(
            "critical_path.analyzed",
            tasks=len(query),
            critical_paths=len(critical),
            longest=len(analysis.longest_path),
        )
        return analysis

    def _enumerate(
        self,
        store: DependencyStore,
        seed: str,
        members: frozenset[str],
        deadline: Deadline,
    ) -> list[Path]:
        """All maximal paths from ``seed``, in depth-first discovery order."""
        paths: list[Path] = []
        stack: list[Path] = [(seed,)]
        while stack:
            deadline.check("critical_path.enumerate")
            path = stack.pop()
            successors = [t for t in store.get_targets(path[-1]) if t in members]
            if not successors or len(path) > self._max_depth:
                paths.append(path)
                continue
            extensions = [t for t in successors if t not in path]
            if not extensions:
                paths.append(path)
                continue
            for target in reversed(extensions):
                stack.append(path + (target,))
        return paths

    # ── Queries ─────────────────────────────────────────────────────────

    def get_analysis(
        self, task_ids: Iterable[str], project_id: str | None = None
    ) -> CriticalPathAnalysis | None:
        key = analysis_key(task_ids, project_id)
        with self._lock:
            return self._analyses.get(key)

    def get_critical_path(
        self,
        project_id: str | None = None,
        task_ids: Iterable[str] | None = None,
    ) -> list[str]:
        """
        Longest stored critical path.

        With ``task_ids``: the longest path of that task set's analysis, if
        stored.  Otherwise the longest across stored analyses of
        ``project_id`` (all projects when ``None``).  Ties keep the path
        found first.
        """
        task_ids = list(task_ids or ())
        if task_ids:
            analysis = self.get_analysis(task_ids, project_id)
            if analysis is not None:
                return list(analysis.longest_path)

        scope = project_id or None
        longest: Path = ()
        for analysis in self._snapshot():
            if scope is not None and analysis.key[0] != scope:
                continue
            if len(analysis.longest_path) > len(longest):
                longest = analysis.longest_path
        return list(longest)

    def all_critical_paths(self) -> list[list[str]]:
        return [list(p) for a in self._snapshot() for p in a.critical_paths]

    def metrics(
        self, task_ids: Iterable[str], project_id: str | None = None
    ) -> dict[str, Any] | None:
        """Summary of a stored analysis; ``None`` if the task set was never analyzed."""
        analysis = self.get_analysis(task_ids, project_id)
        if analysis is None:
            return None
        paths = analysis.critical_paths
        bottlenecks = self.bottlenecks(paths)
        complexity = self.path_complexity(paths)
        return {
            "total_critical_paths": len(paths),
            "longest_path_length": len(analysis.longest_path),
            "average_path_length": (
                sum(len(p) for p in paths) / len(paths) if paths else 0.0
            ),
            "critical_tasks": [t.to_dict() for t in analysis.critical_tasks],
            "path_complexity": complexity,
            "bottleneck_tasks": bottlenecks,
            "recommendations": self._recommendations(analysis, bottlenecks, complexity),
        }

    @staticmethod
    def path_complexity(paths: Iterable[Path]) -> float:
        """Unique tasks divided by total path length (0.0 for no paths)."""
        paths = list(paths)
        total_length = sum(len(p) for p in paths)
        if total_length == 0:
            return 0.0
        unique = {t for p in paths for t in p}
        return len(unique) / total_length

    @staticmethod
    def bottlenecks(paths: Iterable[Path]) -> list[dict[str, Any]]:
        """Tasks appearing in at least 80 % of ``paths``, most frequent first."""
        paths = list(paths)
        if not paths:
            return []
        frequency: Counter[str] = Counter()
        for path in paths:
            frequency.update(dict.fromkeys(path, 1))
        found = [
            {"task_id": t, "frequency": n, "bottleneck_score": n / len(paths)}
            for t, n in frequency.items()
            if n >= len(paths) * BOTTLENECK_RATIO
        ]
        found.sort(key=lambda b: b["bottleneck_score"], reverse=True)
        return found

    @staticmethod
    def _recommendations(
        analysis: CriticalPathAnalysis,
        bottlenecks: list[dict[str, Any]],
        complexity: float,
    ) -> list[dict[str, str]]:
        recommendations: list[dict[str, str]] = []
        if len(analysis.longest_path) > LONG_PATH_THRESHOLD:
            recommendations.append({
                "type": "path_length",
                "priority": "high",
                "message": "Critical path is very long",
                "suggestion": "Break tasks on the critical path into smaller pieces",
            })
        if bottlenecks:
            recommendations.append({
                "type": "bottleneck",
                "priority": "high",
                "message": f"{len(bottlenecks)} bottleneck tasks identified",
                "suggestion": "Focus resources on bottleneck tasks",
            })
        high = [t for t in analysis.critical_tasks if t.criticality is Criticality.HIGH]
        if high:
            recommendations.append({
                "type": "critical_tasks",
                "priority": "medium",
                "message": f"{len(high)} highly critical tasks identified",
                "suggestion": "Monitor critical tasks and keep them staffed",
            })
        if analysis.critical_paths and complexity < LOW_COMPLEXITY_THRESHOLD:
            recommendations.append({
                "type": "complexity",
                "priority": "low",
                "message": "Low path complexity detected",
                "suggestion": "Consider adding parallel work streams",
            })
        return recommendations

    # ── Housekeeping ────────────────────────────────────────────────────

    def statistics(self) -> dict[str, Any]:
        analyses = self._snapshot()
        lengths = [len(p) for a in analyses for p in a.critical_paths]
        critical_tasks = {t.task_id for a in analyses for t in a.critical_tasks}
        return {
            "total_analyses": len(analyses),
            "total_paths": len(lengths),
            "average_path_length": sum(lengths) / len(lengths) if lengths else 0.0,
            "max_path_length": max(lengths, default=0),
            "critical_tasks_count": len(critical_tasks),
        }

    def clear_old_analyses(self, max_age: timedelta = timedelta(days=7)) -> int:
        cutoff = datetime.now(timezone.utc) - max_age
        with self._lock:
            stale = [k for k, a in self._analyses.items() if a.analyzed_at < cutoff]
            for key in stale:
                del self._analyses[key]
        return len(stale)

