"""
TaskDeps — Change Impact Analysis
===================================
Simulates the downstream effect of one change to a task or its edges and
scores it.

Dispatch on ``ChangeType``:
- dependency_update / dependency_removal walk the supplied edge diff.
- task_completion / task_delay / task_cancellation walk the task's
  dependents through the store's reverse adjacency.
- generic marks every other project task related to the task by an edge.

Scoring is a fixed-weight composite of three capped terms:
    delay     min(0.4, hours / 40)      (only when hours > 0)
    breadth   min(0.3, affected / 10)
    risk      min(0.3, high_or_critical_risks / 5)
Level: < 0.3 low, < 0.5 medium, < 0.8 high, otherwise critical.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

from taskdeps.core.exceptions import ValidationError
from taskdeps.core.logging import get_logger
from taskdeps.core.task_types import (
    CHANGE_TYPE_ALIASES,
    ChangeType,
    ImpactLevel,
    Severity,
    TaskLookup,
)
from taskdeps.graph.store import DependencyStore, validate_task_id

logger = get_logger(__name__)

# ── Scoring constants ───────────────────────────────────────────────────

DELAY_WEIGHT_CAP = 0.4
DELAY_REFERENCE_HOURS = 40.0
BREADTH_WEIGHT_CAP = 0.3
BREADTH_REFERENCE_TASKS = 10
RISK_WEIGHT_CAP = 0.3
RISK_REFERENCE_COUNT = 5

CRITICAL_THRESHOLD = 0.8
HIGH_THRESHOLD = 0.5
MEDIUM_THRESHOLD = 0.3

HOURS_PER_DAY = 8
MODIFIED_EDGE_FACTOR = 0.5
CANCELLATION_FACTOR = 2.0


def parse_change_type(value: ChangeType | str) -> ChangeType:
    """Accept a ``ChangeType``, its value, or a known alias."""
    if isinstance(value, ChangeType):
        return value
    if value in CHANGE_TYPE_ALIASES:
        return CHANGE_TYPE_ALIASES[value]
    try:
        return ChangeType(value)
    except ValueError:
        allowed = ", ".join(c.value for c in ChangeType)
        raise ValidationError(f"Unknown change type {value!r} (allowed: {allowed})") from None


def impact_score(delay_hours: float, affected: int, severe_risks: int) -> float:
    score = 0.0
    if delay_hours > 0:
        score += min(DELAY_WEIGHT_CAP, delay_hours / DELAY_REFERENCE_HOURS)
    score += min(BREADTH_WEIGHT_CAP, affected / BREADTH_REFERENCE_TASKS)
    score += min(RISK_WEIGHT_CAP, severe_risks / RISK_REFERENCE_COUNT)
    return score


def impact_level(score: float) -> ImpactLevel:
    if score >= CRITICAL_THRESHOLD:
        return ImpactLevel.CRITICAL
    if score >= HIGH_THRESHOLD:
        return ImpactLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


# ── Data objects ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ImpactContext:
    """
    Inputs a change type may need.

    ``added``/``removed``/``modified`` are the target ids of an edge diff.
    ``project_tasks`` bounds a generic analysis; ``None`` means every task
    in the graph.
    """

    project_id: str | None = None
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    delay_hours: float = 0.0
    delay_days: float = 0.0
    project_tasks: tuple[str, ...] | None = None

    @property
    def total_delay_hours(self) -> float:
        return self.delay_hours + self.delay_days * HOURS_PER_DAY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ImpactContext:
        data = data or {}
        project_tasks = data.get("project_tasks")
        return cls(
            project_id=data.get("project_id"),
            added=tuple(data.get("added", ())),
            removed=tuple(data.get("removed", ())),
            modified=tuple(data.get("modified", ())),
            delay_hours=_duration(data, "delay_hours"),
            delay_days=_duration(data, "delay_days"),
            project_tasks=tuple(project_tasks) if project_tasks is not None else None,
        )


def _duration(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key, 0.0)
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class RiskFactor:
    type: str
    severity: Severity
    description: str
    task_id: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_severe(self) -> bool:
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "description": self.description,
            "task_id": self.task_id,
            **dict(self.details),
        }


@dataclass(frozen=True)
class ImpactReport:
    task_id: str
    change_type: ChangeType
    project_id: str | None
    affected_tasks: tuple[str, ...]
    impact_level: ImpactLevel
    impact_score: float
    estimated_delay_hours: float
    risk_factors: tuple[RiskFactor, ...] = ()
    recommendations: tuple[dict[str, str], ...] = ()
    mitigations: tuple[dict[str, str], ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "change_type": self.change_type.value,
            "project_id": self.project_id,
            "timestamp": self.timestamp.isoformat(),
            "affected_tasks": list(self.affected_tasks),
            "impact_level": self.impact_level.value,
            "impact_score": round(self.impact_score, 4),
            "estimated_delay_hours": self.estimated_delay_hours,
            "risk_factors": [r.to_dict() for r in self.risk_factors],
            "recommendations": list(self.recommendations),
            "mitigations": list(self.mitigations),
        }


class _Accumulator:
    """Mutable running totals while one report is assembled."""

    def __init__(self) -> None:
        self.affected: dict[str, None] = {}
        self.delay = 0.0
        self.risks: list[RiskFactor] = []

    def touch(self, task_id: str, delay: float = 0.0, risk: RiskFactor | None = None) -> None:
        self.affected.setdefault(task_id, None)
        self.delay += delay
        if risk is not None:
            self.risks.append(risk)


# ── Analyzer ────────────────────────────────────────────────────────────


class ImpactAnalyzer:
    """Builds, scores and records ``ImpactReport``s."""

    def __init__(
        self,
        store: DependencyStore,
        lookup: TaskLookup,
        default_delay_hours: float = 4.0,
        max_history: int = 1000,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._default_delay = default_delay_hours
        self._history: deque[ImpactReport] = deque(maxlen=max_history)
        self._history_lock = threading.Lock()

    def task_delay(self, task_id: str) -> float:
        """Effort of ``task_id`` in hours, or the configured default."""
        attrs = self._lookup.get(task_id)
        if attrs is not None and attrs.estimated_hours is not None:
            return attrs.estimated_hours
        return self._default_delay

    def analyze_impact(
        self,
        task_id: str,
        change_type: ChangeType | str,
        context: ImpactContext | Mapping[str, Any] | None = None,
    ) -> ImpactReport:
        validate_task_id(task_id)
        kind = parse_change_type(change_type)
        if not isinstance(context, ImpactContext):
            context = ImpactContext.from_mapping(context)

        acc = _Accumulator()
        with self._store.read_locked():
            if kind is ChangeType.DEPENDENCY_UPDATE:
                self._edge_diff(acc, context.added, context.removed, context.modified)
            elif kind is ChangeType.DEPENDENCY_REMOVAL:
                self._edge_diff(acc, (), context.removed, ())
            elif kind is ChangeType.TASK_COMPLETION:
                self._completion(acc, task_id)
            elif kind is ChangeType.TASK_DELAY:
                self._delay(acc, task_id, context.total_delay_hours)
            elif kind is ChangeType.TASK_CANCELLATION:
                self._cancellation(acc, task_id)
            else:
                self._generic(acc, task_id, context.project_tasks)

        severe = sum(1 for r in acc.risks if r.is_severe)
        score = impact_score(acc.delay, len(acc.affected), severe)
        level = impact_level(score)
        report = ImpactReport(
            task_id=task_id,
            change_type=kind,
            project_id=context.project_id,
            affected_tasks=tuple(acc.affected),
            impact_level=level,
            impact_score=score,
            estimated_delay_hours=acc.delay,
            risk_factors=tuple(acc.risks),
            recommendations=tuple(_recommendations(level, acc)),
            mitigations=tuple(_mitigations(acc)),
        )
        with self._history_lock:
            self._history.append(report)
        logger.info(
            "impact.analyzed",
            task_id=task_id,
            change_type=kind.value,
            affected=len(report.affected_tasks),
            impact_level=level.value,
        )
        return report

    # ── Change handlers ─────────────────────────────────────────────────

    def _edge_diff(
        self,
        acc: _Accumulator,
        added: Iterable[str],
        removed: Iterable[str],
        modified: Iterable[str],
    ) -> None:
        for target in added:
            acc.touch(target, self.task_delay(target), RiskFactor(
                "new_dependency",
                Severity.MEDIUM,
                f"New dependency on {target} may cause delays",
                target,
            ))
        for target in removed:
            acc.touch(target, -self.task_delay(target), RiskFactor(
                "removed_dependency",
                Severity.LOW,
                f"Removed dependency on {target} may improve timeline",
                target,
            ))
        for target in modified:
            acc.touch(target, self.task_delay(target) * MODIFIED_EDGE_FACTOR, RiskFactor(
                "modified_dependency",
                Severity.LOW,
                f"Modified dependency on {target} may cause minor delays",
                target,
            ))

    def _dependents(self, task_id: str) -> list[str]:
        return sorted(self._store.get_dependents(task_id))

    def _completion(self, acc: _Accumulator, task_id: str) -> None:
        for dependent in self._dependents(task_id):
            acc.touch(dependent, -self.task_delay(dependent), RiskFactor(
                "dependency_completed",
                Severity.LOW,
                f"Completed dependency {task_id} may improve timeline",
                dependent,
            ))

    def _delay(self, acc: _Accumulator, task_id: str, hours: float) -> None:
        for dependent in self._dependents(task_id):
            acc.touch(dependent, hours, RiskFactor(
                "dependency_delayed",
                Severity.HIGH,
                f"Delayed dependency {task_id} will cause {hours:g} hours delay",
                dependent,
            ))

    def _cancellation(self, acc: _Accumulator, task_id: str) -> None:
        dependents = self._dependents(task_id)
        for dependent in dependents:
            acc.touch(dependent, self.task_delay(dependent) * CANCELLATION_FACTOR, RiskFactor(
                "dependency_cancelled",
                Severity.CRITICAL,
                f"Cancelled dependency {task_id} will cause significant delays",
                dependent,
            ))
        acc.risks.append(RiskFactor(
            "task_cancellation",
            Severity.HIGH,
            "Task cancellation may cause significant delays",
            task_id,
            {"affected_tasks": len(dependents)},
        ))

    def _generic(
        self, acc: _Accumulator, task_id: str, project_tasks: Iterable[str] | None
    ) -> None:
        candidates = self._store.tasks() if project_tasks is None else project_tasks
        for other in dict.fromkeys(candidates):
            if other != task_id and self._store.is_related(task_id, other):
                acc.touch(other)

    # ── History ─────────────────────────────────────────────────────────

    def history(
        self,
        task_id: str | None = None,
        change_type: ChangeType | str | None = None,
    ) -> list[ImpactReport]:
        """Recorded reports, newest first, optionally filtered."""
        kind = parse_change_type(change_type) if change_type is not None else None
        with self._history_lock:
            reports = list(self._history)
        return [
            r
            for r in reversed(reports)
            if (task_id is None or r.task_id == task_id)
            and (kind is None or r.change_type is kind)
        ]

    def statistics(self) -> dict[str, Any]:
        with self._history_lock:
            reports = list(self._history)
        levels = {level.value: 0 for level in ImpactLevel}
        for report in reports:
            levels[report.impact_level.value] += 1
        total = len(reports)
        return {
            "total_impacts": total,
            "impact_levels": levels,
            "average_delay_hours": (
                sum(r.estimated_delay_hours for r in reports) / total if total else 0.0
            ),
            "average_affected_tasks": (
                sum(len(r.affected_tasks) for r in reports) / total if total else 0.0
            ),
            "critical_impacts": levels[ImpactLevel.CRITICAL.value],
            "high_impacts": levels[ImpactLevel.HIGH.value],
        }

    def clear_old_history(self, max_age: timedelta = timedelta(days=30)) -> int:
        cutoff = datetime.now(timezone.utc) - max_age
        with self._history_lock:
            kept = [r for r in self._history if r.timestamp >= cutoff]
            dropped = len(self._history) - len(kept)
            self._history.clear()
            self._history.extend(kept)
        return dropped


# ── Templates ───────────────────────────────────────────────────────────


def _recommendations(level: ImpactLevel, acc: _Accumulator) -> list[dict[str, str]]:
    recommendations: list[dict[str, str]] = []
    if level in (ImpactLevel.HIGH, ImpactLevel.CRITICAL):
        recommendations.append({
            "type": "immediate_action",
            "priority": "high",
            "message": "High impact change detected",
            "action": "Review and approve the change before implementation",
        })
    if acc.delay > HOURS_PER_DAY:
        recommendations.append({
            "type": "timeline_adjustment",
            "priority": "medium",
            "message": f"Estimated delay of {acc.delay:g} hours",
            "action": "Adjust the project timeline and inform stakeholders",
        })
    if len(acc.affected) > 5:
        recommendations.append({
            "type": "stakeholder_notification",
            "priority": "medium",
            "message": f"{len(acc.affected)} tasks will be affected",
            "action": "Notify everyone working on the affected tasks",
        })
    critical = [r for r in acc.risks if r.severity is Severity.CRITICAL]
    if critical:
        recommendations.append({
            "type": "risk_mitigation",
            "priority": "high",
            "message": f"{len(critical)} critical risks identified",
            "action": "Plan mitigations for the critical risks",
        })
    return recommendations


def _mitigations(acc: _Accumulator) -> list[dict[str, str]]:
    mitigations: list[dict[str, str]] = []
    if acc.delay > 0:
        mitigations.append({
            "type": "timeline_mitigation",
            "description": "Add buffer time to the project timeline",
            "effectiveness": "high",
            "cost": "low",
        })
        mitigations.append({
            "type": "resource_mitigation",
            "description": "Allocate additional resources to affected tasks",
            "effectiveness": "medium",
            "cost": "high",
        })
    if any(r.is_severe for r in acc.risks):
        mitigations.append({
            "type": "risk_mitigation",
            "description": "Monitor high-risk tasks and alert early",
            "effectiveness": "high",
            "cost": "medium",
        })
    if len(acc.affected) > 3:
        mitigations.append({
            "type": "communication_mitigation",
            "description": "Set up regular check-ins for affected tasks",
            "effectiveness": "medium",
            "cost": "low",
        })
    return mitigations
