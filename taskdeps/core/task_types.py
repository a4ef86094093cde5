"""
TaskDeps — Task Types and the Task Attribute Lookup
=====================================================
Shared enumerations plus the interface to the external task-attribute
store.  The engine owns dependency edges only; existence, priority,
schedule window, resource assignment and effort estimate of a task are
answered by an injected ``TaskLookup``.

Enumerations:
- Severity: LOW < MEDIUM < HIGH < CRITICAL (risk factors, conflicts)
- ImpactLevel: same scale, used for impact reports and resolutions
- TaskPriority: LOW < MEDIUM < HIGH < CRITICAL
- ChangeType: kinds of change the impact analyzer understands
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Iterable, Mapping, Protocol, runtime_checkable


class _RankedEnum(StrEnum):
    """StrEnum whose members are ordered by declaration."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)


class Severity(_RankedEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ImpactLevel(_RankedEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskPriority(_RankedEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChangeType(StrEnum):
    """Change kinds accepted by ``ImpactAnalyzer.analyze_impact``."""

    DEPENDENCY_UPDATE = "dependency_update"
    DEPENDENCY_REMOVAL = "dependency_removal"
    TASK_COMPLETION = "task_completion"
    TASK_DELAY = "task_delay"
    TASK_CANCELLATION = "task_cancellation"
    GENERIC = "generic"


# "analysis" is what whole-graph analysis passes in.
CHANGE_TYPE_ALIASES: dict[str, ChangeType] = {"analysis": ChangeType.GENERIC}


# ── Task attributes ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TaskAttributes:
    """Attributes the engine reads for a task but does not own."""

    task_id: str
    exists: bool = True
    priority: TaskPriority = TaskPriority.MEDIUM
    start: datetime | None = None
    deadline: datetime | None = None
    resource: str | None = None
    estimated_hours: float | None = None

    @property
    def has_window(self) -> bool:
        return self.start is not None and self.deadline is not None


@runtime_checkable
class TaskLookup(Protocol):
    """Oracle answering attribute queries for task ids."""

    def get(self, task_id: str) -> TaskAttributes | None:
        """Return the task's attributes, or ``None`` when the task is unknown."""
        ...


class OpenTaskLookup:
    """
    Lookup that knows nothing: every id exists with default attributes.

    Used when no oracle is injected, so the engine still works on bare ids.
    """

    def get(self, task_id: str) -> TaskAttributes | None:
        return TaskAttributes(task_id=task_id)


class InMemoryTaskLookup:
    """Dict-backed ``TaskLookup`` for callers that hold task data in process."""

    def __init__(self, tasks: Iterable[TaskAttributes] | Mapping[str, TaskAttributes] = ()) -> None:
        values = tasks.values() if isinstance(tasks, Mapping) else tasks
        self._tasks: dict[str, TaskAttributes] = {t.task_id: t for t in values}

    def get(self, task_id: str) -> TaskAttributes | None:
        attrs = self._tasks.get(task_id)
        if attrs is None or not attrs.exists:
            return None
        return attrs

    def put(self, attrs: TaskAttributes) -> None:
        self._tasks[attrs.task_id] = attrs

    def remove(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


def task_exists(lookup: TaskLookup, task_id: str) -> bool:
    attrs = lookup.get(task_id)
    return attrs is not None and attrs.exists
