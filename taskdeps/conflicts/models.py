"""
TaskDeps — Conflict Data Objects
==================================
Conflicts found among a set of tasks and the resolutions proposed for them.

Conflict ids are stable: they are derived from the conflict type, the
involved task ids and an optional discriminator, so detecting the same
situation twice yields the same id.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Iterable, Mapping

from taskdeps.core.task_types import ImpactLevel, Severity


class ConflictType(StrEnum):
    SCHEDULING = "scheduling"
    RESOURCE = "resource"
    PRIORITY = "priority"
    DEPENDENCY = "dependency"


class ConflictStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


def conflict_id(
    conflict_type: ConflictType, task_ids: Iterable[str], discriminator: str = ""
) -> str:
    """Deterministic id, e.g. ``scheduling_3f2a9c1b04de``."""
    digest = hashlib.sha1(
        "|".join([conflict_type.value, *task_ids, discriminator]).encode("utf-8")
    ).hexdigest()
    return f"{conflict_type.value}_{digest[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResolutionAction:
    """One recommended step, e.g. ``remove_dependency`` or ``reassign_resource``."""

    action: str
    task_id: str | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "task_id": self.task_id, **dict(self.params)}


@dataclass(frozen=True)
class Resolution:
    """
    Recommendation produced by a strategy.

    Never applied by the strategy itself; the orchestrator decides whether
    to execute its graph-level actions.
    """

    strategy_name: str
    conflict_id: str
    description: str
    actions: tuple[ResolutionAction, ...] = ()
    estimated_impact: ImpactLevel = ImpactLevel.LOW
    resolved_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy_name,
            "conflict_id": self.conflict_id,
            "description": self.description,
            "actions": [a.to_dict() for a in self.actions],
            "estimated_impact": self.estimated_impact.value,
            "resolved_at": self.resolved_at.isoformat(),
        }


@dataclass
class Conflict:
    id: str
    type: ConflictType
    severity: Severity
    task_ids: tuple[str, ...]
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    status: ConflictStatus = ConflictStatus.OPEN
    resolution: Resolution | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status is ConflictStatus.RESOLVED

    def involves(self, task_id: str) -> bool:
        return task_id in self.task_ids

    def mark_resolved(self, resolution: Resolution) -> None:
        self.status = ConflictStatus.RESOLVED
        self.resolution = resolution

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "task_ids": list(self.task_ids),
            "description": self.description,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "resolution": self.resolution.to_dict() if self.resolution else None,
        }
