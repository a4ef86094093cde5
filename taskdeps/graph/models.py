"""
TaskDeps — Graph Data Objects
===============================
Edges, edge specs, change sets and cycles.

An edge ``a -> b`` reads "task ``a`` depends on task ``b``".  Edge identity
is the ``(from_task, to_task)`` pair; ``DependencyEdge.id`` renders it as
``"a->b"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping

EDGE_ID_SEPARATOR = "->"


class DependencyKind(StrEnum):
    """Relation carried by an edge."""

    DEPENDS_ON = "depends_on"
    BLOCKS = "blocks"
    RELATED_TO = "related_to"
    PREREQUISITE = "prerequisite"


DEFAULT_KIND = DependencyKind.DEPENDS_ON
DEFAULT_STRENGTH = 1.0


def edge_id(from_task: str, to_task: str) -> str:
    """Render the identity of the edge ``from_task -> to_task``."""
    return f"{from_task}{EDGE_ID_SEPARATOR}{to_task}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EdgeSpec:
    """
    Caller-supplied description of one outgoing dependency.

    ``kind`` and ``strength`` left as ``None`` take the defaults on insert
    and keep the stored values when merging into an existing edge.
    """

    target: str
    kind: DependencyKind | str | None = None
    strength: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EdgeSpec:
        """Build a spec from a JSON-style mapping (``task_id`` or ``target`` key)."""
        target = data.get("target", data.get("task_id", data.get("taskId")))
        extra = {
            k: v
            for k, v in data.items()
            if k not in {"target", "task_id", "taskId", "kind", "type", "strength", "metadata"}
        }
        metadata = {**dict(data.get("metadata") or {}), **extra}
        return cls(
            target=target,
            kind=data.get("kind", data.get("type")),
            strength=data.get("strength"),
            metadata=metadata,
        )


@dataclass(frozen=True)
class DependencyEdge:
    """A stored dependency ``from_task -> to_task``.  Immutable; merges replace it."""

    from_task: str
    to_task: str
    kind: DependencyKind = DEFAULT_KIND
    strength: float = DEFAULT_STRENGTH
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return edge_id(self.from_task, self.to_task)

    @property
    def is_self_loop(self) -> bool:
        return self.from_task == self.to_task

    def same_payload(self, other: DependencyEdge) -> bool:
        """True when kind, strength and metadata match (timestamps ignored)."""
        return (
            self.kind == other.kind
            and self.strength == other.strength
            and dict(self.metadata) == dict(other.metadata)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from_task": self.from_task,
            "to_task": self.to_task,
            "kind": self.kind.value,
            "strength": self.strength,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class EdgeChangeSet:
    """Outcome of one store mutation."""

    task_id: str
    added: tuple[DependencyEdge, ...] = ()
    updated: tuple[DependencyEdge, ...] = ()
    removed: tuple[DependencyEdge, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "added": [e.to_dict() for e in self.added],
            "updated": [e.to_dict() for e in self.updated],
            "removed": [e.to_dict() for e in self.removed],
        }


@dataclass(frozen=True)
class Cycle:
    """
    A closed walk of task ids: ``path[0] == path[-1]``.

    A self-loop ``a -> a`` is ``("a", "a")``.
    """

    path: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.path) < 2 or self.path[0] != self.path[-1]:
            raise ValueError(f"Cycle path must be closed, got {self.path!r}")

    @property
    def members(self) -> tuple[str, ...]:
        """Distinct tasks on the cycle, in traversal order."""
        return self.path[:-1]

    @property
    def is_self_loop(self) -> bool:
        return len(self.path) == 2

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        return tuple(zip(self.path, self.path[1:]))

    def canonical(self) -> tuple[str, ...]:
        """Rotation of ``members`` starting at its smallest id."""
        members = self.members
        start = members.index(min(members))
        return members[start:] + members[:start]

    def normalised(self) -> Cycle:
        """The same cycle, walked from its smallest id."""
        members = self.canonical()
        return Cycle(members + (members[0],))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.members

    def __len__(self) -> int:
        return len(self.members)

    def __str__(self) -> str:
        return " -> ".join(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": list(self.path),
            "self_loop": self.is_self_loop,
            "length": len(self),
        }
