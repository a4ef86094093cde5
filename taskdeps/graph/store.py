"""
TaskDeps — Dependency Store
=============================
Owner of one dependency graph: forward adjacency (task -> outgoing edges)
and reverse adjacency (task -> tasks that depend on it).

Invariants:
- At most one edge per ``(from_task, to_task)``.  Re-adding merges kind,
  strength and metadata into the stored edge.
- Every forward edge ``a -> b`` has the reverse entry ``b -> a``.  Both maps
  change together under the write lock, so readers never see one without
  the other.
- Internal maps never leave the store: every read returns a copy.

Usage:
    store = DependencyStore()
    changes = store.add_edges("task_1", [EdgeSpec("task_2"), EdgeSpec("task_3")])
    store.get_dependents("task_2")   # frozenset({"task_1"})
"""

from __future__ import annotations

import math
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from taskdeps.core.concurrency import ReadWriteLock
from taskdeps.core.exceptions import ValidationError
from taskdeps.core.logging import get_logger
from taskdeps.graph.models import (
    DEFAULT_KIND,
    DEFAULT_STRENGTH,
    EDGE_ID_SEPARATOR,
    DependencyEdge,
    DependencyKind,
    EdgeChangeSet,
    EdgeSpec,
)

logger = get_logger(__name__)


# ── Validation ──────────────────────────────────────────────────────────


def validate_task_id(task_id: Any, *, field_name: str = "task_id") -> str:
    """Return ``task_id`` if it is a non-blank string, else raise ``ValidationError``."""
    if not isinstance(task_id, str) or not task_id.strip():
        raise ValidationError(f"{field_name} must be a non-empty string, got {task_id!r}")
    return task_id


def _parse_kind(kind: DependencyKind | str | None, task_id: str) -> DependencyKind | None:
    if kind is None:
        return None
    try:
        return DependencyKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in DependencyKind)
        raise ValidationError(
            f"Unknown dependency kind {kind!r} (allowed: {allowed})", task_id=task_id
        ) from None


def _parse_strength(strength: float | None, task_id: str) -> float | None:
    if strength is None:
        return None
    if isinstance(strength, bool) or not isinstance(strength, (int, float)):
        raise ValidationError(f"Dependency strength must be a number, got {strength!r}", task_id=task_id)
    if math.isnan(strength) or not 0.0 <= strength <= 1.0:
        raise ValidationError(f"Dependency strength must be within [0, 1], got {strength!r}", task_id=task_id)
    return float(strength)


def _normalise_specs(task_id: str, specs: Iterable[EdgeSpec]) -> list[EdgeSpec]:
    """
    Validate a batch of specs before anything is applied.

    Duplicate targets inside one batch collapse into the last occurrence.
    """
    by_target: dict[str, EdgeSpec] = {}
    for spec in specs:
        if not isinstance(spec, EdgeSpec):
            raise ValidationError(f"Expected EdgeSpec, got {type(spec).__name__}", task_id=task_id)
        target = validate_task_id(spec.target, field_name="dependency target")
        kind = _parse_kind(spec.kind, task_id)
        strength = _parse_strength(spec.strength, task_id)
        by_target.pop(target, None)
        by_target[target] = EdgeSpec(target, kind, strength, dict(spec.metadata))
    return list(by_target.values())


# ── Store ───────────────────────────────────────────────────────────────


class DependencyStore:
    """
    In-memory dependency graph with a single-writer discipline.

    Thread safety: every public method takes the graph's read or write lock.
    Analyses that need one consistent snapshot across several calls wrap
    them in ``read_locked()``.
    """

    def __init__(self) -> None:
        self._forward: dict[str, dict[str, DependencyEdge]] = {}
        self._reverse: dict[str, set[str]] = {}
        self._lock = ReadWriteLock()

    # ── Locking ─────────────────────────────────────────────────────────

    @contextmanager
    def read_locked(self) -> Iterator[DependencyStore]:
        with self._lock.read():
            yield self

    @contextmanager
    def write_locked(self) -> Iterator[DependencyStore]:
        with self._lock.write():
            yield self

    # ── Mutations ───────────────────────────────────────────────────────

    def add_edges(self, task_id: str, specs: Iterable[EdgeSpec]) -> EdgeChangeSet:
        """
        Upsert edges ``task_id -> spec.target`` as one atomic operation.

        The whole batch is validated first; an invalid spec rejects the
        batch and leaves the graph untouched.
        """
        validate_task_id(task_id)
        normalised = _normalise_specs(task_id, specs)
        with self._lock.write():
            added, updated = self._upsert(task_id, normalised)
        logger.debug(
            "store.edges_added",
            task_id=task_id,
            added=len(added),
            updated=len(updated),
        )
        return EdgeChangeSet(task_id=task_id, added=tuple(added), updated=tuple(updated))

    def replace_edges(self, task_id: str, specs: Iterable[EdgeSpec]) -> EdgeChangeSet:
        """
        Make ``specs`` the complete outgoing edge set of ``task_id``.

        Edges to targets no longer listed are removed; listed targets are
        upserted.  ``updated`` only holds edges whose payload changed.
        """
        validate_task_id(task_id)
        normalised = _normalise_specs(task_id, specs)
        wanted = {spec.target for spec in normalised}
        with self._lock.write():
            stale = [t for t in self._forward.get(task_id, {}) if t not in wanted]
            removed = [self._unlink(task_id, target) for target in stale]
            added, updated = self._upsert(task_id, normalised, only_changed=True)
        logger.debug(
            "store.edges_replaced",
            task_id=task_id,
            added=len(added),
            updated=len(updated),
            removed=len(removed),
        )
        return EdgeChangeSet(
            task_id=task_id,
            added=tuple(added),
            updated=tuple(updated),
            removed=tuple(removed),
        )

    def remove_edges(self, task_id: str, edge_ids: Iterable[str]) -> EdgeChangeSet:
        """
        Remove outgoing edges of ``task_id``.

        Each identifier is an edge id (``"a->b"``) or a target task id.
        Identifiers matching no edge are ignored.
        """
        validate_task_id(task_id)
        identifiers = list(edge_ids)
        with self._lock.write():
            targets = self._resolve_targets(task_id, identifiers)
            removed = [self._unlink(task_id, target) for target in targets]
        logger.debug("store.edges_removed", task_id=task_id, removed=len(removed))
        return EdgeChangeSet(task_id=task_id, removed=tuple(removed))

    def remove_task(self, task_id: str) -> EdgeChangeSet:
        """Drop every edge from or to ``task_id``."""
        validate_task_id(task_id)
        with self._lock.write():
            removed = [self._unlink(task_id, t) for t in list(self._forward.get(task_id, {}))]
            for dependent in list(self._reverse.get(task_id, ())):
                removed.append(self._unlink(dependent, task_id))
            self._forward.pop(task_id, None)
            self._reverse.pop(task_id, None)
        return EdgeChangeSet(task_id=task_id, removed=tuple(removed))

    def clear(self) -> None:
        with self._lock.write():
            self._forward.clear()
            self._reverse.clear()

    # ── Reads ───────────────────────────────────────────────────────────

    def get_edges(self, task_id: str) -> list[DependencyEdge]:
        """Outgoing edges of ``task_id`` in insertion order."""
        with self._lock.read():
            return list(self._forward.get(task_id, {}).values())

    def get_edge(self, from_task: str, to_task: str) -> DependencyEdge | None:
        with self._lock.read():
            return self._forward.get(from_task, {}).get(to_task)

    def get_targets(self, task_id: str) -> list[str]:
        """Tasks that ``task_id`` depends on, in insertion order."""
        with self._lock.read():
            return list(self._forward.get(task_id, {}))

    def get_dependents(self, task_id: str) -> frozenset[str]:
        """Tasks that depend on ``task_id``."""
        with self._lock.read():
            return frozenset(self._reverse.get(task_id, ()))

    def has_edge(self, from_task: str, to_task: str) -> bool:
        with self._lock.read():
            return to_task in self._forward.get(from_task, {})

    def is_related(self, task_a: str, task_b: str) -> bool:
        """True if an edge joins the two tasks in either direction."""
        with self._lock.read():
            return (
                task_b in self._forward.get(task_a, {})
                or task_a in self._forward.get(task_b, {})
            )

    def tasks(self) -> list[str]:
        """Every task that appears on either end of an edge, first-seen order."""
        with self._lock.read():
            seen: dict[str, None] = {}
            for source, targets in self._forward.items():
                if targets:
                    seen.setdefault(source, None)
                for target in targets:
                    seen.setdefault(target, None)
            return list(seen)

    def all_edges(self) -> list[DependencyEdge]:
        with self._lock.read():
            return [e for targets in self._forward.values() for e in targets.values()]

    def edge_count(self) -> int:
        with self._lock.read():
            return sum(len(t) for t in self._forward.values())

    def dependency_chain(self, task_id: str, max_depth: int = 10) -> list[tuple[DependencyEdge, int]]:
        """
        Transitive outgoing edges of ``task_id`` with their depth (1-based).

        Each task is expanded once; traversal stops at ``max_depth``.
        """
        chain: list[tuple[DependencyEdge, int]] = []
        visited: set[str] = set()
        with self._lock.read():
            stack: list[tuple[str, int]] = [(task_id, 0)]
            while stack:
                current, depth = stack.pop()
                if depth >= max_depth or current in visited:
                    continue
                visited.add(current)
                edges = list(self._forward.get(current, {}).values())
                for edge in edges:
                    chain.append((edge, depth + 1))
                for edge in reversed(edges):
                    stack.append((edge.to_task, depth + 1))
        return chain

    def find_shortest_path(self, from_task: str, to_task: str) -> list[str] | None:
        """Fewest-hop dependency chain from ``from_task`` to ``to_task`` (BFS)."""
        with self._lock.read():
            queue: deque[list[str]] = deque([[from_task]])
            visited = {from_task}
            while queue:
                path = queue.popleft()
                if path[-1] == to_task:
                    return path
                for target in self._forward.get(path[-1], {}):
                    if target not in visited:
                        visited.add(target)
                        queue.append([*path, target])
        return None

    def find_all_paths(self, from_task: str, to_task: str, max_paths: int = 10) -> list[list[str]]:
        """Simple dependency chains from ``from_task`` to ``to_task``, at most ``max_paths``."""
        paths: list[list[str]] = []
        with self._lock.read():
            stack: list[list[str]] = [[from_task]]
            while stack and len(paths) < max_paths:
                path = stack.pop()
                current = path[-1]
                if current == to_task:
                    paths.append(path)
                    continue
                for target in reversed(list(self._forward.get(current, {}))):
                    if target not in path:
                        stack.append([*path, target])
        return paths

    def statistics(self) -> dict[str, Any]:
        with self._lock.read():
            edges = [e for targets in self._forward.values() for e in targets.values()]
            sources = [t for t, targets in self._forward.items() if targets]
        kinds = Counter(e.kind.value for e in edges)
        strength = {"low": 0, "medium": 0, "high": 0}
        for e in edges:
            if e.strength <= 0.3:
                strength["low"] += 1
            elif e.strength <= 0.7:
                strength["medium"] += 1
            else:
                strength["high"] += 1
        return {
            "total_tasks": len(sources),
            "total_dependencies": len(edges),
            "average_dependencies_per_task": len(edges) / len(sources) if sources else 0.0,
            "dependency_kinds": dict(kinds),
            "strength_distribution": strength,
        }

    # ── Internals (caller holds the write lock) ─────────────────────────

    def _upsert(
        self,
        task_id: str,
        specs: list[EdgeSpec],
        *,
        only_changed: bool = False,
    ) -> tuple[list[DependencyEdge], list[DependencyEdge]]:
        if not specs:
            return [], []
        now = datetime.now(timezone.utc)
        outgoing = self._forward.setdefault(task_id, {})
        added: list[DependencyEdge] = []
        updated: list[DependencyEdge] = []
        for spec in specs:
            existing = outgoing.get(spec.target)
            if existing is None:
                edge = DependencyEdge(
                    from_task=task_id,
                    to_task=spec.target,
                    kind=spec.kind or DEFAULT_KIND,
                    strength=DEFAULT_STRENGTH if spec.strength is None else spec.strength,
                    created_at=now,
                    updated_at=now,
                    metadata=dict(spec.metadata),
                )
                outgoing[spec.target] = edge
                self._reverse.setdefault(spec.target, set()).add(task_id)
                added.append(edge)
                continue

            merged = replace(
                existing,
                kind=spec.kind or existing.kind,
                strength=existing.strength if spec.strength is None else spec.strength,
                metadata={**existing.metadata, **spec.metadata},
            )
            if only_changed and merged.same_payload(existing):
                continue
            merged = replace(merged, updated_at=now)
            outgoing[spec.target] = merged
            updated.append(merged)
        return added, updated

    def _unlink(self, task_id: str, target: str) -> DependencyEdge:
        edge = self._forward[task_id].pop(target)
        dependents = self._reverse.get(target)
        if dependents is not None:
            dependents.discard(task_id)
            if not dependents:
                del self._reverse[target]
        if not self._forward[task_id]:
            del self._forward[task_id]
        return edge

    def _resolve_targets(self, task_id: str, identifiers: list[str]) -> list[str]:
        outgoing = self._forward.get(task_id, {})
        prefix = f"{task_id}{EDGE_ID_SEPARATOR}"
        targets: dict[str, None] = {}
        for ident in identifiers:
            if ident in outgoing:
                targets.setdefault(ident, None)
            elif isinstance(ident, str) and ident.startswith(prefix) and ident[len(prefix):] in outgoing:
                targets.setdefault(ident[len(prefix):], None)
        return list(targets)
