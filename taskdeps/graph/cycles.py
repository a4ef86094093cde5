"""
TaskDeps — Cycle Detection
============================
Depth-first cycle search over the part of the graph reachable from a set
of seed tasks.

One ``detect_cycles`` call shares a single visited set and a single
recursion-stack set across all of its seeds, so the reachable subgraph is
walked once (O(V + E)).  A back edge to a task on the recursion stack
yields the stack slice from that task plus the closing id.  A self-loop is
reported as its own one-task cycle.

The traversal is iterative with an explicit frame stack; graph depth is
not bounded by the interpreter's recursion limit.
"""

from __future__ import annotations

import threading
from typing import Iterable, Iterator

from taskdeps.core.concurrency import Deadline
from taskdeps.core.logging import get_logger
from taskdeps.graph.models import Cycle
from taskdeps.graph.store import DependencyStore

logger = get_logger(__name__)


class CycleDetector:
    """Finds circular dependencies in a ``DependencyStore``."""

    def __init__(self, store: DependencyStore) -> None:
        self._store = store
        self._known: dict[tuple[str, ...], Cycle] = {}
        self._known_lock = threading.Lock()

    def detect_cycles(
        self,
        seed_task_ids: Iterable[str],
        deadline: Deadline | None = None,
    ) -> list[Cycle]:
        """
        Return the cycles reachable from ``seed_task_ids``.

        Raises ``AnalysisTimeoutError`` / ``AnalysisCancelledError`` when
        ``deadline`` runs out.
        """
        deadline = deadline or Deadline.never()
        seeds = list(dict.fromkeys(seed_task_ids))
        cycles: list[Cycle] = []
        visited: set[str] = set()
        on_stack: set[str] = set()

        with self._store.read_locked() as store:
            for seed in seeds:
                if seed in visited:
                    continue
                cycles.extend(self._walk(store, seed, visited, on_stack, deadline))

        with self._known_lock:
            for cycle in cycles:
                self._known.setdefault(cycle.canonical(), cycle)
        if cycles:
            logger.info(
                "graph.cycles_detected",
                seeds=len(seeds),
                cycles=[str(c) for c in cycles],
            )
        return cycles

    def has_cycle_through(self, task_id: str, deadline: Deadline | None = None) -> bool:
        """True if ``task_id`` lies on a cycle."""
        return any(task_id in cycle for cycle in self.detect_cycles([task_id], deadline))

    def known_cycles(self) -> list[Cycle]:
        """Every distinct cycle detected so far (rotation-insensitive)."""
        with self._known_lock:
            return list(self._known.values())

    def forget(self) -> None:
        with self._known_lock:
            self._known.clear()

    # ── Traversal ───────────────────────────────────────────────────────

    @staticmethod
    def _walk(
        store: DependencyStore,
        seed: str,
        visited: set[str],
        on_stack: set[str],
        deadline: Deadline,
    ) -> Iterator[Cycle]:
        path: list[str] = [seed]
        frames: list[Iterator[str]] = [iter(store.get_targets(seed))]
        visited.add(seed)
        on_stack.add(seed)

        while frames:
            deadline.check("cycle_detection")
            target = next(frames[-1], None)
            if target is None:
                frames.pop()
                on_stack.discard(path.pop())
                continue
            if target in on_stack:
                start = path.index(target)
                yield Cycle(tuple(path[start:]) + (target,))
            elif target not in visited:
                visited.add(target)
                on_stack.add(target)
                path.append(target)
                frames.append(iter(store.get_targets(target)))
