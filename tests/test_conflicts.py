"""
TaskDeps — Conflict Detection & Resolution Tests
==================================================
Validates:
- Scheduling, resource, priority and dependency detectors
- Stable conflict ids across repeated detection
- Strategy registry ordering, predicates and lookup errors
- Resolver bookkeeping: resolved status survives re-detection
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskdeps.core.exceptions import (
    ConfigurationError,
    ConflictNotFoundError,
    StrategyNotFoundError,
    ValidationError,
)
from taskdeps.core.task_types import (
    ImpactLevel,
    InMemoryTaskLookup,
    Severity,
    TaskAttributes,
    TaskPriority,
)
from taskdeps.conflicts import (
    Conflict,
    ConflictDetector,
    ConflictResolver,
    ConflictStatus,
    ConflictType,
    Strategy,
    StrategyRegistry,
    default_registry,
)
from taskdeps.conflicts.models import Resolution
from taskdeps.graph import EdgeSpec

MONDAY = datetime(2026, 1, 5, tzinfo=timezone.utc)


def _at(hours: float) -> datetime:
    return MONDAY + timedelta(hours=hours)


def _lookup(*tasks: TaskAttributes) -> InMemoryTaskLookup:
    return InMemoryTaskLookup(tasks)


def _link(store, source: str, *targets: str) -> None:
    store.add_edges(source, [EdgeSpec(t) for t in targets])


# ── Scheduling ──────────────────────────────────────────────────────────


class TestSchedulingConflicts:

    def test_dependent_starting_before_dependency_deadline(self, store):
        lookup = _lookup(
            TaskAttributes("a", start=_at(9)),
            TaskAttributes("b", deadline=_at(20)),
        )
        _link(store, "a", "b")

        conflicts = ConflictDetector(store, lookup).detect_scheduling(["a", "b"])

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type is ConflictType.SCHEDULING
        assert conflict.task_ids == ("a", "b")
        assert conflict.severity is Severity.HIGH
        assert conflict.details["overlap_hours"] == 11
        assert conflict.details["dependency_deadline"] == _at(20).isoformat()

    def test_short_overlap_is_medium(self, store):
        lookup = _lookup(
            TaskAttributes("a", start=_at(9)),
            TaskAttributes("b", deadline=_at(13)),
        )
        _link(store, "a", "b")

        [conflict] = ConflictDetector(store, lookup).detect_scheduling(["a", "b"])

        assert conflict.severity is Severity.MEDIUM

    def test_start_after_deadline_is_fine(self, store):
        lookup = _lookup(
            TaskAttributes("a", start=_at(20)),
            TaskAttributes("b", deadline=_at(13)),
        )
        _link(store, "a", "b")

        assert ConflictDetector(store, lookup).detect_scheduling(["a", "b"]) == []

    def test_tasks_without_dates_are_skipped(self, store):
        lookup = _lookup(TaskAttributes("a"), TaskAttributes("b"))
        _link(store, "a", "b")

        assert ConflictDetector(store, lookup).detect_scheduling(["a", "b"]) == []

    def test_edges_leaving_the_set_are_ignored(self, store):
        lookup = _lookup(
            TaskAttributes("a", start=_at(9)),
            TaskAttributes("b", deadline=_at(20)),
        )
        _link(store, "a", "b")

        assert ConflictDetector(store, lookup).detect_scheduling(["a"]) == []


# ── Resource ────────────────────────────────────────────────────────────


class TestResourceConflicts:

    def test_overlapping_windows_on_same_resource(self, store):
        lookup = _lookup(
            TaskAttributes("r1", start=_at(0), deadline=_at(10), resource="gpu"),
            TaskAttributes("r2", start=_at(6), deadline=_at(16), resource="gpu"),
            TaskAttributes("r3", start=_at(0), deadline=_at(16), resource="cpu"),
        )

        conflicts = ConflictDetector(store, lookup).detect_resource(["r1", "r2", "r3"])

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.task_ids == ("r1", "r2")
        assert conflict.severity is Severity.HIGH
        assert conflict.details["resource"] == "gpu"
        assert conflict.details["overlap_hours"] == 4

    def test_touching_windows_do_not_overlap(self, store):
        lookup = _lookup(
            TaskAttributes("r1", start=_at(0), deadline=_at(10), resource="gpu"),
            TaskAttributes("r2", start=_at(10), deadline=_at(16), resource="gpu"),
        )

        assert ConflictDetector(store, lookup).detect_resource(["r1", "r2"]) == []

    def test_id_does_not_depend_on_query_order(self, store):
        lookup = _lookup(
            TaskAttributes("r1", start=_at(0), deadline=_at(10), resource="gpu"),
            TaskAttributes("r2", start=_at(6), deadline=_at(16), resource="gpu"),
        )
        detector = ConflictDetector(store, lookup)

        [forward] = detector.detect_resource(["r1", "r2"])
        [backward] = detector.detect_resource(["r2", "r1"])

        assert forward.id == backward.id


# ── Priority ────────────────────────────────────────────────────────────


class TestPriorityConflicts:

    def test_priority_inversion(self, store):
        lookup = _lookup(
            TaskAttributes("a", priority=TaskPriority.CRITICAL),
            TaskAttributes("b", priority=TaskPriority.LOW),
        )
        _link(store, "a", "b")

        [conflict] = ConflictDetector(store, lookup).detect_priority(["a", "b"])

        assert conflict.severity is Severity.HIGH
        assert conflict.details["priority_gap"] == 3
        assert conflict.details["low_priority_task"] == {"id": "b", "priority": "low"}

    def test_one_rank_gap_is_medium(self, store):
        lookup = _lookup(
            TaskAttributes("a", priority=TaskPriority.HIGH),
            TaskAttributes("b", priority=TaskPriority.MEDIUM),
        )
        _link(store, "a", "b")

        [conflict] = ConflictDetector(store, lookup).detect_priority(["a", "b"])

        assert conflict.severity is Severity.MEDIUM

    def test_lower_priority_dependent_is_fine(self, store):
        lookup = _lookup(
            TaskAttributes("a", priority=TaskPriority.LOW),
            TaskAttributes("b", priority=TaskPriority.HIGH),
        )
        _link(store, "a", "b")

        assert ConflictDetector(store, lookup).detect_priority(["a", "b"]) == []


# ── Dependency ──────────────────────────────────────────────────────────


class TestDependencyConflicts:

    def test_cycle_becomes_high_conflict(self, store):
        lookup = _lookup(TaskAttributes("a"), TaskAttributes("b"))
        _link(store, "a", "b")
        _link(store, "b", "a")

        [conflict] = ConflictDetector(store, lookup).detect_dependency(["a", "b"])

        assert conflict.severity is Severity.HIGH
        assert conflict.details["kind"] == "circular_dependency"
        assert conflict.details["cycle"] == ["a", "b", "a"]
        assert set(conflict.task_ids) == {"a", "b"}

    def test_cycle_details_do_not_depend_on_seed_order(self, store):
        lookup = _lookup(TaskAttributes("a"), TaskAttributes("b"), TaskAttributes("c"))
        _link(store, "a", "b")
        _link(store, "b", "c")
        _link(store, "c", "a")
        detector = ConflictDetector(store, lookup)

        [from_c] = detector.detect_dependency(["c", "a"])
        [from_a] = detector.detect_dependency(["a", "c"])

        assert from_c.id == from_a.id
        assert from_c.task_ids == from_a.task_ids == ("a", "b", "c")
        assert from_c.details == from_a.details
        assert from_c.details["cycle"] == ["a", "b", "c", "a"]
        assert from_c.details["dependencies"][-1] == {"from": "c", "to": "a"}

    def test_self_loop_is_critical(self, store):
        lookup = _lookup(TaskAttributes("a"))
        _link(store, "a", "a")

        [conflict] = ConflictDetector(store, lookup).detect_dependency(["a"])

        assert conflict.severity is Severity.CRITICAL
        assert conflict.task_ids == ("a",)

    def test_orphaned_dependency(self, store):
        lookup = _lookup(TaskAttributes("a"))
        _link(store, "a", "ghost")

        [conflict] = ConflictDetector(store, lookup).detect_dependency(["a"])

        assert conflict.severity is Severity.MEDIUM
        assert conflict.details["kind"] == "orphaned_dependency"
        assert conflict.task_ids == ("a", "ghost")

    def test_empty_task_set(self, store, lookup):
        assert ConflictDetector(store, lookup).detect([]) == []

    def test_detect_runs_every_detector(self, store):
        lookup = _lookup(
            TaskAttributes("a", priority=TaskPriority.HIGH, start=_at(9)),
            TaskAttributes("b", priority=TaskPriority.LOW, deadline=_at(12)),
        )
        _link(store, "a", "b")
        _link(store, "b", "a")

        conflicts = ConflictDetector(store, lookup).detect(["a", "b"])

        assert {c.type for c in conflicts} == {
            ConflictType.SCHEDULING,
            ConflictType.PRIORITY,
            ConflictType.DEPENDENCY,
        }

    def test_ids_are_stable(self, store):
        lookup = _lookup(TaskAttributes("a"), TaskAttributes("b"))
        _link(store, "a", "b")
        _link(store, "b", "a")
        detector = ConflictDetector(store, lookup)

        first = [c.id for c in detector.detect(["a", "b"])]
        second = [c.id for c in detector.detect(["b", "a"])]

        assert first == second
        assert first[0].startswith("dependency_")


# ── Strategies ──────────────────────────────────────────────────────────


def _conflict(conflict_type: ConflictType, task_ids, **details) -> Conflict:
    return Conflict(
        id=f"{conflict_type.value}_test",
        type=conflict_type,
        severity=Severity.HIGH,
        task_ids=tuple(task_ids),
        description="test conflict",
        details=details,
    )


class TestStrategies:

    def test_default_order(self):
        registry = default_registry()
        assert [s.name for s in registry.strategies_for(ConflictType.SCHEDULING)] == [
            "reschedule", "parallel_execution", "extend_timeline",
        ]
        assert [s.name for s in registry.strategies_for(ConflictType.DEPENDENCY)] == [
            "break_circular_dependency", "restructure_dependencies", "merge_tasks",
        ]

    def test_reschedule_moves_dependent_to_deadline(self):
        conflict = _conflict(
            ConflictType.SCHEDULING, ("a", "b"),
            dependency_deadline="2026-01-05T20:00:00+00:00", overlap_hours=11.0,
        )

        resolution = default_registry().select(conflict).resolve(conflict)

        assert resolution.strategy_name == "reschedule"
        move = resolution.actions[0]
        assert move.action == "move_start_time"
        assert move.task_id == "a"
        assert move.params["new_start"] == "2026-01-05T20:00:00+00:00"

    def test_scheduling_without_deadline_falls_through(self):
        conflict = _conflict(ConflictType.SCHEDULING, ("a", "b"))
        assert default_registry().select(conflict).name == "parallel_execution"

    def test_extend_timeline_rounds_up_to_days(self):
        conflict = _conflict(ConflictType.SCHEDULING, ("a", "b"), overlap_hours=11.0)
        strategy = default_registry().get(ConflictType.SCHEDULING, "extend_timeline")

        resolution = strategy.resolve(conflict)

        assert resolution.actions[0].params["additional_days"] == 2

    def test_break_circular_removes_closing_edge(self):
        conflict = _conflict(ConflictType.DEPENDENCY, ("a", "b", "c"), cycle=["a", "b", "c", "a"])

        resolution = default_registry().select(conflict).resolve(conflict)

        assert resolution.strategy_name == "break_circular_dependency"
        assert resolution.actions[0].to_dict() == {
            "action": "remove_dependency", "task_id": "c", "from": "c", "to": "a",
        }
        assert resolution.estimated_impact is ImpactLevel.MEDIUM

    def test_break_circular_honours_explicit_edge(self):
        conflict = _conflict(ConflictType.DEPENDENCY, ("a", "b"), cycle=["a", "b", "a"])
        strategy = default_registry().get(ConflictType.DEPENDENCY, "break_circular_dependency")

        resolution = strategy.resolve(conflict, {"from": "a", "to": "b"})

        assert resolution.actions[0].params == {"from": "a", "to": "b"}

    def test_merge_needs_more_than_one_task(self):
        registry = default_registry()
        merge = registry.get(ConflictType.DEPENDENCY, "merge_tasks")
        assert not merge.can_resolve(_conflict(ConflictType.DEPENDENCY, ("a",), cycle=["a", "a"]))
        assert merge.can_resolve(_conflict(ConflictType.DEPENDENCY, ("a", "b"), cycle=["a", "b", "a"]))

    def test_orphan_has_no_strategy(self):
        conflict = _conflict(ConflictType.DEPENDENCY, ("a", "ghost"), kind="orphaned_dependency")
        assert default_registry().select(conflict) is None

    @pytest.mark.parametrize(
        "conflict",
        [
            _conflict(ConflictType.PRIORITY, ()),
            _conflict(ConflictType.RESOURCE, ()),
            _conflict(ConflictType.SCHEDULING, ()),
            _conflict(ConflictType.DEPENDENCY, ("a", "b"), cycle=["a"]),
        ],
    )
    def test_incomplete_conflict_has_no_strategy(self, conflict):
        assert default_registry().select(conflict) is None

    def test_priority_pair_without_details_falls_through(self):
        conflict = _conflict(ConflictType.PRIORITY, ("a", "b"))

        resolution = default_registry().select(conflict).resolve(conflict)

        assert resolution.strategy_name == "break_dependency"
        assert resolution.actions[0].params == {"from": "a", "to": "b"}

    def test_resource_without_resource_name_reschedules(self):
        conflict = _conflict(ConflictType.RESOURCE, ("a", "b"))
        assert default_registry().select(conflict).name == "reschedule_tasks"

    def test_strategy_does_not_mutate_conflict(self):
        conflict = _conflict(ConflictType.PRIORITY, ("a", "b"),
                             high_priority_task={"id": "a", "priority": "high"},
                             low_priority_task={"id": "b", "priority": "low"})

        default_registry().select(conflict).resolve(conflict)

        assert conflict.status is ConflictStatus.OPEN
        assert conflict.resolution is None


class TestStrategyRegistry:

    def test_custom_strategy_runs_first_once_earlier_ones_are_removed(self):
        registry = default_registry()

        def resolve(conflict, options):
            return Resolution("escalate", conflict.id, "Escalate to the team lead")

        registry.register(Strategy("escalate", ConflictType.PRIORITY, resolve))
        for name in ("adjust_priorities", "break_dependency", "parallel_execution"):
            assert registry.unregister(ConflictType.PRIORITY, name)

        conflict = _conflict(ConflictType.PRIORITY, ("a", "b"))
        assert registry.select(conflict).name == "escalate"

    def test_duplicate_name_is_rejected(self):
        registry = default_registry()
        with pytest.raises(ConfigurationError):
            registry.register(
                registry.get(ConflictType.RESOURCE, "add_resource")
            )

    def test_unknown_strategy(self):
        with pytest.raises(StrategyNotFoundError):
            default_registry().get(ConflictType.RESOURCE, "teleport")

    def test_unregister_unknown_returns_false(self):
        assert StrategyRegistry().unregister(ConflictType.RESOURCE, "teleport") is False


# ── Resolver ────────────────────────────────────────────────────────────


@pytest.fixture
def cyclic_resolver(store):
    lookup = _lookup(TaskAttributes("a"), TaskAttributes("b"), TaskAttributes("c"))
    _link(store, "a", "b")
    _link(store, "b", "c")
    _link(store, "c", "a")
    return ConflictResolver(ConflictDetector(store, lookup))


class TestConflictResolver:

    def test_auto_resolve_marks_resolved(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])

        resolution = cyclic_resolver.auto_resolve(conflict)

        assert resolution.strategy_name == "break_circular_dependency"
        assert cyclic_resolver.get_conflict(conflict.id).is_resolved
        assert cyclic_resolver.get_resolution(conflict.id) is resolution

    def test_resolved_status_survives_redetection(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])
        cyclic_resolver.auto_resolve(conflict)

        [again] = cyclic_resolver.detect_conflicts(["a", "b", "c"])

        assert again.id == conflict.id
        assert again.status is ConflictStatus.RESOLVED

    def test_resolve_by_name(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])

        resolution = cyclic_resolver.resolve_conflict(conflict.id, "merge_tasks")

        assert resolution.estimated_impact is ImpactLevel.HIGH
        assert resolution.actions[0].params["task_ids"] == list(conflict.task_ids)

    def test_unknown_conflict(self, cyclic_resolver):
        with pytest.raises(ConflictNotFoundError):
            cyclic_resolver.resolve_conflict("dependency_missing", "merge_tasks")

    def test_unknown_strategy_for_type(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])
        with pytest.raises(StrategyNotFoundError):
            cyclic_resolver.resolve_conflict(conflict.id, "reassign_resource")

    def test_auto_resolve_incomplete_conflict_returns_none(self, store, lookup):
        resolver = ConflictResolver(ConflictDetector(store, lookup))
        inversion = Conflict("priority_adhoc", ConflictType.PRIORITY, Severity.MEDIUM, (), "inv")
        contention = Conflict("resource_adhoc", ConflictType.RESOURCE, Severity.HIGH, (), "gpu")

        assert resolver.auto_resolve(inversion) is None
        assert resolver.auto_resolve(contention) is None
        assert not inversion.is_resolved

    def test_named_strategy_must_fit_the_conflict(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])
        conflict.details.pop("cycle")

        with pytest.raises(ValidationError):
            cyclic_resolver.resolve_conflict(conflict.id, "break_circular_dependency")
        assert not conflict.is_resolved

    def test_no_matching_strategy_returns_none(self, store):
        _link(store, "a", "ghost")
        resolver = ConflictResolver(ConflictDetector(store, _lookup(TaskAttributes("a"))))

        [orphan] = resolver.detect_conflicts(["a"])

        assert resolver.auto_resolve(orphan) is None
        assert not orphan.is_resolved

    def test_statistics_and_task_filter(self, cyclic_resolver):
        [conflict] = cyclic_resolver.detect_conflicts(["a", "b", "c"])
        cyclic_resolver.auto_resolve(conflict)

        stats = cyclic_resolver.statistics()

        assert stats["total_conflicts"] == 1
        assert stats["resolution_rate"] == 1.0
        assert stats["conflicts_by_type"] == {"dependency": 1}
        assert cyclic_resolver.get_conflicts_for_task("b") == [conflict]
        assert cyclic_resolver.get_conflicts_for_task("z") == []

    def test_clear(self, cyclic_resolver):
        cyclic_resolver.detect_conflicts(["a", "b", "c"])
        cyclic_resolver.clear()
        assert cyclic_resolver.all_conflicts() == []
