"""
TaskDeps — Resolution Strategies
==================================
A strategy is a value: a name, the conflict type it serves, a predicate and
a resolve function.  The registry maps each conflict type to an ordered
list of strategies; automatic resolution picks the first whose predicate
holds.

Strategies only read the conflict.  They return a ``Resolution`` listing
recommended actions and never touch the conflict or the graph.

Default order per conflict type:
    scheduling: reschedule, parallel_execution, extend_timeline
    resource:   reassign_resource, add_resource, reschedule_tasks
    priority:   adjust_priorities, break_dependency, parallel_execution
    dependency: break_circular_dependency, restructure_dependencies, merge_tasks
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from taskdeps.core.exceptions import ConfigurationError, StrategyNotFoundError
from taskdeps.core.task_types import ImpactLevel
from taskdeps.conflicts.models import (
    Conflict,
    ConflictType,
    Resolution,
    ResolutionAction,
)

Options = Mapping[str, Any]


def _always(conflict: Conflict) -> bool:
    return True


def _has_cycle(conflict: Conflict) -> bool:
    return len(conflict.details.get("cycle") or ()) >= 2


def _has_tasks(conflict: Conflict) -> bool:
    return bool(conflict.task_ids)


def _is_pair(conflict: Conflict) -> bool:
    return len(conflict.task_ids) == 2


def _has_details(*keys: str) -> Callable[[Conflict], bool]:
    def check(conflict: Conflict) -> bool:
        return all(key in conflict.details for key in keys)
    return check


def _all_of(*checks: Callable[[Conflict], bool]) -> Callable[[Conflict], bool]:
    def check(conflict: Conflict) -> bool:
        return all(c(conflict) for c in checks)
    return check


@dataclass(frozen=True)
class Strategy:
    name: str
    conflict_type: ConflictType
    resolve_fn: Callable[[Conflict, Options], Resolution]
    can_resolve_fn: Callable[[Conflict], bool] = _always

    def can_resolve(self, conflict: Conflict) -> bool:
        return conflict.type == self.conflict_type and self.can_resolve_fn(conflict)

    def resolve(self, conflict: Conflict, options: Options | None = None) -> Resolution:
        return self.resolve_fn(conflict, options or {})


class StrategyRegistry:
    """Ordered strategies per conflict type."""

    def __init__(self) -> None:
        self._strategies: dict[ConflictType, list[Strategy]] = {t: [] for t in ConflictType}

    def register(self, strategy: Strategy) -> None:
        registered = self._strategies[strategy.conflict_type]
        if any(s.name == strategy.name for s in registered):
            raise ConfigurationError(
                f"Strategy {strategy.name!r} is already registered "
                f"for {strategy.conflict_type.value!r} conflicts"
            )
        registered.append(strategy)

    def unregister(self, conflict_type: ConflictType, name: str) -> bool:
        registered = self._strategies[ConflictType(conflict_type)]
        for index, strategy in enumerate(registered):
            if strategy.name == name:
                del registered[index]
                return True
        return False

    def strategies_for(self, conflict_type: ConflictType) -> list[Strategy]:
        return list(self._strategies[ConflictType(conflict_type)])

    def get(self, conflict_type: ConflictType, name: str) -> Strategy:
        for strategy in self._strategies[ConflictType(conflict_type)]:
            if strategy.name == name:
                return strategy
        raise StrategyNotFoundError(name, str(conflict_type))

    def select(self, conflict: Conflict) -> Strategy | None:
        """First strategy for the conflict's type whose predicate holds."""
        for strategy in self._strategies[conflict.type]:
            if strategy.can_resolve(conflict):
                return strategy
        return None


# ── Shared actions ──────────────────────────────────────────────────────


def _enable_parallel(name: str) -> Callable[[Conflict, Options], Resolution]:
    def resolve(conflict: Conflict, options: Options) -> Resolution:
        return Resolution(
            strategy_name=name,
            conflict_id=conflict.id,
            description="Run the conflicting tasks in parallel",
            actions=tuple(ResolutionAction("enable_parallel", t) for t in conflict.task_ids),
            estimated_impact=ImpactLevel.LOW,
        )
    return resolve


def _remove_edge(name: str, conflict: Conflict, source: str, target: str, description: str) -> Resolution:
    return Resolution(
        strategy_name=name,
        conflict_id=conflict.id,
        description=description,
        actions=(ResolutionAction("remove_dependency", source, {"from": source, "to": target}),),
        estimated_impact=ImpactLevel.MEDIUM,
    )


# ── Scheduling ──────────────────────────────────────────────────────────


def _reschedule(conflict: Conflict, options: Options) -> Resolution:
    dependent, dependency = conflict.task_ids
    new_start = options.get("new_start", conflict.details.get("dependency_deadline"))
    return Resolution(
        strategy_name="reschedule",
        conflict_id=conflict.id,
        description=f"Start {dependent} once {dependency} is due",
        actions=(
            ResolutionAction("move_start_time", dependent, {"new_start": new_start}),
            ResolutionAction("keep_schedule", dependency),
        ),
        estimated_impact=ImpactLevel.MEDIUM,
    )


def _extend_timeline(conflict: Conflict, options: Options) -> Resolution:
    overlap = float(conflict.details.get("overlap_hours", 0.0))
    days = options.get("additional_days", max(1, math.ceil(overlap / 8)))
    return Resolution(
        strategy_name="extend_timeline",
        conflict_id=conflict.id,
        description=f"Extend the project timeline by {days} day(s)",
        actions=(ResolutionAction("extend_project_timeline", None, {"additional_days": days}),),
        estimated_impact=ImpactLevel.MEDIUM,
    )


# ── Resource ────────────────────────────────────────────────────────────


def _reassign_resource(conflict: Conflict, options: Options) -> Resolution:
    task_id = conflict.task_ids[-1]
    return Resolution(
        strategy_name="reassign_resource",
        conflict_id=conflict.id,
        description=f"Assign a different resource to {task_id}",
        actions=(ResolutionAction("reassign_resource", task_id, {
            "current_resource": conflict.details.get("resource"),
            "new_resource": options.get("new_resource"),
        }),),
        estimated_impact=ImpactLevel.LOW,
    )


def _add_resource(conflict: Conflict, options: Options) -> Resolution:
    resource = conflict.details.get("resource")
    count = options.get("count", 1)
    return Resolution(
        strategy_name="add_resource",
        conflict_id=conflict.id,
        description=f"Add {count} more {resource}",
        actions=(ResolutionAction("add_resource", None, {"resource_type": resource, "count": count}),),
        estimated_impact=ImpactLevel.MEDIUM,
    )


def _reschedule_tasks(conflict: Conflict, options: Options) -> Resolution:
    first, second = conflict.task_ids
    windows = conflict.details.get("windows", {})
    new_start = options.get("new_start", windows.get(first, {}).get("deadline"))
    return Resolution(
        strategy_name="reschedule_tasks",
        conflict_id=conflict.id,
        description=f"Move {second} after {first}",
        actions=(ResolutionAction("reschedule", second, {"new_start": new_start}),),
        estimated_impact=ImpactLevel.MEDIUM,
    )


# ── Priority ────────────────────────────────────────────────────────────


def _adjust_priorities(conflict: Conflict, options: Options) -> Resolution:
    low = conflict.details["low_priority_task"]
    high = conflict.details["high_priority_task"]
    new_priority = options.get("new_priority", high["priority"])
    return Resolution(
        strategy_name="adjust_priorities",
        conflict_id=conflict.id,
        description=f"Raise {low['id']} to {new_priority} priority",
        actions=(ResolutionAction("increase_priority", low["id"], {"new_priority": new_priority}),),
        estimated_impact=ImpactLevel.LOW,
    )


def _break_dependency(conflict: Conflict, options: Options) -> Resolution:
    dependent, dependency = conflict.task_ids
    return _remove_edge(
        "break_dependency",
        conflict,
        dependent,
        dependency,
        f"Drop the dependency of {dependent} on {dependency}",
    )


# ── Dependency ──────────────────────────────────────────────────────────


def _closing_edge(conflict: Conflict, options: Options) -> tuple[str, str]:
    if "from" in options and "to" in options:
        return options["from"], options["to"]
    cycle = conflict.details["cycle"]
    return cycle[-2], cycle[-1]


def _break_circular(conflict: Conflict, options: Options) -> Resolution:
    source, target = _closing_edge(conflict, options)
    return _remove_edge(
        "break_circular_dependency",
        conflict,
        source,
        target,
        f"Remove {source} -> {target} to break the cycle",
    )


def _restructure(conflict: Conflict, options: Options) -> Resolution:
    source, target = _closing_edge(conflict, options)
    intermediate = options.get("intermediate_task", f"{source}__{target}__handoff")
    return Resolution(
        strategy_name="restructure_dependencies",
        conflict_id=conflict.id,
        description=f"Route {source} -> {target} through {intermediate}",
        actions=(
            ResolutionAction("add_intermediate_task", None, {"name": intermediate}),
            ResolutionAction("redirect_dependencies", source, {
                "from": source,
                "to": target,
                "via": intermediate,
            }),
        ),
        estimated_impact=ImpactLevel.HIGH,
    )


def _merge_tasks(conflict: Conflict, options: Options) -> Resolution:
    members = list(conflict.task_ids)
    name = options.get("new_task_name", "merged_" + "_".join(members))
    return Resolution(
        strategy_name="merge_tasks",
        conflict_id=conflict.id,
        description=f"Merge {', '.join(members)} into {name}",
        actions=(ResolutionAction("merge_tasks", None, {"task_ids": members, "new_task_name": name}),),
        estimated_impact=ImpactLevel.HIGH,
    )


def _is_multi_task_cycle(conflict: Conflict) -> bool:
    return _has_cycle(conflict) and len(conflict.task_ids) > 1


def default_registry() -> StrategyRegistry:
    """Registry pre-loaded with the built-in strategies."""
    registry = StrategyRegistry()
    for strategy in (
        Strategy("reschedule", ConflictType.SCHEDULING, _reschedule,
                 _all_of(_is_pair, _has_details("dependency_deadline"))),
        Strategy("parallel_execution", ConflictType.SCHEDULING,
                 _enable_parallel("parallel_execution"), _has_tasks),
        Strategy("extend_timeline", ConflictType.SCHEDULING, _extend_timeline,
                 _has_details("overlap_hours")),
        Strategy("reassign_resource", ConflictType.RESOURCE, _reassign_resource,
                 _all_of(_has_tasks, _has_details("resource"))),
        Strategy("add_resource", ConflictType.RESOURCE, _add_resource,
                 _has_details("resource")),
        Strategy("reschedule_tasks", ConflictType.RESOURCE, _reschedule_tasks, _is_pair),
        Strategy("adjust_priorities", ConflictType.PRIORITY, _adjust_priorities,
                 _has_details("low_priority_task", "high_priority_task")),
        Strategy("break_dependency", ConflictType.PRIORITY, _break_dependency, _is_pair),
        Strategy("parallel_execution", ConflictType.PRIORITY,
                 _enable_parallel("parallel_execution"), _has_tasks),
        Strategy("break_circular_dependency", ConflictType.DEPENDENCY, _break_circular, _has_cycle),
        Strategy("restructure_dependencies", ConflictType.DEPENDENCY, _restructure, _has_cycle),
        Strategy("merge_tasks", ConflictType.DEPENDENCY, _merge_tasks, _is_multi_task_cycle),
    ):
        registry.register(strategy)
    return registry
