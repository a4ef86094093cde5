"""
TaskDeps — Exception Taxonomy
===============================
Category-based exception hierarchy with a severity and an error code on
every class.

- ``ValidationError``: malformed edge, missing or unknown task id.  Raised
  synchronously, never dropped.
- ``NotFoundError``: unknown conflict id or strategy name.
- ``AnalysisError``: an analysis ran past its deadline or was cancelled.
- ``GraphInvariantWarning``: a cycle exists.  Reported and logged, never
  raised by the engine.

Usage:
    from taskdeps.core.exceptions import ValidationError

    raise ValidationError("Dependency target must not be empty", task_id="task_1")
"""

from __future__ import annotations

from enum import StrEnum
from typing import Sequence


class ErrorSeverity(StrEnum):
    """Severity used to classify exceptions: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskDepsError(Exception):
    """
    Base exception for all engine errors.

    Carries a ``severity`` and an ``error_code`` for programmatic handling,
    plus the task and correlation identifiers useful for tracing.
    """

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_code: str = "TASKDEPS_ERROR"

    def __init__(
        self,
        message: str,
        *,
        task_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.task_id = task_id
        self.correlation_id = correlation_id
        super().__init__(message)

    def __repr__(self) -> str:
        parts = [
            f"{self.__class__.__name__}(",
            f"error_code={self.error_code!r}, ",
            f"severity={self.severity.value!r}",
        ]
        if self.task_id:
            parts.append(f", task_id={self.task_id!r}")
        if self.correlation_id:
            parts.append(f", correlation_id={self.correlation_id!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "error_code": self.error_code,
            "severity": self.severity.value,
            "message": str(self),
            "task_id": self.task_id,
        }


# ── Validation ────────────────────────────────────────────────────────────


class ValidationError(TaskDepsError):
    """Malformed input: empty id, unknown kind, strength outside [0, 1], unknown task."""

    severity = ErrorSeverity.MEDIUM
    error_code = "VALIDATION_ERROR"


# ── Lookup ────────────────────────────────────────────────────────────────


class NotFoundError(TaskDepsError):
    """A referenced conflict or strategy does not exist."""

    severity = ErrorSeverity.LOW
    error_code = "NOT_FOUND"


class ConflictNotFoundError(NotFoundError):
    error_code = "CONFLICT_NOT_FOUND"

    def __init__(self, conflict_id: str) -> None:
        self.conflict_id = conflict_id
        super().__init__(f"Conflict {conflict_id!r} not found")


class StrategyNotFoundError(NotFoundError):
    error_code = "STRATEGY_NOT_FOUND"

    def __init__(self, strategy_name: str, conflict_type: str) -> None:
        self.strategy_name = strategy_name
        self.conflict_type = conflict_type
        super().__init__(
            f"Resolution strategy {strategy_name!r} not found "
            f"for conflict type {conflict_type!r}"
        )


class ResolutionNotFoundError(NotFoundError):
    error_code = "RESOLUTION_NOT_FOUND"

    def __init__(self, conflict_id: str) -> None:
        self.conflict_id = conflict_id
        super().__init__(f"Conflict {conflict_id!r} has no recorded resolution")


# ── Analysis ──────────────────────────────────────────────────────────────


class AnalysisError(TaskDepsError):
    """An analysis could not complete."""

    severity = ErrorSeverity.HIGH
    error_code = "ANALYSIS_ERROR"


class AnalysisTimeoutError(AnalysisError):
    """Raised when an analysis passes its deadline."""

    error_code = "ANALYSIS_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float | None) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{operation} exceeded its deadline of {timeout_seconds}s"
        )


class AnalysisCancelledError(AnalysisError):
    """Raised when an analysis is cancelled through its deadline token."""

    severity = ErrorSeverity.LOW
    error_code = "ANALYSIS_CANCELLED"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} was cancelled")


# ── Configuration ─────────────────────────────────────────────────────────


class ConfigurationError(TaskDepsError):
    """Invalid engine wiring (for example a strategy registered twice)."""

    severity = ErrorSeverity.HIGH
    error_code = "CONFIGURATION_ERROR"


# ── Warnings ──────────────────────────────────────────────────────────────


class GraphInvariantWarning(UserWarning):
    """
    A cycle was found in a graph that is assumed to be acyclic.

    Not an error: cycles are an expected transient state the conflict and
    impact layers reason about.  Instances are collected into results.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        self.severity = ErrorSeverity.HIGH
        super().__init__(f"Circular dependency: {' -> '.join(self.cycle)}")

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "circular_dependency",
            "severity": self.severity.value,
            "cycle": list(self.cycle),
            "message": str(self),
        }
