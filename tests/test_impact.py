"""
TaskDeps — Impact Analysis Tests
==================================
Validates:
- Each change type's walk, delay and risk factors
- Composite score and level thresholds
- Recommendation / mitigation templates
- History, filtering and statistics
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from taskdeps.core.exceptions import ValidationError
from taskdeps.core.task_types import ChangeType, ImpactLevel, Severity
from taskdeps.graph import EdgeSpec
from taskdeps.impact import (
    ImpactAnalyzer,
    ImpactContext,
    impact_level,
    impact_score,
    parse_change_type,
)


@pytest.fixture
def analyzer(example_store, lookup) -> ImpactAnalyzer:
    return ImpactAnalyzer(example_store, lookup)


class TestScoring:

    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (0.0, ImpactLevel.LOW),
            (0.29, ImpactLevel.LOW),
            (0.3, ImpactLevel.MEDIUM),
            (0.5, ImpactLevel.HIGH),
            (0.8, ImpactLevel.CRITICAL),
            (1.0, ImpactLevel.CRITICAL),
        ],
    )
    def test_level_thresholds(self, score, level):
        assert impact_level(score) is level

    def test_terms_are_capped(self):
        assert impact_score(1000, 1000, 1000) == pytest.approx(1.0)

    def test_negative_delay_contributes_nothing(self):
        assert impact_score(-50, 0, 0) == 0.0

    def test_change_type_alias(self):
        assert parse_change_type("analysis") is ChangeType.GENERIC
        assert parse_change_type("task_delay") is ChangeType.TASK_DELAY

    def test_unknown_change_type(self):
        with pytest.raises(ValidationError, match="Unknown change type"):
            parse_change_type("task_teleport")


class TestChangeTypes:

    def test_completion_improves_timeline(self, analyzer):
        report = analyzer.analyze_impact("task_4", ChangeType.TASK_COMPLETION)

        assert report.affected_tasks == ("task_2", "task_3")
        assert report.estimated_delay_hours == -10
        assert report.impact_level is ImpactLevel.LOW
        assert {r.severity for r in report.risk_factors} == {Severity.LOW}
        assert report.mitigations == ()

    def test_cancellation_is_critical(self, analyzer):
        report = analyzer.analyze_impact("task_4", "task_cancellation")

        assert report.estimated_delay_hours == 20
        assert report.impact_score == pytest.approx(0.9)
        assert report.impact_level is ImpactLevel.CRITICAL
        assert [r["type"] for r in report.recommendations] == [
            "immediate_action", "timeline_adjustment", "risk_mitigation",
        ]
        assert [m["type"] for m in report.mitigations] == [
            "timeline_mitigation", "resource_mitigation", "risk_mitigation",
        ]
        cancellation = report.risk_factors[-1]
        assert cancellation.type == "task_cancellation"
        assert cancellation.details == {"affected_tasks": 2}

    def test_delay_adds_hours_and_days(self, analyzer):
        report = analyzer.analyze_impact(
            "task_4", ChangeType.TASK_DELAY, {"delay_hours": 2, "delay_days": 1}
        )

        assert report.estimated_delay_hours == 20
        assert all(r.severity is Severity.HIGH for r in report.risk_factors)

    def test_dependency_update_walks_the_diff(self, analyzer):
        context = ImpactContext(added=("task_5",), removed=("task_2",), modified=("task_3",))

        report = analyzer.analyze_impact("task_1", ChangeType.DEPENDENCY_UPDATE, context)

        assert report.affected_tasks == ("task_5", "task_2", "task_3")
        assert report.estimated_delay_hours == 1
        assert report.impact_score == pytest.approx(0.325)
        assert report.impact_level is ImpactLevel.MEDIUM

    def test_dependency_removal_ignores_additions(self, analyzer):
        report = analyzer.analyze_impact(
            "task_1",
            ChangeType.DEPENDENCY_REMOVAL,
            {"added": ["task_5"], "removed": ["task_2"]},
        )

        assert report.affected_tasks == ("task_2",)
        assert report.estimated_delay_hours == -4

    def test_generic_marks_related_tasks(self, analyzer):
        report = analyzer.analyze_impact("task_4", "analysis")

        assert report.change_type is ChangeType.GENERIC
        assert report.affected_tasks == ("task_2", "task_3", "task_5")
        assert report.estimated_delay_hours == 0
        assert report.risk_factors == ()

    def test_generic_bounded_by_project_tasks(self, analyzer):
        report = analyzer.analyze_impact(
            "task_4", ChangeType.GENERIC, {"project_tasks": ["task_5", "task_1"]}
        )
        assert report.affected_tasks == ("task_5",)

    def test_unknown_task_uses_default_delay(self, store, lookup):
        store.add_edges("x", [EdgeSpec("y")])
        analyzer = ImpactAnalyzer(store, lookup, default_delay_hours=3)

        report = analyzer.analyze_impact("y", ChangeType.TASK_COMPLETION)

        assert report.estimated_delay_hours == -3

    def test_task_without_dependents(self, analyzer):
        report = analyzer.analyze_impact("task_1", ChangeType.TASK_DELAY, {"delay_hours": 5})

        assert report.affected_tasks == ()
        assert report.impact_level is ImpactLevel.LOW

    def test_rejects_empty_task_id(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.analyze_impact("", ChangeType.TASK_DELAY)

    @pytest.mark.parametrize("value", ["soon", None, True, [2]])
    def test_rejects_non_numeric_delay(self, analyzer, value):
        with pytest.raises(ValidationError):
            analyzer.analyze_impact("task_4", ChangeType.TASK_DELAY, {"delay_hours": value})

    def test_numeric_strings_are_accepted(self):
        assert ImpactContext.from_mapping({"delay_days": "1.5"}).total_delay_hours == 12


class TestMonotonicity:

    def test_cancellation_level_grows_with_fan_in(self, store, lookup):
        analyzer = ImpactAnalyzer(store, lookup)
        previous = ImpactLevel.LOW
        for n in range(1, 8):
            store.add_edges(f"d{n}", [EdgeSpec("hub")])

            report = analyzer.analyze_impact("hub", ChangeType.TASK_CANCELLATION)

            assert len(report.affected_tasks) == n
            assert report.impact_level.rank >= previous.rank
            previous = report.impact_level


class TestHistory:

    def test_newest_first_and_filtered(self, analyzer):
        analyzer.analyze_impact("task_4", ChangeType.TASK_COMPLETION)
        analyzer.analyze_impact("task_5", ChangeType.TASK_DELAY, {"delay_hours": 1})
        analyzer.analyze_impact("task_4", ChangeType.TASK_CANCELLATION)

        assert [r.change_type for r in analyzer.history("task_4")] == [
            ChangeType.TASK_CANCELLATION, ChangeType.TASK_COMPLETION,
        ]
        assert [r.task_id for r in analyzer.history(change_type="task_delay")] == ["task_5"]
        assert len(analyzer.history()) == 3

    def test_history_is_bounded(self, example_store, lookup):
        analyzer = ImpactAnalyzer(example_store, lookup, max_history=2)
        for _ in range(5):
            analyzer.analyze_impact("task_4", ChangeType.TASK_COMPLETION)

        assert len(analyzer.history()) == 2

    def test_statistics(self, analyzer):
        analyzer.analyze_impact("task_4", ChangeType.TASK_COMPLETION)
        analyzer.analyze_impact("task_4", ChangeType.TASK_CANCELLATION)

        stats = analyzer.statistics()

        assert stats["total_impacts"] == 2
        assert stats["impact_levels"]["critical"] == 1
        assert stats["impact_levels"]["low"] == 1
        assert stats["average_delay_hours"] == 5
        assert stats["average_affected_tasks"] == 2

    def test_clear_old_history(self, analyzer):
        analyzer.analyze_impact("task_4", ChangeType.TASK_COMPLETION)

        assert analyzer.clear_old_history() == 0
        assert analyzer.clear_old_history(timedelta(seconds=-1)) == 1
        assert analyzer.history() == []

    def test_report_serialises(self, analyzer):
        data = analyzer.analyze_impact("task_4", ChangeType.TASK_CANCELLATION).to_dict()

        assert data["change_type"] == "task_cancellation"
        assert data["impact_level"] == "critical"
        assert data["risk_factors"][0]["severity"] == "critical"
