"""
TaskDeps — Impact Analysis
============================
Scored simulation of how one change propagates through the graph.

Public API:
    ImpactAnalyzer - Builds and records impact reports
    ImpactContext, ImpactReport, RiskFactor - Report inputs and outputs
"""

from taskdeps.impact.analyzer import (
    ImpactAnalyzer,
    ImpactContext,
    ImpactReport,
    RiskFactor,
    impact_level,
    impact_score,
    parse_change_type,
)

__all__ = [
    "ImpactAnalyzer",
    "ImpactContext",
    "ImpactReport",
    "RiskFactor",
    "impact_level",
    "impact_score",
    "parse_change_type",
]
