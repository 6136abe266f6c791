"""Patient profile aggregation."""

from __future__ import annotations

from aactrack.profiles.aggregator import (
    DEFAULT_MILESTONE_RULES,
    AggregatorConfig,
    MilestoneObserver,
    MilestoneRule,
    ProfileAggregator,
    classify_trend,
)

__all__ = [
    "DEFAULT_MILESTONE_RULES",
    "AggregatorConfig",
    "MilestoneObserver",
    "MilestoneRule",
    "ProfileAggregator",
    "classify_trend",
]
