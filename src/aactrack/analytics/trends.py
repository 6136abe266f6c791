"""Multi-session descriptive statistics used in patient reports."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import numpy as np
from pydantic import Field

from aactrack.common.constants import CommunicationPattern
from aactrack.common.schemas import FrozenCamelModel, SessionMetrics

_TREND_SLOPE_EPSILON = 0.01
_PEAK_HOURS = 3


class PeakTime(FrozenCamelModel):
    """Hour of day with its session frequency and mean success rate."""

    hour: int = Field(ge=0, le=23)
    frequency: int = Field(ge=1)
    avg_success: float


class DetailedMetrics(FrozenCamelModel):
    """Descriptive statistics over a list of sessions."""

    communication_growth: float = 0.0
    engagement_trend: str = "stable"
    session_consistency: float = Field(default=1.0, ge=0.0, le=1.0)
    peak_performance_times: list[PeakTime] = Field(default_factory=list)


def growth_rate(values: Sequence[float]) -> float:
    """Percent change between the mean of the first and last thirds."""
    if len(values) < 2:
        return 0.0
    window = max(1, len(values) // 3)
    first_avg = float(np.mean(values[:window]))
    last_avg = float(np.mean(values[-window:]))
    if first_avg == 0.0:
        return 0.0
    return (last_avg - first_avg) / first_avg * 100.0


def linear_trend(values: Sequence[float]) -> str:
    """Classify the least-squares slope over session index."""
    if len(values) < 2:
        return "stable"
    x = np.arange(len(values), dtype=float)
    slope = float(np.polyfit(x, np.asarray(values, dtype=float), 1)[0])
    if slope > _TREND_SLOPE_EPSILON:
        return "increasing"
    if slope < -_TREND_SLOPE_EPSILON:
        return "decreasing"
    return "stable"


def session_consistency(timestamps: Sequence[datetime]) -> float:
    """Regularity of session spacing: 1 - (std / mean) of the intervals."""
    if len(timestamps) < 2:
        return 1.0
    ordered = sorted(timestamps)
    intervals = np.array(
        [(b - a).total_seconds() for a, b in zip(ordered, ordered[1:])],
        dtype=float,
    )
    mean = float(intervals.mean())
    std = float(intervals.std())
    if mean <= 0.0:
        return 1.0 if std == 0.0 else 0.0
    return max(0.0, 1.0 - std / mean)


def peak_performance_times(
    sessions: Sequence[SessionMetrics], top_n: int = _PEAK_HOURS,
) -> list[PeakTime]:
    """Hours of day with the best mean success rate."""
    counts = np.zeros(24, dtype=int)
    success = np.zeros(24, dtype=float)
    for s in sessions:
        counts[s.timestamp.hour] += 1
        success[s.timestamp.hour] += s.success_rate

    peaks = [
        PeakTime(hour=h, frequency=int(counts[h]), avg_success=float(success[h] / counts[h]))
        for h in range(24)
        if counts[h] > 0
    ]
    peaks.sort(key=lambda p: p.avg_success, reverse=True)
    return peaks[:top_n]


def pattern_distribution(sessions: Sequence[SessionMetrics]) -> dict[str, int]:
    """Sessions per dominant pattern, keyed in fixed pattern order."""
    dist = {p.value: 0 for p in CommunicationPattern}
    for s in sessions:
        dist[s.dominant_pattern.value] += 1
    return dist


def activity_heatmap(sessions: Sequence[SessionMetrics]) -> list[list[int]]:
    """7x24 session counts; rows are weekdays starting Monday."""
    grid = np.zeros((7, 24), dtype=int)
    for s in sessions:
        grid[s.timestamp.weekday(), s.timestamp.hour] += 1
    return grid.tolist()


def compute_detailed_metrics(sessions: Sequence[SessionMetrics]) -> DetailedMetrics:
    return DetailedMetrics(
        communication_growth=growth_rate([s.interaction_count for s in sessions]),
        engagement_trend=linear_trend([s.engagement_level for s in sessions]),
        session_consistency=session_consistency([s.timestamp for s in sessions]),
        peak_performance_times=peak_performance_times(sessions),
    )


__all__ = [
    "PeakTime",
    "DetailedMetrics",
    "growth_rate",
    "linear_trend",
    "session_consistency",
    "peak_performance_times",
    "pattern_distribution",
    "activity_heatmap",
    "compute_detailed_metrics",
]
