"""Session metric computation and multi-session statistics."""

from aactrack.analytics.metrics import (
    compute_metrics,
    dominant_pattern,
    engagement_level,
    pattern_tally,
    success_rate,
)
from aactrack.analytics.trends import DetailedMetrics, PeakTime, compute_detailed_metrics

__all__ = [
    "compute_metrics",
    "dominant_pattern",
    "engagement_level",
    "pattern_tally",
    "success_rate",
    "DetailedMetrics",
    "PeakTime",
    "compute_detailed_metrics",
]
