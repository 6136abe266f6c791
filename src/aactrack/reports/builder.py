"""Patient progress report builder.

Assembles a read-only report for one patient over an inclusive date
range: summary statistics, milestones, recommendations, per-session
anomaly snapshots, detailed trend metrics and chart-ready series.
Building a report never changes stored state, and identical inputs give
identical reports.
"""

from __future__ import annotations

import csv
import io

import numpy as np
from pydantic import Field

from aactrack.analytics.trends import (
    DetailedMetrics,
    activity_heatmap,
    compute_detailed_metrics,
    pattern_distribution,
)
from aactrack.common.constants import CommunicationPattern, ProgressTrend
from aactrack.common.errors import InvalidStateError
from aactrack.common.schemas import (
    AnomalyReport,
    DateRange,
    FrozenCamelModel,
    Milestone,
    SessionMetrics,
)
from aactrack.monitoring.anomaly import AnomalyDetector
from aactrack.profiles.aggregator import ProfileAggregator
from aactrack.recommendations.engine import RecommendationEngine


class ReportSummary(FrozenCamelModel):
    """Summary statistics over the sessions in range."""

    total_sessions: int = 0
    avg_engagement: float = 0.0
    avg_success_rate: float = 0.0
    progress_trend: ProgressTrend = ProgressTrend.STABLE
    dominant_pattern: CommunicationPattern | None = None
    flagged_sessions: int = 0


class ReportVisualizations(FrozenCamelModel):
    """Arrays ready for external charting.

    ``engagement_series`` is expressed in percent so it shares an axis
    with ``success_rate_series``.
    """

    labels: list[str] = Field(default_factory=list)
    success_rate_series: list[float] = Field(default_factory=list)
    engagement_series: list[float] = Field(default_factory=list)
    pattern_distribution: dict[str, int] = Field(default_factory=dict)
    heatmap: list[list[int]] = Field(default_factory=list)


class Report(FrozenCamelModel):
    """Patient progress report."""

    patient_id: str
    date_range: DateRange
    summary: ReportSummary
    milestones: list[Milestone] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    anomalies: list[AnomalyReport] = Field(default_factory=list)
    detailed_metrics: DetailedMetrics = Field(default_factory=DetailedMetrics)
    visualizations: ReportVisualizations = Field(default_factory=ReportVisualizations)

    def to_csv(self) -> str:
        """Flat CSV rendering for spreadsheet export."""
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow(["Metric", "Value"])
        writer.writerow(["Patient", self.patient_id])
        writer.writerow(["Period Start", self.date_range.start.isoformat()])
        writer.writerow(["Period End", self.date_range.end.isoformat()])
        writer.writerow(["Total Sessions", self.summary.total_sessions])
        writer.writerow(["Average Success Rate", f"{self.summary.avg_success_rate:.2f}"])
        writer.writerow(["Average Engagement", f"{self.summary.avg_engagement:.4f}"])
        writer.writerow(["Progress Trend", self.summary.progress_trend.value])
        writer.writerow(["Flagged Sessions", self.summary.flagged_sessions])
        writer.writerow([])

        writer.writerow(["Date", "Success Rate", "Engagement"])
        for label, rate, engagement in zip(
            self.visualizations.labels,
            self.visualizations.success_rate_series,
            self.visualizations.engagement_series,
        ):
            writer.writerow([label, f"{rate:.2f}", f"{engagement:.2f}"])
        writer.writerow([])

        writer.writerow(["Milestone", "Achieved At"])
        for m in self.milestones:
            writer.writerow([m.name, m.achieved_at.isoformat()])

        return output.getvalue()


class ReportBuilder:
    """Builds reports from profile, anomaly and recommendation snapshots."""

    def __init__(
        self,
        aggregator: ProfileAggregator,
        detector: AnomalyDetector,
        recommender: RecommendationEngine,
    ) -> None:
        self._aggregator = aggregator
        self._detector = detector
        self._recommender = recommender

    def build_report(self, patient_id: str, date_range: DateRange) -> Report:
        profile = self._aggregator.get_profile(patient_id)
        if profile is None:
            raise InvalidStateError(
                f"No profile for patient {patient_id}", patient_id=patient_id,
            )
        population = self._aggregator.population_durations()

        sessions = [s for s in profile.sessions if date_range.contains(s.timestamp)]
        anomalies = [self._detector.detect(s, population) for s in sessions]

        return Report(
            patient_id=patient_id,
            date_range=date_range,
            summary=self._summarize(sessions, anomalies, profile.progress_trend),
            milestones=list(profile.milestones),
            recommendations=self._recommender.recommend(None, profile),
            anomalies=anomalies,
            detailed_metrics=compute_detailed_metrics(sessions),
            visualizations=ReportVisualizations(
                labels=[s.timestamp.date().isoformat() for s in sessions],
                success_rate_series=[s.success_rate for s in sessions],
                engagement_series=[s.engagement_level * 100.0 for s in sessions],
                pattern_distribution=pattern_distribution(sessions),
                heatmap=activity_heatmap(sessions),
            ),
        )

    @staticmethod
    def _summarize(
        sessions: list[SessionMetrics],
        anomalies: list[AnomalyReport],
        trend: ProgressTrend,
    ) -> ReportSummary:
        if not sessions:
            return ReportSummary(progress_trend=trend)

        counts = {p: 0 for p in CommunicationPattern}
        for s in sessions:
            counts[s.dominant_pattern] += 1

        return ReportSummary(
            total_sessions=len(sessions),
            avg_engagement=float(np.mean([s.engagement_level for s in sessions])),
            avg_success_rate=float(np.mean([s.success_rate for s in sessions])),
            progress_trend=trend,
            dominant_pattern=max(counts, key=lambda p: counts[p]),
            flagged_sessions=sum(1 for a in anomalies if a.flagged),
        )


__all__ = ["ReportSummary", "ReportVisualizations", "Report", "ReportBuilder"]
