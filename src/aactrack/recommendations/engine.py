"""Rule-based therapy recommendations and session insights.

Every rule in the table is evaluated in order and all matching rules
contribute; there is no first-match short circuit.
"""

from __future__ import annotations

from dataclasses import dataclass

from aactrack.common.constants import CommunicationPattern
from aactrack.common.schemas import AnomalyReport, Insight, PatientProfile, SessionMetrics

EXCELLENT_PROGRESS = (
    "Excellent progress! Consider introducing more complex communication boards."
)
GOOD_PROGRESS = "Good steady progress. Maintain current approach with slight variations."
ADJUST_APPROACH = (
    "Consider adjusting session structure or trying different tile categories."
)
SHORTER_SESSIONS = "Try shorter, more frequent sessions to boost engagement."
SOCIAL_TILES = "Introduce more descriptive and social communication tiles."


@dataclass(frozen=True)
class RecommendationConfig:
    """Thresholds for the recommendation rule table."""

    excellent_likelihood: float = 0.7
    good_likelihood: float = 0.5
    low_engagement: float = 0.5
    high_engagement_insight: float = 0.8


class RecommendationEngine:
    """Maps profile and session metrics to textual guidance."""

    def __init__(self, config: RecommendationConfig | None = None) -> None:
        self._config = config or RecommendationConfig()

    @property
    def config(self) -> RecommendationConfig:
        return self._config

    def recommend(
        self,
        metrics: SessionMetrics | None,
        profile: PatientProfile,
        likelihood: float | None = None,
    ) -> list[str]:
        """Evaluate the rule table.

        ``likelihood`` defaults to the profile's average success rate as a
        fraction. The pattern rule uses ``metrics`` when given, otherwise
        the profile's most frequent session pattern.
        """
        cfg = self._config
        if likelihood is None:
            likelihood = profile.avg_success_rate / 100.0

        recs: list[str] = []
        if likelihood > cfg.excellent_likelihood:
            recs.append(EXCELLENT_PROGRESS)
        elif likelihood > cfg.good_likelihood:
            recs.append(GOOD_PROGRESS)
        else:
            recs.append(ADJUST_APPROACH)

        if profile.avg_engagement < cfg.low_engagement:
            recs.append(SHORTER_SESSIONS)

        pattern = metrics.dominant_pattern if metrics is not None else profile.dominant_pattern
        if pattern == CommunicationPattern.REQUESTING:
            recs.append(SOCIAL_TILES)

        return recs

    def generate_insights(
        self,
        metrics: SessionMetrics,
        anomaly: AnomalyReport | None = None,
    ) -> list[Insight]:
        """Real-time observations about a just-completed session."""
        insights: list[Insight] = []
        if metrics.engagement_level > self._config.high_engagement_insight:
            insights.append(Insight(
                kind="positive",
                message="High engagement detected! This session format works well.",
            ))
        insights.append(Insight(
            kind="info",
            message=f"Primary communication pattern: {metrics.dominant_pattern.value}",
        ))
        if anomaly is not None and anomaly.flagged:
            insights.append(Insight(
                kind="warning",
                message="Unusual session pattern detected. May need attention.",
            ))
        return insights


__all__ = [
    "RecommendationConfig",
    "RecommendationEngine",
    "EXCELLENT_PROGRESS",
    "GOOD_PROGRESS",
    "ADJUST_APPROACH",
    "SHORTER_SESSIONS",
    "SOCIAL_TILES",
]
