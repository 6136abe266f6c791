"""Session analytics service.

Wires the event store, metric computer, profile aggregator, anomaly
detector, recommendation engine and report builder together through
explicit constructor injection, and exposes the ingestion and query API
used by the board UI, reporting and billing collaborators.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from aactrack.analytics.metrics import compute_metrics
from aactrack.common.config import AACTrackConfig
from aactrack.common.errors import InvalidStateError
from aactrack.common.schemas import (
    AnomalyReport,
    BehaviorAnomaly,
    DateRange,
    Event,
    Insight,
    PatientProfile,
    Session,
)
from aactrack.ingestion.event_store import EventStore
from aactrack.monitoring.anomaly import AnomalyAlertSink, AnomalyConfig, AnomalyDetector
from aactrack.monitoring.scheduler import PeriodicScan
from aactrack.profiles.aggregator import AggregatorConfig, MilestoneObserver, ProfileAggregator
from aactrack.recommendations.engine import RecommendationEngine
from aactrack.reports.builder import Report, ReportBuilder

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Ingestion and query facade over the analytics pipeline."""

    def __init__(
        self,
        store: EventStore,
        aggregator: ProfileAggregator,
        detector: AnomalyDetector,
        recommender: RecommendationEngine,
        reports: ReportBuilder,
        scan_interval_seconds: float = 60.0,
    ) -> None:
        self._store = store
        self._aggregator = aggregator
        self._detector = detector
        self._recommender = recommender
        self._reports = reports
        self._scan_interval = scan_interval_seconds

    @classmethod
    def from_config(
        cls,
        config: AACTrackConfig | None = None,
        observers: Sequence[MilestoneObserver] = (),
        alert_sink: AnomalyAlertSink | None = None,
    ) -> AnalyticsService:
        """Build a fully wired service from settings."""
        cfg = config or AACTrackConfig()
        aggregator = ProfileAggregator(
            AggregatorConfig(trend_window=cfg.trend_window), observers=observers,
        )
        detector = AnomalyDetector(
            AnomalyConfig(
                min_population=cfg.min_population,
                std_multiplier=cfg.anomaly_std_multiplier,
                behavior_window=cfg.behavior_window,
                inactivity_seconds=cfg.inactivity_seconds,
            ),
            alert_sink=alert_sink,
        )
        recommender = RecommendationEngine()
        return cls(
            store=EventStore(),
            aggregator=aggregator,
            detector=detector,
            recommender=recommender,
            reports=ReportBuilder(aggregator, detector, recommender),
            scan_interval_seconds=cfg.scan_interval_seconds,
        )

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def aggregator(self) -> ProfileAggregator:
        return self._aggregator

    # --- Ingestion API ---

    def start_session(
        self, session_id: str, patient_id: str, start_time: datetime | None = None,
    ) -> None:
        self._store.start_session(session_id, patient_id, start_time)

    def record_event(self, event: Event | Mapping[str, Any]) -> None:
        """Record one interaction event; raises ``ValidationError`` if malformed."""
        self._store.record(event)

    def close_session(
        self,
        session_id: str,
        end_time: datetime | None = None,
        consistency_score: float | None = None,
    ) -> Session:
        """Close a session and fold its metrics into the patient's profile.

        A session id that a restored profile already holds is refused
        before the store closes anything.
        """
        if self._aggregator.has_session(session_id):
            raise InvalidStateError(
                f"Session {session_id} was already ingested", session_id=session_id,
            )
        session = self._store.close_session(session_id, end_time, consistency_score)
        metrics = compute_metrics(session)
        self._aggregator.ingest(session.patient_id, metrics)
        logger.info(
            "Session %s ingested: success=%.1f%% engagement=%.2f pattern=%s",
            session_id, metrics.success_rate, metrics.engagement_level,
            metrics.dominant_pattern,
        )
        return session

    # --- Query API ---

    def get_profile(self, patient_id: str) -> PatientProfile | None:
        return self._aggregator.get_profile(patient_id)

    def get_report(self, patient_id: str, date_range: DateRange) -> Report:
        return self._reports.build_report(patient_id, date_range)

    def check_anomaly(self, session_id: str) -> AnomalyReport:
        """Duration outlier check for a closed, ingested session."""
        metrics = self._aggregator.find_session(session_id)
        if metrics is None:
            raise InvalidStateError(
                f"Session {session_id} is not a closed, ingested session",
                session_id=session_id,
            )
        return self._detector.detect(metrics, self._aggregator.population_durations())

    def recommend(self, patient_id: str) -> list[str]:
        profile = self._require_profile(patient_id)
        latest = profile.sessions[-1] if profile.sessions else None
        return self._recommender.recommend(latest, profile)

    def session_insights(self, session_id: str) -> list[Insight]:
        metrics = self._aggregator.find_session(session_id)
        if metrics is None:
            raise InvalidStateError(
                f"Session {session_id} is not a closed, ingested session",
                session_id=session_id,
            )
        anomaly = self._detector.detect(metrics, self._aggregator.population_durations())
        return self._recommender.generate_insights(metrics, anomaly)

    # --- Periodic scanning ---

    def run_anomaly_scan(self, now: datetime | None = None) -> list[BehaviorAnomaly]:
        """Scan every active session's recent events for behavioral anomalies."""
        now = now or datetime.now(timezone.utc)
        found: list[BehaviorAnomaly] = []
        for session_id in self._store.active_session_ids():
            events = self._store.active_events(session_id)
            found.extend(self._detector.scan_behavior(events, now, session_id=session_id))
        if found:
            logger.info("Anomaly scan found %d anomalies", len(found))
        return found

    def create_scan(self, interval_seconds: float | None = None) -> PeriodicScan:
        """A periodic scan task for the host to start and stop."""
        return PeriodicScan(
            self.run_anomaly_scan, interval_seconds or self._scan_interval,
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "store": self._store.get_stats(),
            "profiles": self._aggregator.get_stats(),
        }

    def _require_profile(self, patient_id: str) -> PatientProfile:
        profile = self._aggregator.get_profile(patient_id)
        if profile is None:
            raise InvalidStateError(
                f"No profile for patient {patient_id}", patient_id=patient_id,
            )
        return profile


__all__ = ["AnalyticsService"]
