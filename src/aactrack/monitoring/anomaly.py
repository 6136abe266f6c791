"""Session anomaly detection.

Two independent checks:

* Duration outliers against the population of all historical sessions
  (every patient combined). A session is flagged when its duration lies
  more than ``std_multiplier`` population standard deviations from the
  population mean. Undersized populations are reported, never scored.
* Behavioral anomalies inside an active session: inactivity, repetitive
  selection and error spikes over the most recent events.

Both checks are pure functions of their inputs; callers pass frozen
snapshots, never live collections.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import numpy as np

from aactrack.common.constants import (
    INSUFFICIENT_POPULATION,
    AnomalySeverity,
    BehaviorAnomalyKind,
    EventType,
)
from aactrack.common.schemas import (
    AnomalyReport,
    BehaviorAnomaly,
    Event,
    Session,
    SessionMetrics,
    as_utc,
)

logger = logging.getLogger(__name__)


# --- Configuration ---


@dataclass(frozen=True)
class AnomalyConfig:
    """Thresholds for anomaly detection."""

    min_population: int = 20
    std_multiplier: float = 2.0
    behavior_window: int = 20
    min_behavior_events: int = 10
    inactivity_seconds: float = 300.0
    repetition_run: int = 5
    max_errors: int = 5


class AnomalyAlertSink(Protocol):
    """Receives high-severity behavioral anomalies (therapist alerts)."""

    def on_anomaly(self, anomaly: BehaviorAnomaly) -> None: ...


# --- Detector ---


class AnomalyDetector:
    """Population duration outliers and in-session behavior checks."""

    def __init__(
        self,
        config: AnomalyConfig | None = None,
        alert_sink: AnomalyAlertSink | None = None,
    ) -> None:
        self._config = config or AnomalyConfig()
        self._alert_sink = alert_sink

    @property
    def config(self) -> AnomalyConfig:
        return self._config

    def detect(
        self,
        session: Session | SessionMetrics,
        population: Sequence[float],
    ) -> AnomalyReport:
        """Compare a session's duration with the population of durations."""
        size = len(population)
        if size < self._config.min_population:
            return AnomalyReport(
                session_id=session.session_id,
                flagged=False,
                reason=INSUFFICIENT_POPULATION,
                population_size=size,
            )

        values = np.asarray(population, dtype=float)
        mean = float(values.mean())
        std = float(values.std())
        deviation = abs(session.duration - mean)
        flagged = deviation > self._config.std_multiplier * std

        if flagged:
            logger.warning(
                "Session %s duration %.0f ms deviates %.0f ms from population mean %.0f ms",
                session.session_id, session.duration, deviation, mean,
            )

        return AnomalyReport(
            session_id=session.session_id,
            population_mean=mean,
            population_std_dev=std,
            deviation=deviation,
            flagged=flagged,
            population_size=size,
        )

    def scan_behavior(
        self,
        events: Sequence[Event],
        now: datetime,
        session_id: str | None = None,
    ) -> list[BehaviorAnomaly]:
        """Check the most recent events of an active session."""
        cfg = self._config
        if len(events) < cfg.min_behavior_events:
            return []

        recent = list(events[-cfg.behavior_window:])
        anomalies: list[BehaviorAnomaly] = []

        idle = (as_utc(now) - recent[-1].timestamp).total_seconds()
        if idle > cfg.inactivity_seconds:
            anomalies.append(BehaviorAnomaly(
                kind=BehaviorAnomalyKind.INACTIVITY,
                severity=AnomalySeverity.MEDIUM,
                message=f"No activity for {int(idle // 60)} minutes",
                session_id=session_id,
            ))

        run = recent[-cfg.repetition_run:]
        first_tile = run[0].tile_id
        if (
            len(run) == cfg.repetition_run
            and first_tile is not None
            and all(e.tile_id == first_tile for e in run)
        ):
            anomalies.append(BehaviorAnomaly(
                kind=BehaviorAnomalyKind.REPETITION,
                severity=AnomalySeverity.LOW,
                message="Repetitive selection detected",
                session_id=session_id,
            ))

        errors = sum(1 for e in recent if e.type == EventType.ERROR)
        if errors > cfg.max_errors:
            anomalies.append(BehaviorAnomaly(
                kind=BehaviorAnomalyKind.ERRORS,
                severity=AnomalySeverity.HIGH,
                message="High error rate detected",
                session_id=session_id,
            ))

        for anomaly in anomalies:
            if anomaly.severity == AnomalySeverity.HIGH:
                self._alert(anomaly)
        return anomalies

    def _alert(self, anomaly: BehaviorAnomaly) -> None:
        logger.warning("Behavior anomaly in session %s: %s", anomaly.session_id, anomaly.message)
        if self._alert_sink is None:
            return
        try:
            self._alert_sink.on_anomaly(anomaly)
        except Exception:
            logger.exception("Anomaly alert sink failed for session %s", anomaly.session_id)


__all__ = ["AnomalyConfig", "AnomalyAlertSink", "AnomalyDetector"]
