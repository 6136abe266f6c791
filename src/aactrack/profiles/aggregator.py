"""Patient profile aggregation.

Maintains one profile per patient, updated from each completed session:
running averages over all sessions, a progress trend comparing the last
two windows of sessions, and one-time milestones announced to observers.

Ingestion is serialized per patient; different patients never contend
for the same lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from aactrack.common.constants import CommunicationPattern, ProgressTrend, ThresholdKind
from aactrack.common.errors import InvalidStateError
from aactrack.common.schemas import Milestone, PatientProfile, SessionMetrics

logger = logging.getLogger(__name__)


# --- Milestone rules ---


@dataclass(frozen=True)
class MilestoneRule:
    """A threshold over a cumulative profile metric."""

    name: str
    kind: ThresholdKind
    threshold: float
    pattern: CommunicationPattern | None = None

    def is_met(self, profile: PatientProfile) -> bool:
        if not profile.sessions:
            return False
        if self.kind == ThresholdKind.SESSION_COUNT:
            return len(profile.sessions) >= self.threshold
        if self.kind == ThresholdKind.SUCCESS_RATE:
            return profile.avg_success_rate >= self.threshold
        if self.kind == ThresholdKind.ENGAGEMENT:
            return profile.avg_engagement >= self.threshold
        if self.kind == ThresholdKind.PATTERN_COUNT and self.pattern is not None:
            return profile.pattern_counts()[self.pattern] >= self.threshold
        return False


DEFAULT_MILESTONE_RULES: tuple[MilestoneRule, ...] = (
    MilestoneRule("First 10 Sessions", ThresholdKind.SESSION_COUNT, 10),
    MilestoneRule("50 Sessions Milestone", ThresholdKind.SESSION_COUNT, 50),
    MilestoneRule("Century Club", ThresholdKind.SESSION_COUNT, 100),
    MilestoneRule("High Achiever", ThresholdKind.SUCCESS_RATE, 80.0),
    MilestoneRule("Highly Engaged", ThresholdKind.ENGAGEMENT, 0.8),
    MilestoneRule(
        "Social Butterfly", ThresholdKind.PATTERN_COUNT, 20,
        pattern=CommunicationPattern.SOCIALIZING,
    ),
)


class MilestoneObserver(Protocol):
    """Receives milestone notifications (celebration UI, speech, audit...)."""

    def on_milestone(self, patient_id: str, milestone: Milestone) -> None: ...


# --- Configuration ---


@dataclass(frozen=True)
class AggregatorConfig:
    """Trend and milestone settings."""

    trend_window: int = 5
    improving_ratio: float = 1.1
    declining_ratio: float = 0.9
    milestone_rules: tuple[MilestoneRule, ...] = DEFAULT_MILESTONE_RULES


def classify_trend(
    recent_avg: float,
    older_avg: float,
    improving_ratio: float = 1.1,
    declining_ratio: float = 0.9,
) -> ProgressTrend:
    """Compare the recent window's mean success rate to the older window's."""
    if recent_avg > older_avg * improving_ratio:
        return ProgressTrend.IMPROVING
    if recent_avg < older_avg * declining_ratio:
        return ProgressTrend.DECLINING
    return ProgressTrend.STABLE


# --- Aggregator ---


class ProfileAggregator:
    """Owns all patient profiles and the cross-patient duration population."""

    def __init__(
        self,
        config: AggregatorConfig | None = None,
        observers: Sequence[MilestoneObserver] = (),
    ) -> None:
        self._config = config or AggregatorConfig()
        self._observers: list[MilestoneObserver] = list(observers)
        self._profiles: dict[str, PatientProfile] = {}
        self._patient_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._session_index: dict[str, str] = {}
        self._population: list[float] = []

    @property
    def config(self) -> AggregatorConfig:
        return self._config

    def add_observer(self, observer: MilestoneObserver) -> None:
        self._observers.append(observer)

    def _lock_for(self, patient_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._patient_locks.get(patient_id)
            if lock is None:
                lock = threading.Lock()
                self._patient_locks[patient_id] = lock
            return lock

    def ingest(self, patient_id: str, metrics: SessionMetrics) -> list[Milestone]:
        """Fold one session's metrics into the patient's profile.

        Returns the milestones achieved by this session.
        """
        with self._lock_for(patient_id):
            with self._registry_lock:
                if metrics.session_id in self._session_index:
                    raise InvalidStateError(
                        f"Session {metrics.session_id} was already ingested",
                        session_id=metrics.session_id,
                        patient_id=patient_id,
                    )
                profile = self._profiles.get(patient_id)
                if profile is None:
                    profile = PatientProfile(patient_id=patient_id)
                    self._profiles[patient_id] = profile
                    logger.info("Created profile for patient %s", patient_id)

            profile.sessions.append(metrics)
            self._recompute_averages(profile)
            self._update_trend(profile)
            achieved = self._check_milestones(profile, metrics)

            with self._registry_lock:
                self._session_index[metrics.session_id] = patient_id
                self._population.append(metrics.duration)

        logger.debug(
            "Ingested session %s for patient %s (%d sessions, trend=%s)",
            metrics.session_id, patient_id, len(profile.sessions), profile.progress_trend,
        )
        for milestone in achieved:
            self._notify(patient_id, milestone)
        return achieved

    def _recompute_averages(self, profile: PatientProfile) -> None:
        sessions = profile.sessions
        profile.avg_engagement = float(
            np.clip(np.mean([s.engagement_level for s in sessions]), 0.0, 1.0)
        )
        profile.avg_success_rate = float(
            np.clip(np.mean([s.success_rate for s in sessions]), 0.0, 100.0)
        )

    def _update_trend(self, profile: PatientProfile) -> None:
        window = self._config.trend_window
        sessions = profile.sessions
        if len(sessions) <= window:
            return
        older = sessions[-2 * window:-window]
        if len(older) < window:
            return
        recent = sessions[-window:]
        profile.progress_trend = classify_trend(
            float(np.mean([s.success_rate for s in recent])),
            float(np.mean([s.success_rate for s in older])),
            self._config.improving_ratio,
            self._config.declining_ratio,
        )

    def _check_milestones(
        self, profile: PatientProfile, metrics: SessionMetrics,
    ) -> list[Milestone]:
        achieved: list[Milestone] = []
        for rule in self._config.milestone_rules:
            if profile.has_milestone(rule.name) or not rule.is_met(profile):
                continue
            milestone = Milestone(
                name=rule.name,
                threshold_kind=rule.kind,
                achieved_at=metrics.timestamp,
            )
            profile.milestones.append(milestone)
            achieved.append(milestone)
            logger.info("Patient %s achieved milestone '%s'", profile.patient_id, rule.name)
        return achieved

    def _notify(self, patient_id: str, milestone: Milestone) -> None:
        for observer in list(self._observers):
            try:
                observer.on_milestone(patient_id, milestone)
            except Exception:
                logger.exception(
                    "Milestone observer failed for patient %s (%s)",
                    patient_id, milestone.name,
                )

    # --- Queries ---

    def get_profile(self, patient_id: str) -> PatientProfile | None:
        """Deep copy of the patient's profile, or None."""
        with self._lock_for(patient_id):
            profile = self._profiles.get(patient_id)
            return profile.model_copy(deep=True) if profile else None

    def snapshot(self) -> dict[str, PatientProfile]:
        """Deep copies of every profile, keyed by patient id."""
        return {
            patient_id: profile
            for patient_id in self.patient_ids()
            if (profile := self.get_profile(patient_id)) is not None
        }

    def has_session(self, session_id: str) -> bool:
        with self._registry_lock:
            return session_id in self._session_index

    def has_profile(self, patient_id: str) -> bool:
        with self._registry_lock:
            return patient_id in self._profiles

    def patient_ids(self) -> tuple[str, ...]:
        with self._registry_lock:
            return tuple(self._profiles)

    def find_session(self, session_id: str) -> SessionMetrics | None:
        with self._registry_lock:
            patient_id = self._session_index.get(session_id)
        if patient_id is None:
            return None
        with self._lock_for(patient_id):
            for s in self._profiles[patient_id].sessions:
                if s.session_id == session_id:
                    return s
        return None

    def population_durations(self) -> tuple[float, ...]:
        """Frozen snapshot of every ingested session duration."""
        with self._registry_lock:
            return tuple(self._population)

    def load_profile(self, profile: PatientProfile) -> None:
        """Restore a previously serialized profile."""
        with self._lock_for(profile.patient_id):
            with self._registry_lock:
                if profile.patient_id in self._profiles:
                    raise InvalidStateError(
                        f"Profile for patient {profile.patient_id} already exists",
                        patient_id=profile.patient_id,
                    )
                clashes = [
                    s.session_id for s in profile.sessions
                    if s.session_id in self._session_index
                ]
                if clashes:
                    raise InvalidStateError(
                        f"Sessions already ingested: {', '.join(clashes)}",
                        session_id=clashes[0],
                        patient_id=profile.patient_id,
                    )
                restored = profile.model_copy(deep=True)
                self._profiles[profile.patient_id] = restored
                for s in restored.sessions:
                    self._session_index[s.session_id] = restored.patient_id
                    self._population.append(s.duration)
        logger.info(
            "Loaded profile for patient %s (%d sessions)",
            profile.patient_id, len(profile.sessions),
        )

    def get_stats(self) -> dict[str, Any]:
        with self._registry_lock:
            return {
                "profiles": len(self._profiles),
                "sessions_ingested": len(self._session_index),
                "milestones_awarded": sum(len(p.milestones) for p in self._profiles.values()),
                "observers": len(self._observers),
            }


__all__ = [
    "MilestoneRule",
    "DEFAULT_MILESTONE_RULES",
    "MilestoneObserver",
    "AggregatorConfig",
    "classify_trend",
    "ProfileAggregator",
]
