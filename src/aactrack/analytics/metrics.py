"""Per-session metric computation.

All functions are pure: they read a closed ``Session`` and never
mutate it.
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from aactrack.common.constants import (
    CATEGORY_PATTERNS,
    DEFAULT_CONSISTENCY_SCORE,
    ENGAGEMENT_DURATION_CAP_MS,
    ENGAGEMENT_INTERACTION_CAP,
    ENGAGEMENT_VARIETY_CAP,
    CommunicationPattern,
)
from aactrack.common.schemas import Event, Session, SessionMetrics


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(min(max(value, low), high))


def success_rate(attempts: int, successes: int) -> float:
    """Percentage of successful attempts, 0 when there were none."""
    if attempts <= 0:
        return 0.0
    return _clamp(successes / attempts * 100.0, 0.0, 100.0)


def engagement_factors(session: Session) -> dict[str, float]:
    """The four engagement factors, each clamped to [0, 1]."""
    consistency = session.consistency_score
    if consistency is None:
        consistency = DEFAULT_CONSISTENCY_SCORE
    return {
        "duration": _clamp(session.duration / ENGAGEMENT_DURATION_CAP_MS),
        "interactions": _clamp(session.interaction_count / ENGAGEMENT_INTERACTION_CAP),
        "variety": _clamp(session.unique_tiles / ENGAGEMENT_VARIETY_CAP),
        "consistency": _clamp(consistency),
    }


def engagement_level(session: Session) -> float:
    """Unweighted mean of the clamped engagement factors."""
    factors = engagement_factors(session)
    return _clamp(float(np.mean(list(factors.values()))))


def pattern_tally(events: Iterable[Event]) -> dict[CommunicationPattern, int]:
    """Count events per communication pattern bucket, in enum order."""
    tally = {pattern: 0 for pattern in CommunicationPattern}
    for event in events:
        if event.tile_category is None:
            continue
        bucket = CATEGORY_PATTERNS.get(event.tile_category.lower())
        if bucket is not None:
            tally[bucket] += 1
    return tally


def dominant_pattern(events: Iterable[Event]) -> CommunicationPattern:
    """Bucket with the highest count; ties go to the earliest bucket."""
    tally = pattern_tally(events)
    best = CommunicationPattern.REQUESTING
    for pattern, count in tally.items():
        if count > tally[best]:
            best = pattern
    return best


def compute_metrics(session: Session) -> SessionMetrics:
    """Derive ``SessionMetrics`` from a closed session."""
    return SessionMetrics(
        session_id=session.session_id,
        timestamp=session.start_time,
        duration=session.duration,
        interaction_count=session.interaction_count,
        success_rate=success_rate(session.attempts, session.successes),
        engagement_level=engagement_level(session),
        dominant_pattern=dominant_pattern(session.events),
    )


__all__ = [
    "success_rate",
    "engagement_factors",
    "engagement_level",
    "pattern_tally",
    "dominant_pattern",
    "compute_metrics",
]
