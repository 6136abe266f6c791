"""Constants and enums for AACTrack."""

from enum import StrEnum
from typing import Final


class EventType(StrEnum):
    """Interaction event types emitted by the communication board."""

    TILE_SELECT = "tile_select"
    ATTEMPT = "attempt"
    SUCCESS = "success"
    ERROR = "error"
    SPEECH = "speech"


class CommunicationPattern(StrEnum):
    """Communication-intent buckets.

    Declaration order is the tie-break order for dominant pattern detection.
    """

    REQUESTING = "requesting"
    LABELING = "labeling"
    SOCIALIZING = "socializing"
    EXPRESSING = "expressing"
    QUESTIONING = "questioning"


class ProgressTrend(StrEnum):
    """Direction of a patient's success rate over recent sessions."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class ThresholdKind(StrEnum):
    """Kind of cumulative metric a milestone rule watches."""

    SESSION_COUNT = "sessionCount"
    SUCCESS_RATE = "successRate"
    ENGAGEMENT = "engagement"
    PATTERN_COUNT = "patternCount"


class AnomalySeverity(StrEnum):
    """Severity of a behavioral anomaly."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BehaviorAnomalyKind(StrEnum):
    """Behavioral anomalies observed within an active session."""

    INACTIVITY = "inactivity"
    REPETITION = "repetition"
    ERRORS = "errors"


# Tile category -> communication pattern bucket
CATEGORY_PATTERNS: Final[dict[str, CommunicationPattern]] = {
    "wants": CommunicationPattern.REQUESTING,
    "needs": CommunicationPattern.REQUESTING,
    "objects": CommunicationPattern.LABELING,
    "animals": CommunicationPattern.LABELING,
    "social": CommunicationPattern.SOCIALIZING,
    "greetings": CommunicationPattern.SOCIALIZING,
    "feelings": CommunicationPattern.EXPRESSING,
    "emotions": CommunicationPattern.EXPRESSING,
    "questions": CommunicationPattern.QUESTIONING,
}

# Engagement factor caps
ENGAGEMENT_DURATION_CAP_MS: Final[float] = 1_800_000.0  # 30 minutes
ENGAGEMENT_INTERACTION_CAP: Final[int] = 50
ENGAGEMENT_VARIETY_CAP: Final[int] = 10
DEFAULT_CONSISTENCY_SCORE: Final[float] = 0.5

# Event types that count as a communication attempt
ATTEMPT_EVENT_TYPES: Final[frozenset[EventType]] = frozenset({
    EventType.ATTEMPT,
    EventType.SUCCESS,
    EventType.ERROR,
})

INSUFFICIENT_POPULATION: Final[str] = "insufficient-population"

__all__ = [
    "EventType",
    "CommunicationPattern",
    "ProgressTrend",
    "ThresholdKind",
    "AnomalySeverity",
    "BehaviorAnomalyKind",
    "CATEGORY_PATTERNS",
    "ENGAGEMENT_DURATION_CAP_MS",
    "ENGAGEMENT_INTERACTION_CAP",
    "ENGAGEMENT_VARIETY_CAP",
    "DEFAULT_CONSISTENCY_SCORE",
    "ATTEMPT_EVENT_TYPES",
    "INSUFFICIENT_POPULATION",
]
