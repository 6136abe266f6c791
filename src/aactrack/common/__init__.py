"""Common constants, configuration, errors and schemas for AACTrack."""

from aactrack.common.constants import (
    CommunicationPattern,
    EventType,
    ProgressTrend,
    ThresholdKind,
)
from aactrack.common.errors import AACTrackError, InvalidStateError, ValidationError
from aactrack.common.schemas import (
    AnomalyReport,
    DateRange,
    Event,
    Milestone,
    PatientProfile,
    Session,
    SessionMetrics,
)

__all__ = [
    "EventType",
    "CommunicationPattern",
    "ProgressTrend",
    "ThresholdKind",
    "AACTrackError",
    "ValidationError",
    "InvalidStateError",
    "Event",
    "Session",
    "SessionMetrics",
    "Milestone",
    "PatientProfile",
    "AnomalyReport",
    "DateRange",
]
