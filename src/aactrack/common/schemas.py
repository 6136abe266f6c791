"""Pydantic v2 schemas for AACTrack session analytics.

Attributes are snake_case in Python; serialized JSON uses the camelCase
field names downstream consumers (e.g. billing exporters) rely on.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from aactrack.common.constants import (
    ATTEMPT_EVENT_TYPES,
    CommunicationPattern,
    EventType,
    ProgressTrend,
    ThresholdKind,
)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Event(FrozenCamelModel):
    """A single interaction event. Immutable once recorded."""

    type: EventType
    patient_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    tile_category: str | None = None
    tile_id: str | None = None
    timestamp: UTCDateTime


class Session(FrozenCamelModel):
    """A closed therapy session."""

    session_id: str
    patient_id: str
    start_time: UTCDateTime
    end_time: UTCDateTime
    events: tuple[Event, ...] = ()
    attempts: int = Field(default=0, ge=0)
    successes: int = Field(default=0, ge=0)
    unique_tiles: int = Field(default=0, ge=0)
    consistency_score: float | None = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_counts(self) -> Session:
        if self.successes > self.attempts:
            raise ValueError("successes cannot exceed attempts")
        if self.end_time < self.start_time:
            raise ValueError("end_time precedes start_time")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> float:
        """Session length in milliseconds."""
        return (self.end_time - self.start_time).total_seconds() * 1000.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def interaction_count(self) -> int:
        """Number of tile interactions."""
        return sum(1 for e in self.events if e.tile_category is not None)

    @classmethod
    def from_events(
        cls,
        session_id: str,
        patient_id: str,
        start_time: datetime,
        end_time: datetime,
        events: tuple[Event, ...],
        consistency_score: float | None = None,
    ) -> Session:
        """Build a session, deriving counters from its events."""
        return cls(
            session_id=session_id,
            patient_id=patient_id,
            start_time=start_time,
            end_time=end_time,
            events=events,
            attempts=sum(1 for e in events if e.type in ATTEMPT_EVENT_TYPES),
            successes=sum(1 for e in events if e.type == EventType.SUCCESS),
            unique_tiles=len({e.tile_id for e in events if e.tile_id is not None}),
            consistency_score=consistency_score,
        )


class SessionMetrics(FrozenCamelModel):
    """Derived per-session metrics."""

    session_id: str
    timestamp: UTCDateTime
    duration: float = Field(default=0.0, ge=0.0)
    interaction_count: int = Field(default=0, ge=0)
    success_rate: float = Field(ge=0.0, le=100.0)
    engagement_level: float = Field(ge=0.0, le=1.0)
    dominant_pattern: CommunicationPattern


class Milestone(FrozenCamelModel):
    """A one-time achievement."""

    name: str
    threshold_kind: ThresholdKind
    achieved_at: UTCDateTime


class PatientProfile(CamelModel):
    """Aggregated per-patient analytics.

    ``sessions`` is append-only and ordered by ingestion time.
    """

    patient_id: str
    sessions: list[SessionMetrics] = Field(default_factory=list)
    avg_engagement: float = Field(default=0.0, ge=0.0, le=1.0)
    avg_success_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    progress_trend: ProgressTrend = ProgressTrend.STABLE
    milestones: list[Milestone] = Field(default_factory=list)

    def has_milestone(self, name: str) -> bool:
        return any(m.name == name for m in self.milestones)

    def pattern_counts(self) -> dict[CommunicationPattern, int]:
        """Number of sessions per dominant pattern, in enum order."""
        tally = Counter(s.dominant_pattern for s in self.sessions)
        return {p: tally.get(p, 0) for p in CommunicationPattern}

    @property
    def dominant_pattern(self) -> CommunicationPattern | None:
        """Most frequent session pattern; ties go to the earlier enum member."""
        if not self.sessions:
            return None
        counts = self.pattern_counts()
        return max(counts, key=lambda p: counts[p])

    @classmethod
    def from_json(cls, payload: str | bytes) -> PatientProfile:
        return cls.model_validate_json(payload)


class AnomalyReport(FrozenCamelModel):
    """Snapshot result of a duration outlier check. Never persisted."""

    session_id: str
    population_mean: float | None = None
    population_std_dev: float | None = None
    deviation: float | None = None
    flagged: bool = False
    reason: str | None = None
    population_size: int = 0


class BehaviorAnomaly(FrozenCamelModel):
    """An unusual pattern inside an active session."""

    kind: str
    severity: str
    message: str
    session_id: str | None = None


class Insight(FrozenCamelModel):
    """A short real-time observation about a session."""

    kind: str = Field(pattern=r"^(positive|info|warning)$")
    message: str


class DateRange(FrozenCamelModel):
    """Inclusive time window."""

    start: UTCDateTime
    end: UTCDateTime

    @model_validator(mode="after")
    def check_order(self) -> DateRange:
        if self.end < self.start:
            raise ValueError("date range end precedes start")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) <= self.end


__all__ = [
    "as_utc",
    "UTCDateTime",
    "CamelModel",
    "FrozenCamelModel",
    "Event",
    "Session",
    "SessionMetrics",
    "Milestone",
    "PatientProfile",
    "AnomalyReport",
    "BehaviorAnomaly",
    "Insight",
    "DateRange",
]
