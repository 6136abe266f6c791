"""Tests for per-session metric computation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from aactrack.analytics.metrics import (
    compute_metrics,
    dominant_pattern,
    engagement_factors,
    engagement_level,
    pattern_tally,
    success_rate,
)
from aactrack.common.constants import CommunicationPattern, EventType
from aactrack.common.schemas import Event, Session

T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


# --- Helpers ---


def _event(category: str | None = None, tile_id: str | None = None,
           etype: EventType = EventType.TILE_SELECT, offset_s: int = 0) -> Event:
    return Event(
        type=etype,
        patient_id="pt_1",
        session_id="s_1",
        tile_category=category,
        tile_id=tile_id,
        timestamp=T0 + timedelta(seconds=offset_s),
    )


def _session(
    minutes: float = 0.0,
    events: tuple[Event, ...] = (),
    attempts: int = 0,
    successes: int = 0,
    unique_tiles: int = 0,
    consistency: float | None = None,
) -> Session:
    return Session(
        session_id="s_1",
        patient_id="pt_1",
        start_time=T0,
        end_time=T0 + timedelta(minutes=minutes),
        events=events,
        attempts=attempts,
        successes=successes,
        unique_tiles=unique_tiles,
        consistency_score=consistency,
    )


# --- Success Rate Tests ---


def test_success_rate_zero_attempts():
    assert success_rate(0, 0) == 0.0


def test_success_rate_basic():
    assert success_rate(4, 3) == pytest.approx(75.0)


def test_success_rate_all_successful():
    assert success_rate(10, 10) == pytest.approx(100.0)


@pytest.mark.parametrize("attempts,successes", [(1, 0), (3, 1), (7, 7), (100, 99)])
def test_success_rate_bounded(attempts, successes):
    rate = success_rate(attempts, successes)
    assert 0.0 <= rate <= 100.0


# --- Engagement Tests ---


def test_engagement_defaults_consistency():
    session = _session()
    factors = engagement_factors(session)
    assert factors["consistency"] == 0.5
    assert engagement_level(session) == pytest.approx(0.125)


def test_engagement_full_caps():
    events = tuple(_event("wants", tile_id=f"t{i % 10}") for i in range(50))
    session = _session(minutes=30, events=events, unique_tiles=10, consistency=1.0)
    assert engagement_level(session) == pytest.approx(1.0)


def test_engagement_factors_clamped():
    events = tuple(_event("wants") for _ in range(200))
    session = _session(minutes=120, events=events, unique_tiles=40, consistency=0.0)
    factors = engagement_factors(session)
    assert factors["duration"] == 1.0
    assert factors["interactions"] == 1.0
    assert factors["variety"] == 1.0
    assert engagement_level(session) == pytest.approx(0.75)


def test_engagement_partial():
    events = tuple(_event("objects") for _ in range(25))
    session = _session(minutes=15, events=events, unique_tiles=5, consistency=0.5)
    assert engagement_level(session) == pytest.approx(0.5)


def test_engagement_ignores_events_without_category():
    events = (_event(None, etype=EventType.SPEECH), _event("wants"))
    session = _session(events=events)
    assert session.interaction_count == 1


# --- Dominant Pattern Tests ---


def test_pattern_tie_breaks_by_enum_order():
    events = (_event("wants"), _event("needs"), _event("objects"), _event("animals"))
    assert dominant_pattern(events) == CommunicationPattern.REQUESTING


def test_pattern_tie_later_buckets():
    events = (_event("feelings"), _event("questions"))
    assert dominant_pattern(events) == CommunicationPattern.EXPRESSING


def test_pattern_highest_count_wins():
    events = (
        _event("objects"), _event("objects"),
        _event("social"), _event("greetings"), _event("social"),
    )
    assert dominant_pattern(events) == CommunicationPattern.SOCIALIZING


def test_pattern_no_events_defaults_to_first_bucket():
    assert dominant_pattern(()) == CommunicationPattern.REQUESTING


def test_pattern_unknown_categories_ignored():
    events = (_event("vehicles"), _event("vehicles"), _event("questions"))
    tally = pattern_tally(events)
    assert sum(tally.values()) == 1
    assert dominant_pattern(events) == CommunicationPattern.QUESTIONING


def test_pattern_category_case_insensitive():
    assert pattern_tally((_event("Emotions"),))[CommunicationPattern.EXPRESSING] == 1


# --- compute_metrics Tests ---


def test_compute_metrics_fields():
    events = (
        _event("wants", "juice"),
        _event(None, etype=EventType.SUCCESS, offset_s=5),
        _event(None, etype=EventType.ERROR, offset_s=10),
    )
    session = Session.from_events("s_1", "pt_1", T0, T0 + timedelta(minutes=6), events)
    metrics = compute_metrics(session)
    assert metrics.session_id == "s_1"
    assert metrics.timestamp == T0
    assert metrics.duration == pytest.approx(360_000.0)
    assert metrics.interaction_count == 1
    assert metrics.success_rate == pytest.approx(50.0)
    assert metrics.dominant_pattern == CommunicationPattern.REQUESTING
    assert 0.0 <= metrics.engagement_level <= 1.0


def test_compute_metrics_zero_attempts():
    metrics = compute_metrics(_session(minutes=10))
    assert metrics.success_rate == 0.0


def test_compute_metrics_serializes_verbatim_names():
    data = compute_metrics(_session(minutes=10)).to_dict()
    assert "successRate" in data
    assert "engagementLevel" in data
    assert data["dominantPattern"] == "requesting"
