"""Tests for patient profile aggregation."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from aactrack.common.constants import CommunicationPattern, ProgressTrend, ThresholdKind
from aactrack.common.errors import InvalidStateError
from aactrack.common.schemas import Milestone, PatientProfile, SessionMetrics
from aactrack.profiles.aggregator import (
    DEFAULT_MILESTONE_RULES,
    AggregatorConfig,
    MilestoneRule,
    ProfileAggregator,
    classify_trend,
)

T0 = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)


# --- Helpers ---


class _RecordingObserver:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Milestone]] = []

    def on_milestone(self, patient_id: str, milestone: Milestone) -> None:
        self.calls.append((patient_id, milestone))


class _FailingObserver:
    def on_milestone(self, patient_id: str, milestone: Milestone) -> None:
        raise RuntimeError("speech engine offline")


_counter = iter(range(1_000_000))


def _metrics(
    success: float = 50.0,
    engagement: float = 0.4,
    pattern: CommunicationPattern = CommunicationPattern.LABELING,
    duration: float = 600_000.0,
    day: int = 0,
) -> SessionMetrics:
    n = next(_counter)
    return SessionMetrics(
        session_id=f"s_{n}",
        timestamp=T0 + timedelta(days=day, minutes=n),
        duration=duration,
        interaction_count=10,
        success_rate=success,
        engagement_level=engagement,
        dominant_pattern=pattern,
    )


def _feed(agg: ProfileAggregator, patient_id: str, rates: list[float]) -> None:
    for rate in rates:
        agg.ingest(patient_id, _metrics(success=rate))


# --- Trend classification Tests ---


def test_classify_improving():
    assert classify_trend(90.0, 70.0) == ProgressTrend.IMPROVING


def test_classify_declining():
    assert classify_trend(60.0, 70.0) == ProgressTrend.DECLINING


def test_classify_stable():
    assert classify_trend(72.0, 70.0) == ProgressTrend.STABLE


def test_classify_zero_baseline():
    assert classify_trend(0.0, 0.0) == ProgressTrend.STABLE


# --- Profile creation and averages Tests ---


def test_profile_created_lazily():
    agg = ProfileAggregator()
    assert agg.get_profile("pt_1") is None
    agg.ingest("pt_1", _metrics())
    profile = agg.get_profile("pt_1")
    assert profile is not None
    assert len(profile.sessions) == 1


def test_averages_over_all_sessions():
    agg = ProfileAggregator()
    agg.ingest("pt_1", _metrics(success=40.0, engagement=0.2))
    agg.ingest("pt_1", _metrics(success=80.0, engagement=0.6))
    agg.ingest("pt_1", _metrics(success=60.0, engagement=0.4))
    profile = agg.get_profile("pt_1")
    assert profile.avg_success_rate == pytest.approx(60.0)
    assert profile.avg_engagement == pytest.approx(0.4)


def test_sessions_append_order_preserved():
    agg = ProfileAggregator()
    first, second = _metrics(), _metrics()
    agg.ingest("pt_1", first)
    agg.ingest("pt_1", second)
    ids = [s.session_id for s in agg.get_profile("pt_1").sessions]
    assert ids == [first.session_id, second.session_id]


def test_get_profile_returns_copy():
    agg = ProfileAggregator()
    agg.ingest("pt_1", _metrics())
    copy = agg.get_profile("pt_1")
    copy.sessions.clear()
    assert len(agg.get_profile("pt_1").sessions) == 1


def test_duplicate_session_rejected():
    agg = ProfileAggregator()
    m = _metrics()
    agg.ingest("pt_1", m)
    with pytest.raises(InvalidStateError):
        agg.ingest("pt_1", m)
    assert len(agg.get_profile("pt_1").sessions) == 1


# --- Trend Tests ---


def test_trend_improving():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [70.0] * 5 + [90.0] * 5)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.IMPROVING


def test_trend_declining():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [70.0] * 5 + [60.0] * 5)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.DECLINING


def test_trend_stable():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [70.0] * 5 + [72.0] * 5)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.STABLE


def test_trend_unchanged_with_short_older_window():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [10.0] * 3 + [100.0] * 6)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.STABLE


def test_trend_recomputed_on_each_ingest():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [70.0] * 5 + [90.0] * 5)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.IMPROVING
    _feed(agg, "pt_1", [90.0] * 5)
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.STABLE


def test_trend_custom_window():
    agg = ProfileAggregator(AggregatorConfig(trend_window=2))
    _feed(agg, "pt_1", [50.0, 50.0, 80.0, 80.0])
    assert agg.get_profile("pt_1").progress_trend == ProgressTrend.IMPROVING


# --- Milestone Tests ---


def test_first_ten_sessions_fires_once():
    observer = _RecordingObserver()
    agg = ProfileAggregator(observers=[observer])
    fired_on: list[int] = []
    for i in range(1, 16):
        achieved = agg.ingest("pt_1", _metrics())
        if any(m.name == "First 10 Sessions" for m in achieved):
            fired_on.append(i)
    assert fired_on == [10]
    names = [m.name for _, m in observer.calls]
    assert names.count("First 10 Sessions") == 1
    profile = agg.get_profile("pt_1")
    assert [m.name for m in profile.milestones].count("First 10 Sessions") == 1


def test_milestone_records_kind_and_time():
    agg = ProfileAggregator()
    for _ in range(9):
        agg.ingest("pt_1", _metrics())
    tenth = _metrics()
    achieved = agg.ingest("pt_1", tenth)
    assert achieved[0].threshold_kind == ThresholdKind.SESSION_COUNT
    assert achieved[0].achieved_at == tenth.timestamp


def test_high_achiever_and_highly_engaged():
    agg = ProfileAggregator()
    achieved = agg.ingest("pt_1", _metrics(success=90.0, engagement=0.85))
    assert {m.name for m in achieved} == {"High Achiever", "Highly Engaged"}
    again = agg.ingest("pt_1", _metrics(success=95.0, engagement=0.9))
    assert again == []


def test_social_butterfly_counts_socializing_sessions():
    agg = ProfileAggregator()
    for _ in range(19):
        agg.ingest("pt_1", _metrics(pattern=CommunicationPattern.SOCIALIZING))
    agg.ingest("pt_1", _metrics(pattern=CommunicationPattern.LABELING))
    assert not agg.get_profile("pt_1").has_milestone("Social Butterfly")
    achieved = agg.ingest("pt_1", _metrics(pattern=CommunicationPattern.SOCIALIZING))
    assert "Social Butterfly" in {m.name for m in achieved}


def test_milestone_names_unique():
    agg = ProfileAggregator()
    for _ in range(60):
        agg.ingest("pt_1", _metrics(success=90.0, engagement=0.9))
    names = [m.name for m in agg.get_profile("pt_1").milestones]
    assert len(names) == len(set(names))
    assert "50 Sessions Milestone" in names
    assert "Century Club" not in names


def test_failing_observer_does_not_abort_ingestion():
    recorder = _RecordingObserver()
    agg = ProfileAggregator(observers=[_FailingObserver(), recorder])
    achieved = agg.ingest("pt_1", _metrics(success=90.0))
    assert achieved
    assert len(recorder.calls) == len(achieved)
    assert len(agg.get_profile("pt_1").sessions) == 1


def test_custom_rule_table():
    rules = (MilestoneRule("Three In", ThresholdKind.SESSION_COUNT, 3),)
    agg = ProfileAggregator(AggregatorConfig(milestone_rules=rules))
    for _ in range(3):
        agg.ingest("pt_1", _metrics(success=100.0, engagement=1.0))
    assert [m.name for m in agg.get_profile("pt_1").milestones] == ["Three In"]


def test_default_rule_table_order():
    assert [r.name for r in DEFAULT_MILESTONE_RULES] == [
        "First 10 Sessions",
        "50 Sessions Milestone",
        "Century Club",
        "High Achiever",
        "Highly Engaged",
        "Social Butterfly",
    ]


# --- Population and queries Tests ---


def test_population_spans_patients():
    agg = ProfileAggregator()
    agg.ingest("pt_1", _metrics(duration=100.0))
    agg.ingest("pt_2", _metrics(duration=200.0))
    snapshot = agg.population_durations()
    assert snapshot == (100.0, 200.0)
    agg.ingest("pt_1", _metrics(duration=300.0))
    assert snapshot == (100.0, 200.0)


def test_find_session():
    agg = ProfileAggregator()
    m = _metrics()
    agg.ingest("pt_1", m)
    assert agg.find_session(m.session_id) == m
    assert agg.find_session("missing") is None


def test_load_profile_round_trip():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [50.0, 60.0, 70.0])
    restored = PatientProfile.from_json(agg.get_profile("pt_1").to_json())

    other = ProfileAggregator()
    other.load_profile(restored)
    assert other.get_profile("pt_1") == restored
    assert len(other.population_durations()) == 3
    with pytest.raises(InvalidStateError):
        other.load_profile(restored)


def test_concurrent_ingestion_per_patient():
    agg = ProfileAggregator()
    batches = {pid: [_metrics() for _ in range(50)] for pid in ("pt_a", "pt_b", "pt_c")}

    def worker(pid: str) -> None:
        for m in batches[pid]:
            agg.ingest(pid, m)

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in batches]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for pid, batch in batches.items():
        profile = agg.get_profile(pid)
        assert [s.session_id for s in profile.sessions] == [m.session_id for m in batch]
    assert len(agg.population_durations()) == 150
    assert agg.get_stats()["profiles"] == 3


def test_snapshot_copies_every_profile():
    agg = ProfileAggregator()
    _feed(agg, "pt_1", [50.0, 60.0])
    _feed(agg, "pt_2", [70.0])
    snap = agg.snapshot()
    assert set(snap) == {"pt_1", "pt_2"}
    assert len(snap["pt_1"].sessions) == 2
    snap["pt_1"].sessions.clear()
    assert len(agg.get_profile("pt_1").sessions) == 2


def test_snapshot_empty():
    assert ProfileAggregator().snapshot() == {}


def test_load_profile_session_collision_rejected():
    agg = ProfileAggregator()
    m = _metrics()
    agg.ingest("pt_1", m)
    clash = PatientProfile(patient_id="pt_2", sessions=[m])
    with pytest.raises(InvalidStateError):
        agg.load_profile(clash)
    assert agg.has_profile("pt_2") is False
    assert agg.find_session(m.session_id) == m
    assert len(agg.population_durations()) == 1
