#!/usr/bin/env python3
"""
AACTrack Demo Script.

Simulates a few weeks of therapy sessions for two patients and prints the
resulting profile, an anomaly check and a progress report:
1. Board events are recorded and sessions closed.
2. Profiles aggregate metrics, trends and milestones.
3. A long outlier session is checked against the population.

Usage:
    python demo.py
"""

import json
import logging
import os
import random
import sys
from datetime import datetime, timedelta, timezone

# Ensure src is in python path
sys.path.append(os.path.join(os.getcwd(), "src"))

from aactrack.common.config import AACTrackConfig
from aactrack.common.schemas import DateRange, Milestone
from aactrack.service import AnalyticsService

CATEGORIES = ["wants", "needs", "objects", "animals", "social", "greetings", "feelings", "questions"]


class PrintObserver:
    def on_milestone(self, patient_id: str, milestone: Milestone) -> None:
        print(f"  🎉 {patient_id} unlocked '{milestone.name}'")


def simulate_session(service, rng, patient_id, session_id, start, skill):
    service.start_session(session_id, patient_id, start_time=start)
    t = start
    for _ in range(rng.randint(10, 40)):
        t += timedelta(seconds=rng.randint(5, 40))
        tile = rng.randint(1, 15)
        service.record_event({
            "type": "tile_select",
            "patientId": patient_id,
            "sessionId": session_id,
            "tileCategory": rng.choice(CATEGORIES),
            "tileId": f"tile_{tile}",
            "timestamp": t,
        })
        outcome = "success" if rng.random() < skill else "error"
        service.record_event({
            "type": outcome,
            "patientId": patient_id,
            "sessionId": session_id,
            "timestamp": t + timedelta(seconds=2),
        })
    minutes = rng.randint(28, 40)
    return service.close_session(
        session_id,
        end_time=start + timedelta(minutes=minutes),
        consistency_score=round(rng.uniform(0.4, 0.9), 2),
    )


def main():
    config = AACTrackConfig()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    rng = random.Random(42)
    service = AnalyticsService.from_config(config, observers=[PrintObserver()])
    start = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    print("\n--- Simulating sessions ---")
    for day in range(14):
        for patient_id, base_skill in (("pt_alex", 0.4), ("pt_sam", 0.7)):
            skill = min(0.95, base_skill + day * 0.03)
            simulate_session(
                service, rng, patient_id, f"{patient_id}_{day}",
                start + timedelta(days=day, hours=rng.randint(0, 6)), skill,
            )

    outlier = "pt_alex_outlier"
    service.start_session(outlier, "pt_alex", start_time=start + timedelta(days=15))
    service.record_event({
        "type": "tile_select", "patientId": "pt_alex", "sessionId": outlier,
        "tileCategory": "social", "tileId": "tile_hello",
        "timestamp": start + timedelta(days=15, minutes=1),
    })
    service.close_session(outlier, end_time=start + timedelta(days=15, minutes=90))

    profile = service.get_profile("pt_alex")
    print("\n--- Profile pt_alex ---")
    print(f"Sessions: {len(profile.sessions)}")
    print(f"Avg success: {profile.avg_success_rate:.1f}%")
    print(f"Avg engagement: {profile.avg_engagement:.2f}")
    print(f"Trend: {profile.progress_trend}")

    print("\n--- Anomaly check ---")
    print(json.dumps(service.check_anomaly(outlier).to_dict(), indent=2))

    print("\n--- Report ---")
    report = service.get_report(
        "pt_alex", DateRange(start=start, end=start + timedelta(days=30)),
    )
    print(json.dumps(report.to_dict()["summary"], indent=2))
    for rec in report.recommendations:
        print(f"  * {rec}")


if __name__ == "__main__":
    main()
