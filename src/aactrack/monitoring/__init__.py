"""Anomaly detection and periodic scanning."""

from __future__ import annotations

from aactrack.monitoring.anomaly import AnomalyAlertSink, AnomalyConfig, AnomalyDetector
from aactrack.monitoring.scheduler import PeriodicScan

__all__ = [
    "AnomalyAlertSink",
    "AnomalyConfig",
    "AnomalyDetector",
    "PeriodicScan",
]
