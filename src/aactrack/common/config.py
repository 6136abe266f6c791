"""Application configuration using Pydantic Settings."""

from typing import Literal

from pydantic_settings import BaseSettings


class AACTrackConfig(BaseSettings):
    """Application configuration loaded from environment variables."""

    environment: Literal["dev", "staging", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    scan_interval_seconds: float = 60.0
    min_population: int = 20
    anomaly_std_multiplier: float = 2.0
    trend_window: int = 5
    behavior_window: int = 20
    inactivity_seconds: float = 300.0

    model_config = {"env_prefix": "AACTRACK_", "case_sensitive": False}


__all__ = ["AACTrackConfig"]
