"""Deterministic recommendation rules."""

from aactrack.recommendations.engine import RecommendationConfig, RecommendationEngine

__all__ = ["RecommendationConfig", "RecommendationEngine"]
