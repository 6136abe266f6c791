"""AACTrack: therapy-session analytics for AAC communication boards."""

from aactrack.service import AnalyticsService

__all__ = ["AnalyticsService"]
__version__ = "0.1.0"
