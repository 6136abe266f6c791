"""Error taxonomy for the analytics engine."""

from __future__ import annotations


class AACTrackError(Exception):
    """Base class for all AACTrack errors."""


class ValidationError(AACTrackError):
    """Raised when an incoming event is malformed or incomplete.

    The offending event is dropped; ingestion of other events continues.
    """

    def __init__(self, reason: str, session_id: str | None = None) -> None:
        self.reason = reason
        self.session_id = session_id
        super().__init__(f"Invalid event for session={session_id}: {reason}")


class InvalidStateError(AACTrackError):
    """Raised when operating on a closed/unknown session or unknown patient."""

    def __init__(self, message: str, *, session_id: str | None = None,
                 patient_id: str | None = None) -> None:
        self.session_id = session_id
        self.patient_id = patient_id
        super().__init__(message)


__all__ = ["AACTrackError", "ValidationError", "InvalidStateError"]
