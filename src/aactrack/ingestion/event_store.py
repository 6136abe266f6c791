"""Append-only interaction event store.

Events are grouped into sessions keyed by ``session_id``. A session stays
active until ``close_session`` freezes it into an immutable ``Session``.
Malformed events are dropped and reported; they never touch stored state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from aactrack.common.errors import InvalidStateError, ValidationError
from aactrack.common.schemas import Event, Session, as_utc

logger = logging.getLogger(__name__)


@dataclass
class _ActiveSession:
    """Mutable buffer for a session that is still receiving events."""

    session_id: str
    patient_id: str
    start_time: datetime | None = None
    events: list[Event] = field(default_factory=list)


class EventStore:
    """Collects events per session and closes sessions into snapshots."""

    def __init__(self) -> None:
        self._active: dict[str, _ActiveSession] = {}
        self._closed: dict[str, Session] = {}
        self._rejected_count = 0
        self._lock = threading.Lock()

    def start_session(
        self,
        session_id: str,
        patient_id: str,
        start_time: datetime | None = None,
    ) -> None:
        """Explicitly open a session before its first event arrives."""
        with self._lock:
            if session_id in self._closed:
                raise InvalidStateError(
                    f"Session {session_id} is already closed", session_id=session_id,
                )
            if session_id in self._active:
                raise InvalidStateError(
                    f"Session {session_id} is already active", session_id=session_id,
                )
            self._active[session_id] = _ActiveSession(
                session_id=session_id,
                patient_id=patient_id,
                start_time=as_utc(start_time) if start_time is not None else None,
            )
        logger.info("Session %s started for patient %s", session_id, patient_id)

    def record(self, event: Event | Mapping[str, Any]) -> Event:
        """Append an event to its active session, opening it if needed."""
        validated = self._coerce(event)

        with self._lock:
            if validated.session_id in self._closed:
                self._rejected_count += 1
                logger.warning(
                    "Dropped event for closed session %s", validated.session_id,
                )
                raise InvalidStateError(
                    f"Session {validated.session_id} is already closed",
                    session_id=validated.session_id,
                )

            active = self._active.get(validated.session_id)
            if active is None:
                active = _ActiveSession(
                    session_id=validated.session_id,
                    patient_id=validated.patient_id,
                )
                self._active[validated.session_id] = active
            elif active.patient_id != validated.patient_id:
                self._rejected_count += 1
                logger.warning(
                    "Dropped event for session %s: patient mismatch",
                    validated.session_id,
                )
                raise ValidationError(
                    "patientId does not match the session's patient",
                    session_id=validated.session_id,
                )

            active.events.append(validated)

        logger.debug(
            "Recorded %s event for session %s", validated.type, validated.session_id,
        )
        return validated

    def close_session(
        self,
        session_id: str,
        end_time: datetime | None = None,
        consistency_score: float | None = None,
    ) -> Session:
        """Freeze an active session into an immutable ``Session``."""
        with self._lock:
            if session_id in self._closed:
                raise InvalidStateError(
                    f"Session {session_id} is already closed", session_id=session_id,
                )
            active = self._active.get(session_id)
            if active is None:
                raise InvalidStateError(
                    f"Session {session_id} does not exist", session_id=session_id,
                )

            timestamps = [e.timestamp for e in active.events]
            start = active.start_time
            if start is None:
                if not timestamps:
                    raise InvalidStateError(
                        f"Session {session_id} has no start time and no events",
                        session_id=session_id,
                    )
                start = min(timestamps)
            if end_time is None:
                end_time = max(timestamps) if timestamps else start
            else:
                end_time = as_utc(end_time)
            if end_time < start:
                raise InvalidStateError(
                    f"Session {session_id} cannot end before it starts",
                    session_id=session_id,
                )

            session = Session.from_events(
                session_id=session_id,
                patient_id=active.patient_id,
                start_time=start,
                end_time=end_time,
                events=tuple(active.events),
                consistency_score=consistency_score,
            )
            del self._active[session_id]
            self._closed[session_id] = session

        logger.info(
            "Session %s closed: %d events, %.0f ms",
            session_id, len(session.events), session.duration,
        )
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Return a closed session, or None."""
        with self._lock:
            return self._closed.get(session_id)

    def is_active(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._active

    def active_session_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._active)

    def active_events(self, session_id: str) -> tuple[Event, ...]:
        """Snapshot of the events recorded so far for an active session."""
        with self._lock:
            active = self._active.get(session_id)
            return tuple(active.events) if active else ()

    def closed_sessions(self) -> tuple[Session, ...]:
        with self._lock:
            return tuple(self._closed.values())

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "active_sessions": len(self._active),
                "closed_sessions": len(self._closed),
                "buffered_events": sum(len(a.events) for a in self._active.values()),
                "rejected_events": self._rejected_count,
            }

    def _coerce(self, event: Event | Mapping[str, Any]) -> Event:
        if isinstance(event, Event):
            return event
        try:
            return Event.model_validate(dict(event))
        except PydanticValidationError as exc:
            session_id = event.get("sessionId") or event.get("session_id")
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            with self._lock:
                self._rejected_count += 1
            logger.warning(
                "Dropped malformed event for session %s: invalid %s",
                session_id, ", ".join(fields),
            )
            raise ValidationError(
                f"missing or invalid fields: {', '.join(fields)}",
                session_id=session_id,
            ) from exc


__all__ = ["EventStore"]
