"""Interaction event ingestion."""

from aactrack.ingestion.event_store import EventStore

__all__ = ["EventStore"]
