"""
Event Store Domain Layer
========================

Value types for the append-only event log.
"""

from momentum.events.domain.entities import NewEvent, StoredEvent

__all__ = ["NewEvent", "StoredEvent"]
