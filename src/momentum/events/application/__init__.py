"""
Event Store Application Layer
=============================
"""

from momentum.events.application.services import IEventStore, EventService

__all__ = ["IEventStore", "EventService"]
