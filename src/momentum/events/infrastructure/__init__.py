"""
Event Store Infrastructure
==========================

- memory: InMemoryEventStore
- models: EventModel ('event_store' table)
- repositories: SQLAlchemyEventStore
"""
