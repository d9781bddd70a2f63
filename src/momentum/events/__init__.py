"""
Event Store Module
==================

Bounded context for the append-only event log: per-aggregate sequence
numbers, a global sequence for projectors, and optimistic concurrency.
"""
