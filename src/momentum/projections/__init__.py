"""
Projection Module
=================

Bounded context that turns the event log into queryable read models:
projector contract, checkpointed runner, rebuilds and manual resume.
"""
