"""
Momentum Command Center
=======================

Event-sourced CRM core: an append-only event store, deterministic
projectors, stage and support-case SLA tracking, and a tiered action feed
regenerated from AI-analyzed emails and meeting transcripts.
"""

__version__ = "1.0.0"
