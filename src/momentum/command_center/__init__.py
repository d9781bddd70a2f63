"""
Command Center Bounded Context
==============================

The prioritized action feed: items generated from analyzed emails and
meeting transcripts, ranked into five tiers, plus company attention flags.
"""
