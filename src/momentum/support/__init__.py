"""
Support Bounded Context
=======================

SupportCase aggregate: commands, projector and SLA clocks.
"""
