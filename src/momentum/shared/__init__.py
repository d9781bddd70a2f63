"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context (events, projections,
lifecycle, support, sla, command_center).

DO NOT add business logic from a bounded context to the shared kernel.
"""

__version__ = "1.0.0"
