"""
Command Center Interfaces Layer
===============================
"""

from momentum.command_center.interfaces.controllers import flags_router, router

__all__ = ["flags_router", "router"]
