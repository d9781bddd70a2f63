"""Event store HTTP interface."""

from momentum.events.interfaces.controllers import router

__all__ = ["router"]
