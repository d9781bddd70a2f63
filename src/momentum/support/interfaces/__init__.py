"""Support case HTTP interface."""

from momentum.support.interfaces.controllers import router

__all__ = ["router"]
