"""Projector admin HTTP interface."""

from momentum.projections.interfaces.controllers import router

__all__ = ["router"]
