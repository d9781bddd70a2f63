"""
Projector Contract
==================

A projector folds events into a read model:

    state = get_initial_state()
    for event in events:
        state = apply(state, event)

``apply`` must be pure and deterministic: the same ordered events always
produce the same state, and re-applying an event already reflected in the
state (same or lower sequence number) leaves it unchanged.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from momentum.events.domain import StoredEvent

S = TypeVar("S")
M = TypeVar("M", bound=BaseModel)


class Projector(ABC, Generic[S]):
    """Base class for all projectors."""

    name: str = ""
    aggregate_types: Tuple[str, ...] = ()

    def handles(self, event: StoredEvent) -> bool:
        return not self.aggregate_types or event.aggregate_type in self.aggregate_types

    @abstractmethod
    def get_initial_state(self) -> Optional[S]:
        """State before the first event of an aggregate."""

    @abstractmethod
    def apply(self, state: Optional[S], event: StoredEvent) -> Optional[S]:
        """Return the state after `event`. Unhandled event types return `state`."""

    @abstractmethod
    def serialize(self, state: S) -> Dict[str, Any]:
        """JSON-safe representation stored by the read model store."""

    @abstractmethod
    def deserialize(self, data: Dict[str, Any]) -> S:
        """Inverse of serialize."""


class PydanticProjector(Projector[M]):
    """Projector whose read model is a pydantic model."""

    state_model: Type[M]

    def serialize(self, state: M) -> Dict[str, Any]:
        return state.model_dump(mode="json")

    def deserialize(self, data: Dict[str, Any]) -> M:
        return self.state_model.model_validate(data)


def fold(
    projector: Projector[S],
    events: Iterable[StoredEvent],
    state: Optional[S] = None,
) -> Optional[S]:
    """Replay events through a projector, starting from its initial state."""
    current = state if state is not None else projector.get_initial_state()
    for event in events:
        if projector.handles(event):
            current = projector.apply(current, event)
    return current
