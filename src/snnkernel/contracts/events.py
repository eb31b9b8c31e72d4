"""Event and delivery contracts.

An :class:`Event` is what a node hands to the kernel when it emits; a
:class:`Delivery` is one routed copy of an event addressed to a single target
port at a single future step. Multiplicity is a repetition count: the router
expands an event of multiplicity ``m`` into ``m`` consecutive deliveries per
outgoing connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EventKind(StrEnum):
    SPIKE = "spike"
    CURRENT = "current"
    DATA_REQUEST = "data_request"


# Kinds that are stored as an ordered queue in ring buffers. Everything else
# is a continuous channel whose contributions are summed.
DISCRETE_KINDS = frozenset({EventKind.SPIKE})


@dataclass(frozen=True, slots=True)
class Event:
    """A logical event emitted by one node during one step."""

    source_id: int
    emission_step: int
    multiplicity: int = 1
    channel: EventKind = EventKind.SPIKE
    payload: float = 1.0

    def __post_init__(self) -> None:
        if self.multiplicity < 1:
            raise ValueError(f"multiplicity must be >= 1, got {self.multiplicity}")

    @property
    def key(self) -> tuple[int, int, EventKind]:
        """Identity shared by all copies of this logical event."""
        return (self.source_id, self.emission_step, self.channel)


@dataclass(frozen=True, slots=True)
class Delivery:
    """One routed copy of an event for a target port."""

    target_id: int
    scheduled_step: int
    weight: float
    channel: EventKind
    port: int
    source_id: int
    emission_step: int
    payload: float = 1.0

    @property
    def value(self) -> float:
        return self.weight * self.payload


@dataclass(frozen=True, slots=True)
class SourceBatch:
    """All deliveries produced by one source in one step, in emission order.

    A batch is merged and exchanged as a unit, which keeps the copies of a
    multiplicity run contiguous at every target.
    """

    source_id: int
    emission_step: int
    deliveries: tuple[Delivery, ...]

    def __len__(self) -> int:
        return len(self.deliveries)


__all__ = ["DISCRETE_KINDS", "Delivery", "Event", "EventKind", "SourceBatch"]
