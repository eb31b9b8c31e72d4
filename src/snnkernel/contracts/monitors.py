"""Monitoring contracts.

Monitors receive one structured event per completed step and may record
emitted events, sample node read-outs, or stream rows to CSV.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from snnkernel.contracts.events import Event


@dataclass(frozen=True, slots=True)
class StepEvent:
    """A single completed simulation step."""

    step: int
    t: float
    dt: float
    events: tuple[Event, ...] = ()
    scalars: Mapping[str, float] | None = None
    meta: Mapping[str, Any] | None = None


@runtime_checkable
class IMonitor(Protocol):
    """Observer of simulation steps."""

    name: str

    def on_step(self, event: StepEvent) -> None:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class IReadoutMonitor(Protocol):
    """Monitor that samples named read-outs from the nodes it is bound to.

    The engine negotiates a DATA_REQUEST port on every target node and hands
    the monitor that node's registered read-out table; the monitor never
    touches node state any other way.
    """

    name: str

    def record_from(self) -> tuple[str, ...]:
        ...

    def bind(self, node_id: int, readout: Mapping[str, Callable[[], float]]) -> None:
        ...
