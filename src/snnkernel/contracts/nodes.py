"""Node model contracts.

Design goals:
- **Capability-tagged**: every node declares which event kinds it accepts on
  which port and which kind it sends; connections are checked once, at build
  time, instead of through runtime dispatch.
- **Owned input**: a node reads only its own ring buffer and writes only its
  own outbox (the returned events), so updates can run in parallel.
- **Explicit read-out**: recordable quantities are exposed through a table of
  named functions; nothing outside the node touches its state directly.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from snnkernel.contracts.events import Event, EventKind

if TYPE_CHECKING:
    from snnkernel.synapses.buffers.ring_buffer import RingBuffer


@dataclass(frozen=True, slots=True)
class StepContext:
    """Per-step runtime context passed into node updates."""

    step: int
    resolution: float

    @property
    def t_ms(self) -> float:
        return self.step * self.resolution


@dataclass(frozen=True, slots=True)
class CalibrationContext:
    """Values a node needs before the first update of a run."""

    resolution: float
    ring_capacity: int
    seed: int
    start_step: int = 0


Recordable = Callable[[], float]


@runtime_checkable
class INodeModel(Protocol):
    """Single-node model interface."""

    name: str
    node_id: int

    def sends(self) -> EventKind | None:
        """Event kind this node emits, or None for pure sinks."""
        ...

    def handles(self, kind: EventKind, port: int) -> int:
        """Return the port accepting ``kind`` or raise ConnectionValidationError."""
        ...

    def calibrate(self, ctx: CalibrationContext) -> None:
        """Allocate buffers and per-run variables before the first step."""
        ...

    @property
    def buffer(self) -> RingBuffer:
        ...

    def update(self, ctx: StepContext) -> Sequence[Event]:
        """Consume buffered input for ``ctx.step`` and return emitted events."""
        ...

    def get_status(self) -> dict[str, Any]:
        ...

    def set_status(self, status: Mapping[str, Any]) -> None:
        ...

    def recordables(self) -> Mapping[str, Recordable]:
        ...


__all__ = ["CalibrationContext", "INodeModel", "Recordable", "StepContext"]
