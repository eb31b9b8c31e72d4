"""Per-node delay ring for continuous and discrete input channels."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from snnkernel.contracts.events import DISCRETE_KINDS, Delivery, EventKind
from snnkernel.core.torch_utils import require_torch
from snnkernel.errors import FatalRunError

ChannelKey = tuple[EventKind, int]


@dataclass(slots=True)
class RingBuffer:
    """Fixed-capacity delay queue owned by one node.

    Every registered ``(kind, port)`` channel has ``capacity`` slots; the slot
    for step ``s`` is ``s % capacity``. Continuous channels (currents) sum
    their contributions in a float64 tensor, discrete channels (spikes) keep
    an ordered queue of deliveries. A slot is read exactly once, through
    :meth:`read_and_clear`, and then reset.

    ``origin`` is the first step that has not been read yet. Deposits are only
    valid inside ``[origin, origin + capacity)``; anything else means an event
    arrived too late or too far ahead and aborts the run.
    """

    capacity: int
    origin: int
    _sums: dict[ChannelKey, Any]
    _queues: dict[ChannelKey, list[list[Delivery]]]

    def __init__(self, *, capacity: int = 1, channels: Iterable[ChannelKey] = ()) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self.origin = 0
        self._sums = {}
        self._queues = {}
        for kind, port in channels:
            self.add_channel(kind, port)

    def add_channel(self, kind: EventKind, port: int = 0) -> None:
        key = (EventKind(kind), int(port))
        if key in self._sums or key in self._queues:
            return
        if key[0] in DISCRETE_KINDS:
            self._queues[key] = [[] for _ in range(self.capacity)]
        else:
            torch = require_torch()
            self._sums[key] = torch.zeros((self.capacity,), dtype=torch.float64)

    @property
    def channels(self) -> tuple[ChannelKey, ...]:
        return tuple(self._sums) + tuple(self._queues)

    def resize(self, capacity: int, *, origin: int = 0) -> None:
        """Reallocate all channels with a new capacity; pending input is dropped."""

        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        channels = self.channels
        self.capacity = int(capacity)
        self._sums = {}
        self._queues = {}
        for kind, port in channels:
            self.add_channel(kind, port)
        self.origin = int(origin)

    def clear(self) -> None:
        for sums in self._sums.values():
            sums.zero_()
        for queue in self._queues.values():
            for slot in queue:
                slot.clear()

    def deposit(self, step: int, channel: EventKind, value: float | Delivery, *, port: int = 0) -> None:
        key = (channel, port)
        step = int(step)
        if step < self.origin:
            raise FatalRunError(
                f"late delivery on {channel}:{port}; slot for step {step} was already read",
                step=self.origin,
            )
        if step >= self.origin + self.capacity:
            raise FatalRunError(
                f"delivery for step {step} exceeds ring capacity {self.capacity}",
                step=self.origin,
            )
        slot = step % self.capacity
        queue = self._queues.get(key)
        if queue is not None:
            if not isinstance(value, Delivery):
                raise TypeError(f"discrete channel {channel}:{port} expects Delivery objects")
            queue[slot].append(value)
            return
        sums = self._sums.get(key)
        if sums is None:
            raise KeyError(f"ring buffer has no channel {channel}:{port}")
        amount = value.value if isinstance(value, Delivery) else float(value)
        sums[slot] += amount

    def read_and_clear(self, current_step: int, channel: EventKind, *, port: int = 0) -> Any:
        """Return the contents of the slot for ``current_step`` and reset it.

        Continuous channels return a float, discrete channels return the tuple
        of queued deliveries in arrival order.
        """

        key = (channel, port)
        current_step = int(current_step)
        if current_step < self.origin - 1:
            raise FatalRunError(
                f"slot for step {current_step} on {channel}:{port} was already recycled",
                step=current_step,
            )
        slot = current_step % self.capacity
        queue = self._queues.get(key)
        if queue is not None:
            items = tuple(queue[slot])
            queue[slot].clear()
            result: Any = items
        else:
            sums = self._sums.get(key)
            if sums is None:
                raise KeyError(f"ring buffer has no channel {channel}:{port}")
            result = float(sums[slot].item())
            sums[slot] = 0.0
        self.origin = max(self.origin, current_step + 1)
        return result

    def read_all(self, current_step: int) -> dict[ChannelKey, Any]:
        """Drain every channel for ``current_step``."""

        return {
            (kind, port): self.read_and_clear(current_step, kind, port=port)
            for kind, port in self.channels
        }


__all__ = ["ChannelKey", "RingBuffer"]
