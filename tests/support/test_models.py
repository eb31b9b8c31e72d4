from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from snnkernel.biophysics.models.base import NodeModelBase
from snnkernel.contracts.events import Delivery, Event, EventKind
from snnkernel.contracts.nodes import StepContext
from snnkernel.synapses.buffers.ring_buffer import ChannelKey


@dataclass(frozen=True, slots=True)
class ProbeParams:
    label: str = "probe"


class ProbeNode(NodeModelBase):
    """Test-only sink that logs what its ring buffer hands out each step."""

    name = "probe"
    accepts = {
        EventKind.SPIKE: frozenset({0, 1}),
        EventKind.CURRENT: frozenset({0}),
        EventKind.DATA_REQUEST: frozenset({0}),
    }
    emits = None

    def __init__(self, params: ProbeParams | None = None) -> None:
        self.spikes: dict[int, tuple[Delivery, ...]] = {}
        self.currents: dict[int, float] = {}
        self.last_count = 0
        super().__init__(params or ProbeParams())

    def register_recordables(self) -> None:
        self.register_recordable("count", lambda: float(self.last_count))

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        spikes = tuple(inputs.get((EventKind.SPIKE, 0), ())) + tuple(
            inputs.get((EventKind.SPIKE, 1), ())
        )
        if spikes:
            self.spikes[ctx.step] = spikes
        current = float(inputs.get((EventKind.CURRENT, 0), 0.0))
        if current:
            self.currents[ctx.step] = current
        self.last_count = len(spikes)
        return ()

    def reset_state(self) -> None:
        self.spikes.clear()
        self.currents.clear()
        self.last_count = 0

    def all_spikes(self) -> list[Delivery]:
        return [d for step in sorted(self.spikes) for d in self.spikes[step]]


class SilentNode(NodeModelBase):
    """Test-only node that neither sends nor receives."""

    name = "silent"

    def __init__(self) -> None:
        super().__init__(ProbeParams(label="silent"))

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        _ = ctx, inputs
        return ()
