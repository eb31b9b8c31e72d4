"""Stimulus devices: constant current and scheduled spikes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from snnkernel.biophysics.models.base import NodeModelBase
from snnkernel.contracts.events import Event, EventKind
from snnkernel.contracts.nodes import StepContext
from snnkernel.errors import ConfigurationError, format_key_value, require_number
from snnkernel.synapses.buffers.ring_buffer import ChannelKey


@dataclass(frozen=True, slots=True)
class DCSourceParams:
    amplitude: float = 0.0
    start_step: int = 0
    stop_step: int | None = None  # exclusive

    def __post_init__(self) -> None:
        require_number("amplitude", self.amplitude)
        require_number("start_step", self.start_step, integer=True)
        if self.stop_step is not None:
            require_number("stop_step", self.stop_step, integer=True)
        if self.start_step < 0:
            raise ConfigurationError(
                f"{format_key_value('start_step', self.start_step)} must be >= 0",
                key="start_step",
                value=self.start_step,
            )
        if self.stop_step is not None and self.stop_step < self.start_step:
            raise ConfigurationError(
                f"{format_key_value('stop_step', self.stop_step)} must be >= start_step",
                key="stop_step",
                value=self.stop_step,
            )


class DCSource(NodeModelBase):
    """Emits ``amplitude`` on the current channel every active step."""

    name = "dc_source"
    emits = EventKind.CURRENT

    def __init__(self, params: DCSourceParams | None = None, **overrides: Any) -> None:
        super().__init__(DCSourceParams(**overrides) if overrides else params or DCSourceParams())

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        _ = inputs
        params = self.params
        if ctx.step < params.start_step:
            return ()
        if params.stop_step is not None and ctx.step >= params.stop_step:
            return ()
        if params.amplitude == 0.0:
            return ()
        return (self.emit(ctx, payload=float(params.amplitude)),)


@dataclass(frozen=True, slots=True)
class SpikeSourceParams:
    spike_steps: tuple[int, ...] = ()
    multiplicities: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        for step in self.spike_steps:
            require_number("spike_steps", step, integer=True)
        steps = tuple(self.spike_steps)
        if any(b <= a for a, b in zip(steps, steps[1:], strict=False)):
            raise ConfigurationError(
                f"{format_key_value('spike_steps', self.spike_steps)} must be strictly increasing",
                key="spike_steps",
                value=self.spike_steps,
            )
        if steps and steps[0] < 0:
            raise ConfigurationError(
                f"{format_key_value('spike_steps', self.spike_steps)} must be >= 0",
                key="spike_steps",
                value=self.spike_steps,
            )
        if self.multiplicities is not None:
            if len(self.multiplicities) != len(steps):
                raise ConfigurationError(
                    "multiplicities must match spike_steps in length",
                    key="multiplicities",
                    value=self.multiplicities,
                )
            for multiplicity in self.multiplicities:
                require_number("multiplicities", multiplicity, integer=True)
            if any(m < 1 for m in self.multiplicities):
                raise ConfigurationError(
                    f"{format_key_value('multiplicities', self.multiplicities)} must be >= 1",
                    key="multiplicities",
                    value=self.multiplicities,
                )


class SpikeSource(NodeModelBase):
    """Emits one spike event (with optional multiplicity) at each listed step."""

    name = "spike_source"
    emits = EventKind.SPIKE

    def __init__(self, params: SpikeSourceParams | None = None, **overrides: Any) -> None:
        super().__init__(
            SpikeSourceParams(**overrides) if overrides else params or SpikeSourceParams()
        )
        self._schedule: dict[int, int] = {}
        self._rebuild_schedule()

    def set_status(self, status: Mapping[str, Any]) -> None:
        super().set_status(status)
        self._rebuild_schedule()

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        _ = inputs
        multiplicity = self._schedule.get(ctx.step)
        if multiplicity is None:
            return ()
        return (self.emit(ctx, multiplicity=multiplicity),)

    def _rebuild_schedule(self) -> None:
        params = self.params
        mults = params.multiplicities or (1,) * len(params.spike_steps)
        self._schedule = {int(s): int(m) for s, m in zip(params.spike_steps, mults, strict=True)}


__all__ = ["DCSource", "DCSourceParams", "SpikeSource", "SpikeSourceParams"]
