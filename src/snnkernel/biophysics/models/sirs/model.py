"""Stochastic SIRS neuron with multiplicity-encoded transitions.

The neuron sits in one of three states, S (0), I (1) and R (2). Candidate
update times are drawn from an exponential distribution with mean ``tau_m``.
At a candidate time the neuron tries the one transition available from its
current state:

- S -> I with probability ``gain(h)`` (linear or sigmoidal in the input)
- I -> R with probability ``mu_sirs``
- R -> S with probability ``eta_sirs``

and then draws the next candidate time. A transition is announced with a
single spike event: multiplicity 2 for the up-transition S -> I,
multiplicity 1 for the down-transitions I -> R and R -> S.

Receivers decode the code per delivered copy. A copy from the same sender
with the same emission step as the copy just before it completes an
up-transition and counts ``+2w``; any other copy counts ``-w``. An
up-transition therefore nets ``+w`` and a down-transition ``-w``. This only
works because copies of one event reach a target back to back. Two
connections between the same pair of SIRS neurons break the decoding, so
build such networks with ``allow_multapses=False``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Any

from snnkernel.biophysics.models.base import NodeModelBase
from snnkernel.biophysics.models.sirs.gain import GAIN_FUNCTIONS, GainKind
from snnkernel.contracts.events import Delivery, Event, EventKind
from snnkernel.contracts.nodes import CalibrationContext, StepContext
from snnkernel.core.torch_utils import draw_exponential, draw_uniform, node_generator
from snnkernel.errors import ConfigurationError, format_key_value, require_number
from snnkernel.synapses.buffers.ring_buffer import ChannelKey

SPIKE_PORT = (EventKind.SPIKE, 0)
CURRENT_PORT = (EventKind.CURRENT, 0)


class SIRSState(IntEnum):
    S = 0
    I = 1  # noqa: E741
    R = 2


@dataclass(frozen=True, slots=True)
class SIRSParams:
    """SIRS neuron parameters (times in ms)."""

    tau_m: float = 10.0
    beta_sirs: float = 0.1
    mu_sirs: float = 0.1
    eta_sirs: float = 0.1
    gain: str = GainKind.LINEAR
    theta: float = 0.0
    sigmoid_slope: float = 1.0

    def __post_init__(self) -> None:
        for name in ("tau_m", "beta_sirs", "mu_sirs", "eta_sirs", "theta", "sigmoid_slope"):
            require_number(name, getattr(self, name))
        _require(self.tau_m > 0, "tau_m", self.tau_m, "must be > 0")
        _require(self.beta_sirs >= 0, "beta_sirs", self.beta_sirs, "must be >= 0")
        _require(0.0 <= self.mu_sirs <= 1.0, "mu_sirs", self.mu_sirs, "must be in [0, 1]")
        _require(0.0 <= self.eta_sirs <= 1.0, "eta_sirs", self.eta_sirs, "must be in [0, 1]")
        _require(self.sigmoid_slope > 0, "sigmoid_slope", self.sigmoid_slope, "must be > 0")
        try:
            GainKind(self.gain)
        except ValueError:
            raise ConfigurationError(
                f"{format_key_value('gain', self.gain)} must be one of "
                f"{[kind.value for kind in GainKind]}",
                key="gain",
                value=self.gain,
            ) from None


@dataclass(slots=True)
class SIRSNodeState:
    y: int = SIRSState.S
    h: float = 0.0
    t_next: float | None = None  # ms of the next candidate update
    t_last_in_spike: int | None = None  # emission step of the last decoded copy
    last_in_node_id: int | None = None


class SIRSNeuron(NodeModelBase):
    """SIRS neuron; see the module docstring for the event code."""

    name = "sirs_neuron"
    accepts = {
        EventKind.SPIKE: frozenset({0}),
        EventKind.CURRENT: frozenset({0}),
        EventKind.DATA_REQUEST: frozenset({0}),
    }
    emits = EventKind.SPIKE
    encodes_multiplicity = True

    def __init__(self, params: SIRSParams | None = None, **overrides: Any) -> None:
        params = params or SIRSParams()
        if overrides:
            params = _replace_params(params, overrides)
        self.state = SIRSNodeState()
        self._rng: Any = None
        super().__init__(params)

    def register_recordables(self) -> None:
        self.register_recordable("S", lambda: float(self.state.y))
        self.register_recordable("h", lambda: float(self.state.h))

    def calibrate_model(self, ctx: CalibrationContext) -> None:
        self._rng = node_generator(ctx.seed, self.node_id)
        self.state.t_next = None

    def reset_state(self) -> None:
        self.state = SIRSNodeState()

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        state = self.state
        state.h += self.decode(inputs.get(SPIKE_PORT, ()))
        state.h += float(inputs.get(CURRENT_PORT, 0.0))

        if self._rng is None:
            raise RuntimeError(f"{self.name} node {self.node_id} was not calibrated")
        if state.t_next is None:
            state.t_next = ctx.t_ms + draw_exponential(self._rng) * self.params.tau_m
        if ctx.t_ms < state.t_next:
            return ()

        old = state.y
        new = self._candidate_transition(old, state.h)
        state.h = 0.0
        state.t_next += draw_exponential(self._rng) * self.params.tau_m
        if new == old:
            return ()
        state.y = new
        multiplicity = 2 if new == SIRSState.I else 1
        return (self.emit(ctx, multiplicity=multiplicity),)

    def decode(self, deliveries: Sequence[Delivery]) -> float:
        """Turn the ordered spike copies of one step into an input increment."""

        state = self.state
        total = 0.0
        for delivery in deliveries:
            same_event = (
                delivery.source_id == state.last_in_node_id
                and delivery.emission_step == state.t_last_in_spike
            )
            if same_event:
                total += 2.0 * delivery.weight
            else:
                total -= delivery.weight
            state.last_in_node_id = delivery.source_id
            state.t_last_in_spike = delivery.emission_step
        return total

    def _candidate_transition(self, y: int, h: float) -> int:
        params = self.params
        u = draw_uniform(self._rng)
        if y == SIRSState.S:
            gain = GAIN_FUNCTIONS[GainKind(params.gain)]
            p = gain(h, params.beta_sirs, params.theta, params.sigmoid_slope)
            return SIRSState.I if u < p else SIRSState.S
        if y == SIRSState.I:
            return SIRSState.R if u < params.mu_sirs else SIRSState.I
        return SIRSState.S if u < params.eta_sirs else SIRSState.R

    # ---- status ---------------------------------------------------------------
    def state_status(self) -> dict[str, Any]:
        state = self.state
        return {
            "y": int(state.y),
            "h": float(state.h),
            "t_next": state.t_next,
            "t_last_in_spike": state.t_last_in_spike,
            "last_in_node_id": state.last_in_node_id,
        }

    def writable_state_keys(self) -> frozenset[str]:
        return frozenset({"y", "h"})

    def validate_state(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        staged: dict[str, Any] = {}
        if "y" in updates:
            y = updates["y"]
            if isinstance(y, bool) or y not in (SIRSState.S, SIRSState.I, SIRSState.R):
                raise ConfigurationError(
                    f"{format_key_value('y', y)} must be 0 (S), 1 (I) or 2 (R)", key="y", value=y
                )
            staged["y"] = SIRSState(int(y))
        if "h" in updates:
            try:
                staged["h"] = float(updates["h"])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"{format_key_value('h', updates['h'])} must be a number",
                    key="h",
                    value=updates["h"],
                ) from None
        return staged

    def apply_state(self, updates: Mapping[str, Any]) -> None:
        if "y" in updates:
            self.state.y = updates["y"]
        if "h" in updates:
            self.state.h = updates["h"]


def _require(ok: bool, key: str, value: Any, message: str) -> None:
    if not ok:
        raise ConfigurationError(f"{format_key_value(key, value)} {message}", key=key, value=value)


def _replace_params(params: SIRSParams, overrides: Mapping[str, Any]) -> SIRSParams:
    known = {f.name for f in fields(params)}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigurationError(
                f"sirs_neuron: unknown parameter {format_key_value(key, value)}",
                key=key,
                value=value,
            )
    return replace(params, **overrides)


__all__ = ["SIRSNeuron", "SIRSNodeState", "SIRSParams", "SIRSState"]
