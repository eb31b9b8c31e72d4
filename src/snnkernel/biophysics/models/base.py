"""Base scaffolding for node model implementations."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, fields, replace
from types import MappingProxyType
from typing import Any, ClassVar

from snnkernel.contracts.events import Event, EventKind
from snnkernel.contracts.nodes import CalibrationContext, INodeModel, Recordable, StepContext
from snnkernel.errors import ConfigurationError, ConnectionValidationError, format_key_value
from snnkernel.synapses.buffers.ring_buffer import ChannelKey, RingBuffer

_RESERVED_KEYS = frozenset({"model", "node_id", "recordables"})


class NodeModelBase(INodeModel):
    """Optional base class for guided node model implementations.

    Subclasses declare their capabilities as class attributes:

    - ``accepts``: event kind -> ports on which the node receives it
    - ``emits``: the event kind the node sends (or None)

    and implement :meth:`update_state`. Parameters live in a frozen dataclass
    (``self.params``) that validates itself on construction, so a rejected
    ``set_status`` never leaves a half-applied parameter set behind.
    """

    name = "base"
    accepts: ClassVar[Mapping[EventKind, frozenset[int]]] = {}
    emits: ClassVar[EventKind | None] = None
    encodes_multiplicity: ClassVar[bool] = False

    def __init__(self, params: Any) -> None:
        self.node_id = -1
        self.params = params
        self._buffer = RingBuffer(capacity=1, channels=self._input_channels())
        self._recordables: dict[str, Recordable] = {}
        self.register_recordables()

    # ---- Hooks for subclasses -------------------------------------------------
    def register_recordables(self) -> None:
        return None

    def calibrate_model(self, ctx: CalibrationContext) -> None:
        return None

    def update_state(self, ctx: StepContext, inputs: Mapping[ChannelKey, Any]) -> Sequence[Event]:
        raise NotImplementedError

    def state_status(self) -> dict[str, Any]:
        return {}

    def writable_state_keys(self) -> frozenset[str]:
        return frozenset()

    def validate_state(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        """Check state updates and return the values to apply."""
        return dict(updates)

    def apply_state(self, updates: Mapping[str, Any]) -> None:
        return None

    def reset_state(self) -> None:
        return None

    # ---- INodeModel -------------------------------------------------------------
    def sends(self) -> EventKind | None:
        return self.emits

    def handles(self, kind: EventKind, port: int) -> int:
        try:
            kind = EventKind(kind)
        except ValueError as exc:
            raise ConnectionValidationError(f"unknown event kind {kind!r}") from exc
        ports = self.accepts.get(kind)
        if not ports:
            raise ConnectionValidationError(
                f"{self.name} (node {self.node_id}) does not accept {kind} events"
            )
        if port not in ports:
            raise ConnectionValidationError(
                f"{self.name} (node {self.node_id}) has no {kind} port {port}; "
                f"available: {sorted(ports)}"
            )
        if kind is EventKind.DATA_REQUEST and not self._recordables:
            raise ConnectionValidationError(f"{self.name} has no recordables")
        return int(port)

    @property
    def buffer(self) -> RingBuffer:
        return self._buffer

    def calibrate(self, ctx: CalibrationContext) -> None:
        self._buffer.resize(ctx.ring_capacity, origin=ctx.start_step)
        self.calibrate_model(ctx)

    def update(self, ctx: StepContext) -> Sequence[Event]:
        inputs = self._buffer.read_all(ctx.step)
        return self.update_state(ctx, inputs)

    def emit(self, ctx: StepContext, *, multiplicity: int = 1, payload: float = 1.0) -> Event:
        if self.emits is None:
            raise RuntimeError(f"{self.name} does not send events")
        return Event(
            source_id=self.node_id,
            emission_step=ctx.step,
            multiplicity=multiplicity,
            channel=self.emits,
            payload=payload,
        )

    def get_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {"model": self.name, "node_id": self.node_id}
        status.update(asdict(self.params))
        status.update(self.state_status())
        status["recordables"] = tuple(self._recordables)
        return status

    def set_status(self, status: Mapping[str, Any]) -> None:
        param_names = {f.name for f in fields(self.params)}
        state_keys = self.writable_state_keys()
        readonly = _RESERVED_KEYS | set(self.state_status()) - state_keys

        param_updates: dict[str, Any] = {}
        state_updates: dict[str, Any] = {}
        for key, value in status.items():
            if key in param_names:
                param_updates[key] = value
            elif key in state_keys:
                state_updates[key] = value
            elif key in readonly:
                raise ConfigurationError(
                    f"{self.name}: {format_key_value(key, value)} is read-only", key=key, value=value
                )
            else:
                raise ConfigurationError(
                    f"{self.name}: unknown status key {format_key_value(key, value)}",
                    key=key,
                    value=value,
                )

        new_params = replace(self.params, **param_updates) if param_updates else self.params
        staged_state = self.validate_state(state_updates) if state_updates else {}

        self.params = new_params
        if staged_state:
            self.apply_state(staged_state)

    def recordables(self) -> Mapping[str, Recordable]:
        return MappingProxyType(self._recordables)

    def register_recordable(self, name: str, fn: Recordable) -> None:
        if name in self._recordables:
            raise KeyError(f"{self.name} already records '{name}'")
        self._recordables[name] = fn

    # ---- internals ----------------------------------------------------------------
    def _input_channels(self) -> list[ChannelKey]:
        return [
            (kind, port)
            for kind, ports in self.accepts.items()
            if kind is not EventKind.DATA_REQUEST
            for port in sorted(ports)
        ]


__all__ = ["NodeModelBase"]
