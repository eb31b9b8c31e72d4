"""Connection table and event fan-out."""

from __future__ import annotations

import warnings
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from snnkernel.contracts.events import Delivery, Event, EventKind, SourceBatch
from snnkernel.contracts.nodes import INodeModel
from snnkernel.errors import ConnectionValidationError


@dataclass(frozen=True, slots=True)
class Connection:
    source_id: int
    target_id: int
    delay_steps: int
    weight: float
    channel: EventKind = EventKind.SPIKE
    port: int = 0


class ConnectionRouter:
    """Directed, weighted, delayed edges between nodes.

    Connections are grouped by source in creation order. After
    :meth:`finalize` the table is read-only and shared by all update units
    without locking.
    """

    def __init__(self, *, allow_autapses: bool = True, allow_multapses: bool = True) -> None:
        self.allow_autapses = bool(allow_autapses)
        self.allow_multapses = bool(allow_multapses)
        self._out: dict[int, list[Connection]] = {}
        self._pairs: set[tuple[int, int, EventKind, int]] = set()
        self._finalized = False
        self._max_delay = 1

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def max_delay(self) -> int:
        return self._max_delay

    def __len__(self) -> int:
        return sum(len(conns) for conns in self._out.values())

    def __iter__(self) -> Iterator[Connection]:
        for source_id in sorted(self._out):
            yield from self._out[source_id]

    def connect(
        self,
        source: INodeModel,
        target: INodeModel,
        delay_steps: int,
        weight: float = 1.0,
        channel: EventKind = EventKind.SPIKE,
        *,
        port: int = 0,
    ) -> Connection:
        """Create one edge; all checks happen before the table is touched."""

        if self._finalized:
            raise ConnectionValidationError("connection table is finalized; no new connections")
        try:
            integral = not isinstance(delay_steps, bool) and int(delay_steps) == delay_steps
        except (TypeError, ValueError, OverflowError):
            integral = False
        if not integral:
            raise ConnectionValidationError(f"delay_steps must be an integer, got {delay_steps!r}")
        if isinstance(weight, bool) or not isinstance(weight, int | float):
            raise ConnectionValidationError(f"weight must be a number, got {weight!r}")
        if delay_steps < 1:
            raise ConnectionValidationError(
                f"delay_steps must be >= 1 (one full step), got {delay_steps}"
            )
        channel = EventKind(channel)
        if channel is EventKind.DATA_REQUEST:
            raise ConnectionValidationError(
                "data requests are bound through recorders, not routed connections"
            )
        sent = source.sends()
        if sent is None or EventKind(sent) is not channel:
            raise ConnectionValidationError(
                f"{source.name} (node {source.node_id}) does not send {channel} events"
            )
        resolved_port = target.handles(channel, port)

        source_id = int(source.node_id)
        target_id = int(target.node_id)
        if not self.allow_autapses and source_id == target_id:
            raise ConnectionValidationError(f"autapse on node {source_id} is not allowed")
        pair = (source_id, target_id, channel, resolved_port)
        if pair in self._pairs:
            if not self.allow_multapses:
                raise ConnectionValidationError(
                    f"duplicate connection {source_id} -> {target_id} ({channel}:{resolved_port})"
                )
            if getattr(source, "encodes_multiplicity", False):
                warnings.warn(
                    f"duplicate connection {source_id} -> {target_id}: {source.name} encodes "
                    "state transitions in spike multiplicity and the target will misdecode them",
                    RuntimeWarning,
                    stacklevel=2,
                )

        conn = Connection(
            source_id=source_id,
            target_id=target_id,
            delay_steps=int(delay_steps),
            weight=float(weight),
            channel=channel,
            port=resolved_port,
        )
        self._out.setdefault(source_id, []).append(conn)
        self._pairs.add(pair)
        self._max_delay = max(self._max_delay, conn.delay_steps)
        return conn

    def finalize(self) -> None:
        self._finalized = True

    def outgoing(self, source_id: int) -> Sequence[Connection]:
        return tuple(self._out.get(int(source_id), ()))

    def route(self, event: Event) -> tuple[Delivery, ...]:
        """Expand one event into deliveries.

        Each outgoing connection on the event's channel receives
        ``event.multiplicity`` consecutive copies, so a target never sees the
        copies of one logical event split by another event.
        """

        deliveries: list[Delivery] = []
        for conn in self._out.get(event.source_id, ()):
            if conn.channel != event.channel:
                continue
            delivery = Delivery(
                target_id=conn.target_id,
                scheduled_step=event.emission_step + conn.delay_steps,
                weight=conn.weight,
                channel=conn.channel,
                port=conn.port,
                source_id=event.source_id,
                emission_step=event.emission_step,
                payload=event.payload,
            )
            deliveries.extend([delivery] * event.multiplicity)
        return tuple(deliveries)

    def route_source(self, source_id: int, step: int, events: Sequence[Event]) -> SourceBatch:
        """Route everything one source emitted in one step as a single batch."""

        deliveries: list[Delivery] = []
        for event in events:
            if event.source_id != source_id or event.emission_step != step:
                raise ValueError(
                    f"event {event.key} does not belong to source {source_id} at step {step}"
                )
            deliveries.extend(self.route(event))
        return SourceBatch(source_id=source_id, emission_step=step, deliveries=tuple(deliveries))


__all__ = ["Connection", "ConnectionRouter"]
