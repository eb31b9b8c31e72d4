"""Event delivery: per-source batching, collective exchange, deposit.

Ordering contract at every target port:

- copies of one logical event (same source, step and channel) arrive as one
  contiguous run in emission order;
- events from different sources have no guaranteed relative order.

The first property follows from three rules. A source's events for a step are
routed into one :class:`SourceBatch`. Batches are only ever concatenated,
never interleaved: outboxes in thread order, ranks in rank order. Every
thread walks the same concatenated list and deposits only into the nodes it
owns, so a buffer is written by exactly one thread in list order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, field

from snnkernel.connectivity.router import ConnectionRouter
from snnkernel.contracts.events import Event, SourceBatch
from snnkernel.contracts.nodes import INodeModel
from snnkernel.errors import FatalRunError
from snnkernel.simulation.context import KernelContext

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Outbox:
    """Events emitted by the nodes of one update unit during one step."""

    thread: int
    entries: list[tuple[int, tuple[Event, ...]]] = field(default_factory=list)

    def emit(self, source_id: int, events: Sequence[Event]) -> None:
        if events:
            self.entries.append((int(source_id), tuple(events)))

    def events(self) -> tuple[Event, ...]:
        return tuple(event for _, events in self.entries for event in events)

    def clear(self) -> None:
        self.entries.clear()


@dataclass(frozen=True, slots=True)
class DeliveryReport:
    step: int
    local_events: int
    batches: int
    deposited: int
    abort: bool


class EventDeliveryManager:
    """Moves one step's events from outboxes into downstream ring buffers."""

    def __init__(
        self,
        context: KernelContext,
        router: ConnectionRouter,
        nodes: Mapping[int, INodeModel],
        *,
        thread_of: Callable[[int], int],
    ) -> None:
        self._context = context
        self._router = router
        self._nodes = nodes
        self._thread_of = thread_of
        self._unresolved = 0

    @property
    def unresolved(self) -> int:
        """Deliveries addressed to local nodes that are not deposited yet."""

        return self._unresolved

    def make_outboxes(self) -> list[Outbox]:
        return [Outbox(thread=idx) for idx in range(self._context.local_num_threads)]

    def collect(self, outboxes: Sequence[Outbox], step: int) -> list[SourceBatch]:
        batches: list[SourceBatch] = []
        for outbox in outboxes:
            for source_id, events in outbox.entries:
                batch = self._router.route_source(source_id, step, events)
                if batch.deliveries:
                    batches.append(batch)
        return batches

    def exchange(
        self,
        batches: Sequence[SourceBatch],
        step: int,
        *,
        abort: bool = False,
    ) -> tuple[list[SourceBatch], bool]:
        """Blocking all-gather of every rank's batches for ``step``.

        Returns the concatenation in rank order and whether any rank asked to
        abort at this boundary.
        """

        gathered = self._context.collective.all_gather((tuple(batches), bool(abort)), step=step)
        merged: list[SourceBatch] = []
        any_abort = False
        for rank_batches, rank_abort in gathered:
            merged.extend(rank_batches)
            any_abort = any_abort or rank_abort
        topology = self._context.topology
        self._unresolved += sum(
            1
            for batch in merged
            for delivery in batch.deliveries
            if topology.is_local(delivery.target_id)
        )
        return merged, any_abort

    def deposit(self, batches: Sequence[SourceBatch], thread: int) -> int:
        """Deposit every delivery whose target is owned by ``thread``."""

        topology = self._context.topology
        count = 0
        for batch in batches:
            for delivery in batch.deliveries:
                target_id = delivery.target_id
                if not topology.is_local(target_id) or self._thread_of(target_id) != thread:
                    continue
                node = self._nodes.get(target_id)
                if node is None:
                    raise FatalRunError(
                        f"delivery for unknown local node {target_id}",
                        step=batch.emission_step,
                    )
                node.buffer.deposit(
                    delivery.scheduled_step,
                    delivery.channel,
                    delivery,
                    port=delivery.port,
                )
                count += 1
        return count

    def deliver(
        self,
        outboxes: Sequence[Outbox],
        step: int,
        *,
        executor: Executor | None = None,
        abort: bool = False,
    ) -> DeliveryReport:
        """Run the whole delivery phase for ``step``."""

        local_events = sum(len(outbox.events()) for outbox in outboxes)
        batches = self.collect(outboxes, step)
        merged, any_abort = self.exchange(batches, step, abort=abort)

        n_threads = self._context.local_num_threads
        if executor is None or n_threads == 1:
            deposited = sum(self.deposit(merged, thread) for thread in range(n_threads))
        else:
            futures = [executor.submit(self.deposit, merged, thread) for thread in range(n_threads)]
            deposited = sum(future.result() for future in futures)
        self._unresolved -= deposited

        for outbox in outboxes:
            outbox.clear()
        logger.debug(
            "step %d: %d local events, %d batches, %d deposits",
            step,
            local_events,
            len(merged),
            deposited,
        )
        return DeliveryReport(
            step=step,
            local_events=local_events,
            batches=len(merged),
            deposited=deposited,
            abort=any_abort,
        )

    def reset(self) -> None:
        self._unresolved = 0


__all__ = ["DeliveryReport", "EventDeliveryManager", "Outbox"]
