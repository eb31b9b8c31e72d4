"""Lockstep network engine: update → deliver → advance."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from snnkernel.biophysics.models.registry import create_node_model
from snnkernel.connectivity.router import Connection, ConnectionRouter
from snnkernel.contracts.events import Event, EventKind
from snnkernel.contracts.monitors import IMonitor, IReadoutMonitor, StepEvent
from snnkernel.contracts.nodes import CalibrationContext, INodeModel, StepContext
from snnkernel.contracts.simulation import ISimulationEngine
from snnkernel.errors import ConnectionValidationError, FatalRunError
from snnkernel.simulation.clock import SimulationClock
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.delivery import DeliveryReport, EventDeliveryManager, Outbox

logger = logging.getLogger(__name__)

NodeRef = INodeModel | int


class NetworkEngine(ISimulationEngine):
    """Runs a network of nodes on the threads and ranks of a kernel context.

    Every rank builds the same network (same node ids, same connections);
    each rank updates only the nodes it owns (``node_id % world_size``) and
    each local thread only the nodes mapped to it by :meth:`thread_of`.
    """

    name = "network"

    def __init__(
        self,
        context: KernelContext,
        *,
        allow_autapses: bool = True,
        allow_multapses: bool = True,
    ) -> None:
        if not context.initialized:
            raise RuntimeError("KernelContext must be initialized before building an engine.")
        self._context = context
        self._router = ConnectionRouter(
            allow_autapses=allow_autapses,
            allow_multapses=allow_multapses,
        )
        self._nodes: dict[int, INodeModel] = {}
        self._local: dict[int, INodeModel] = {}
        self._thread_nodes: list[list[int]] = []
        self._delivery = EventDeliveryManager(
            context,
            self._router,
            self._local,
            thread_of=self.thread_of,
        )
        self._monitors: list[IMonitor] = []
        self._recorders: list[IMonitor] = []
        self._executor: ThreadPoolExecutor | None = None
        self._prepared = False
        self.last_events: tuple[Event, ...] = ()
        self.last_report: DeliveryReport | None = None

    # ---- accessors -------------------------------------------------------------
    @property
    def context(self) -> KernelContext:
        return self._context

    @property
    def router(self) -> ConnectionRouter:
        return self._router

    @property
    def delivery(self) -> EventDeliveryManager:
        return self._delivery

    @property
    def clock(self) -> SimulationClock:
        return self._context.clock

    @property
    def nodes(self) -> Mapping[int, INodeModel]:
        return dict(self._nodes)

    @property
    def local_nodes(self) -> Mapping[int, INodeModel]:
        return dict(self._local)

    @property
    def monitors(self) -> tuple[IMonitor, ...]:
        return tuple(self._monitors)

    def node(self, node_id: int) -> INodeModel:
        try:
            return self._nodes[int(node_id)]
        except KeyError:
            raise ConnectionValidationError(f"unknown node id {node_id}") from None

    def thread_of(self, node_id: int) -> int:
        world = self._context.topology.actual_worker_count
        return (int(node_id) // world) % self._context.local_num_threads

    # ---- network construction ----------------------------------------------------
    def create(self, model: str | INodeModel, n: int = 1, **params: Any) -> list[INodeModel]:
        """Add ``n`` nodes of a registered model (or one given instance)."""

        self._check_building()
        if isinstance(model, str):
            created = [create_node_model(model, **params) for _ in range(n)]
        else:
            if n != 1 or params:
                raise ValueError("pass either a model name with n/params or a single instance")
            created = [model]
        topology = self._context.topology
        for node in created:
            node.node_id = len(self._nodes) + 1
            self._nodes[node.node_id] = node
            if topology.is_local(node.node_id):
                self._local[node.node_id] = node
        self._context.lock_layout()
        return created

    def connect(
        self,
        source: NodeRef,
        target: NodeRef,
        delay_steps: int = 1,
        weight: float = 1.0,
        channel: EventKind = EventKind.SPIKE,
        *,
        port: int = 0,
    ) -> Connection:
        self._check_building()
        return self._router.connect(
            self._resolve(source),
            self._resolve(target),
            delay_steps,
            weight,
            channel,
            port=port,
        )

    def connect_recorder(self, monitor: IReadoutMonitor, targets: Iterable[NodeRef]) -> None:
        """Bind a read-out monitor to nodes through their DATA_REQUEST port."""

        nodes = [self._resolve(target) for target in targets]
        if self.clock.step > 0:
            warnings.warn(
                f"{monitor.name} attached at step {self.clock.step}; earlier steps are not recorded",
                RuntimeWarning,
                stacklevel=2,
            )
        for node in nodes:
            node.handles(EventKind.DATA_REQUEST, 0)
        for node in nodes:
            if node.node_id in self._local:
                monitor.bind(node.node_id, node.recordables())
        if isinstance(monitor, IMonitor):
            if monitor not in self._recorders:
                self._recorders.append(monitor)
            if monitor not in self._monitors:
                self._monitors.append(monitor)

    def attach_monitors(self, monitors: Sequence[IMonitor]) -> None:
        """Replace the step monitors; recorders bound to nodes stay attached."""

        attached = list(monitors)
        self._monitors = attached + [rec for rec in self._recorders if rec not in attached]

    # ---- status --------------------------------------------------------------------
    def get_status(self) -> dict[str, Any]:
        status = self._context.get_status()
        status["network_size"] = len(self._nodes)
        status["local_network_size"] = len(self._local)
        status["num_connections"] = len(self._router)
        status["max_delay"] = self._router.max_delay
        return status

    def set_status(self, status: Mapping[str, Any]) -> None:
        self._context.set_status(status)

    def get_node_status(self, node: NodeRef) -> dict[str, Any]:
        return self._resolve(node).get_status()

    def set_node_status(self, node: NodeRef, status: Mapping[str, Any]) -> None:
        self._resolve(node).set_status(status)

    # ---- running ---------------------------------------------------------------------
    def prepare(self) -> None:
        """Finalize connections and calibrate local nodes (idempotent)."""

        if self._prepared:
            return
        self._router.finalize()
        config = self._context.config
        max_delay = max(self._router.max_delay, config.max_delay_steps or 1)
        calib = CalibrationContext(
            resolution=self.clock.resolution,
            ring_capacity=max_delay + 1,
            seed=self._context.seed,
            start_step=self.clock.step,
        )
        for node in self._local.values():
            node.calibrate(calib)
        threads = self._context.local_num_threads
        self._thread_nodes = [[] for _ in range(threads)]
        for node_id in sorted(self._local):
            self._thread_nodes[self.thread_of(node_id)].append(node_id)
        if threads > 1 and self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=threads, thread_name_prefix="snn-update")
        self._prepared = True
        logger.info(
            "prepared %d local node(s) of %d, %d connection(s), ring capacity %d",
            len(self._local),
            len(self._nodes),
            len(self._router),
            max_delay + 1,
        )

    def reset(self) -> None:
        """Return to step 0 with fresh node state; connections are kept."""

        self.clock.reset()
        self._delivery.reset()
        for node in self._local.values():
            reset_state = getattr(node, "reset_state", None)
            if callable(reset_state):
                reset_state()
            node.buffer.clear()
        self._prepared = False
        self.last_events = ()
        self.last_report = None

    def request_abort(self) -> None:
        """Stop at the next step boundary agreed by all ranks."""

        self.clock.request_abort()

    def step(self) -> Mapping[str, Any]:
        self.prepare()
        clock = self.clock
        step = clock.step
        ctx = StepContext(step=step, resolution=clock.resolution)

        clock.begin_update()
        outboxes = self._delivery.make_outboxes()
        if self._executor is not None:
            futures = [
                self._executor.submit(self._update_thread, thread, ctx, outboxes[thread])
                for thread in range(len(outboxes))
            ]
            for future in futures:
                future.result()
        else:
            for thread, outbox in enumerate(outboxes):
                self._update_thread(thread, ctx, outbox)
        events = tuple(event for outbox in outboxes for event in outbox.events())

        clock.begin_delivery()
        report = self._delivery.deliver(
            outboxes,
            step,
            executor=self._executor,
            abort=clock.abort_requested,
        )
        clock.advance(unresolved=self._delivery.unresolved)
        if report.abort:
            clock.request_abort()

        self.last_events = events
        self.last_report = report
        step_event = StepEvent(
            step=step,
            t=ctx.t_ms,
            dt=ctx.resolution,
            events=events,
            scalars={
                "local_events": float(report.local_events),
                "deposited": float(report.deposited),
            },
        )
        for monitor in self._monitors:
            monitor.on_step(step_event)

        return {
            "step": step,
            "t": ctx.t_ms,
            "t_next": clock.now.ms,
            "local_events": report.local_events,
            "deposited": report.deposited,
            "abort": report.abort,
        }

    def run(self, steps: int) -> int:
        """Run up to ``steps`` steps; returns how many were executed.

        An abort request is carried through the step's collective exchange,
        so every rank stops after the same step.
        """

        if steps < 0:
            raise ValueError("steps must be >= 0")
        self.prepare()
        start = self.clock.step
        logger.info("run: %d step(s) from step %d", steps, start)
        executed = 0
        try:
            for _ in range(steps):
                result = self.step()
                executed += 1
                if result["abort"]:
                    logger.info("abort honored after step %d", result["step"])
                    self.clock.clear_abort()
                    break
        except FatalRunError as exc:
            logger.error("fatal run error at step %d: %s", exc.step, exc)
            self._context.collective.abort()
            raise
        except Exception:
            logger.exception("run failed at step %d; releasing the other ranks", self.clock.step)
            self._context.collective.abort()
            raise
        finally:
            for monitor in self._monitors:
                monitor.flush()
        return executed

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        for monitor in self._monitors:
            monitor.close()

    # ---- internals --------------------------------------------------------------------
    def _update_thread(self, thread: int, ctx: StepContext, outbox: Outbox) -> None:
        for node_id in self._thread_nodes[thread]:
            outbox.emit(node_id, self._local[node_id].update(ctx))

    def _resolve(self, ref: NodeRef) -> INodeModel:
        if isinstance(ref, int):
            return self.node(ref)
        if self._nodes.get(ref.node_id) is not ref:
            raise ConnectionValidationError(f"{ref.name} is not part of this network")
        return ref

    def _check_building(self) -> None:
        if self._prepared or self._router.finalized:
            raise ConnectionValidationError("network is finalized; topology cannot change mid-run")


__all__ = ["NetworkEngine"]
