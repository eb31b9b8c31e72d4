from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from snnkernel.contracts.events import EventKind
from snnkernel.contracts.simulation import ISimulationEngine, SimulationConfig
from snnkernel.errors import ConfigurationError, ConnectionValidationError, FatalRunError
from snnkernel.monitors import Multimeter, SpikeRecorder
from snnkernel.simulation.collective import ThreadCollective
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.engine import NetworkEngine
from tests.support.tap_monitor import TapMonitor
from tests.support.test_models import ProbeNode, SilentNode

pytestmark = pytest.mark.unit

torch = pytest.importorskip("torch")


def test_engine_satisfies_engine_protocol(kernel):
    assert isinstance(NetworkEngine(kernel), ISimulationEngine)


def test_create_assigns_sequential_ids_and_locks_layout(kernel):
    engine = NetworkEngine(kernel)
    neurons = engine.create("sirs_neuron", 3, tau_m=5.0)
    probe = ProbeNode()
    (same,) = engine.create(probe)

    assert [n.node_id for n in neurons] == [1, 2, 3]
    assert same is probe and probe.node_id == 4
    assert neurons[0].get_status()["tau_m"] == 5.0
    assert set(engine.nodes) == {1, 2, 3, 4}
    assert engine.local_nodes.keys() == engine.nodes.keys()
    with pytest.raises(ConfigurationError):
        kernel.set_status({"resolution": 1.0})
    with pytest.raises(ValueError):
        engine.create(ProbeNode(), 2)


def test_connect_accepts_ids_and_validates_membership(kernel):
    engine = NetworkEngine(kernel)
    engine.create("spike_source", spike_steps=(0,))
    engine.create(ProbeNode())
    conn = engine.connect(1, 2, delay_steps=3)
    assert (conn.source_id, conn.target_id, conn.delay_steps) == (1, 2, 3)

    with pytest.raises(ConnectionValidationError, match="unknown node"):
        engine.connect(1, 42)
    with pytest.raises(ConnectionValidationError, match="not part of this network"):
        engine.connect(1, ProbeNode())


def test_topology_is_frozen_once_running(kernel):
    engine = NetworkEngine(kernel)
    engine.create("spike_source", spike_steps=(0,))
    engine.create(ProbeNode())
    engine.run(1)
    with pytest.raises(ConnectionValidationError, match="finalized"):
        engine.create("sirs_neuron")
    with pytest.raises(ConnectionValidationError, match="finalized"):
        engine.connect(1, 2)


def test_step_reports_and_notifies_monitors(kernel):
    engine = NetworkEngine(kernel)
    engine.create("spike_source", spike_steps=(0, 2), multiplicities=(2, 1))
    engine.create(ProbeNode())
    engine.connect(1, 2, delay_steps=1)
    tap = TapMonitor(keys=("deposited",))
    engine.attach_monitors([tap])

    result = engine.step()

    assert result["step"] == 0
    assert result["local_events"] == 1
    assert result["deposited"] == 2
    assert result["abort"] is False
    assert tap.steps == [0]
    assert tap.get_series("deposited") == [2.0]
    assert [(e.source_id, e.multiplicity) for e in tap.events] == [(1, 2)]
    assert engine.run(4) == 4
    assert engine.clock.step == 5
    assert tap.flushed == 1


def test_abort_request_stops_at_next_boundary(kernel):
    engine = NetworkEngine(kernel)
    engine.create("spike_source", spike_steps=tuple(range(20)))
    engine.create(ProbeNode())
    engine.connect(1, 2)
    engine.request_abort()

    assert engine.run(10) == 1
    assert engine.clock.step == 1
    assert not engine.clock.abort_requested
    assert engine.run(3) == 3
    assert engine.clock.step == 4


def test_undeposited_deliveries_are_fatal(kernel, monkeypatch):
    engine = NetworkEngine(kernel)
    engine.create("spike_source", spike_steps=(0,))
    engine.create(ProbeNode())
    engine.connect(1, 2)
    monkeypatch.setattr(engine.delivery, "deposit", lambda batches, thread: 0)

    with pytest.raises(FatalRunError) as excinfo:
        engine.run(3)
    assert excinfo.value.step == 0


def test_reset_replays_identical_run(kernel):
    engine = NetworkEngine(kernel)
    neurons = engine.create("sirs_neuron", 4, beta_sirs=0.5, mu_sirs=0.3, eta_sirs=0.3)
    (dc,) = engine.create("dc_source", amplitude=0.2)
    for neuron in neurons:
        engine.connect(dc, neuron, channel=EventKind.CURRENT)
    recorder = SpikeRecorder()
    engine.attach_monitors([recorder])
    engine.run(300)
    first = recorder.records

    engine.reset()
    assert engine.clock.step == 0
    recorder2 = SpikeRecorder()
    engine.attach_monitors([recorder2])
    engine.run(300)

    assert first
    assert recorder2.records == first


def test_connect_recorder_negotiates_data_request(kernel):
    engine = NetworkEngine(kernel)
    engine.create("sirs_neuron", 2)
    engine.create(SilentNode())
    meter = Multimeter(("S", "h"), interval=5)

    with pytest.raises(ConnectionValidationError):
        engine.connect_recorder(meter, [3])
    engine.connect_recorder(meter, [1, 2])
    engine.run(11)

    assert [step for step, _ in meter.series(1, "S")] == [0, 5, 10]
    assert {row["node"] for row in meter.samples} == {1, 2}
    with pytest.raises(ConnectionValidationError, match="does not record"):
        Multimeter(("V_m",)).bind(1, engine.node(1).recordables())


def test_attach_monitors_keeps_bound_recorders(kernel):
    engine = NetworkEngine(kernel)
    engine.create("sirs_neuron", 2)
    meter = Multimeter(("S",), interval=2)
    engine.connect_recorder(meter, [1, 2])
    recorder = SpikeRecorder()
    engine.attach_monitors([recorder])
    engine.run(5)

    assert engine.monitors == (recorder, meter)
    assert [step for step, _ in meter.series(2, "S")] == [0, 2, 4]


def test_late_recorder_attachment_warns(kernel):
    engine = NetworkEngine(kernel)
    engine.create("sirs_neuron")
    engine.run(2)
    with pytest.warns(RuntimeWarning, match="not recorded"):
        engine.connect_recorder(Multimeter(("S",)), [1])


def test_status_delegation(kernel):
    engine = NetworkEngine(kernel)
    engine.create("sirs_neuron", 2)
    engine.connect(1, 2, delay_steps=4)
    status = engine.get_status()

    assert status["network_size"] == 2
    assert status["num_connections"] == 1
    assert status["max_delay"] == 4
    engine.set_node_status(1, {"mu_sirs": 0.5, "y": 1})
    node_status = engine.get_node_status(1)
    assert node_status["mu_sirs"] == 0.5 and node_status["y"] == 1
    engine.set_status({"rng_seed": 3})
    assert engine.get_status()["rng_seed"] == 3


def test_threads_partition_local_nodes():
    ctx = KernelContext(SimulationConfig(local_num_threads=3)).initialize()
    engine = NetworkEngine(ctx)
    engine.create("sirs_neuron", 9)
    assert sorted({engine.thread_of(n) for n in engine.nodes}) == [0, 1, 2]
    engine.run(5)
    engine.close()
    ctx.teardown()


class _FailingNode(SilentNode):
    name = "failing"

    def update_state(self, ctx, inputs):
        if ctx.step == 3:
            raise ValueError("node update failed")
        return super().update_state(ctx, inputs)


def test_failing_rank_releases_its_peers():
    # no barrier timeout short enough to rescue the peer on its own
    group = ThreadCollective(2, timeout=60.0)

    def _rank(rank: int):
        ctx = KernelContext(SimulationConfig(), collective=group.for_rank(rank)).initialize()
        engine = NetworkEngine(ctx)
        engine.create(_FailingNode())  # node 1, owned by rank 1
        engine.create(SilentNode())
        started = time.monotonic()
        try:
            engine.run(10)
        except Exception as exc:
            return exc, time.monotonic() - started
        finally:
            engine.close()
            ctx.teardown()
        return None, time.monotonic() - started

    with ThreadPoolExecutor(max_workers=2) as pool:
        (peer_error, peer_elapsed), (own_error, _) = pool.map(_rank, range(2))

    assert isinstance(own_error, ValueError)
    assert isinstance(peer_error, FatalRunError)
    assert peer_error.step == 3
    assert peer_elapsed < 30.0
