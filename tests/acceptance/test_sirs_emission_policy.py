from __future__ import annotations

import pytest

from snnkernel.biophysics.models.sirs import SIRSState
from snnkernel.connectivity.builders import connect_fixed_indegree
from snnkernel.contracts.events import EventKind
from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.monitors import Multimeter, SpikeRecorder
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.engine import NetworkEngine
from tests.support.test_models import ProbeNode

pytestmark = pytest.mark.acceptance

STEPS = 3000
N = 12


def _state_series(meter: Multimeter, node_id: int) -> list[int]:
    return [int(value) for _, value in meter.series(node_id, "S")]


def test_first_event_from_susceptible_is_an_up_transition():
    pytest.importorskip("torch")
    ctx = KernelContext(SimulationConfig(resolution=0.1, seed=5)).initialize()
    engine = NetworkEngine(ctx)
    (neuron,) = engine.create("sirs_neuron", tau_m=1.0, beta_sirs=1.0, mu_sirs=1.0, eta_sirs=1.0)
    neuron.set_status({"h": 5.0})
    recorder = SpikeRecorder()
    meter = Multimeter(("S",))
    engine.attach_monitors([recorder])
    engine.connect_recorder(meter, [neuron])
    engine.run(500)

    records = recorder.records
    assert [r.multiplicity for r in records] == [2, 1, 1]
    states = _state_series(meter, neuron.node_id)
    assert [states[r.step] for r in records] == [SIRSState.I, SIRSState.R, SIRSState.S]
    ctx.teardown()


def test_events_are_emitted_only_on_transitions_with_matching_multiplicity():
    pytest.importorskip("torch")
    ctx = KernelContext(SimulationConfig(resolution=0.1, seed=2024, local_num_threads=2)).initialize()
    engine = NetworkEngine(ctx, allow_autapses=False, allow_multapses=False)
    neurons = engine.create(
        "sirs_neuron",
        N,
        tau_m=2.0,
        beta_sirs=0.4,
        mu_sirs=0.5,
        eta_sirs=0.5,
    )
    connect_fixed_indegree(engine.router, neurons, neurons, 4, seed=9)
    (dc,) = engine.create("dc_source", amplitude=0.3)
    for neuron in neurons:
        engine.connect(dc, neuron, channel=EventKind.CURRENT)
    recorder = SpikeRecorder()
    meter = Multimeter(("S",))
    engine.attach_monitors([recorder])
    engine.connect_recorder(meter, neurons)
    engine.run(STEPS)
    engine.close()

    up = down = 0
    for neuron in neurons:
        states = [int(SIRSState.S), *_state_series(meter, neuron.node_id)]
        emitted = {r.step: r.multiplicity for r in recorder.for_source(neuron.node_id)}
        for step in range(STEPS):
            before, after = states[step], states[step + 1]
            if before == after:
                assert step not in emitted, (neuron.node_id, step)
                continue
            assert (before, after) in {(0, 1), (1, 2), (2, 0)}
            expected = 2 if after == SIRSState.I else 1
            assert emitted[step] == expected, (neuron.node_id, step)
            up += after == SIRSState.I
            down += after != SIRSState.I
    assert up > 0 and down > 0
    ctx.teardown()


def test_receiver_decodes_net_weight_per_transition():
    pytest.importorskip("torch")
    ctx = KernelContext(SimulationConfig(resolution=0.1, seed=77)).initialize()
    engine = NetworkEngine(ctx)
    (sender,) = engine.create("sirs_neuron", tau_m=1.0, beta_sirs=1.0, mu_sirs=1.0, eta_sirs=1.0)
    sender.set_status({"h": 5.0})
    (receiver,) = engine.create("sirs_neuron", tau_m=1e9, beta_sirs=0.0)
    probe = ProbeNode()
    engine.create(probe)
    engine.connect(sender, receiver, delay_steps=2, weight=0.5)
    engine.connect(sender, probe, delay_steps=2, weight=0.5)
    recorder = SpikeRecorder(sources=[sender.node_id])
    engine.attach_monitors([recorder])
    engine.run(400)

    assert [r.multiplicity for r in recorder.records] == [2, 1, 1]
    # the receiver never reaches a candidate time, so h is the running decoded sum
    assert receiver.get_status()["h"] == pytest.approx(0.5 - 0.5 - 0.5)
    assert sum(len(copies) for copies in probe.spikes.values()) == 4
    ctx.teardown()
