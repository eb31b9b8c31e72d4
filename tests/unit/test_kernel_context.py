from __future__ import annotations

import pytest

from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.errors import ConfigurationError
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.engine import NetworkEngine

pytestmark = pytest.mark.unit

torch = pytest.importorskip("torch")


def test_context_must_be_initialized_before_use():
    ctx = KernelContext()
    assert not ctx.initialized
    with pytest.raises(RuntimeError):
        _ = ctx.clock
    with pytest.raises(RuntimeError):
        NetworkEngine(ctx)
    with ctx:
        assert ctx.initialized
        assert ctx.clock.step == 0
    assert not ctx.initialized


def test_status_reports_kernel_values(kernel):
    status = kernel.get_status()

    assert status["resolution"] == 0.1
    assert status["rng_seed"] == 12345
    assert status["local_num_threads"] == 1
    assert status["num_processes"] == 1
    assert status["actual_num_processes"] == 1
    assert status["rank"] == 0
    assert status["total_num_virtual_procs"] == 1
    assert status["step"] == 0
    assert status["biological_time"] == 0.0
    assert status["logical_worker_override"] is False


def test_set_status_applies_writable_keys(kernel):
    kernel.set_status({"resolution": 0.5, "rng_seed": 7, "local_num_threads": 2})

    status = kernel.get_status()
    assert status["resolution"] == 0.5
    assert kernel.clock.resolution == 0.5
    assert status["rng_seed"] == 7 and kernel.seed == 7
    assert status["local_num_threads"] == 2
    assert status["total_num_virtual_procs"] == 2


@pytest.mark.parametrize(
    "update",
    [
        {"rng_seed": 7, "bogus": 1},
        {"rng_seed": 7, "step": 3},
        {"rng_seed": 7, "num_processes": 777},
        {"rng_seed": 7, "resolution": -1.0},
        {"rng_seed": 7, "local_num_threads": 0},
        {"rng_seed": -7},
    ],
)
def test_rejected_set_status_changes_nothing(kernel, update):
    before = kernel.get_status()
    with pytest.raises(ConfigurationError):
        kernel.set_status(update)
    assert kernel.get_status() == before


def test_layout_keys_freeze_once_nodes_exist(kernel):
    engine = NetworkEngine(kernel)
    engine.create("sirs_neuron", 2)
    with pytest.raises(ConfigurationError, match="cannot change"):
        kernel.set_status({"resolution": 0.2})
    with pytest.raises(ConfigurationError, match="cannot change"):
        kernel.set_status({"local_num_threads": 4})
    kernel.set_status({"rng_seed": 99})
    assert kernel.seed == 99


def test_logical_worker_override_through_context(kernel):
    kernel.set_logical_worker_count(777)
    assert kernel.get_logical_worker_count() == 777
    status = kernel.get_status()
    assert status["num_processes"] == 777
    assert status["actual_num_processes"] == 1
    assert status["logical_worker_override"] is True
    assert status["total_num_virtual_procs"] == 777


@pytest.mark.parametrize(
    "config",
    [
        SimulationConfig(resolution=0.0),
        SimulationConfig(local_num_threads=0),
        SimulationConfig(seed=-1),
        SimulationConfig(max_delay_steps=0),
    ],
)
def test_invalid_config_is_rejected(config):
    with pytest.raises(ConfigurationError):
        KernelContext(config)
