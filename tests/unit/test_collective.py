from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from snnkernel.errors import FatalRunError
from snnkernel.simulation.collective import (
    ICollective,
    LocalCollective,
    ThreadCollective,
    TorchDistributedCollective,
)

pytestmark = pytest.mark.unit


def test_local_collective_is_identity():
    coll = LocalCollective()
    assert isinstance(coll, ICollective)
    assert (coll.rank, coll.world_size) == (0, 1)
    assert coll.all_gather("payload", step=3) == ["payload"]


def test_thread_collective_gathers_in_rank_order_every_step():
    group = ThreadCollective(3, timeout=10.0)

    def _rank(rank: int) -> list[list[tuple[int, int]]]:
        handle = group.for_rank(rank)
        return [handle.all_gather((rank, step), step=step) for step in range(5)]

    with ThreadPoolExecutor(max_workers=3) as pool:
        results = list(pool.map(_rank, range(3)))

    for per_rank in results:
        for step, gathered in enumerate(per_rank):
            assert gathered == [(0, step), (1, step), (2, step)]


def test_thread_collective_abort_breaks_waiting_ranks():
    group = ThreadCollective(2, timeout=10.0)
    waiting = threading.Event()

    def _waiter():
        waiting.set()
        return group.for_rank(0).all_gather("x", step=4)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(_waiter)
        waiting.wait()
        group.for_rank(1).abort()
        with pytest.raises(FatalRunError) as excinfo:
            future.result(timeout=10.0)
    assert excinfo.value.step == 4


def test_thread_collective_validates_ranks():
    with pytest.raises(ValueError):
        ThreadCollective(0)
    with pytest.raises(ValueError):
        ThreadCollective(2).for_rank(2)


def test_torch_distributed_requires_initialized_group():
    torch = pytest.importorskip("torch")
    dist = torch.distributed
    if dist.is_available() and dist.is_initialized():
        pytest.skip("a process group is already initialized")
    with pytest.raises(RuntimeError, match="initialized"):
        TorchDistributedCollective()
