"""Collective exchange backends used by the delivery phase.

Every backend implements one blocking operation, :meth:`all_gather`: each
rank contributes a payload and receives the list of all payloads indexed by
rank. A rank that never contributes stalls all others; nothing is dropped.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol, runtime_checkable

from snnkernel.core.torch_utils import require_torch
from snnkernel.errors import FatalRunError


@runtime_checkable
class ICollective(Protocol):
    rank: int
    world_size: int

    def all_gather(self, payload: Any, *, step: int) -> list[Any]:
        ...

    def abort(self) -> None:
        ...

    def close(self) -> None:
        ...


class LocalCollective(ICollective):
    """Single-worker run: the exchange is the identity."""

    def __init__(self) -> None:
        self.rank = 0
        self.world_size = 1

    def all_gather(self, payload: Any, *, step: int) -> list[Any]:
        _ = step
        return [payload]

    def abort(self) -> None:
        return None

    def close(self) -> None:
        return None


class ThreadCollective:
    """In-process ranks that exchange through a shared barrier.

    Each rank runs its own engine in its own thread and talks to the group
    through the handle returned by :meth:`for_rank`. Useful to run the
    multi-rank delivery path deterministically inside one process.
    """

    def __init__(self, world_size: int, *, timeout: float | None = None) -> None:
        if world_size < 1:
            raise ValueError("world_size must be >= 1")
        self.world_size = int(world_size)
        self._timeout = timeout
        self._slots: list[Any] = [None] * self.world_size
        self._barrier = threading.Barrier(self.world_size, timeout=timeout)

    def for_rank(self, rank: int) -> ThreadRankCollective:
        if not 0 <= rank < self.world_size:
            raise ValueError(f"rank {rank} outside world of size {self.world_size}")
        return ThreadRankCollective(self, rank)

    def _exchange(self, rank: int, payload: Any, step: int) -> list[Any]:
        try:
            self._slots[rank] = payload
            self._barrier.wait()
            gathered = list(self._slots)
            # second wait keeps a fast rank from overwriting its slot for the
            # next step before slower ranks have copied this one
            self._barrier.wait()
        except threading.BrokenBarrierError as exc:
            raise FatalRunError("collective exchange broken; a rank aborted or timed out", step=step) from exc
        return gathered

    def abort(self) -> None:
        self._barrier.abort()


class ThreadRankCollective(ICollective):
    def __init__(self, group: ThreadCollective, rank: int) -> None:
        self._group = group
        self.rank = int(rank)
        self.world_size = group.world_size

    def all_gather(self, payload: Any, *, step: int) -> list[Any]:
        return self._group._exchange(self.rank, payload, step)

    def abort(self) -> None:
        self._group.abort()

    def close(self) -> None:
        return None


class TorchDistributedCollective(ICollective):
    """Exchange through an initialized ``torch.distributed`` process group."""

    def __init__(self, group: Any = None) -> None:
        torch = require_torch()
        dist = torch.distributed
        if not dist.is_available() or not dist.is_initialized():
            raise RuntimeError("torch.distributed must be initialized before use")
        self._dist = dist
        self._group = group
        self.rank = int(dist.get_rank(group))
        self.world_size = int(dist.get_world_size(group))

    def all_gather(self, payload: Any, *, step: int) -> list[Any]:
        gathered: list[Any] = [None] * self.world_size
        try:
            self._dist.all_gather_object(gathered, payload, group=self._group)
        except RuntimeError as exc:
            raise FatalRunError("torch.distributed all_gather_object failed", step=step) from exc
        return gathered

    def abort(self) -> None:
        # process groups cannot be interrupted from one rank; the other ranks
        # observe the failure at their next collective
        return None

    def close(self) -> None:
        return None


__all__ = [
    "ICollective",
    "LocalCollective",
    "ThreadCollective",
    "ThreadRankCollective",
    "TorchDistributedCollective",
]
