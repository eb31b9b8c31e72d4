"""Worker topology: actual vs. logical worker count."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from snnkernel.errors import ConfigurationError, format_key_value

WORKER_COUNT_KEYS = frozenset({"num_processes", "total_num_virtual_procs", "logical_worker_count"})


@runtime_checkable
class WorkerCountStrategy(Protocol):
    """Decides which worker count distributed-aware algorithms see."""

    def count(self, actual: int) -> int:
        ...


class ActualWorkerCount(WorkerCountStrategy):
    def count(self, actual: int) -> int:
        return actual


@dataclass(frozen=True, slots=True)
class FixedWorkerCount(WorkerCountStrategy):
    """Diagnostic override: report ``n`` whatever the real launch size."""

    n: int

    def count(self, actual: int) -> int:
        _ = actual
        return self.n


class ProcessTopology:
    """Logical number of cooperating workers and this worker's rank.

    The actual count comes from the collective backend. Node ownership always
    uses the actual count; only the count reported to callers can be
    overridden, and only through :meth:`set_logical_count_override`.
    """

    def __init__(
        self,
        *,
        actual_worker_count: int = 1,
        rank: int = 0,
        strategy: WorkerCountStrategy | None = None,
    ) -> None:
        if actual_worker_count < 1:
            raise ValueError("actual_worker_count must be >= 1")
        if not 0 <= rank < actual_worker_count:
            raise ValueError(f"rank {rank} outside [0, {actual_worker_count})")
        self._actual = int(actual_worker_count)
        self._rank = int(rank)
        self._strategy: WorkerCountStrategy = strategy or ActualWorkerCount()

    @property
    def actual_worker_count(self) -> int:
        return self._actual

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def override_active(self) -> bool:
        return not isinstance(self._strategy, ActualWorkerCount)

    @property
    def logical_worker_count(self) -> int:
        return self.get_logical_count()

    def get_logical_count(self) -> int:
        return int(self._strategy.count(self._actual))

    def set_logical_count_override(self, n: int) -> None:
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ConfigurationError(
                f"logical worker count must be a non-negative integer, got {n!r}",
                key="logical_worker_count",
                value=n,
            )
        self._strategy = FixedWorkerCount(int(n))

    def owner_of(self, node_id: int) -> int:
        return int(node_id) % self._actual

    def is_local(self, node_id: int) -> bool:
        return self.owner_of(node_id) == self._rank

    def get_status(self) -> dict[str, Any]:
        return {
            "num_processes": self.get_logical_count(),
            "actual_num_processes": self._actual,
            "rank": self._rank,
            "logical_worker_override": self.override_active,
        }

    def check_status(self, status: Mapping[str, Any]) -> None:
        """Reject any attempt to set the worker count through status."""

        for key, value in status.items():
            if key in WORKER_COUNT_KEYS or key in ("actual_num_processes", "rank"):
                raise ConfigurationError(
                    f"{format_key_value(key, value)} is derived from the runtime distribution "
                    "and cannot be set; use the diagnostic override instead",
                    key=key,
                    value=value,
                )


__all__ = [
    "ActualWorkerCount",
    "FixedWorkerCount",
    "ProcessTopology",
    "WORKER_COUNT_KEYS",
    "WorkerCountStrategy",
]
