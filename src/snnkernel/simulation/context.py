"""Explicit kernel context shared by clock, router and delivery manager."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.errors import ConfigurationError, format_key_value
from snnkernel.simulation.clock import SimulationClock
from snnkernel.simulation.collective import ICollective, LocalCollective
from snnkernel.simulation.topology import ProcessTopology

logger = logging.getLogger(__name__)

WRITABLE_KEYS = frozenset({"resolution", "rng_seed", "local_num_threads"})
READ_ONLY_KEYS = frozenset(
    {
        "actual_num_processes",
        "biological_time",
        "logical_worker_override",
        "num_processes",
        "rank",
        "step",
        "total_num_virtual_procs",
    }
)
# Keys that shape buffers or node partitioning; frozen once nodes exist.
_LAYOUT_KEYS = frozenset({"resolution", "local_num_threads"})


class KernelContext:
    """Run-wide configuration, worker topology and clock.

    Lifecycle: construct, :meth:`initialize` before building a network,
    :meth:`teardown` after the last run. The context is also a context
    manager doing both.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        collective: ICollective | None = None,
    ) -> None:
        config = config or SimulationConfig()
        _validate_config(config)
        self._config = config
        self._collective: ICollective = collective or LocalCollective()
        self._topology: ProcessTopology | None = None
        self._clock: SimulationClock | None = None
        self._layout_locked = False

    # ---- lifecycle -----------------------------------------------------------
    def initialize(self) -> KernelContext:
        if self._topology is not None:
            return self
        self._topology = ProcessTopology(
            actual_worker_count=self._collective.world_size,
            rank=self._collective.rank,
        )
        self._clock = SimulationClock(self._config.resolution)
        logger.info(
            "kernel initialized: rank %d of %d, %d local thread(s), resolution %g ms",
            self._topology.rank,
            self._topology.actual_worker_count,
            self._config.local_num_threads,
            self._config.resolution,
        )
        return self

    def teardown(self) -> None:
        if self._topology is None:
            return
        self._collective.close()
        self._topology = None
        self._clock = None
        self._layout_locked = False
        logger.info("kernel torn down")

    def __enter__(self) -> KernelContext:
        return self.initialize()

    def __exit__(self, *exc: object) -> None:
        self.teardown()

    @property
    def initialized(self) -> bool:
        return self._topology is not None

    # ---- accessors -----------------------------------------------------------
    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def collective(self) -> ICollective:
        return self._collective

    @property
    def topology(self) -> ProcessTopology:
        if self._topology is None:
            raise RuntimeError("KernelContext must be initialized before use.")
        return self._topology

    @property
    def clock(self) -> SimulationClock:
        if self._clock is None:
            raise RuntimeError("KernelContext must be initialized before use.")
        return self._clock

    @property
    def seed(self) -> int:
        return int(self._config.seed)

    @property
    def local_num_threads(self) -> int:
        return int(self._config.local_num_threads)

    def lock_layout(self) -> None:
        """Freeze resolution and thread count once nodes have been created."""

        self._layout_locked = True

    # ---- worker count --------------------------------------------------------
    def set_logical_worker_count(self, n: int) -> None:
        """Diagnostic override of the reported worker count."""

        self.topology.set_logical_count_override(n)
        logger.info("logical worker count overridden to %d", n)

    def get_logical_worker_count(self) -> int:
        return self.topology.get_logical_count()

    # ---- status --------------------------------------------------------------
    def get_status(self) -> dict[str, Any]:
        topology = self.topology
        clock = self.clock
        status = topology.get_status()
        status.update(
            {
                "resolution": clock.resolution,
                "rng_seed": self._config.seed,
                "local_num_threads": self._config.local_num_threads,
                "total_num_virtual_procs": topology.get_logical_count()
                * self._config.local_num_threads,
                "step": clock.step,
                "biological_time": clock.now.ms,
            }
        )
        return status

    def set_status(self, status: Mapping[str, Any]) -> None:
        """Validate every key first; apply only if all of them are accepted."""

        self.topology.check_status(status)
        staged: dict[str, Any] = {}
        for key, value in status.items():
            if key in READ_ONLY_KEYS:
                raise ConfigurationError(
                    f"{format_key_value(key, value)} is read-only", key=key, value=value
                )
            if key not in WRITABLE_KEYS:
                raise ConfigurationError(
                    f"unknown kernel status key {format_key_value(key, value)}",
                    key=key,
                    value=value,
                )
            if key in _LAYOUT_KEYS and (self._layout_locked or self.clock.step != 0):
                raise ConfigurationError(
                    f"{format_key_value(key, value)} cannot change after nodes were created",
                    key=key,
                    value=value,
                )
            staged[key] = value

        candidate = self._config
        if "resolution" in staged:
            candidate = replace(candidate, resolution=staged["resolution"])
        if "rng_seed" in staged:
            candidate = replace(candidate, seed=staged["rng_seed"])
        if "local_num_threads" in staged:
            candidate = replace(candidate, local_num_threads=staged["local_num_threads"])
        _validate_config(candidate)

        self._config = candidate
        if "resolution" in staged:
            self.clock.resolution = float(candidate.resolution)


def _validate_config(config: SimulationConfig) -> None:
    resolution = config.resolution
    if isinstance(resolution, bool) or not isinstance(resolution, int | float) or resolution <= 0:
        raise ConfigurationError(
            f"resolution must be > 0 ms, got {resolution!r}", key="resolution", value=resolution
        )
    threads = config.local_num_threads
    if isinstance(threads, bool) or not isinstance(threads, int) or threads < 1:
        raise ConfigurationError(
            f"local_num_threads must be an integer >= 1, got {threads!r}",
            key="local_num_threads",
            value=threads,
        )
    seed = config.seed
    if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
        raise ConfigurationError(
            f"rng_seed must be a non-negative integer, got {seed!r}", key="rng_seed", value=seed
        )
    if config.max_delay_steps is not None and config.max_delay_steps < 1:
        raise ConfigurationError(
            f"max_delay_steps must be >= 1, got {config.max_delay_steps!r}",
            key="max_delay_steps",
            value=config.max_delay_steps,
        )


__all__ = ["KernelContext", "READ_ONLY_KEYS", "WRITABLE_KEYS"]
