"""Simulation engine contracts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from snnkernel.contracts.monitors import IMonitor


@dataclass(frozen=True, slots=True)
class SimulationConfig:
    resolution: float = 0.1  # ms per step
    seed: int = 12345
    local_num_threads: int = 1
    max_delay_steps: int | None = None
    meta: Mapping[str, Any] | None = None


@runtime_checkable
class ISimulationEngine(Protocol):
    """High-level engine interface (build/reset/step/run)."""

    name: str

    def reset(self) -> None:
        ...

    def attach_monitors(self, monitors: Sequence[IMonitor]) -> None:
        ...

    def step(self) -> Mapping[str, Any]:
        """Advance the engine by one step and return optional metrics."""
        ...

    def run(self, steps: int) -> int:
        """Run up to ``steps`` steps and return the number actually executed."""
        ...
