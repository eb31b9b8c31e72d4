"""Discrete simulation clock and per-step phase sequencing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum

from snnkernel.errors import ConfigurationError, FatalRunError

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    IDLE = "idle"
    UPDATE = "update"
    DELIVER = "deliver"


@dataclass(frozen=True, slots=True)
class SimulationTime:
    """Integer step count at a fixed resolution (ms per step)."""

    step: int
    resolution: float

    @property
    def ms(self) -> float:
        return self.step * self.resolution

    def __add__(self, steps: int) -> SimulationTime:
        return SimulationTime(step=self.step + int(steps), resolution=self.resolution)


def steps_from_ms(ms: float, resolution: float) -> int:
    """Convert a duration to whole steps; durations off the grid are rejected."""

    steps = ms / resolution
    rounded = round(steps)
    if not math.isclose(steps, rounded, rel_tol=0.0, abs_tol=1e-9):
        raise ConfigurationError(
            f"{ms} ms is not a multiple of the resolution {resolution} ms",
            key="delay",
            value=ms,
        )
    return int(rounded)


class SimulationClock:
    """Step counter driving the update → deliver → advance sequence.

    A step is atomic from the outside: abort requests are only observed at
    step boundaries, and :meth:`advance` refuses to move on while the delivery
    phase still has deliveries it has not deposited.
    """

    def __init__(self, resolution: float, *, start_step: int = 0) -> None:
        _check_resolution(resolution)
        self._resolution = float(resolution)
        self._step = int(start_step)
        self._phase = Phase.IDLE
        self._abort_requested = False

    @property
    def step(self) -> int:
        return self._step

    @property
    def resolution(self) -> float:
        return self._resolution

    @resolution.setter
    def resolution(self, value: float) -> None:
        if self._step != 0:
            raise ConfigurationError(
                "resolution can only be changed before the first step",
                key="resolution",
                value=value,
            )
        _check_resolution(value)
        self._resolution = float(value)

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def now(self) -> SimulationTime:
        return SimulationTime(step=self._step, resolution=self._resolution)

    @property
    def abort_requested(self) -> bool:
        return self._abort_requested

    def begin_update(self) -> None:
        self._expect(Phase.IDLE, "begin the update phase")
        self._phase = Phase.UPDATE

    def begin_delivery(self) -> None:
        self._expect(Phase.UPDATE, "begin the delivery phase")
        self._phase = Phase.DELIVER

    def advance(self, *, unresolved: int = 0) -> int:
        self._expect(Phase.DELIVER, "advance")
        if unresolved:
            logger.error("advance at step %d with %d unresolved deliveries", self._step, unresolved)
            raise FatalRunError(f"{unresolved} deliveries were not deposited", step=self._step)
        self._step += 1
        self._phase = Phase.IDLE
        return self._step

    def request_abort(self) -> None:
        self._abort_requested = True

    def clear_abort(self) -> None:
        self._abort_requested = False

    def reset(self, *, start_step: int = 0) -> None:
        self._step = int(start_step)
        self._phase = Phase.IDLE
        self._abort_requested = False

    def _expect(self, phase: Phase, action: str) -> None:
        if self._phase is not phase:
            raise FatalRunError(f"cannot {action} during the {self._phase} phase", step=self._step)


def _check_resolution(value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float) or not value > 0:
        raise ConfigurationError(
            f"resolution must be a positive number of ms, got {value!r}",
            key="resolution",
            value=value,
        )


__all__ = ["Phase", "SimulationClock", "SimulationTime", "steps_from_ms"]
