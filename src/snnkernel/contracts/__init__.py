"""Contracts (interfaces/protocols) for snnkernel.

This package is *not* the public API surface. Only symbols re-exported from
:mod:`snnkernel.api` are considered stable.
"""

from snnkernel.contracts.events import (
    DISCRETE_KINDS,
    Delivery,
    Event,
    EventKind,
    SourceBatch,
)
from snnkernel.contracts.monitors import (
    IMonitor,
    IReadoutMonitor,
    StepEvent,
)
from snnkernel.contracts.nodes import (
    CalibrationContext,
    INodeModel,
    Recordable,
    StepContext,
)
from snnkernel.contracts.simulation import ISimulationEngine, SimulationConfig

__all__ = [
    # events
    "DISCRETE_KINDS",
    "Delivery",
    "Event",
    "EventKind",
    "SourceBatch",
    # nodes
    "CalibrationContext",
    "INodeModel",
    "Recordable",
    "StepContext",
    # simulation
    "ISimulationEngine",
    "SimulationConfig",
    # monitors
    "IMonitor",
    "IReadoutMonitor",
    "StepEvent",
]
