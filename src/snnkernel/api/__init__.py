"""Public façade (stable API surface).

Only symbols re-exported from here are considered public and semver-stable.
Internal modules may change without notice.
"""

from snnkernel.api.version import __version__
from snnkernel.biophysics.models import (
    DCSource,
    DCSourceParams,
    NodeModelBase,
    SIRSNeuron,
    SIRSParams,
    SIRSState,
    SpikeSource,
    SpikeSourceParams,
)
from snnkernel.biophysics.models.registry import NODE_MODELS, create_node_model
from snnkernel.connectivity import (
    Connection,
    ConnectionRouter,
    connect_all_to_all,
    connect_fixed_indegree,
    connect_one_to_one,
)
from snnkernel.contracts.events import Delivery, Event, EventKind
from snnkernel.contracts.monitors import IMonitor, IReadoutMonitor, StepEvent
from snnkernel.contracts.nodes import CalibrationContext, INodeModel, StepContext
from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.errors import (
    ConfigurationError,
    ConnectionValidationError,
    FatalRunError,
    KernelError,
)
from snnkernel.monitors import Multimeter, RecordedSpike, SpikeRecorder
from snnkernel.simulation.collective import (
    LocalCollective,
    ThreadCollective,
    TorchDistributedCollective,
)
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.engine import NetworkEngine
from snnkernel.simulation.topology import ActualWorkerCount, FixedWorkerCount, ProcessTopology

__all__ = [
    "__version__",
    # events
    "Delivery",
    "Event",
    "EventKind",
    # nodes
    "CalibrationContext",
    "INodeModel",
    "NodeModelBase",
    "StepContext",
    "SIRSNeuron",
    "SIRSParams",
    "SIRSState",
    "DCSource",
    "DCSourceParams",
    "SpikeSource",
    "SpikeSourceParams",
    "NODE_MODELS",
    "create_node_model",
    # connectivity
    "Connection",
    "ConnectionRouter",
    "connect_all_to_all",
    "connect_fixed_indegree",
    "connect_one_to_one",
    # kernel
    "SimulationConfig",
    "KernelContext",
    "ProcessTopology",
    "ActualWorkerCount",
    "FixedWorkerCount",
    "LocalCollective",
    "ThreadCollective",
    "TorchDistributedCollective",
    "NetworkEngine",
    # monitors
    "StepEvent",
    "IMonitor",
    "IReadoutMonitor",
    "Multimeter",
    "RecordedSpike",
    "SpikeRecorder",
    # errors
    "KernelError",
    "ConfigurationError",
    "ConnectionValidationError",
    "FatalRunError",
]
