"""Node model implementations."""

from snnkernel.biophysics.models.base import NodeModelBase
from snnkernel.biophysics.models.sirs import SIRSNeuron, SIRSParams, SIRSState
from snnkernel.biophysics.models.sources import (
    DCSource,
    DCSourceParams,
    SpikeSource,
    SpikeSourceParams,
)

__all__ = [
    "DCSource",
    "DCSourceParams",
    "NodeModelBase",
    "SIRSNeuron",
    "SIRSParams",
    "SIRSState",
    "SpikeSource",
    "SpikeSourceParams",
]
