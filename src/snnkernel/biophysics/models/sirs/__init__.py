from snnkernel.biophysics.models.sirs.gain import GainKind, linear_gain, sigmoid_gain
from snnkernel.biophysics.models.sirs.model import (
    SIRSNeuron,
    SIRSNodeState,
    SIRSParams,
    SIRSState,
)

__all__ = [
    "GainKind",
    "SIRSNeuron",
    "SIRSNodeState",
    "SIRSParams",
    "SIRSState",
    "linear_gain",
    "sigmoid_gain",
]
