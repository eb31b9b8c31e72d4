"""Node model registry."""

from __future__ import annotations

from typing import Any

from snnkernel.biophysics.models.sirs import SIRSNeuron
from snnkernel.biophysics.models.sources import DCSource, SpikeSource
from snnkernel.contracts.factories import Registry
from snnkernel.contracts.nodes import INodeModel

NODE_MODELS = Registry[INodeModel](label="node_models")
NODE_MODELS.register("sirs_neuron", SIRSNeuron)
NODE_MODELS.register("dc_source", DCSource)
NODE_MODELS.register("spike_source", SpikeSource)
NODE_MODELS.register_alias("sirs", "sirs_neuron")


def create_node_model(key: str, **kwargs: Any) -> INodeModel:
    return NODE_MODELS.create(key, **kwargs)


__all__ = ["NODE_MODELS", "create_node_model"]
