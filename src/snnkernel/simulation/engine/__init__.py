"""Simulation engines."""

from snnkernel.simulation.engine.network_engine import NetworkEngine

__all__ = ["NetworkEngine"]
