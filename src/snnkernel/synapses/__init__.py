"""Synaptic input buffering."""

from snnkernel.synapses.buffers import RingBuffer

__all__ = ["RingBuffer"]
