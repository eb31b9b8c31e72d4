"""Synapse buffer utilities."""

from .ring_buffer import ChannelKey, RingBuffer

__all__ = ["ChannelKey", "RingBuffer"]
