from __future__ import annotations

from .scenarios import build_delay_probe_engine, build_fanout_engine, run_ranks
from .tap_monitor import TapMonitor
from .test_models import ProbeNode, ProbeParams, SilentNode

__all__ = [
    "ProbeNode",
    "ProbeParams",
    "SilentNode",
    "TapMonitor",
    "build_delay_probe_engine",
    "build_fanout_engine",
    "run_ranks",
]
