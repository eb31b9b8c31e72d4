"""Monitor implementations (spike recording, read-out sampling)."""

from snnkernel.monitors.raster.spike_recorder import RecordedSpike, SpikeRecorder
from snnkernel.monitors.readout.multimeter import Multimeter

__all__ = ["Multimeter", "RecordedSpike", "SpikeRecorder"]
