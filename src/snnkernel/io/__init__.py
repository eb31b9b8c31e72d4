"""I/O utilities for recorder output."""

from snnkernel.io.sinks import CsvSink

__all__ = ["CsvSink"]
