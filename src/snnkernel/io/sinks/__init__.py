"""Output sinks for I/O."""

from snnkernel.io.sinks.csv_sink import CsvSink

__all__ = ["CsvSink"]
