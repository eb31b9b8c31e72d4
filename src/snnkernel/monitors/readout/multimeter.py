"""Multimeter: samples registered read-outs of bound nodes."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from snnkernel.contracts.monitors import IMonitor, IReadoutMonitor, StepEvent
from snnkernel.errors import ConnectionValidationError
from snnkernel.io.sinks import CsvSink


class Multimeter(IMonitor, IReadoutMonitor):
    """Sample named read-outs every ``interval`` steps.

    Columns: step, t, node, <one column per recorded name>
    """

    name = "multimeter"

    def __init__(
        self,
        record_from: Iterable[str],
        *,
        interval: int = 1,
        path: str | Path | None = None,
        flush_every: int = 64,
    ) -> None:
        names = tuple(record_from)
        if not names:
            raise ValueError("record_from must name at least one read-out")
        if interval < 1:
            raise ValueError("interval must be >= 1")
        self._names = names
        self._interval = int(interval)
        self._readouts: dict[int, Mapping[str, Callable[[], float]]] = {}
        self._rows: list[dict[str, Any]] = []
        self._sink = (
            CsvSink(path, fieldnames=["step", "t", "node", *names], flush_every=flush_every)
            if path is not None
            else None
        )

    def record_from(self) -> tuple[str, ...]:
        return self._names

    def bind(self, node_id: int, readout: Mapping[str, Callable[[], float]]) -> None:
        missing = [name for name in self._names if name not in readout]
        if missing:
            raise ConnectionValidationError(
                f"node {node_id} does not record {missing}; available: {sorted(readout)}"
            )
        self._readouts[int(node_id)] = {name: readout[name] for name in self._names}

    @property
    def samples(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._rows)

    def series(self, node_id: int, name: str) -> list[tuple[int, float]]:
        return [(row["step"], row[name]) for row in self._rows if row["node"] == node_id]

    def on_step(self, event: StepEvent) -> None:
        if event.step % self._interval != 0:
            return
        for node_id in sorted(self._readouts):
            readout = self._readouts[node_id]
            row: dict[str, Any] = {"step": event.step, "t": event.t, "node": node_id}
            for name, fn in readout.items():
                row[name] = fn()
            self._rows.append(row)
            if self._sink is not None:
                self._sink.write_row(row)

    def flush(self) -> None:
        if self._sink is not None:
            self._sink.flush()

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()


__all__ = ["Multimeter"]
