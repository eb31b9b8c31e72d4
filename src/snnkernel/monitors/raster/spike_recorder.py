"""Spike recorder: keeps every emitted event of the selected sources."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from snnkernel.contracts.events import EventKind
from snnkernel.contracts.monitors import IMonitor, StepEvent
from snnkernel.io.sinks import CsvSink


@dataclass(frozen=True, slots=True)
class RecordedSpike:
    step: int
    t: float
    source: int
    multiplicity: int


class SpikeRecorder(IMonitor):
    """Record emitted spike events in memory and optionally to CSV.

    Columns: step, t, source, multiplicity
    """

    name = "spike_recorder"

    def __init__(
        self,
        *,
        sources: Iterable[int] | None = None,
        path: str | Path | None = None,
        flush_every: int = 64,
    ) -> None:
        self._sources = frozenset(int(s) for s in sources) if sources is not None else None
        self._records: list[RecordedSpike] = []
        self._sink = (
            CsvSink(path, fieldnames=["step", "t", "source", "multiplicity"], flush_every=flush_every)
            if path is not None
            else None
        )

    @property
    def records(self) -> tuple[RecordedSpike, ...]:
        return tuple(self._records)

    def for_source(self, source: int) -> list[RecordedSpike]:
        return [rec for rec in self._records if rec.source == source]

    def on_step(self, event: StepEvent) -> None:
        for emitted in event.events:
            if emitted.channel != EventKind.SPIKE:
                continue
            if self._sources is not None and emitted.source_id not in self._sources:
                continue
            rec = RecordedSpike(
                step=emitted.emission_step,
                t=emitted.emission_step * event.dt,
                source=emitted.source_id,
                multiplicity=emitted.multiplicity,
            )
            self._records.append(rec)
            if self._sink is not None:
                self._sink.write_row(
                    {
                        "step": rec.step,
                        "t": rec.t,
                        "source": rec.source,
                        "multiplicity": rec.multiplicity,
                    }
                )

    def flush(self) -> None:
        if self._sink is not None:
            self._sink.flush()

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()


__all__ = ["RecordedSpike", "SpikeRecorder"]
