"""CSV sink for recorder rows."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any


class CsvSink:
    """Write rows under a fixed header, flushing every ``flush_every`` rows."""

    def __init__(
        self,
        path: str | Path,
        *,
        fieldnames: Sequence[str],
        flush_every: int = 1,
        append: bool = False,
    ) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._flush_every = max(1, flush_every)
        write_header = not (append and self._path.exists() and self._path.stat().st_size > 0)
        self._file = self._path.open("a" if append else "w", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._file, fieldnames=list(fieldnames))
        if write_header:
            self._writer.writeheader()
        self._rows = 0

    @property
    def path(self) -> Path:
        return self._path

    def write_row(self, row: Mapping[str, Any]) -> None:
        self._writer.writerow(row)
        self._rows += 1
        if self._rows % self._flush_every == 0:
            self._file.flush()

    def write_rows(self, rows: Iterable[Mapping[str, Any]]) -> None:
        for row in rows:
            self.write_row(row)

    def flush(self) -> None:
        if not self._file.closed:
            self._file.flush()

    def close(self) -> None:
        if self._file.closed:
            return
        self._file.flush()
        self._file.close()


__all__ = ["CsvSink"]
