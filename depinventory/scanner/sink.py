"""Incremental, append-safe persistence of dependency batches."""

from __future__ import annotations

import csv
import os
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

import structlog

from depinventory.scanner.models import Dependency

log = structlog.get_logger("depinventory.sink")

CSV_HEADER = ["ProjectType", "ProjectPath", "DependencyName", "DependencyVersion", "IsDev"]


@runtime_checkable
class DependencySink(Protocol):
    """Destination for dependency batches.

    ``append`` may be called from concurrent project handlers; each batch is
    written contiguously.
    """

    def initialize(self) -> None: ...

    def append(self, dependencies: Sequence[Dependency]) -> int: ...

    def finalize(self) -> str: ...


def csv_row(dep: Dependency) -> list[str]:
    record = dep.to_record()
    return [
        record["projectType"] or "",
        record["projectPath"] or "",
        record["dependencyName"] or "",
        record["dependencyVersion"] or "",
        "true" if record["isDev"] else "false",
    ]


class CsvSink:
    """Write dependencies to a CSV file, flushing every batch to disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.rows_written = 0
        self._lock = threading.Lock()
        self._fh: IO[str] | None = None
        self._writer = None

    def initialize(self) -> None:
        """Create the parent directory, truncate the file and write the header."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._fh = open(self.path, "w", encoding="utf-8", newline="")
            self._writer = csv.writer(self._fh)
            self._writer.writerow(CSV_HEADER)
            self._sync()
        log.debug("sink.initialized", path=str(self.path))

    def append(self, dependencies: Sequence[Dependency]) -> int:
        if not dependencies:
            return 0
        with self._lock:
            if self._writer is None:
                raise RuntimeError("CsvSink.append() called before initialize()")
            self._writer.writerows(csv_row(dep) for dep in dependencies)
            self._sync()
            self.rows_written += len(dependencies)
        return len(dependencies)

    def finalize(self) -> str:
        with self._lock:
            if self._fh is not None:
                self._sync()
                self._fh.close()
                self._fh = None
                self._writer = None
        log.debug("sink.finalized", path=str(self.path), rows=self.rows_written)
        return str(self.path)

    def _sync(self) -> None:
        assert self._fh is not None
        self._fh.flush()
        os.fsync(self._fh.fileno())

    def __enter__(self) -> CsvSink:
        self.initialize()
        return self

    def __exit__(self, *exc: object) -> None:
        self.finalize()
