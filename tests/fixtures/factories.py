# tests/fixtures/factories.py
"""Factories for rows, settings and in-memory collaborators.

Engine tests use RecordingWriter instead of a real graph client; its
statements are deliberately simple so assertions do not depend on nGQL
rendering.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import Any

from graphloader.contracts import Batch, FieldType, GraphWriteError, RecordKind, SourceRow
from graphloader.core.config import EdgeSettings, SourceSettings, TagSettings


def make_row(**fields: tuple[Any, FieldType]) -> SourceRow:
    """SourceRow from ``name=(value, FieldType)`` pairs."""
    return SourceRow(
        values={name: value for name, (value, _) in fields.items()},
        types={name: field_type for name, (_, field_type) in fields.items()},
    )


def edge_rows(count: int, start: int = 0) -> list[SourceRow]:
    """Rows ``src=i, dst=i+1, degree=i/2`` for i in [start, start+count)."""
    return [
        make_row(src=(i, FieldType.LONG), dst=(i + 1, FieldType.LONG), degree=(i / 2, FieldType.DOUBLE))
        for i in range(start, start + count)
    ]


def csv_source(path: str = "unused.csv") -> SourceSettings:
    return SourceSettings(category="csv", path=path)


def make_edge(**overrides: Any) -> EdgeSettings:
    values: dict[str, Any] = {
        "name": "follow",
        "data": csv_source(),
        "source_field": "src",
        "target_field": "dst",
        "fields": ["degree"],
        "properties": ["degree"],
        "batch": 100,
    }
    values.update(overrides)
    return EdgeSettings(**values)


def make_tag(**overrides: Any) -> TagSettings:
    values: dict[str, Any] = {
        "name": "player",
        "data": csv_source(),
        "vertex_field": "id",
        "fields": ["name"],
        "properties": ["name"],
        "batch": 100,
    }
    values.update(overrides)
    return TagSettings(**values)


def describe(name: str, batch: Batch) -> str:
    first, last = batch.records[0].source, batch.records[-1].source
    return f"WRITE {batch.kind} {name} {first}..{last} ({len(batch)})"


class RecordingWriter:
    """WriteClient double that records every batch it is asked to write.

    Args:
        fail_when: Batches for which it returns True are rejected with
            GraphWriteError
    """

    def __init__(self, fail_when: Callable[[Batch], bool] | None = None) -> None:
        self._fail_when = fail_when
        self._lock = threading.Lock()
        self.written: list[Batch] = []
        self.rejected: list[Batch] = []
        self.prepared = False
        self.closed = False

    def prepare(self) -> None:
        self.prepared = True

    def to_execute_sentence(self, name: str, batch: Batch) -> str:
        return describe(name, batch)

    def _write(self, batch: Batch) -> None:
        if self._fail_when is not None and self._fail_when(batch):
            with self._lock:
                self.rejected.append(batch)
            raise GraphWriteError(describe(batch.name, batch), "rejected by test")
        with self._lock:
            self.written.append(batch)

    def write_edges(self, batch: Batch) -> None:
        assert batch.kind == RecordKind.EDGE
        self._write(batch)

    def write_vertices(self, batch: Batch) -> None:
        assert batch.kind == RecordKind.VERTEX
        self._write(batch)

    def close(self) -> None:
        self.closed = True

    @property
    def records_written(self) -> int:
        return sum(len(batch) for batch in self.written)


class MemoryErrorLog:
    """ErrorLog double keeping saved statements per entity name."""

    def __init__(self) -> None:
        self.saved: dict[str, list[str]] = {}
        self.saves = 0

    def save(self, statements: Sequence[str], name: str) -> None:
        self.saved.setdefault(name, []).extend(statements)
        self.saves += 1

    def statements(self, name: str) -> list[str]:
        return self.saved.get(name, [])


class RecordingExecutor:
    """StatementExecutor double.

    Args:
        failures: Number of leading execute() calls (after USE) that fail
    """

    def __init__(self, failures: int = 0) -> None:
        self.statements: list[str] = []
        self._failures = failures
        self.closed = False

    def execute(self, statement: str) -> None:
        self.statements.append(statement)
        if statement.startswith("USE "):
            return
        if self._failures > 0:
            self._failures -= 1
            raise GraphWriteError(statement, "E_RPC_FAILURE")

    def close(self) -> None:
        self.closed = True
