"""Interfaces the pipeline needs from its collaborators.

The graph store client, statement executor and error log are consumed
through these protocols so the engine can be exercised with in-memory
doubles.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from graphloader.contracts.records import Batch


@runtime_checkable
class StatementExecutor(Protocol):
    """Runs statements against the graph store.

    Implementations must be safe to call from several worker threads.
    """

    def execute(self, statement: str) -> None:
        """Run one statement.

        Raises:
            GraphWriteError: If the store rejects the statement.
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class WriteClient(Protocol):
    """Writer owned by exactly one partition."""

    def prepare(self) -> None:
        """Acquire connections and select the target graph space."""
        ...

    def write_edges(self, batch: Batch) -> None:
        """Write an edge batch. Raises GraphWriteError on rejection."""
        ...

    def write_vertices(self, batch: Batch) -> None:
        """Write a vertex batch. Raises GraphWriteError on rejection."""
        ...

    def to_execute_sentence(self, name: str, batch: Batch) -> str:
        """Replayable statement for a batch."""
        ...

    def close(self) -> None: ...


class ErrorLog(Protocol):
    """Append-only destination for failed statements."""

    def save(self, statements: Sequence[str], name: str) -> None:
        """Append statements, in order, under the given entity name."""
        ...
