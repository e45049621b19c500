"""Bounded buffer of failed statements and its on-disk log.

Every statement in the log can be replayed verbatim against the graph store
once the cause of the failure is fixed.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from graphloader.contracts import ErrorLog, TooManyErrorsError, WriteAbortedError
from graphloader.core.logging import get_logger

logger = get_logger(__name__)


class ErrorLogWriter:
    """Appends failed statements to ``<path>/<entity name>``, one per line."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def file_for(self, name: str) -> Path:
        return self._path / name

    def save(self, statements: Sequence[str], name: str) -> None:
        if not statements:
            return
        self._path.mkdir(parents=True, exist_ok=True)
        with self.file_for(name).open("a", encoding="utf-8") as f:
            for statement in statements:
                f.write(statement)
                f.write("\n")


class ErrorSink:
    """Per-partition failure budget and replay buffer.

    Counts every failure accepted over the partition's lifetime. Accepting
    the failure that would go past ``max_errors`` raises TooManyErrorsError
    instead, so at most ``max_errors`` statements are ever accepted.

    A strict sink (resumable sources) records the failure and then aborts
    the partition: skipping a batch would let the checkpoint move past
    records that were never written.
    """

    def __init__(self, name: str, max_errors: int, error_log: ErrorLog, *, strict: bool = False) -> None:
        if max_errors <= 0:
            raise ValueError(f"max_errors must be positive, got {max_errors}")
        self.name = name
        self.max_errors = max_errors
        self.strict = strict
        self._error_log = error_log
        self._buffer: list[str] = []
        self._accepted = 0

    @property
    def accepted(self) -> int:
        """Failures accepted so far, flushed or not."""
        return self._accepted

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def append(self, statement: str) -> None:
        """Buffer a failed statement.

        Raises:
            TooManyErrorsError: If the error budget is already used up
        """
        if self._accepted >= self.max_errors:
            raise TooManyErrorsError(self.max_errors)
        self._buffer.append(statement)
        self._accepted += 1

    def record_failure(self, statement: str, reason: str | None = None) -> None:
        """Buffer a failed statement, aborting if the sink is strict.

        Raises:
            TooManyErrorsError: If the error budget is already used up
            WriteAbortedError: If the sink is strict
        """
        self.append(statement)
        if self.strict:
            raise WriteAbortedError(self.name, reason)

    def flush(self) -> int:
        """Write buffered statements to the error log and clear the buffer.

        Returns:
            Number of statements written
        """
        if not self._buffer:
            return 0
        statements = list(self._buffer)
        self._error_log.save(statements, self.name)
        self._buffer.clear()
        logger.info("Error buffer flushed", entity=self.name, statements=len(statements), total=self._accepted)
        return len(statements)
