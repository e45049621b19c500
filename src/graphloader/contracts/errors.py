"""Exceptions raised across the loading pipeline.

Fatal errors abort the partition that raised them. Other partitions keep
running; the runner collects the failure in the entity result.
"""

from __future__ import annotations


class FatalPartitionError(Exception):
    """Base class for conditions that abort a partition."""


class UnsupportedFieldTypeError(FatalPartitionError):
    """A key or rank field has a declared type the builder cannot use.

    Indicates misconfiguration, never retried.
    """

    def __init__(self, field: str, field_type: str, usage: str) -> None:
        super().__init__(f"Not support {field_type} type use as {usage} field: {field!r}")
        self.field = field
        self.field_type = field_type
        self.usage = usage


class InvalidFieldValueError(FatalPartitionError, ValueError):
    """A key, rank or coordinate field holds a value no record can be built from.

    Raised for nulls (an empty CSV cell) and out-of-range ranks. The row is
    bad data for every attempt, so it is not retried.
    """

    def __init__(self, field: str, usage: str, reason: str) -> None:
        super().__init__(f"{reason} in {usage} field: {field!r}")
        self.field = field
        self.usage = usage


class TooManyErrorsError(FatalPartitionError):
    """The partition's error budget is exhausted."""

    def __init__(self, max_errors: int) -> None:
        super().__init__(f"Too many errors: {max_errors}")
        self.max_errors = max_errors


class WriteAbortedError(FatalPartitionError):
    """A write failed for an entity whose source cannot tolerate loss.

    Raised for resumable categories, where continuing after a failure would
    move the checkpoint past records that were never written.
    """

    def __init__(self, name: str, reason: str | None = None) -> None:
        message = f"Write {name} errors"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.name = name


class GraphWriteError(Exception):
    """The graph store rejected a statement.

    Non-fatal on its own: the coordinator counts it and keeps the
    statement for replay.

    Attributes:
        statement: The statement that failed, ready to be replayed
    """

    def __init__(self, statement: str, message: str) -> None:
        super().__init__(message)
        self.statement = statement


class CheckpointRegressionError(Exception):
    """A checkpoint write would move a partition's offset backwards."""

    def __init__(self, stream_name: str, partition_id: int, current: int, requested: int) -> None:
        super().__init__(
            f"Checkpoint for {stream_name}.{partition_id} cannot move backwards (current: {current}, requested: {requested})"
        )
        self.stream_name = stream_name
        self.partition_id = partition_id
        self.current = current
        self.requested = requested
