"""AsyncWriteCoordinator: bounded window of concurrent writes.

Admitted batches are written on a worker pool. Once the window is full the
coordinator waits for every outstanding write, then reconciles the window
in one step:
- one success or failure increment per attempt on the shared counters
- failed statements handed to the error sink
- checkpoint advanced by the records written in the window

The checkpoint is only written after the error sink has accepted every
failure, so a strict entity never checkpoints past a failed batch.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from graphloader.contracts import AttemptStatus, Batch, GraphWriteError, RecordKind, WriteAttempt, WriteClient
from graphloader.core.logging import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from graphloader.contracts import CheckpointRecord
    from graphloader.core.counters import LoadCounters
    from graphloader.engine.error_sink import ErrorSink

logger = get_logger(__name__)


class CheckpointBackend(Protocol):
    def read(self, stream_name: str, partition_id: int) -> int: ...

    def write(self, stream_name: str, partition_id: int, offset: int) -> CheckpointRecord: ...


@dataclass(frozen=True)
class WindowOutcome:
    """Result of reconciling one window."""

    attempts: int
    succeeded: int
    failed: int
    records: int
    checkpoint_offset: int | None


class AsyncWriteCoordinator:
    """Dispatches admitted batches and reconciles them a window at a time.

    Usage:
        with AsyncWriteCoordinator(writer, counters, sink, store, "follow", 0) as coordinator:
            for batch in batches:
                coordinator.submit(batch)
            coordinator.flush()
    """

    def __init__(
        self,
        writer: WriteClient,
        counters: LoadCounters,
        error_sink: ErrorSink,
        checkpoint: CheckpointBackend | None,
        stream_name: str,
        partition_id: int,
        *,
        max_in_flight: int = 100,
        write_threads: int = 4,
    ) -> None:
        """Initialize coordinator.

        Args:
            writer: Partition-owned write client, shared by the worker threads
            counters: Process-wide success/failure counters
            error_sink: Partition error budget and replay buffer
            checkpoint: Offset store, None when the entity is not checkpointed
            stream_name: Checkpoint stream (entity name)
            partition_id: Checkpoint partition
            max_in_flight: Window size W
            write_threads: Worker threads executing writes
        """
        if max_in_flight <= 0:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")
        if write_threads <= 0:
            raise ValueError(f"write_threads must be positive, got {write_threads}")

        self._writer = writer
        self._counters = counters
        self._error_sink = error_sink
        self._checkpoint = checkpoint
        self._stream_name = stream_name
        self._partition_id = partition_id
        self._max_in_flight = max_in_flight
        self._pool = ThreadPoolExecutor(
            max_workers=write_threads,
            thread_name_prefix=f"{stream_name}-{partition_id}-write",
        )
        self._window: list[tuple[WriteAttempt, Future[None]]] = []

        self._attempts_submitted = 0
        self._windows_reconciled = 0
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Attempts submitted but not yet reconciled."""
        return len(self._window)

    @property
    def max_in_flight(self) -> int:
        return self._max_in_flight

    def submit(self, batch: Batch) -> WriteAttempt:
        """Dispatch an admitted batch.

        Blocks to reconcile the window when it reaches ``max_in_flight``.

        Raises:
            RuntimeError: If the coordinator is closed
            TooManyErrorsError: If reconciliation exhausts the error budget
            WriteAbortedError: If reconciliation finds a failure on a strict entity
        """
        if self._closed:
            raise RuntimeError("Coordinator is closed")

        attempt = WriteAttempt(batch=batch, statement=self._writer.to_execute_sentence(batch.name, batch))
        attempt.transition(AttemptStatus.ADMITTED)
        future = self._pool.submit(self._write, batch)
        self._window.append((attempt, future))
        self._attempts_submitted += 1

        if len(self._window) >= self._max_in_flight:
            self._reconcile()
        return attempt

    def flush(self) -> WindowOutcome | None:
        """Reconcile a partial window, if any attempts are outstanding."""
        if not self._window:
            return None
        return self._reconcile()

    def _write(self, batch: Batch) -> None:
        if batch.kind == RecordKind.EDGE:
            self._writer.write_edges(batch)
        else:
            self._writer.write_vertices(batch)

    def _reconcile(self) -> WindowOutcome:
        window, self._window = self._window, []
        wait([future for _, future in window])

        failed: list[WriteAttempt] = []
        for attempt, future in window:
            error = future.exception()
            if error is None:
                attempt.transition(AttemptStatus.SUCCEEDED)
            elif isinstance(error, GraphWriteError):
                attempt.transition(AttemptStatus.FAILED, str(error))
                failed.append(attempt)
            else:
                # Not a store rejection: a bug, let it surface
                raise error

        succeeded = len(window) - len(failed)
        records = sum(attempt.record_count for attempt, _ in window)
        self._counters.add_success(succeeded)
        self._counters.add_failure(len(failed))
        self._windows_reconciled += 1

        for attempt in failed:
            self._error_sink.record_failure(attempt.statement, attempt.error)

        offset: int | None = None
        if self._checkpoint is not None:
            prior = self._checkpoint.read(self._stream_name, self._partition_id)
            offset = self._checkpoint.write(self._stream_name, self._partition_id, prior + records).offset

        logger.debug(
            "Write window reconciled",
            stream=self._stream_name,
            partition=self._partition_id,
            attempts=len(window),
            succeeded=succeeded,
            failed=len(failed),
            offset=offset,
        )
        return WindowOutcome(
            attempts=len(window),
            succeeded=succeeded,
            failed=len(failed),
            records=records,
            checkpoint_offset=offset,
        )

    def get_stats(self) -> dict[str, int]:
        return {
            "attempts_submitted": self._attempts_submitted,
            "windows_reconciled": self._windows_reconciled,
            "in_flight": len(self._window),
        }

    def close(self) -> None:
        """Stop the worker pool, waiting for running writes to finish."""
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)

    def __enter__(self) -> AsyncWriteCoordinator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
