"""Partition orchestration: the per-partition ingestion state machine.

A partition moves INIT -> STREAMING -> DRAINING -> CLOSED, or to ABORTED
on any error. Each partition owns its writer, rate limiter, write window
and error sink; only the load counters are shared.

LoadRunner fans an entity's partitions out over a thread pool. A partition
that aborts does not stop its siblings.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import islice
from typing import TYPE_CHECKING

from structlog.contextvars import bound_contextvars

from graphloader.contracts import (
    AttemptStatus,
    Batch,
    ErrorLog,
    FatalPartitionError,
    GraphRecord,
    PartitionState,
    RecordKind,
    SourceRow,
    WriteAttempt,
    WriteClient,
)
from graphloader.core.checkpoint import NullCheckpointStore
from graphloader.core.config import (
    EdgeSettings,
    ErrorSettings,
    ExecutionSettings,
    GraphLoaderSettings,
    RateLimitSettings,
    TagSettings,
)
from graphloader.core.counters import LoadCounters
from graphloader.core.logging import get_logger
from graphloader.core.rate_limit import RateLimiter
from graphloader.engine.batcher import Batcher
from graphloader.engine.builder import EdgeRecordBuilder, VertexRecordBuilder
from graphloader.engine.coordinator import AsyncWriteCoordinator
from graphloader.engine.error_sink import ErrorLogWriter, ErrorSink

if TYPE_CHECKING:
    from graphloader.core.checkpoint import CheckpointStore

logger = get_logger(__name__)

EntitySettings = EdgeSettings | TagSettings


@dataclass(frozen=True)
class PartitionResult:
    """Outcome of a partition that ran to completion."""

    stream_name: str
    partition_id: int
    state: PartitionState
    attempts: int
    throttled: int
    windows_reconciled: int
    resumed_offset: int
    records: int


@dataclass
class EntityLoadResult:
    """Aggregate of every partition of one entity."""

    name: str
    partitions: list[PartitionResult] = field(default_factory=list)
    failures: dict[int, Exception] = field(default_factory=dict)
    checkpoint_total: int | None = None

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def records(self) -> int:
        return sum(result.records for result in self.partitions)


def _batcher_for(entity: EntitySettings, property_names: tuple[str, ...]) -> Batcher:
    if isinstance(entity, EdgeSettings):
        return Batcher(
            entity.name,
            RecordKind.EDGE,
            property_names,
            entity.batch,
            source_policy=None if entity.is_geo else entity.source_policy,
            target_policy=entity.target_policy,
            geo_source=entity.is_geo,
        )
    return Batcher(entity.name, RecordKind.VERTEX, property_names, entity.batch, source_policy=entity.vertex_policy)


class PartitionOrchestrator:
    """Runs one partition of one entity from first row to close.

    Example:
        orchestrator = PartitionOrchestrator(
            edge_settings,
            partition_id=0,
            writer=writer,
            counters=counters,
            error_log=ErrorLogWriter("./errors"),
        )
        result = orchestrator.run(rows)
    """

    def __init__(
        self,
        entity: EntitySettings,
        partition_id: int,
        *,
        writer: WriteClient,
        counters: LoadCounters,
        error_log: ErrorLog,
        rate: RateLimitSettings | None = None,
        errors: ErrorSettings | None = None,
        execution: ExecutionSettings | None = None,
        checkpoint_store: CheckpointStore | None = None,
        strict: bool = False,
    ) -> None:
        """Initialize orchestrator.

        Args:
            entity: Edge or tag settings
            partition_id: Index of this partition within the entity
            writer: Write client owned by this partition; closed by run()
            counters: Shared success/failure counters
            error_log: Destination of flushed failed statements
            rate: Admission rate; defaults apply when omitted
            errors: Error budget; defaults apply when omitted
            execution: Window size and worker threads; defaults apply when omitted
            checkpoint_store: Offset store. When given, the partition resumes
                from the stored offset and checkpoints each window.
            strict: Abort on the first write failure
        """
        self._entity = entity
        self._partition_id = partition_id
        self._writer = writer
        self._counters = counters
        self._error_log = error_log
        self._rate = rate or RateLimitSettings()
        self._errors = errors or ErrorSettings()
        self._execution = execution or ExecutionSettings()
        self._checkpoint_store = checkpoint_store
        self._strict = strict
        self._state = PartitionState.INIT

        self._builder: EdgeRecordBuilder | VertexRecordBuilder
        if isinstance(entity, EdgeSettings):
            self._builder = EdgeRecordBuilder(entity)
        else:
            self._builder = VertexRecordBuilder(entity)
        self._batcher = _batcher_for(entity, self._builder.property_names)

    @property
    def state(self) -> PartitionState:
        return self._state

    @property
    def stream_name(self) -> str:
        return self._entity.name

    def _records(self, rows: Iterable[SourceRow], skip: int) -> Iterator[GraphRecord]:
        for row in islice(rows, skip, None):
            yield self._builder.build(row)

    def _reject(self, batch: Batch, error_sink: ErrorSink) -> None:
        """Account for a batch the rate limiter did not admit."""
        attempt = WriteAttempt(batch=batch, statement=self._writer.to_execute_sentence(batch.name, batch))
        attempt.transition(AttemptStatus.THROTTLED)
        self._counters.add_failure()
        logger.warning(
            "Batch throttled",
            records=attempt.record_count,
            timeout_ms=self._rate.timeout_ms,
        )
        error_sink.record_failure(attempt.statement, "rate limit timeout")

    def run(self, rows: Iterable[SourceRow]) -> PartitionResult:
        """Load the partition's rows.

        Returns:
            PartitionResult with final state CLOSED

        Raises:
            FatalPartitionError: After the partition is aborted and its
                resources released
        """
        if self._state != PartitionState.INIT:
            raise RuntimeError(f"Partition {self.stream_name}.{self._partition_id} already ran")

        with bound_contextvars(stream=self.stream_name, partition=self._partition_id):
            return self._run(rows)

    def _run(self, rows: Iterable[SourceRow]) -> PartitionResult:
        name = self.stream_name
        pid = self._partition_id
        limiter = RateLimiter(f"{name}_{pid}", self._rate.limit)
        error_sink = ErrorSink(name, self._errors.max_errors, self._error_log, strict=self._strict)
        coordinator: AsyncWriteCoordinator | None = None
        throttled = 0
        records = 0
        resumed = 0

        try:
            self._writer.prepare()
            resumed = (self._checkpoint_store or NullCheckpointStore()).read(name, pid)
            coordinator = AsyncWriteCoordinator(
                self._writer,
                self._counters,
                error_sink,
                self._checkpoint_store,
                name,
                pid,
                max_in_flight=self._execution.max_in_flight,
                write_threads=self._execution.write_threads,
            )
            logger.info("Partition started", resumed_offset=resumed, strict=self._strict)

            self._state = PartitionState.STREAMING
            for batch in self._batcher.batches(self._records(rows, resumed)):
                records += len(batch)
                if limiter.try_acquire(self._rate.timeout_ms):
                    coordinator.submit(batch)
                else:
                    throttled += 1
                    self._reject(batch, error_sink)
                error_sink.flush()

            self._state = PartitionState.DRAINING
            coordinator.flush()
            error_sink.flush()
        except Exception as exc:
            self._state = PartitionState.ABORTED
            error_sink.flush()
            logger.error(
                "Partition aborted",
                error=str(exc),
                error_type=type(exc).__name__,
                fatal=isinstance(exc, FatalPartitionError),
            )
            raise
        finally:
            if coordinator is not None:
                coordinator.close()
            limiter.close()
            self._writer.close()

        self._state = PartitionState.CLOSED
        stats = coordinator.get_stats()
        result = PartitionResult(
            stream_name=name,
            partition_id=pid,
            state=self._state,
            attempts=stats["attempts_submitted"] + throttled,
            throttled=throttled,
            windows_reconciled=stats["windows_reconciled"],
            resumed_offset=resumed,
            records=records,
        )
        logger.info(
            "Partition finished",
            attempts=result.attempts,
            throttled=throttled,
            records=records,
        )
        return result


class LoadRunner:
    """Loads entities partition-parallel with shared counters.

    Usage:
        runner = LoadRunner(settings, writer_factory=make_writer, checkpoint_store=store)
        result = runner.run_entity(edge, lambda pid: partition_rows(source.rows(), edge.partitions, pid))
    """

    def __init__(
        self,
        settings: GraphLoaderSettings,
        writer_factory: Callable[[], WriteClient],
        *,
        counters: LoadCounters | None = None,
        checkpoint_store: CheckpointStore | None = None,
        error_log: ErrorLog | None = None,
    ) -> None:
        self._settings = settings
        self._writer_factory = writer_factory
        self.counters = counters or LoadCounters()
        self._checkpoint_store = checkpoint_store
        self._error_log = error_log or ErrorLogWriter(settings.errors.path)

    def is_strict(self, entity: EntitySettings) -> bool:
        return self._settings.checkpoint.is_resumable(entity.data.category)

    def _store_for(self, entity: EntitySettings) -> CheckpointStore | None:
        if entity.checkpoint and self.is_strict(entity):
            return self._checkpoint_store
        return None

    def _run_partition(
        self,
        entity: EntitySettings,
        partition_id: int,
        rows_for_partition: Callable[[int], Iterable[SourceRow]],
    ) -> PartitionResult:
        rows = rows_for_partition(partition_id)
        orchestrator = PartitionOrchestrator(
            entity,
            partition_id,
            writer=self._writer_factory(),
            counters=self.counters,
            error_log=self._error_log,
            rate=self._settings.rate,
            errors=self._settings.errors,
            execution=self._settings.execution,
            checkpoint_store=self._store_for(entity),
            strict=self.is_strict(entity),
        )
        return orchestrator.run(rows)

    def run_entity(
        self,
        entity: EntitySettings,
        rows_for_partition: Callable[[int], Iterable[SourceRow]],
    ) -> EntityLoadResult:
        """Run every partition of an entity and collect their outcomes.

        Fatal partition errors are collected in the result. Any other
        exception propagates once the remaining partitions have finished.
        """
        result = EntityLoadResult(name=entity.name)
        with ThreadPoolExecutor(max_workers=entity.partitions, thread_name_prefix=f"{entity.name}-partition") as pool:
            futures = {
                pool.submit(self._run_partition, entity, partition_id, rows_for_partition): partition_id
                for partition_id in range(entity.partitions)
            }
            for future in as_completed(futures):
                partition_id = futures[future]
                try:
                    result.partitions.append(future.result())
                except FatalPartitionError as exc:
                    result.failures[partition_id] = exc

        result.partitions.sort(key=lambda r: r.partition_id)
        store = self._store_for(entity)
        if store is not None:
            result.checkpoint_total = sum(record.offset for record in store.records(entity.name))

        logger.info(
            "Entity loaded",
            entity=entity.name,
            partitions=entity.partitions,
            failed_partitions=sorted(result.failures),
            records=result.records,
            checkpoint_total=result.checkpoint_total,
            **self.counters.snapshot(),
        )
        return result

    def run(self, rows_for: Callable[[EntitySettings, int], Iterable[SourceRow]]) -> list[EntityLoadResult]:
        """Load every configured tag, then every edge."""
        results = []
        for entity in (*self._settings.tags, *self._settings.edges):
            results.append(self.run_entity(entity, lambda pid, entity=entity: rows_for(entity, pid)))
        return results
