"""Ingestion engine: per-partition pipeline from rows to graph writes.

- EdgeRecordBuilder / VertexRecordBuilder: rows to records
- Batcher: records to fixed-size batches
- AsyncWriteCoordinator: windowed concurrent writes and reconciliation
- ErrorSink / ErrorLogWriter: error budget and replay log
- PartitionOrchestrator / LoadRunner: partition lifecycle and fan-out

Example:
    from graphloader.engine import LoadRunner

    runner = LoadRunner(settings, writer_factory=make_writer, checkpoint_store=store)
    results = runner.run(lambda entity, pid: partition_rows(read(entity), entity.partitions, pid))
"""

from graphloader.engine.batcher import Batcher
from graphloader.engine.builder import EdgeRecordBuilder, VertexRecordBuilder, coerce_value, extract_key, extract_rank
from graphloader.engine.coordinator import AsyncWriteCoordinator, WindowOutcome
from graphloader.engine.error_sink import ErrorLogWriter, ErrorSink
from graphloader.engine.orchestrator import EntityLoadResult, LoadRunner, PartitionOrchestrator, PartitionResult

__all__ = [
    "AsyncWriteCoordinator",
    "Batcher",
    "EdgeRecordBuilder",
    "EntityLoadResult",
    "ErrorLogWriter",
    "ErrorSink",
    "LoadRunner",
    "PartitionOrchestrator",
    "PartitionResult",
    "VertexRecordBuilder",
    "WindowOutcome",
    "coerce_value",
    "extract_key",
    "extract_rank",
]
