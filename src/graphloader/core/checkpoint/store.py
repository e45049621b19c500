"""CheckpointStore for persisting per-partition progress."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Self

from sqlalchemy import create_engine, delete, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from graphloader.contracts import CheckpointRecord, CheckpointRegressionError
from graphloader.core.checkpoint.schema import checkpoints_table, metadata
from graphloader.core.logging import get_logger

logger = get_logger(__name__)


class CheckpointStore:
    """Durable ``(stream_name, partition_id) -> offset`` map.

    The offset is the cumulative number of records durably written for a
    partition. Offsets only move forward; a restarted run skips that many
    records before it starts writing again.

    Example:
        store = CheckpointStore.from_url("sqlite:///./state/checkpoints.db")
        offset = store.read("follow", 3)
        store.write("follow", 3, offset + 500)
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize with a SQLAlchemy engine. Creates the table if missing.

        Args:
            engine: Engine for the checkpoint database
        """
        self._engine = engine
        # Serialises read-modify-write so concurrent partitions sharing one
        # store cannot interleave on SQLite
        self._write_lock = threading.Lock()
        metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> Self:
        """Create a store from a SQLAlchemy connection URL."""
        engine = create_engine(url, echo=False)
        if url.startswith("sqlite"):
            cls._configure_sqlite(engine)
        return cls(engine)

    @classmethod
    def in_memory(cls) -> Self:
        """Create an in-memory SQLite store for testing.

        All connections share one in-memory database.
        """
        engine = create_engine(
            "sqlite:///:memory:",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        return cls(engine)

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Enable WAL and a busy timeout on every new SQLite connection."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    def read(self, stream_name: str, partition_id: int) -> int:
        """Offset for a partition, 0 if it has never been checkpointed."""
        with self._engine.connect() as conn:
            offset = conn.execute(
                select(checkpoints_table.c.record_offset).where(
                    checkpoints_table.c.stream_name == stream_name,
                    checkpoints_table.c.partition_id == partition_id,
                )
            ).scalar_one_or_none()
        return 0 if offset is None else int(offset)

    def write(self, stream_name: str, partition_id: int, offset: int) -> CheckpointRecord:
        """Persist a partition's offset.

        Args:
            stream_name: Logical stream (entity) name
            partition_id: Partition index within the stream
            offset: Cumulative records written

        Returns:
            The stored CheckpointRecord

        Raises:
            ValueError: If offset is negative
            CheckpointRegressionError: If offset is lower than the stored one
        """
        if offset < 0:
            raise ValueError(f"Checkpoint offset must not be negative, got {offset}")

        now = datetime.now(UTC)
        with self._write_lock, self._engine.begin() as conn:
            current = conn.execute(
                select(checkpoints_table.c.record_offset).where(
                    checkpoints_table.c.stream_name == stream_name,
                    checkpoints_table.c.partition_id == partition_id,
                )
            ).scalar_one_or_none()

            if current is None:
                conn.execute(
                    checkpoints_table.insert().values(
                        stream_name=stream_name,
                        partition_id=partition_id,
                        record_offset=offset,
                        updated_at=now,
                    )
                )
            elif offset < current:
                raise CheckpointRegressionError(stream_name, partition_id, int(current), offset)
            else:
                conn.execute(
                    checkpoints_table.update()
                    .where(
                        checkpoints_table.c.stream_name == stream_name,
                        checkpoints_table.c.partition_id == partition_id,
                    )
                    .values(record_offset=offset, updated_at=now)
                )
            # begin() auto-commits on clean exit, auto-rollbacks on exception

        logger.debug("Checkpoint written", stream=stream_name, partition=partition_id, offset=offset)
        return CheckpointRecord(stream_name=stream_name, partition_id=partition_id, offset=offset)

    def records(self, stream_name: str | None = None) -> list[CheckpointRecord]:
        """All checkpoints, optionally for one stream, ordered by stream then partition."""
        query = select(
            checkpoints_table.c.stream_name,
            checkpoints_table.c.partition_id,
            checkpoints_table.c.record_offset,
        ).order_by(checkpoints_table.c.stream_name, checkpoints_table.c.partition_id)
        if stream_name is not None:
            query = query.where(checkpoints_table.c.stream_name == stream_name)

        with self._engine.connect() as conn:
            rows = conn.execute(query).fetchall()

        return [CheckpointRecord(stream_name=r.stream_name, partition_id=r.partition_id, offset=int(r.record_offset)) for r in rows]

    def clear(self, stream_name: str) -> int:
        """Delete every checkpoint of a stream so the next run starts over.

        Returns:
            Number of partitions reset
        """
        with self._write_lock, self._engine.begin() as conn:
            result = conn.execute(delete(checkpoints_table).where(checkpoints_table.c.stream_name == stream_name))
            return result.rowcount

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self._engine.dispose()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()


class NullCheckpointStore:
    """Store used for entities that are not resumable.

    Reads always return 0 and writes are discarded.
    """

    def read(self, stream_name: str, partition_id: int) -> int:
        return 0

    def write(self, stream_name: str, partition_id: int, offset: int) -> CheckpointRecord:
        return CheckpointRecord(stream_name=stream_name, partition_id=partition_id, offset=offset)
