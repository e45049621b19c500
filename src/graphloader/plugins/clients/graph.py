# src/graphloader/plugins/clients/graph.py
"""Graph store writer that renders batches as nGQL insert statements.

Statements are the unit of replay: the text passed to the executor is the
same text the error log keeps when the write fails.

Edge statement:
    INSERT EDGE `follow`(`degree`) VALUES 42->7:(0.5), 1->2@3:(1.5)

Vertex statement:
    INSERT VERTEX `player`(`name`, `age`) VALUES hash("tim"):("Tim", 42)
"""

from __future__ import annotations

from typing import Any

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from graphloader.contracts import Batch, GraphRecord, GraphWriteError, KeyPolicy, RecordKind, StatementExecutor
from graphloader.core.config import GraphSettings
from graphloader.core.logging import get_logger

logger = get_logger(__name__)

_MAX_RETRY_DELAY_SECONDS = 10.0


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "\\`") + "`"


def render_literal(value: Any) -> str:
    """nGQL literal for a property value."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return repr(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def render_key(key: str, policy: KeyPolicy | None) -> str:
    """Vertex id expression: the raw integer, or the policy function applied to a string."""
    if policy is None:
        return key
    return f"{policy.value}({render_literal(key)})"


def _render_values(record: GraphRecord) -> str:
    return ", ".join(render_literal(value) for value in record.values)


def _render_edge(record: GraphRecord, batch: Batch) -> list[str]:
    assert record.target is not None
    target = render_key(record.target, batch.target_policy)
    rank = f"@{record.rank}" if record.rank is not None else ""
    # A geo source key lists the enclosing cells; the edge is written once per cell
    sources = record.source.split(",") if batch.geo_source else [record.source]
    return [f"{render_key(source, batch.source_policy)}->{target}{rank}:({_render_values(record)})" for source in sources]


def render_insert(name: str, batch: Batch) -> str:
    """INSERT EDGE / INSERT VERTEX statement for a whole batch."""
    columns = ", ".join(quote_identifier(prop) for prop in batch.property_names)
    if batch.kind == RecordKind.EDGE:
        values = [value for record in batch.records for value in _render_edge(record, batch)]
        return f"INSERT EDGE {quote_identifier(name)}({columns}) VALUES {', '.join(values)}"

    values = [f"{render_key(record.source, batch.source_policy)}:({_render_values(record)})" for record in batch.records]
    return f"INSERT VERTEX {quote_identifier(name)}({columns}) VALUES {', '.join(values)}"


class GraphClientWriter:
    """WriteClient on top of a StatementExecutor.

    Rejected statements are retried with exponential backoff; once retries
    are exhausted the GraphWriteError reaches the coordinator, which counts
    the batch as failed.

    Example:
        writer = GraphClientWriter(settings.graph, NebulaExecutor(settings.graph))
        writer.prepare()
        writer.write_edges(batch)
        writer.close()
    """

    def __init__(self, settings: GraphSettings, executor: StatementExecutor) -> None:
        self._settings = settings
        self._executor = executor
        self._prepared = False

    def prepare(self) -> None:
        """Check the target space is reachable before any batch is written."""
        self._executor.execute(f"USE {quote_identifier(self._settings.space)}")
        self._prepared = True

    def to_execute_sentence(self, name: str, batch: Batch) -> str:
        return render_insert(name, batch)

    def write_edges(self, batch: Batch) -> None:
        if batch.kind != RecordKind.EDGE:
            raise ValueError(f"Expected an edge batch, got {batch.kind}")
        self._execute(self.to_execute_sentence(batch.name, batch))

    def write_vertices(self, batch: Batch) -> None:
        if batch.kind != RecordKind.VERTEX:
            raise ValueError(f"Expected a vertex batch, got {batch.kind}")
        self._execute(self.to_execute_sentence(batch.name, batch))

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Graph write rejected, retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self._settings.retry + 1,
            error=str(error),
        )

    def _execute(self, statement: str) -> None:
        if not self._prepared:
            raise RuntimeError("Writer used before prepare()")

        for attempt_state in Retrying(
            stop=stop_after_attempt(self._settings.retry + 1),
            wait=wait_exponential_jitter(
                initial=self._settings.retry_delay_seconds,
                max=_MAX_RETRY_DELAY_SECONDS,
                jitter=self._settings.retry_delay_seconds,
            ),
            retry=retry_if_exception_type(GraphWriteError),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt_state:
                self._executor.execute(statement)

    def close(self) -> None:
        self._executor.close()
        self._prepared = False
