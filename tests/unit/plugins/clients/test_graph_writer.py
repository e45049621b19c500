"""Tests for nGQL rendering and GraphClientWriter retries."""

from __future__ import annotations

import pytest

from graphloader.contracts import Batch, GraphRecord, GraphWriteError, KeyPolicy, RecordKind, WriteClient
from graphloader.core.config import GraphSettings
from graphloader.plugins.clients.graph import GraphClientWriter, render_insert, render_key, render_literal
from tests.fixtures.factories import RecordingExecutor


def _edge_batch(records: tuple[GraphRecord, ...], **kwargs: object) -> Batch:
    return Batch(name="follow", kind=RecordKind.EDGE, property_names=("degree",), records=records, **kwargs)  # type: ignore[arg-type]


def _settings(retry: int = 0) -> GraphSettings:
    return GraphSettings(space="social", retry=retry, retry_delay_seconds=0.0)


class TestRendering:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "NULL"),
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (1.5, "1.5"),
            ("Tim", '"Tim"'),
            ('say "hi"\\', '"say \\"hi\\"\\\\"'),
        ],
    )
    def test_literals(self, value: object, expected: str) -> None:
        assert render_literal(value) == expected

    def test_keys(self) -> None:
        assert render_key("42", None) == "42"
        assert render_key("alice", KeyPolicy.HASH) == 'hash("alice")'
        assert render_key("bob", KeyPolicy.UUID) == 'uuid("bob")'

    def test_edge_statement(self) -> None:
        batch = _edge_batch(
            (
                GraphRecord(source="42", target="7", rank=None, values=(0.5,)),
                GraphRecord(source="1", target="2", rank=3, values=(1.5,)),
            )
        )

        assert render_insert("follow", batch) == "INSERT EDGE `follow`(`degree`) VALUES 42->7:(0.5), 1->2@3:(1.5)"

    def test_edge_statement_with_policies(self) -> None:
        batch = _edge_batch(
            (GraphRecord(source="alice", target="bob", rank=None, values=(None,)),),
            source_policy=KeyPolicy.HASH,
            target_policy=KeyPolicy.UUID,
        )

        assert render_insert("follow", batch) == 'INSERT EDGE `follow`(`degree`) VALUES hash("alice")->uuid("bob"):(NULL)'

    def test_geo_source_fans_out_per_cell(self) -> None:
        batch = _edge_batch((GraphRecord(source="11,-12", target="7", rank=None, values=(1.0,)),), geo_source=True)

        assert render_insert("near", batch) == "INSERT EDGE `near`(`degree`) VALUES 11->7:(1.0), -12->7:(1.0)"

    def test_vertex_statement(self) -> None:
        batch = Batch(
            name="player",
            kind=RecordKind.VERTEX,
            property_names=("name", "age"),
            records=(GraphRecord(source="tim", target=None, rank=None, values=("Tim", 42)),),
            source_policy=KeyPolicy.HASH,
        )

        assert render_insert("player", batch) == 'INSERT VERTEX `player`(`name`, `age`) VALUES hash("tim"):("Tim", 42)'


class TestGraphClientWriter:
    def test_satisfies_write_client_protocol(self) -> None:
        assert isinstance(GraphClientWriter(_settings(), RecordingExecutor()), WriteClient)

    def test_prepare_selects_space(self) -> None:
        executor = RecordingExecutor()
        GraphClientWriter(_settings(), executor).prepare()
        assert executor.statements == ["USE `social`"]

    def test_write_before_prepare_rejected(self) -> None:
        writer = GraphClientWriter(_settings(), RecordingExecutor())
        batch = _edge_batch((GraphRecord(source="1", target="2", rank=None, values=(0.0,)),))
        with pytest.raises(RuntimeError, match="prepare"):
            writer.write_edges(batch)

    def test_writes_rendered_statement(self) -> None:
        executor = RecordingExecutor()
        writer = GraphClientWriter(_settings(), executor)
        writer.prepare()
        batch = _edge_batch((GraphRecord(source="1", target="2", rank=None, values=(0.0,)),))

        writer.write_edges(batch)

        assert executor.statements[-1] == writer.to_execute_sentence("follow", batch)

    def test_retries_then_succeeds(self) -> None:
        executor = RecordingExecutor(failures=2)
        writer = GraphClientWriter(_settings(retry=2), executor)
        writer.prepare()
        batch = _edge_batch((GraphRecord(source="1", target="2", rank=None, values=(0.0,)),))

        writer.write_edges(batch)

        assert len(executor.statements) == 4  # USE + 3 attempts

    def test_exhausted_retries_raise_graph_write_error(self) -> None:
        executor = RecordingExecutor(failures=5)
        writer = GraphClientWriter(_settings(retry=1), executor)
        writer.prepare()
        batch = _edge_batch((GraphRecord(source="1", target="2", rank=None, values=(0.0,)),))

        with pytest.raises(GraphWriteError) as exc_info:
            writer.write_edges(batch)

        assert exc_info.value.statement == writer.to_execute_sentence("follow", batch)
        assert len(executor.statements) == 3  # USE + 2 attempts

    def test_kind_mismatch_rejected(self) -> None:
        writer = GraphClientWriter(_settings(), RecordingExecutor())
        writer.prepare()
        batch = _edge_batch((GraphRecord(source="1", target="2", rank=None, values=(0.0,)),))
        with pytest.raises(ValueError, match="vertex batch"):
            writer.write_vertices(batch)

    def test_close_closes_executor(self) -> None:
        executor = RecordingExecutor()
        GraphClientWriter(_settings(), executor).close()
        assert executor.closed
