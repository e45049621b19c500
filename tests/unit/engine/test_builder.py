"""Tests for edge and vertex record builders."""

from __future__ import annotations

import pytest

from graphloader.contracts import (
    FatalPartitionError,
    FieldType,
    GraphRecord,
    InvalidFieldValueError,
    KeyPolicy,
    UnsupportedFieldTypeError,
)
from graphloader.core.spatial import index_cells
from graphloader.engine.builder import EdgeRecordBuilder, VertexRecordBuilder, coerce_value, extract_key, extract_rank
from tests.fixtures.factories import make_edge, make_row, make_tag


class TestExtractKey:
    def test_long_key_renders_decimal(self) -> None:
        row = make_row(src=(42, FieldType.LONG))
        assert extract_key(row, "src", None, "source") == "42"

    def test_int_key_renders_decimal(self) -> None:
        row = make_row(src=(-7, FieldType.INT))
        assert extract_key(row, "src", None, "source") == "-7"

    @pytest.mark.parametrize("field_type", [FieldType.STRING, FieldType.DOUBLE, FieldType.SHORT, FieldType.BOOL])
    def test_non_integral_key_without_policy_rejected(self, field_type: FieldType) -> None:
        row = make_row(src=("x", field_type))
        with pytest.raises(UnsupportedFieldTypeError, match="source field"):
            extract_key(row, "src", None, "source")

    def test_policy_passes_value_through_as_text(self) -> None:
        row = make_row(src=("alice", FieldType.STRING))
        assert extract_key(row, "src", KeyPolicy.HASH, "source") == "alice"

    def test_unknown_field_raises_key_error(self) -> None:
        row = make_row(src=(1, FieldType.LONG))
        with pytest.raises(KeyError):
            extract_key(row, "missing", None, "source")

    @pytest.mark.parametrize("policy", [None, KeyPolicy.HASH])
    def test_null_key_is_fatal(self, policy: KeyPolicy | None) -> None:
        row = make_row(src=(None, FieldType.LONG))

        with pytest.raises(InvalidFieldValueError, match="Null value in source field: 'src'") as excinfo:
            extract_key(row, "src", policy, "source")

        assert isinstance(excinfo.value, FatalPartitionError)


class TestExtractRank:
    @pytest.mark.parametrize("field_type", [FieldType.LONG, FieldType.INT, FieldType.SHORT])
    def test_integral_types_widen(self, field_type: FieldType) -> None:
        row = make_row(rank=(12, field_type))
        assert extract_rank(row, "rank") == 12

    def test_double_rank_rejected(self) -> None:
        row = make_row(rank=(1.5, FieldType.DOUBLE))
        with pytest.raises(UnsupportedFieldTypeError, match="ranking"):
            extract_rank(row, "rank")

    def test_out_of_range_rank_rejected(self) -> None:
        row = make_row(rank=(2**63, FieldType.LONG))
        with pytest.raises(ValueError, match="64-bit"):
            extract_rank(row, "rank")

    def test_null_rank_is_fatal(self) -> None:
        row = make_row(rank=(None, FieldType.SHORT))
        with pytest.raises(InvalidFieldValueError, match="ranking field"):
            extract_rank(row, "rank")


class TestCoerceValue:
    def test_none_stays_none(self) -> None:
        assert coerce_value(None, FieldType.LONG) is None

    def test_numeric_types(self) -> None:
        assert coerce_value(3, FieldType.DOUBLE) == 3.0
        assert isinstance(coerce_value(3, FieldType.DOUBLE), float)
        assert coerce_value(True, FieldType.BOOL) is True
        assert coerce_value(5, FieldType.STRING) == "5"


class TestEdgeRecordBuilder:
    def test_plain_edge_without_rank(self) -> None:
        builder = EdgeRecordBuilder(make_edge(fields=[], properties=[]))
        row = make_row(src=(42, FieldType.LONG), dst=(7, FieldType.LONG))

        record = builder.build(row)

        assert (record.source, record.target, record.rank) == ("42", "7", None)
        assert record.values == ()

    def test_edge_with_rank_and_properties(self) -> None:
        builder = EdgeRecordBuilder(make_edge(ranking="rank", fields=["degree", "since"], properties=["degree", "since"]))
        row = make_row(
            src=(1, FieldType.LONG),
            dst=(2, FieldType.INT),
            rank=(3, FieldType.SHORT),
            degree=(0.5, FieldType.DOUBLE),
            since=(None, FieldType.LONG),
        )

        assert builder.build(row) == GraphRecord(source="1", target="2", rank=3, values=(0.5, None))

    def test_blank_field_names_are_skipped(self) -> None:
        builder = EdgeRecordBuilder(make_edge(fields=["degree", " "], properties=["degree", "unused"]))
        row = make_row(src=(1, FieldType.LONG), dst=(2, FieldType.LONG), degree=(1.0, FieldType.DOUBLE))

        assert builder.build(row).values == (1.0,)
        assert builder.property_names == ("degree",)

    def test_string_target_without_policy_is_rejected(self) -> None:
        builder = EdgeRecordBuilder(make_edge(fields=[], properties=[]))
        row = make_row(src=(1, FieldType.LONG), dst=("bob", FieldType.STRING))

        with pytest.raises(UnsupportedFieldTypeError, match="target field: 'dst'"):
            builder.build(row)

    def test_hashed_endpoints_keep_raw_text(self) -> None:
        edge = make_edge(source_policy="hash", target_policy="uuid", fields=[], properties=[])
        row = make_row(src=("alice", FieldType.STRING), dst=("bob", FieldType.STRING))

        record = EdgeRecordBuilder(edge).build(row)

        assert (record.source, record.target) == ("alice", "bob")

    def test_geo_source_joins_cell_ids(self) -> None:
        edge = make_edge(source_field=None, latitude="lat", longitude="lng", fields=[], properties=[])
        row = make_row(lat=(37.7749, FieldType.DOUBLE), lng=(-122.4194, FieldType.DOUBLE), dst=(7, FieldType.LONG))

        record = EdgeRecordBuilder(edge).build(row)

        expected = index_cells(37.7749, -122.4194, 10, 18)
        assert record.source == ",".join(str(cell) for cell in expected)
        assert len(record.source.split(",")) == 9

    def test_geo_source_without_coordinates_is_fatal(self) -> None:
        edge = make_edge(source_field=None, latitude="lat", longitude="lng", fields=[], properties=[])
        row = make_row(lat=(None, FieldType.DOUBLE), lng=(-122.4194, FieldType.DOUBLE), dst=(7, FieldType.LONG))

        with pytest.raises(InvalidFieldValueError, match="latitude field"):
            EdgeRecordBuilder(edge).build(row)

    def test_builder_is_pure(self) -> None:
        builder = EdgeRecordBuilder(make_edge())
        row = make_row(src=(1, FieldType.LONG), dst=(2, FieldType.LONG), degree=(0.5, FieldType.DOUBLE))

        assert builder.build(row) == builder.build(row)


class TestVertexRecordBuilder:
    def test_vertex_has_no_target_or_rank(self) -> None:
        builder = VertexRecordBuilder(make_tag())
        row = make_row(id=(9, FieldType.LONG), name=("Tim", FieldType.STRING))

        assert builder.build(row) == GraphRecord(source="9", target=None, rank=None, values=("Tim",))

    def test_vertex_key_type_checked(self) -> None:
        builder = VertexRecordBuilder(make_tag())
        row = make_row(id=(1.0, FieldType.FLOAT), name=("Tim", FieldType.STRING))

        with pytest.raises(UnsupportedFieldTypeError, match="vertex field"):
            builder.build(row)
