"""Row to graph record transformation.

Builders are pure: the same row and settings always yield an equal record.
Key and rank extraction is driven by the declared field type, never by the
runtime type of the value.
"""

from __future__ import annotations

from typing import Any

from graphloader.contracts import (
    KEY_FIELD_TYPES,
    RANK_FIELD_TYPES,
    FieldType,
    GraphRecord,
    InvalidFieldValueError,
    KeyPolicy,
    SourceRow,
    UnsupportedFieldTypeError,
)
from graphloader.core.config import EdgeSettings, TagSettings
from graphloader.core.spatial import cell_key, index_cells

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _required(row: SourceRow, field: str, usage: str) -> Any:
    value = row.get(field)
    if value is None:
        raise InvalidFieldValueError(field, usage, "Null value")
    return value


def extract_key(row: SourceRow, field: str, policy: KeyPolicy | None, usage: str) -> str:
    """Vertex key for an endpoint.

    Without a policy the field must be declared ``long`` or ``int`` and is
    rendered as a decimal string. With a policy the value is passed through
    as text; the graph store applies the policy function.

    Raises:
        UnsupportedFieldTypeError: If an unmapped key is not integral
        InvalidFieldValueError: If the value is null
        KeyError: If the field is not in the row
    """
    value = _required(row, field, usage)
    if policy is not None:
        return str(value)

    field_type = row.field_type(field)
    if field_type not in KEY_FIELD_TYPES:
        raise UnsupportedFieldTypeError(field, field_type, usage)
    return str(int(value))


def extract_rank(row: SourceRow, field: str) -> int:
    """Edge rank widened to a 64-bit integer.

    Raises:
        UnsupportedFieldTypeError: If the field is not ``long``, ``int`` or ``short``
        InvalidFieldValueError: If the value is null or does not fit in 64 bits
    """
    field_type = row.field_type(field)
    if field_type not in RANK_FIELD_TYPES:
        raise UnsupportedFieldTypeError(field, field_type, "ranking")
    rank = int(_required(row, field, "ranking"))
    if not _INT64_MIN <= rank <= _INT64_MAX:
        raise InvalidFieldValueError(field, "ranking", f"Rank {rank} outside the 64-bit range")
    return rank


def coerce_value(value: Any, field_type: FieldType) -> Any:
    """Property value in the Python type matching its declaration."""
    if value is None:
        return None
    match field_type:
        case FieldType.LONG | FieldType.INT | FieldType.SHORT:
            return int(value)
        case FieldType.DOUBLE | FieldType.FLOAT:
            return float(value)
        case FieldType.BOOL:
            return bool(value)
        case FieldType.STRING:
            return str(value)


def _property_values(row: SourceRow, fields: list[str]) -> tuple[Any, ...]:
    return tuple(coerce_value(row.get(field), row.field_type(field)) for field in fields if field.strip())


class EdgeRecordBuilder:
    """Builds edge records from rows using an entity's settings.

    Example:
        builder = EdgeRecordBuilder(edge_settings)
        record = builder.build(row)  # GraphRecord(source="42", target="7", ...)
    """

    def __init__(self, settings: EdgeSettings) -> None:
        self._settings = settings

    @property
    def property_names(self) -> tuple[str, ...]:
        return tuple(
            prop for field, prop in zip(self._settings.fields, self._settings.properties, strict=True) if field.strip()
        )

    def build(self, row: SourceRow) -> GraphRecord:
        settings = self._settings
        if settings.is_geo:
            # Validation guarantees latitude and longitude are set together
            assert settings.latitude is not None and settings.longitude is not None
            cells = index_cells(
                float(_required(row, settings.latitude, "latitude")),
                float(_required(row, settings.longitude, "longitude")),
                settings.min_cell_level,
                settings.max_cell_level,
            )
            source = cell_key(cells)
        else:
            assert settings.source_field is not None
            source = extract_key(row, settings.source_field, settings.source_policy, "source")

        target = extract_key(row, settings.target_field, settings.target_policy, "target")
        rank = extract_rank(row, settings.ranking) if settings.ranking is not None else None
        return GraphRecord(source=source, target=target, rank=rank, values=_property_values(row, settings.fields))


class VertexRecordBuilder:
    """Builds vertex records from rows using a tag's settings."""

    def __init__(self, settings: TagSettings) -> None:
        self._settings = settings

    @property
    def property_names(self) -> tuple[str, ...]:
        return tuple(
            prop for field, prop in zip(self._settings.fields, self._settings.properties, strict=True) if field.strip()
        )

    def build(self, row: SourceRow) -> GraphRecord:
        settings = self._settings
        vertex = extract_key(row, settings.vertex_field, settings.vertex_policy, "vertex")
        return GraphRecord(source=vertex, target=None, rank=None, values=_property_values(row, settings.fields))
