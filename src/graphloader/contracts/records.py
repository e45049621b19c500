"""Records flowing through the loading pipeline.

SourceRow comes from a reader, GraphRecord from a builder, Batch from the
batcher. WriteAttempt tracks one batch through admission and dispatch.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from graphloader.contracts.enums import AttemptStatus, FieldType, KeyPolicy, RecordKind


@dataclass(frozen=True)
class SourceRow:
    """One input row with its declared field types.

    Attributes:
        values: Field name -> value, already coerced by the reader
        types: Field name -> declared FieldType
    """

    values: Mapping[str, Any]
    types: Mapping[str, FieldType]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "types", MappingProxyType(dict(self.types)))

    def get(self, name: str) -> Any:
        """Value of a field. Raises KeyError for unknown fields."""
        return self.values[name]

    def field_type(self, name: str) -> FieldType:
        """Declared type of a field. Raises KeyError for undeclared fields."""
        return self.types[name]


@dataclass(frozen=True)
class GraphRecord:
    """An edge (source, target) or a vertex (source only).

    ``values`` lines up positionally with the property names of the batch
    the record ends up in.
    """

    source: str
    target: str | None
    rank: int | None
    values: tuple[Any, ...]

    @property
    def is_edge(self) -> bool:
        return self.target is not None


@dataclass(frozen=True)
class Batch:
    """Records written together in one statement.

    All records share the entity name, kind and key policies.
    ``geo_source`` marks edges whose source key is a comma-joined list of
    spatial cell ids that the writer fans out.
    """

    name: str
    kind: RecordKind
    property_names: tuple[str, ...]
    records: tuple[GraphRecord, ...]
    source_policy: KeyPolicy | None = None
    target_policy: KeyPolicy | None = None
    geo_source: bool = False

    def __post_init__(self) -> None:
        expected = len(self.property_names)
        for record in self.records:
            if len(record.values) != expected:
                raise ValueError(f"Record has {len(record.values)} values for {expected} properties of {self.name!r}")

    def __len__(self) -> int:
        return len(self.records)


_ALLOWED_TRANSITIONS: dict[AttemptStatus, frozenset[AttemptStatus]] = {
    AttemptStatus.PENDING: frozenset({AttemptStatus.ADMITTED, AttemptStatus.THROTTLED}),
    AttemptStatus.ADMITTED: frozenset({AttemptStatus.SUCCEEDED, AttemptStatus.FAILED}),
    AttemptStatus.THROTTLED: frozenset(),
    AttemptStatus.SUCCEEDED: frozenset(),
    AttemptStatus.FAILED: frozenset(),
}


@dataclass
class WriteAttempt:
    """A batch submitted once to the graph store.

    Mutable because status moves as the attempt is admitted and completes.
    """

    batch: Batch
    statement: str
    status: AttemptStatus = AttemptStatus.PENDING
    error: str | None = field(default=None)

    def transition(self, status: AttemptStatus, error: str | None = None) -> None:
        """Move to a new status.

        Raises:
            ValueError: If the transition is not allowed from the current status.
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal write attempt transition {self.status} -> {status}")
        self.status = status
        self.error = error

    @property
    def record_count(self) -> int:
        return len(self.batch)


@dataclass(frozen=True)
class CheckpointRecord:
    """Cumulative count of records written for one stream partition."""

    stream_name: str
    partition_id: int
    offset: int
