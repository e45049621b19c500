"""Status codes, kinds and categories shared across subsystem boundaries."""

from enum import StrEnum


class FieldType(StrEnum):
    """Declared semantic type of a source field.

    Sources coerce raw values to the matching Python type at the boundary;
    builders rely on the declaration rather than inspecting values.
    """

    LONG = "long"
    INT = "int"
    SHORT = "short"
    DOUBLE = "double"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"


# Types accepted as a raw (unmapped) vertex key.
KEY_FIELD_TYPES: frozenset[FieldType] = frozenset({FieldType.LONG, FieldType.INT})

# Types accepted as an edge rank.
RANK_FIELD_TYPES: frozenset[FieldType] = frozenset({FieldType.LONG, FieldType.INT, FieldType.SHORT})


class KeyPolicy(StrEnum):
    """Function the graph store applies to turn a raw value into a vertex id.

    An endpoint without a policy uses its integral value directly.
    """

    HASH = "hash"
    UUID = "uuid"


class RecordKind(StrEnum):
    """Whether a batch carries edges or vertices."""

    EDGE = "edge"
    VERTEX = "vertex"


class SourceCategory(StrEnum):
    """Kind of system a dataset is read from.

    Categories listed in ``checkpoint.resumable_categories`` get checkpointed
    progress and strict failure handling.
    """

    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"
    ORC = "orc"
    HIVE = "hive"
    MYSQL = "mysql"
    NEO4J = "neo4j"
    KAFKA = "kafka"


class AttemptStatus(StrEnum):
    """Lifecycle of a single write attempt.

    PENDING -> ADMITTED | THROTTLED; ADMITTED -> SUCCEEDED | FAILED.
    """

    PENDING = "pending"
    ADMITTED = "admitted"
    THROTTLED = "throttled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PartitionState(StrEnum):
    """Lifecycle of a partition worker."""

    INIT = "init"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"
    ABORTED = "aborted"
