"""Shared contracts for cross-boundary data types.

This package is a leaf module: it depends on nothing in core, engine or
plugins. Settings classes live in graphloader.core.config.
"""

from graphloader.contracts.enums import (
    KEY_FIELD_TYPES,
    RANK_FIELD_TYPES,
    AttemptStatus,
    FieldType,
    KeyPolicy,
    PartitionState,
    RecordKind,
    SourceCategory,
)
from graphloader.contracts.errors import (
    CheckpointRegressionError,
    FatalPartitionError,
    GraphWriteError,
    InvalidFieldValueError,
    TooManyErrorsError,
    UnsupportedFieldTypeError,
    WriteAbortedError,
)
from graphloader.contracts.protocols import ErrorLog, StatementExecutor, WriteClient
from graphloader.contracts.records import (
    Batch,
    CheckpointRecord,
    GraphRecord,
    SourceRow,
    WriteAttempt,
)

__all__ = [
    "KEY_FIELD_TYPES",
    "RANK_FIELD_TYPES",
    "AttemptStatus",
    "Batch",
    "CheckpointRecord",
    "CheckpointRegressionError",
    "ErrorLog",
    "FatalPartitionError",
    "FieldType",
    "GraphRecord",
    "GraphWriteError",
    "InvalidFieldValueError",
    "KeyPolicy",
    "PartitionState",
    "RecordKind",
    "SourceCategory",
    "SourceRow",
    "StatementExecutor",
    "TooManyErrorsError",
    "UnsupportedFieldTypeError",
    "WriteAbortedError",
    "WriteAttempt",
    "WriteClient",
]
