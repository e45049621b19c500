"""Checkpoint subsystem for resumable loads.

Provides:
- CheckpointStore: SQLAlchemy-backed per-partition offsets
- NullCheckpointStore: No-op store for non-resumable entities
"""

from graphloader.core.checkpoint.store import CheckpointStore, NullCheckpointStore

__all__ = [
    "CheckpointStore",
    "NullCheckpointStore",
]
