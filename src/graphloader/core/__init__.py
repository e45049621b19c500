# src/graphloader/core/__init__.py
"""Core infrastructure: Configuration, Checkpoint, Rate limiting, Logging, Spatial indexing."""

from graphloader.core.checkpoint import CheckpointStore, NullCheckpointStore
from graphloader.core.config import (
    CheckpointSettings,
    EdgeSettings,
    ErrorSettings,
    ExecutionSettings,
    GraphLoaderSettings,
    GraphSettings,
    RateLimitSettings,
    SourceSettings,
    TagSettings,
    load_settings,
    resolve_config,
)
from graphloader.core.counters import LoadCounters
from graphloader.core.logging import configure_logging, get_logger
from graphloader.core.rate_limit import RateLimiter
from graphloader.core.spatial import index_cells

__all__ = [
    "CheckpointSettings",
    "CheckpointStore",
    "EdgeSettings",
    "ErrorSettings",
    "ExecutionSettings",
    "GraphLoaderSettings",
    "GraphSettings",
    "LoadCounters",
    "NullCheckpointStore",
    "RateLimitSettings",
    "RateLimiter",
    "SourceSettings",
    "TagSettings",
    "configure_logging",
    "get_logger",
    "index_cells",
    "load_settings",
    "resolve_config",
]
