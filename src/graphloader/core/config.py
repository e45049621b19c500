# src/graphloader/core/config.py
"""
Configuration schema and loading for graphloader.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from graphloader.contracts.enums import FieldType, KeyPolicy, SourceCategory

# S2 cell levels run from 0 (face) to 30 (leaf)
_MAX_CELL_LEVEL = 30


class GraphSettings(BaseModel):
    """Graph store connection.

    Example YAML:
        graph:
          addresses: ["graphd-0:9669", "graphd-1:9669"]
          user: root
          password: ${NEBULA_PASSWORD}
          space: social
    """

    model_config = {"frozen": True}

    addresses: list[str] = Field(default_factory=lambda: ["127.0.0.1:9669"], description="host:port of graph services")
    user: str = Field(default="root", description="Graph store user")
    password: str = Field(default="nebula", description="Graph store password")
    space: str = Field(description="Graph space every statement runs in")
    retry: int = Field(default=3, ge=0, description="Retries per statement before it counts as failed")
    retry_delay_seconds: float = Field(default=0.5, ge=0.0, description="Initial backoff between retries")
    pool_size: int = Field(default=10, gt=0, description="Connection pool size per writer")

    @field_validator("addresses")
    @classmethod
    def validate_addresses(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one graph address is required")
        for address in v:
            host, sep, port = address.rpartition(":")
            if not sep or not host or not port.isdigit():
                raise ValueError(f"Graph address must be host:port, got {address!r}")
        return v


class RateLimitSettings(BaseModel):
    """Write admission rate per partition.

    A limit of 0 admits nothing: every batch waits out the timeout and is
    recorded as a failure.
    """

    model_config = {"frozen": True}

    limit: int = Field(default=1024, ge=0, description="Permits (batches) per second")
    timeout_ms: int = Field(default=1000, ge=0, description="Maximum wait for a permit")


class ErrorSettings(BaseModel):
    """Failed statement handling."""

    model_config = {"frozen": True}

    max_errors: int = Field(default=32, gt=0, description="Failures tolerated per partition before it aborts")
    path: str = Field(default="./errors", description="Directory receiving one error log per entity")


class ExecutionSettings(BaseModel):
    """Concurrency within a partition."""

    model_config = {"frozen": True}

    max_in_flight: int = Field(default=100, gt=0, description="Outstanding writes before the partition blocks")
    write_threads: int = Field(default=4, gt=0, description="Worker threads executing writes per partition")


class CheckpointSettings(BaseModel):
    """Resumable progress.

    Entities read from a category listed in ``resumable_categories`` that
    also set ``checkpoint: true`` persist their offsets. Write failures are
    fatal for every entity read from those categories.
    """

    model_config = {"frozen": True}

    # NOTE: str rather than Path - Path mangles DSNs like "postgresql://..."
    url: str = Field(default="sqlite:///./state/checkpoints.db", description="SQLAlchemy database URL")
    resumable_categories: frozenset[SourceCategory] = Field(
        default=frozenset({SourceCategory.NEO4J}),
        description="Source categories with checkpointing and strict failure handling",
    )

    def is_resumable(self, category: SourceCategory) -> bool:
        return category in self.resumable_categories


class SourceSettings(BaseModel):
    """Dataset an entity is read from."""

    model_config = {"frozen": True}

    category: SourceCategory = Field(description="Kind of source system")
    path: str | None = Field(default=None, description="File path for file-based categories")
    delimiter: str = ","
    encoding: str = "utf-8"
    columns: dict[str, FieldType] = Field(default_factory=dict, description="Declared type per column")

    @model_validator(mode="after")
    def validate_file_source(self) -> Self:
        if self.category == SourceCategory.CSV and self.path is None:
            raise ValueError("path is required for csv sources")
        return self


class _EntitySettings(BaseModel):
    """Fields shared by edge and tag (vertex) entities."""

    model_config = {"frozen": True}

    name: str = Field(description="Edge type or tag name in the graph store")
    data: SourceSettings
    fields: list[str] = Field(default_factory=list, description="Source columns, in property order")
    properties: list[str] = Field(default_factory=list, description="Property names in the graph store")
    batch: int = Field(default=256, gt=0, description="Records per write statement")
    partitions: int = Field(default=1, gt=0, description="Parallel partitions the dataset is split into")
    checkpoint: bool = Field(default=False, description="Persist offsets for resumable sources")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v

    @model_validator(mode="after")
    def validate_field_mapping(self) -> Self:
        if len(self.fields) != len(self.properties):
            raise ValueError(
                f"{self.name}: fields ({len(self.fields)}) and properties ({len(self.properties)}) must have the same length"
            )
        return self


class EdgeSettings(_EntitySettings):
    """Edge entity.

    Either ``source_field`` or both ``latitude`` and ``longitude`` identify
    the source vertex. In the latter case the edge fans out to every
    enclosing spatial cell between ``min_cell_level`` and ``max_cell_level``.

    Example YAML:
        edges:
          - name: follow
            data: {category: csv, path: ./follow.csv, columns: {src: long, dst: long, degree: double}}
            source_field: src
            target_field: dst
            fields: [degree]
            properties: [degree]
            batch: 256
    """

    source_field: str | None = None
    source_policy: KeyPolicy | None = None
    target_field: str
    target_policy: KeyPolicy | None = None
    ranking: str | None = Field(default=None, description="Integral column used as edge rank")
    latitude: str | None = None
    longitude: str | None = None
    min_cell_level: int = Field(default=10, ge=0, le=_MAX_CELL_LEVEL)
    max_cell_level: int = Field(default=18, ge=0, le=_MAX_CELL_LEVEL)

    @property
    def is_geo(self) -> bool:
        return self.latitude is not None

    @model_validator(mode="after")
    def validate_source_endpoint(self) -> Self:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError(f"{self.name}: latitude and longitude must be set together")
        if self.is_geo and self.source_field is not None:
            raise ValueError(f"{self.name}: source_field cannot be combined with latitude/longitude")
        if not self.is_geo and self.source_field is None:
            raise ValueError(f"{self.name}: source_field is required unless latitude/longitude are set")
        if self.min_cell_level > self.max_cell_level:
            raise ValueError(
                f"{self.name}: min_cell_level ({self.min_cell_level}) cannot exceed max_cell_level ({self.max_cell_level})"
            )
        return self


class TagSettings(_EntitySettings):
    """Tag (vertex) entity."""

    vertex_field: str
    vertex_policy: KeyPolicy | None = None


class GraphLoaderSettings(BaseModel):
    """Top-level configuration.

    The single source of truth for a load. Validated and frozen after
    construction.
    """

    model_config = {"frozen": True}

    graph: GraphSettings
    rate: RateLimitSettings = Field(default_factory=RateLimitSettings)
    errors: ErrorSettings = Field(default_factory=ErrorSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    checkpoint: CheckpointSettings = Field(default_factory=CheckpointSettings)
    edges: list[EdgeSettings] = Field(default_factory=list)
    tags: list[TagSettings] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_entities(self) -> Self:
        if not self.edges and not self.tags:
            raise ValueError("At least one edge or tag must be configured")
        names = [entity.name for entity in (*self.tags, *self.edges)]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate entity names: {', '.join(duplicates)}")
        return self


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original (will likely fail validation)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


# Field names redacted from resolved config output
_SECRET_FIELD_NAMES = frozenset({"password", "token", "secret"})


def _redact_secrets(config: Any) -> Any:
    if isinstance(config, dict):
        return {k: "***" if k in _SECRET_FIELD_NAMES and isinstance(v, str) else _redact_secrets(v) for k, v in config.items()}
    if isinstance(config, list):
        return [_redact_secrets(item) for item in config]
    return config


def load_settings(config_path: Path) -> GraphLoaderSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (GRAPHLOADER_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: GRAPHLOADER_GRAPH__SPACE for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated GraphLoaderSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="GRAPHLOADER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic expects lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return GraphLoaderSettings(**raw_config)


def resolve_config(settings: GraphLoaderSettings) -> dict[str, Any]:
    """Convert validated settings to a JSON-ready dict with secrets redacted.

    Includes all settings, explicit and defaulted. Not for runtime use:
    passwords are replaced by ``***``.
    """
    config_dict = settings.model_dump(mode="json")
    result: dict[str, Any] = _redact_secrets(config_dict)
    return result
