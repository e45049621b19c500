# src/graphloader/core/checkpoint/schema.py
"""SQLAlchemy table definitions for checkpoint storage.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with multiple database backends.
"""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
)

metadata = MetaData()

checkpoints_table = Table(
    "checkpoints",
    metadata,
    Column("stream_name", String(255), nullable=False),
    Column("partition_id", Integer, nullable=False),
    # Cumulative records written; never decreases for a given key
    Column("record_offset", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("stream_name", "partition_id"),
    CheckConstraint("record_offset >= 0", name="ck_checkpoints_offset_non_negative"),
)
