# src/graphloader/plugins/sources/csv_source.py
"""CSV source for graphloader.

Reads rows with csv.reader for proper multiline quoted field support and
coerces each declared column to its FieldType. This is the only place in
the pipeline where raw text is converted; builders trust the declared types.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from itertools import islice
from pathlib import Path
from typing import Any, TypeVar

from graphloader.contracts import FieldType, SourceRow
from graphloader.core.config import SourceSettings

T = TypeVar("T")

_TRUE_VALUES = frozenset({"true", "1", "yes", "y", "t"})
_FALSE_VALUES = frozenset({"false", "0", "no", "n", "f"})


def coerce_text(raw: str, field_type: FieldType) -> Any:
    """Convert a CSV cell to the Python type of its declaration.

    Empty cells become None for every type but string.

    Raises:
        ValueError: If the cell cannot be converted
    """
    if field_type == FieldType.STRING:
        return raw
    text = raw.strip()
    if not text:
        return None
    match field_type:
        case FieldType.LONG | FieldType.INT | FieldType.SHORT:
            return int(text)
        case FieldType.DOUBLE | FieldType.FLOAT:
            return float(text)
        case FieldType.BOOL:
            lowered = text.lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(f"Not a boolean: {raw!r}")
    raise ValueError(f"Unknown field type {field_type!r}")


class CSVSource:
    """Load typed rows from a CSV file with a header line.

    Columns missing from ``columns`` are read as strings.

    Example:
        source = CSVSource(edge.data)
        for row in source.rows():
            builder.build(row)
    """

    def __init__(self, settings: SourceSettings) -> None:
        if settings.path is None:
            raise ValueError("CSV source requires a path")
        self._path = Path(settings.path)
        self._delimiter = settings.delimiter
        self._encoding = settings.encoding
        self._columns = dict(settings.columns)

    @property
    def path(self) -> Path:
        return self._path

    def rows(self) -> Iterator[SourceRow]:
        """Yield one SourceRow per data line.

        Raises:
            FileNotFoundError: If the CSV file does not exist
            ValueError: If a line has the wrong number of cells, a declared
                column is missing from the header, or a cell fails coercion
        """
        if not self._path.exists():
            raise FileNotFoundError(f"CSV file not found: {self._path}")

        # newline='' is required for embedded newlines in quoted fields
        with open(self._path, encoding=self._encoding, newline="") as f:
            reader = csv.reader(f, delimiter=self._delimiter)
            try:
                headers = next(reader)
            except StopIteration:
                return

            missing = sorted(set(self._columns) - set(headers))
            if missing:
                raise ValueError(f"{self._path}: declared columns not in header: {', '.join(missing)}")

            types = {header: self._columns.get(header, FieldType.STRING) for header in headers}
            for cells in reader:
                if not cells:
                    continue
                if len(cells) != len(headers):
                    raise ValueError(
                        f"{self._path}:{reader.line_num}: expected {len(headers)} fields, got {len(cells)}"
                    )
                try:
                    values = {header: coerce_text(cell, types[header]) for header, cell in zip(headers, cells, strict=True)}
                except ValueError as e:
                    raise ValueError(f"{self._path}:{reader.line_num}: {e}") from e
                yield SourceRow(values=values, types=types)


def partition_rows(rows: Iterable[T], count: int, index: int) -> Iterator[T]:
    """Rows belonging to partition ``index`` of ``count``: every count-th row from index."""
    if count <= 0:
        raise ValueError(f"Partition count must be positive, got {count}")
    if not 0 <= index < count:
        raise ValueError(f"Partition index {index} outside 0..{count - 1}")
    return islice(rows, index, None, count)
