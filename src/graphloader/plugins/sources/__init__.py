"""Source readers producing typed SourceRows."""

from graphloader.plugins.sources.csv_source import CSVSource, coerce_text, partition_rows

__all__ = [
    "CSVSource",
    "coerce_text",
    "partition_rows",
]
