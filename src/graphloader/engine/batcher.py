"""Groups records into fixed-size write batches."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import islice

from graphloader.contracts import Batch, GraphRecord, KeyPolicy, RecordKind


class Batcher:
    """Splits a record stream into batches of ``batch_size``.

    Order is preserved and every record lands in exactly one batch. The last
    batch may be short; no empty batch is ever produced.

    Example:
        batcher = Batcher("follow", RecordKind.EDGE, ("degree",), batch_size=100)
        for batch in batcher.batches(records):
            ...
    """

    def __init__(
        self,
        name: str,
        kind: RecordKind,
        property_names: tuple[str, ...],
        batch_size: int,
        *,
        source_policy: KeyPolicy | None = None,
        target_policy: KeyPolicy | None = None,
        geo_source: bool = False,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.name = name
        self.kind = kind
        self.property_names = property_names
        self.batch_size = batch_size
        self._source_policy = source_policy
        self._target_policy = target_policy
        self._geo_source = geo_source

    def batches(self, records: Iterable[GraphRecord]) -> Iterator[Batch]:
        iterator = iter(records)
        while chunk := tuple(islice(iterator, self.batch_size)):
            yield Batch(
                name=self.name,
                kind=self.kind,
                property_names=self.property_names,
                records=chunk,
                source_policy=self._source_policy,
                target_policy=self._target_policy,
                geo_source=self._geo_source,
            )
