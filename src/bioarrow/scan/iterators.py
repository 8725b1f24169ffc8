"""
Lazy batch sequences over a reader.

Both iterators are single-pass and pull-based: a batch is only read when requested. The reader is closed when the
iterator is exhausted, fails, is closed, or is garbage collected. A failure discards the batch being assembled.
"""
from itertools import islice
from typing import Generator, Iterable, Optional, Union

import pyarrow as pa

from bioarrow.core.region import Region
from bioarrow.errors import InvalidInputError
from bioarrow.io import BaseReader
from bioarrow.model.batch_builder import BatchBuilder


# Classes --------------------------------------------------------------------------------------------------------------
class _BatchSequence:
    """Shared iterator, context-manager and conversion plumbing."""
    __slots__ = ('_reader', '_builder', '_batch_size', '_schema', '_batches', '_n_records')

    def __init__(self, reader: BaseReader, builder: BatchBuilder, batch_size: int):
        if not isinstance(batch_size, int) or batch_size < 1:
            reader.close()
            raise InvalidInputError(f"Batch size must be a positive integer, got {batch_size!r}")
        self._reader = reader
        self._builder = builder
        self._batch_size = batch_size
        self._schema = builder.get_arrow_schema()
        self._n_records = 0
        self._batches = self._generate()

    @property
    def schema(self) -> pa.Schema: return self._schema
    @property
    def batch_size(self) -> int: return self._batch_size
    @property
    def n_records(self) -> int:
        """Number of records emitted so far."""
        return self._n_records

    def __iter__(self): return self
    def __next__(self) -> pa.RecordBatch: return next(self._batches)
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()

    def close(self):
        """Stops iteration and releases the reader."""
        self._batches.close()
        self._reader.close()

    def __del__(self):
        # Unstarted generators skip their finally block when collected
        if getattr(self, '_batches', None) is not None: self.close()

    def to_reader(self) -> pa.RecordBatchReader:
        """Wraps the remaining batches in a ``pyarrow.RecordBatchReader``."""
        return pa.RecordBatchReader.from_batches(self._schema, self)

    def read_all(self) -> pa.Table:
        """Consumes the remaining batches into a table."""
        return pa.Table.from_batches(list(self), schema=self._schema)

    def _records(self) -> Iterable:
        raise NotImplementedError

    def _generate(self) -> Generator[pa.RecordBatch, None, None]:
        builder, batch_size = self._builder, self._batch_size
        try:
            for record in self._records():
                builder.push(record)
                if len(builder) >= batch_size:
                    self._n_records += len(builder)
                    yield builder.finish()
            if len(builder):
                self._n_records += len(builder)
                yield builder.finish()
        finally:
            self._reader.close()


class BatchIterator(_BatchSequence):
    """
    Batches a reader's records in file order, starting at its current position.

    Not restartable: iterating advances the reader irreversibly. With a ``limit``, reading stops as soon as that many
    records have been taken; no further record is parsed.

    Args:
        reader: Source of parsed records.
        builder: Batch builder for the reader's format.
        batch_size: Maximum number of records per batch.
        limit: Maximum total number of records, or None for all.

    Examples:
        >>> with BatchIterator(FastqReader.open("reads.fq"), FastqBatchBuilder(), 1000, limit=2500) as batches:
        ...     [b.num_rows for b in batches]
        [1000, 1000, 500]
    """
    __slots__ = ('_limit',)

    def __init__(self, reader: BaseReader, builder: BatchBuilder, batch_size: int, limit: Optional[int] = None):
        if limit is not None and (not isinstance(limit, int) or limit < 0):
            reader.close()
            raise InvalidInputError(f"Limit must be a non-negative integer, got {limit!r}")
        self._limit = limit
        super().__init__(reader, builder, batch_size)

    @property
    def limit(self) -> Optional[int]: return self._limit

    def _records(self) -> Iterable:
        records = iter(self._reader)
        return records if self._limit is None else islice(records, self._limit)


class QueryBatchIterator(_BatchSequence):
    """
    Batches the records overlapping each region, in the order the regions are given.

    Each region is resolved through the index and read independently: overlapping or repeated regions yield their
    records again. Batches may span region boundaries.

    Args:
        reader: Seekable source of parsed records exposing ``query(index, region)``.
        index: Coordinate index of the reader's source.
        regions: Regions as ``Region`` objects, region strings or ``(name, start, end)`` tuples.
        builder: Batch builder for the reader's format.
        batch_size: Maximum number of records per batch.

    Raises:
        InvalidInputError: If a region is malformed.
    """
    __slots__ = ('_index', '_regions')

    def __init__(self, reader: BaseReader, index, regions: Iterable[Union[str, Region, tuple]], builder: BatchBuilder,
                 batch_size: int):
        self._index = index
        try: self._regions = [Region.coerce(r) for r in regions]
        except InvalidInputError:
            reader.close()
            raise
        super().__init__(reader, builder, batch_size)

    @property
    def regions(self) -> list[Region]: return list(self._regions)

    def _records(self) -> Iterable:
        for region in self._regions: yield from self._reader.query(self._index, region)
