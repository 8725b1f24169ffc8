"""
Format scanners: schema introspection and the choice between sequential and indexed batch iteration.

Scanners hold no per-scan state and can be reused for any number of scans, including concurrently over independent
readers.
"""
from pathlib import Path
from itertools import islice
from typing import ClassVar, Iterable, Mapping, Optional, Union, BinaryIO

import pyarrow as pa

from bioarrow.core.region import Region
from bioarrow.io import BaseReader
from bioarrow.model.attribute import AttributeDef, AttributeScanner
from bioarrow.model.batch_builder import BatchBuilder, AttributeBatchBuilder
from bioarrow.scan.iterators import BatchIterator, QueryBatchIterator


# Types ----------------------------------------------------------------------------------------------------------------
AttributeDefs = Union[Mapping[str, str], Iterable[tuple[str, str]], None]


# Classes --------------------------------------------------------------------------------------------------------------
class Scanner:
    """
    Base scanner. Subclasses bind a reader class, a batch builder class and default batch sizes.
    """
    DEFAULT_BATCH_SIZE: ClassVar[int] = 1024
    _READER: ClassVar[type[BaseReader]]
    _BUILDER: ClassVar[type[BatchBuilder]]
    __slots__ = ()

    def __repr__(self): return f"{self.__class__.__name__}()"

    def field_names(self) -> list[str]:
        """Returns the format's default (fixed) column names."""
        return self._BUILDER._FIELDS.default_field_names()

    def schema(self, fields: Optional[Iterable[str]] = None) -> pa.Schema:
        """
        Returns the schema of the batches a scan with this field filter would produce.

        Raises:
            InvalidInputError: For unknown or repeated field names.
        """
        return self._builder(fields, 0).get_arrow_schema()

    def _builder(self, fields: Optional[Iterable[str]], capacity: int) -> BatchBuilder:
        return self._BUILDER(fields, capacity)

    def _open(self, reader: Union[BaseReader, str, Path, BinaryIO]) -> BaseReader:
        if isinstance(reader, BaseReader): return reader
        return self._READER.open(reader)

    def scan(self, reader: Union[BaseReader, str, Path, BinaryIO], fields: Optional[Iterable[str]] = None,
             batch_size: Optional[int] = None, limit: Optional[int] = None) -> BatchIterator:
        """
        Returns a lazy sequence of batches over the records from the reader's current position.

        Args:
            reader: A reader, or a path/stream to open with this format's reader.
            fields: Columns to emit, in order. ``None`` selects the default fields.
            batch_size: Maximum records per batch (defaults to ``DEFAULT_BATCH_SIZE``).
            limit: Maximum total number of records.

        Returns:
            A single-pass ``BatchIterator``; it closes the reader when done.
        """
        if batch_size is None: batch_size = self.DEFAULT_BATCH_SIZE
        builder = self._builder(fields, batch_size)
        return BatchIterator(self._open(reader), builder, batch_size, limit)


class IndexedScanner(Scanner):
    """A scanner whose format supports coordinate queries through an index."""
    DEFAULT_QUERY_BATCH_SIZE: ClassVar[int] = 1024
    __slots__ = ()

    def _load_index(self, index):
        return index

    def _open_query(self, reader, index) -> tuple[BaseReader, object]:
        index = self._load_index(index)
        return self._open(reader), index

    def scan_query(self, reader: Union[BaseReader, str, Path], index, regions: Iterable[Union[str, Region, tuple]],
                   fields: Optional[Iterable[str]] = None, batch_size: Optional[int] = None) -> QueryBatchIterator:
        """
        Returns a lazy sequence of batches holding only the records that overlap the regions, in region order.

        Args:
            reader: A seekable reader over an uncompressed file, or its path.
            index: The coordinate index of the file (object or path).
            regions: Regions to fetch, each processed independently.
            fields: Columns to emit, in order. ``None`` selects the default fields.
            batch_size: Maximum records per batch (defaults to ``DEFAULT_QUERY_BATCH_SIZE``).

        Raises:
            InvalidInputError: For malformed regions or field names.
        """
        if batch_size is None: batch_size = self.DEFAULT_QUERY_BATCH_SIZE
        builder = self._builder(fields, batch_size)
        regions = [Region.coerce(r) for r in regions]
        reader, index = self._open_query(reader, index)
        return QueryBatchIterator(reader, index, regions, builder, batch_size)


class AttributedScanner(IndexedScanner):
    """
    Scanner for formats with per-record attributes (GTF/GFF attributes, VCF INFO, SAM tags).

    Attribute columns are only emitted when attribute definitions are available, either given to the scanner or to
    each call. Definitions are usually collected with ``attribute_defs`` on a first reader, then reused for the scan
    on a second reader over the same (or a structurally similar) file.

    Args:
        attribute_defs: Default attribute definitions for every scan, as a ``{name: type}`` mapping or
            ``(name, type)`` pairs.
    """
    _BUILDER: ClassVar[type[AttributeBatchBuilder]]
    __slots__ = ('_attribute_defs',)

    def __init__(self, attribute_defs: AttributeDefs = None):
        self._attribute_defs = AttributeDef.from_pairs(attribute_defs) if attribute_defs is not None else None

    def __repr__(self):
        if self._attribute_defs is None: return f"{self.__class__.__name__}()"
        return f"{self.__class__.__name__}({AttributeDef.to_mapping(self._attribute_defs)})"

    def attribute_defs(self, reader: Union[BaseReader, str, Path, BinaryIO],
                       scan_rows: Optional[int] = None) -> list[tuple[str, str]]:
        """
        Infers attribute definitions by reading records; each key keeps the type of its first occurrence.

        This consumes (and closes) the reader: scan with a fresh reader afterwards.

        Args:
            reader: A reader, or a path/stream to open.
            scan_rows: Maximum number of records to inspect; ``None`` reads them all.

        Returns:
            ``(name, type)`` pairs sorted by name.
        """
        scanner = AttributeScanner()
        with self._open(reader) as records:
            for record in islice(records, scan_rows): scanner.push(record)
        return scanner.collect()

    def _builder(self, fields: Optional[Iterable[str]], capacity: int,
                 attribute_defs: AttributeDefs = None) -> AttributeBatchBuilder:
        if attribute_defs is None: attribute_defs = self._attribute_defs
        return self._BUILDER(fields, attribute_defs, capacity)

    def schema(self, fields: Optional[Iterable[str]] = None, attribute_defs: AttributeDefs = None) -> pa.Schema:
        """Returns the schema for a field filter and attribute definitions."""
        return self._builder(fields, 0, attribute_defs).get_arrow_schema()

    def scan(self, reader: Union[BaseReader, str, Path, BinaryIO], fields: Optional[Iterable[str]] = None,
             attribute_defs: AttributeDefs = None, batch_size: Optional[int] = None,
             limit: Optional[int] = None) -> BatchIterator:
        """
        Returns a lazy sequence of batches over the records from the reader's current position.

        Raises:
            InvalidInputError: For unknown field names or attribute types.
        """
        if batch_size is None: batch_size = self.DEFAULT_BATCH_SIZE
        builder = self._builder(fields, batch_size, attribute_defs)
        return BatchIterator(self._open(reader), builder, batch_size, limit)

    def scan_query(self, reader: Union[BaseReader, str, Path], index, regions: Iterable[Union[str, Region, tuple]],
                   fields: Optional[Iterable[str]] = None, attribute_defs: AttributeDefs = None,
                   batch_size: Optional[int] = None) -> QueryBatchIterator:
        """
        Returns a lazy sequence of batches holding the records overlapping each region, in region order.
        """
        if batch_size is None: batch_size = self.DEFAULT_QUERY_BATCH_SIZE
        builder = self._builder(fields, batch_size, attribute_defs)
        regions = [Region.coerce(r) for r in regions]
        reader, index = self._open_query(reader, index)
        return QueryBatchIterator(reader, index, regions, builder, batch_size)


class HtsScanner(IndexedScanner):
    """
    Scanner for binary htslib formats (BAM, BCF), read by path. Queries use the file's own index: ``index`` is the
    path of a ``.bai``/``.csi`` file, or None to use the one next to the file.
    """
    __slots__ = ()

    def _open_query(self, reader, index) -> tuple[BaseReader, object]:
        if isinstance(reader, BaseReader): return reader, index
        return self._READER.open(reader, index=index), index
