"""
Scanners for the tab-delimited annotation formats (GTF, GFF3, BED). Queries go through a ``LinearIndex``.
"""
from pathlib import Path
from typing import ClassVar, Union

from bioarrow.io.index import LinearIndex
from bioarrow.io.tabular import GtfReader, GffReader, BedReader
from bioarrow.model.batch_builder import GtfBatchBuilder, GffBatchBuilder, BedBatchBuilder
from bioarrow.scan import IndexedScanner, AttributedScanner


# Classes --------------------------------------------------------------------------------------------------------------
class TabularScanner(IndexedScanner):
    """Scanner for tab-delimited formats queried through a ``LinearIndex``."""
    FORMAT: ClassVar[str]
    __slots__ = ()

    def build_index(self, file: Union[str, Path]) -> LinearIndex:
        """Builds a linear index over a coordinate-sorted, uncompressed file of this format."""
        return LinearIndex.build(file, self.FORMAT)

    def _load_index(self, index: Union[LinearIndex, str, Path]) -> LinearIndex:
        return index if isinstance(index, LinearIndex) else LinearIndex.load(index)


class BedScanner(TabularScanner):
    """
    A BED scanner.

    Examples:
        >>> scanner = BedScanner()
        >>> index = scanner.build_index("peaks.bed")
        >>> table = scanner.scan_query("peaks.bed", index, ["chr2:1-100000"]).read_all()
    """
    FORMAT = 'bed'
    _READER = BedReader
    _BUILDER = BedBatchBuilder
    __slots__ = ()


class GtfScanner(AttributedScanner, TabularScanner):
    """
    A GTF scanner. Every attribute is inferred as ``String``.

    Examples:
        >>> scanner = GtfScanner()
        >>> defs = scanner.attribute_defs("genes.gtf")
        >>> table = scanner.scan("genes.gtf", attribute_defs=defs).read_all()
    """
    FORMAT = 'gtf'
    _READER = GtfReader
    _BUILDER = GtfBatchBuilder
    __slots__ = ()


class GffScanner(AttributedScanner, TabularScanner):
    """
    A GFF3 scanner. Attributes are inferred as ``String`` or ``Array`` from the first value seen for each key.

    Examples:
        >>> scanner = GffScanner()
        >>> defs = scanner.attribute_defs("features.gff3", scan_rows=1000)
        >>> batches = scanner.scan("features.gff3", attribute_defs=defs, limit=10_000)
    """
    FORMAT = 'gff'
    _READER = GffReader
    _BUILDER = GffBatchBuilder
    __slots__ = ()
