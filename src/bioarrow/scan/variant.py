"""
Variant scanners (VCF, BCF). INFO columns default to the keys declared in the file header.
"""
from pathlib import Path
from typing import Iterable, Optional, Union, BinaryIO

from bioarrow.io import BaseReader
from bioarrow.io.hts import BcfReader
from bioarrow.io.tabular import VcfReader
from bioarrow.model.batch_builder import VcfBatchBuilder
from bioarrow.scan import AttributedScanner, HtsScanner, AttributeDefs
from bioarrow.scan.iterators import BatchIterator, QueryBatchIterator
from bioarrow.scan.tabular import TabularScanner


# Classes --------------------------------------------------------------------------------------------------------------
class _HeaderDefsScanner(AttributedScanner):
    """
    Takes INFO definitions from the header when neither the scanner nor the call provides them. Reading the header
    does not consume any record, so no second reader is needed.
    """
    _BUILDER = VcfBatchBuilder
    __slots__ = ()

    def attribute_defs(self, reader: Union[BaseReader, str, Path, BinaryIO],
                       scan_rows: Optional[int] = None) -> list[tuple[str, str]]:
        """
        Returns the INFO keys declared in the header, without reading records. With ``scan_rows``, the first records
        are also inspected and undeclared keys are added with the shape of their first value.

        This closes the reader.
        """
        with self._open(reader) as records:
            defs = dict(records.header.attribute_defs())
            if scan_rows: defs = {**dict(super().attribute_defs(records, scan_rows)), **defs}
        return sorted(defs.items())

    def _header_defs(self, reader: BaseReader, attribute_defs: AttributeDefs) -> AttributeDefs:
        if attribute_defs is not None or self._attribute_defs is not None: return attribute_defs
        return reader.header.attribute_defs()

    def scan(self, reader: Union[BaseReader, str, Path, BinaryIO], fields: Optional[Iterable[str]] = None,
             attribute_defs: AttributeDefs = None, batch_size: Optional[int] = None,
             limit: Optional[int] = None) -> BatchIterator:
        reader = self._open(reader)
        try:
            attribute_defs = self._header_defs(reader, attribute_defs)
            return super().scan(reader, fields, attribute_defs, batch_size, limit)
        except Exception:
            reader.close()
            raise

    def scan_query(self, reader, index, regions, fields: Optional[Iterable[str]] = None,
                   attribute_defs: AttributeDefs = None, batch_size: Optional[int] = None) -> QueryBatchIterator:
        reader, index = self._open_query(reader, index)
        try:
            attribute_defs = self._header_defs(reader, attribute_defs)
            return super().scan_query(reader, index, regions, fields, attribute_defs, batch_size)
        except Exception:
            reader.close()
            raise


class VcfScanner(_HeaderDefsScanner, TabularScanner):
    """
    A VCF scanner. Queries need an uncompressed, coordinate-sorted file and a ``LinearIndex``.

    Examples:
        >>> scanner = VcfScanner()
        >>> index = scanner.build_index("calls.vcf")
        >>> table = scanner.scan_query("calls.vcf", index, ["chr1:1-1000000"], ["chrom", "pos", "alt"]).read_all()
        >>> table.column("info").type
        StructType(struct<AF: list<item: string>, DP: string>)
    """
    FORMAT = 'vcf'
    _READER = VcfReader
    __slots__ = ()


class BcfScanner(_HeaderDefsScanner, HtsScanner):
    """
    A BCF scanner (requires pysam). Queries use the file's ``.csi`` index.

    Examples:
        >>> batches = BcfScanner().scan_query("calls.bcf", None, ["chr1:10000-20000"])
    """
    _READER = BcfReader
    __slots__ = ()
