"""
Alignment scanners (SAM, BAM). Optional tags form the ``tags`` struct column; their definitions are inferred from the
records, as for GFF3 attributes.
"""
from pathlib import Path
from typing import Union

from bioarrow.io.hts import BamReader, load_pysam
from bioarrow.io.tabular import SamReader
from bioarrow.model.batch_builder import SamBatchBuilder
from bioarrow.scan import AttributedScanner, HtsScanner
from bioarrow.scan.tabular import TabularScanner


# Classes --------------------------------------------------------------------------------------------------------------
class SamScanner(AttributedScanner, TabularScanner):
    """
    A SAM scanner. Queries need an uncompressed, coordinate-sorted file and a ``LinearIndex``; unplaced reads are
    never returned by a query.

    Examples:
        >>> scanner = SamScanner()
        >>> defs = scanner.attribute_defs("aligned.sam", scan_rows=1000)
        >>> table = scanner.scan("aligned.sam", ["qname", "pos", "cigar"], defs).read_all()
    """
    FORMAT = 'sam'
    _READER = SamReader
    _BUILDER = SamBatchBuilder
    __slots__ = ()


class BamScanner(AttributedScanner, HtsScanner):
    """
    A BAM scanner (requires pysam). Queries use the file's ``.bai`` or ``.csi`` index.

    Examples:
        >>> scanner = BamScanner()
        >>> batches = scanner.scan_query("aligned.bam", "aligned.bam.bai", ["chr1:10000-20000"], ["qname", "pos"])
    """
    _READER = BamReader
    _BUILDER = SamBatchBuilder
    __slots__ = ()

    @staticmethod
    def build_index(file: Union[str, Path]) -> Path:
        """
        Writes a ``.bai`` index next to a coordinate-sorted BAM file.

        Returns:
            The path of the index.
        """
        load_pysam().index(str(file))
        return Path(f"{file}.bai")
