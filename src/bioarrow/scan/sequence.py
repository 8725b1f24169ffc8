"""
Sequence scanners (FASTA, FASTQ).
"""
from pathlib import Path
from typing import Union

from bioarrow.io.index import FaiIndex
from bioarrow.io.seq import FastaReader, FastqReader
from bioarrow.model.batch_builder import FastaBatchBuilder, FastqBatchBuilder
from bioarrow.scan import Scanner, IndexedScanner


# Classes --------------------------------------------------------------------------------------------------------------
class FastaScanner(IndexedScanner):
    """
    A FASTA scanner.

    Reference sequences are often large, so sequential scans default to one record per batch. Queries return one
    record per region (named after the region) and default to much larger batches.

    Examples:
        >>> scanner = FastaScanner()
        >>> regions = ["chr1:1-1000", "chr1:1001-2000", "chr2:1-500"]
        >>> batches = scanner.scan_query("sample.fa", "sample.fa.fai", regions, batch_size=2)
        >>> [b.num_rows for b in batches]
        [2, 1]
    """
    DEFAULT_BATCH_SIZE = 1
    DEFAULT_QUERY_BATCH_SIZE = 1024
    _READER = FastaReader
    _BUILDER = FastaBatchBuilder
    __slots__ = ()

    def _load_index(self, index: Union[FaiIndex, str, Path]) -> FaiIndex:
        return index if isinstance(index, FaiIndex) else FaiIndex.read(index)


class FastqScanner(Scanner):
    """
    A FASTQ scanner. FASTQ files have no coordinate index, so only sequential scans are available.

    Examples:
        >>> table = FastqScanner().scan("reads.fq.gz", fields=["name", "sequence"]).read_all()
    """
    DEFAULT_BATCH_SIZE = 1024
    _READER = FastqReader
    _BUILDER = FastqBatchBuilder
    __slots__ = ()
