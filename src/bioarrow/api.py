"""
One-call readers returning a ``pyarrow.Table``, for when a whole file (or a set of regions) fits in memory. Every
format has one: FASTA, FASTQ, GTF, GFF3, BED, VCF, SAM, and with pysam installed BCF and BAM.

Examples:
    >>> from bioarrow.api import read_gff
    >>> table = read_gff("features.gff3", regions=["chr1:1-50000"])
    >>> table.column("attributes").type
    StructType(struct<ID: string, Parent: list<item: string>>)
"""
from pathlib import Path
from typing import Union, BinaryIO, Iterable, Optional

import pyarrow as pa

from bioarrow.core.region import Region
from bioarrow.errors import InvalidInputError
from bioarrow.io.index import FaiIndex, LinearIndex
from bioarrow.scan import AttributedScanner, AttributeDefs
from bioarrow.scan.alignment import SamScanner, BamScanner
from bioarrow.scan.sequence import FastaScanner, FastqScanner
from bioarrow.scan.tabular import TabularScanner, GtfScanner, GffScanner, BedScanner
from bioarrow.scan.variant import VcfScanner, BcfScanner


# Types ----------------------------------------------------------------------------------------------------------------
File = Union[str, Path, BinaryIO]
Regions = Optional[Iterable[Union[str, Region, tuple]]]


# Functions ------------------------------------------------------------------------------------------------------------
def read_fasta(file: File, regions: Regions = None, index: Union[FaiIndex, str, Path] = None,
               fields: Iterable[str] = None) -> pa.Table:
    """
    Reads FASTA records, or the sequence slices covered by ``regions``.

    Args:
        file: Path or stream. Region queries need an uncompressed, seekable file.
        regions: Regions to fetch, in order. ``None`` reads every record.
        index: FASTA index; defaults to ``<file>.fai`` when it exists, otherwise the index is built.
        fields: Columns to emit.
    """
    scanner = FastaScanner()
    if regions is None: return scanner.scan(file, fields).read_all()
    if index is None:
        if isinstance(file, (str, Path)) and (fai := Path(f"{file}.fai")).exists(): index = FaiIndex.read(fai)
        else: index = FaiIndex.build(file)
        _rewind(file)
    return scanner.scan_query(file, index, regions, fields).read_all()


def read_fastq(file: File, fields: Iterable[str] = None, limit: int = None) -> pa.Table:
    """Reads FASTQ records, optionally at most ``limit`` of them."""
    return FastqScanner().scan(file, fields, limit=limit).read_all()


def read_bed(file: File, regions: Regions = None, index: Union[LinearIndex, str, Path] = None,
             fields: Iterable[str] = None, limit: int = None) -> pa.Table:
    """
    Reads BED records, or those overlapping ``regions`` (building a linear index when none is given).
    """
    scanner = BedScanner()
    if regions is None: return scanner.scan(file, fields, limit=limit).read_all()
    return scanner.scan_query(file, _linear_index(scanner, file, index), regions, fields).read_all()


def read_gtf(file: File, regions: Regions = None, index: Union[LinearIndex, str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None,
             attribute_scan_rows: Optional[int] = None, limit: int = None) -> pa.Table:
    """
    Reads GTF records with their attributes as a struct column.

    Args:
        file: Path or seekable stream.
        regions: Regions to fetch, in order. ``None`` reads every record.
        index: Linear index for region queries; built when not given.
        fields: Fixed columns to emit.
        attribute_defs: Attribute definitions; inferred from the file when not given.
        attribute_scan_rows: Number of records inspected for inference (all when ``None``).
        limit: Maximum number of records for sequential reads.
    """
    return _read_attributed(GtfScanner(), file, regions, index, fields, attribute_defs, attribute_scan_rows, limit)


def read_gff(file: File, regions: Regions = None, index: Union[LinearIndex, str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None,
             attribute_scan_rows: Optional[int] = None, limit: int = None) -> pa.Table:
    """Reads GFF3 records with their attributes as a struct column. Arguments are those of ``read_gtf``."""
    return _read_attributed(GffScanner(), file, regions, index, fields, attribute_defs, attribute_scan_rows, limit)


def read_vcf(file: File, regions: Regions = None, index: Union[LinearIndex, str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None, limit: int = None) -> pa.Table:
    """
    Reads VCF records with their INFO keys as a struct column. Sample columns are not read.

    Args:
        file: Path or stream. Region queries need an uncompressed, coordinate-sorted file.
        regions: Regions to fetch, in order. ``None`` reads every record.
        index: Linear index for region queries; built when not given.
        fields: Fixed columns to emit.
        attribute_defs: INFO definitions; the keys declared in the header when not given.
        limit: Maximum number of records for sequential reads.
    """
    scanner = VcfScanner()
    if regions is None: return scanner.scan(file, fields, attribute_defs, limit=limit).read_all()
    return scanner.scan_query(file, _linear_index(scanner, file, index), regions, fields, attribute_defs).read_all()


def read_bcf(file: Union[str, Path], regions: Regions = None, index: Union[str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None, limit: int = None) -> pa.Table:
    """
    Reads BCF records (requires pysam). Region queries use ``index``, or the ``.csi`` next to the file.
    Other arguments are those of ``read_vcf``.
    """
    scanner = BcfScanner()
    if regions is None: return scanner.scan(file, fields, attribute_defs, limit=limit).read_all()
    return scanner.scan_query(file, index, regions, fields, attribute_defs).read_all()


def read_sam(file: File, regions: Regions = None, index: Union[LinearIndex, str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None,
             attribute_scan_rows: Optional[int] = None, limit: int = None) -> pa.Table:
    """
    Reads SAM records with their optional tags as a struct column. Arguments are those of ``read_gtf``; tag
    definitions are inferred from the file when not given.
    """
    return _read_attributed(SamScanner(), file, regions, index, fields, attribute_defs, attribute_scan_rows, limit)


def read_bam(file: Union[str, Path], regions: Regions = None, index: Union[str, Path] = None,
             fields: Iterable[str] = None, attribute_defs: AttributeDefs = None,
             attribute_scan_rows: Optional[int] = None, limit: int = None) -> pa.Table:
    """
    Reads BAM records (requires pysam). Region queries use ``index``, or the ``.bai``/``.csi`` next to the file.
    Other arguments are those of ``read_sam``.
    """
    return _read_attributed(BamScanner(), file, regions, index, fields, attribute_defs, attribute_scan_rows, limit)


def _read_attributed(scanner: AttributedScanner, file: File, regions: Regions, index, fields, attribute_defs,
              attribute_scan_rows: Optional[int], limit: Optional[int]) -> pa.Table:
    if attribute_defs is None:
        if not isinstance(file, (str, Path)) and not _seekable(file):
            raise InvalidInputError("Attribute inference reads the input twice; pass attribute_defs for streams")
        start = None if isinstance(file, (str, Path)) else file.tell()
        attribute_defs = scanner.attribute_defs(file, attribute_scan_rows)
        if start is not None: file.seek(start)
    if regions is None: return scanner.scan(file, fields, attribute_defs, limit=limit).read_all()
    if isinstance(scanner, TabularScanner): index = _linear_index(scanner, file, index)
    return scanner.scan_query(file, index, regions, fields, attribute_defs).read_all()


def _linear_index(scanner: TabularScanner, file: File, index) -> Union[LinearIndex, str, Path]:
    if index is not None: return index
    if not isinstance(file, (str, Path)):
        raise InvalidInputError("Pass an index to query a stream; indexes can only be built from a path")
    return scanner.build_index(file)


def _seekable(file) -> bool:
    try: return file.seekable()
    except (AttributeError, ValueError): return False


def _rewind(file: File):
    if not isinstance(file, (str, Path)) and _seekable(file): file.seek(0)
