"""Parsed records yielded by the format readers, one per logical unit of the file."""
import re
from typing import Generator, Optional, Union

from bioarrow.errors import ParserError
from bioarrow.model.attribute import AttributeValue


# Constants ------------------------------------------------------------------------------------------------------------
_CIGAR = re.compile(r'(?:\d+[MIDNSHP=X])+')
_CIGAR_OP = re.compile(r'(\d+)([MIDNSHP=X])')


# Classes --------------------------------------------------------------------------------------------------------------
class FastaRecord:
    """
    A named sequence.

    Examples:
        >>> rec = FastaRecord('chr1', 'chromosome 1', 'ACGT')
        >>> len(rec)
        4
    """
    __slots__ = ('name', 'description', 'sequence')

    def __init__(self, name: str, description: Optional[str], sequence: str):
        self.name = name
        self.description = description
        self.sequence = sequence

    def __len__(self): return len(self.sequence)
    def __repr__(self): return f"{self.__class__.__name__}({self.name!r}, length={len(self)})"

    def __eq__(self, other):
        if not isinstance(other, FastaRecord): return False
        return (self.name, self.description, self.sequence) == (other.name, other.description, other.sequence)


class FastqRecord(FastaRecord):
    """A named sequence with per-base quality scores (phred+33 text)."""
    __slots__ = ('quality',)

    def __init__(self, name: str, description: Optional[str], sequence: str, quality: str):
        super().__init__(name, description, sequence)
        self.quality = quality

    def __eq__(self, other):
        return isinstance(other, FastqRecord) and super().__eq__(other) and self.quality == other.quality


class GxfRecord:
    """
    A GTF or GFF3 feature line.

    Attributes:
        seqid: Reference sequence name.
        source: Annotation source, or None for ``.``.
        type: Feature type.
        start: 1-based start.
        end: 1-based inclusive end.
        score: Score, or None for ``.``.
        strand: ``+``, ``-``, ``?``, or None for ``.``.
        frame: Frame (GTF) or phase (GFF3), or None for ``.``.
        attributes: Ordered ``(key, raw value)`` pairs; keys may repeat.
    """
    __slots__ = ('seqid', 'source', 'type', 'start', 'end', 'score', 'strand', 'frame', 'attributes')

    def __init__(self, seqid: str, source: Optional[str], type_: str, start: int, end: int,
                 score: Optional[float] = None, strand: Optional[str] = None, frame: Optional[str] = None,
                 attributes: list[tuple[str, Union[str, list[str]]]] = None):
        self.seqid = seqid
        self.source = source
        self.type = type_
        self.start = start
        self.end = end
        self.score = score
        self.strand = strand
        self.frame = frame
        self.attributes = attributes or []

    def __repr__(self): return f"{self.__class__.__name__}({self.seqid}:{self.start}-{self.end} {self.type})"

    def attribute_values(self) -> Generator[tuple[str, AttributeValue], None, None]:
        """Yields ``(key, AttributeValue)`` for every attribute entry, in file order."""
        raise NotImplementedError


class GtfRecord(GxfRecord):
    """GTF (GFF2) record. Every attribute is single-valued."""
    __slots__ = ()

    def attribute_values(self) -> Generator[tuple[str, AttributeValue], None, None]:
        for key, value in self.attributes: yield key, AttributeValue.from_gtf(value)


class GffRecord(GxfRecord):
    """GFF3 record. Comma-separated attribute values are arrays."""
    __slots__ = ()

    def attribute_values(self) -> Generator[tuple[str, AttributeValue], None, None]:
        for key, value in self.attributes: yield key, AttributeValue.from_gff(value)


class BedRecord:
    """
    A BED3 to BED6 interval. Coordinates are 0-based, half-open.
    """
    __slots__ = ('chrom', 'start', 'end', 'name', 'score', 'strand')

    def __init__(self, chrom: str, start: int, end: int, name: Optional[str] = None, score: Optional[float] = None,
                 strand: Optional[str] = None):
        self.chrom = chrom
        self.start = start
        self.end = end
        self.name = name
        self.score = score
        self.strand = strand

    def __repr__(self): return f"BedRecord({self.chrom}:{self.start}-{self.end})"


class VcfRecord:
    """
    A VCF data line, without its per-sample columns.

    Attributes:
        chrom: Reference sequence name.
        pos: 1-based position of the first reference base.
        id: Variant identifier, or None for ``.``.
        ref: Reference allele.
        alt: Alternate alleles (empty for ``.``).
        qual: Phred-scaled quality, or None for ``.``.
        filter: Filter status (e.g. ``PASS``), or None for ``.``.
        info: Ordered ``(key, value)`` pairs; multi-valued keys hold lists.
    """
    __slots__ = ('chrom', 'pos', 'id', 'ref', 'alt', 'qual', 'filter', 'info')

    def __init__(self, chrom: str, pos: int, id_: Optional[str], ref: str, alt: list[str] = None,
                 qual: Optional[float] = None, filter_: Optional[str] = None,
                 info: list[tuple[str, Union[str, list[str]]]] = None):
        self.chrom = chrom
        self.pos = pos
        self.id = id_
        self.ref = ref
        self.alt = alt or []
        self.qual = qual
        self.filter = filter_
        self.info = info or []

    def __repr__(self): return f"VcfRecord({self.chrom}:{self.pos} {self.ref}>{','.join(self.alt) or '.'})"

    @property
    def end(self) -> int:
        """1-based inclusive end: the ``END`` key when present, otherwise the last reference base."""
        for key, value in self.info:
            if key == 'END' and isinstance(value, str) and value.isdigit(): return int(value)
        return self.pos + max(len(self.ref), 1) - 1

    def attribute_values(self) -> Generator[tuple[str, AttributeValue], None, None]:
        for key, value in self.info: yield key, AttributeValue.from_parsed(value)


class SamRecord:
    """
    A SAM alignment line. Unavailable fields (``*``, a zero position, MAPQ 255) are None.

    Attributes:
        tags: Ordered ``(tag, value)`` pairs; ``B`` (array) tags hold lists.
    """
    __slots__ = ('qname', 'flag', 'rname', 'pos', 'mapq', 'cigar', 'rnext', 'pnext', 'tlen', 'seq', 'qual', 'tags')

    def __init__(self, qname: Optional[str], flag: int, rname: Optional[str], pos: Optional[int],
                 mapq: Optional[int] = None, cigar: Optional[str] = None, rnext: Optional[str] = None,
                 pnext: Optional[int] = None, tlen: int = 0, seq: Optional[str] = None, qual: Optional[str] = None,
                 tags: list[tuple[str, Union[str, list[str]]]] = None):
        self.qname = qname
        self.flag = flag
        self.rname = rname
        self.pos = pos
        self.mapq = mapq
        self.cigar = cigar
        self.rnext = rnext
        self.pnext = pnext
        self.tlen = tlen
        self.seq = seq
        self.qual = qual
        self.tags = tags or []

    def __repr__(self): return f"SamRecord({self.qname} {self.rname}:{self.pos})"

    @property
    def end(self) -> Optional[int]:
        """1-based inclusive end on the reference, or None for unplaced reads."""
        if self.pos is None: return None
        return self.pos + max(cigar_reference_length(self.cigar), 1) - 1

    def attribute_values(self) -> Generator[tuple[str, AttributeValue], None, None]:
        for tag, value in self.tags: yield tag, AttributeValue.from_parsed(value)


# Functions ------------------------------------------------------------------------------------------------------------
def cigar_reference_length(cigar: Optional[str]) -> int:
    """
    Number of reference bases an alignment covers (the ``M``, ``D``, ``N``, ``=`` and ``X`` operations).

    Examples:
        >>> cigar_reference_length('5S10M2D3M')
        15
    """
    if not cigar or cigar == '*': return 0
    if _CIGAR.fullmatch(cigar) is None: raise ParserError(f"Invalid CIGAR string: {cigar!r}")
    return sum(int(n) for n, op in _CIGAR_OP.findall(cigar) if op in 'MDN=X')
