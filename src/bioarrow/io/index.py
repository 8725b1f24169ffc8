"""
Coordinate indexes mapping regions to byte offsets, so queries seek straight to the data they need.

``FaiIndex`` is the samtools FASTA index. ``LinearIndex`` is a tabix-style linear index (fixed-width windows holding
the smallest byte offset of any record overlapping them) for coordinate-sorted, uncompressed tab-delimited files.
Unplaced SAM records (no reference or position) are not indexed.
"""
from collections.abc import Mapping
from pathlib import Path
from typing import Union, BinaryIO, NamedTuple, Iterator, Callable, Optional

import numpy as np

from bioarrow.containers.record import cigar_reference_length
from bioarrow.core.region import Region
from bioarrow.errors import InvalidInputError, IndexLookupError, ParserError


# Classes --------------------------------------------------------------------------------------------------------------
class FaiEntry(NamedTuple):
    """One line of a ``.fai`` file."""
    name: str
    length: int
    offset: int
    line_bases: int
    line_width: int

    def offset_of(self, position: int) -> int:
        """Byte offset of a 0-based sequence position."""
        return self.offset + (position // self.line_bases) * self.line_width + position % self.line_bases

    def to_line(self) -> str: return '\t'.join(map(str, self)) + '\n'


class FaiIndex(Mapping):
    """
    A FASTA index: contig name to ``FaiEntry``.

    Examples:
        >>> index = FaiIndex.read("genome.fa.fai")
        >>> index.resolve(Region.parse("chr1:11-20"))
        (FaiEntry(name='chr1', ...), 10, 20)
    """
    __slots__ = ('_entries',)

    def __init__(self, entries: Union[list[FaiEntry], tuple[FaiEntry, ...]] = ()):
        self._entries: dict[str, FaiEntry] = {e.name: e for e in entries}

    def __getitem__(self, name: str) -> FaiEntry:
        try: return self._entries[name]
        except KeyError: raise IndexLookupError(f"Reference sequence '{name}' is not in the index") from None

    def __contains__(self, name) -> bool: return name in self._entries
    def __iter__(self) -> Iterator[str]: return iter(self._entries)
    def __len__(self) -> int: return len(self._entries)
    def __repr__(self): return f"FaiIndex({len(self)} sequences)"
    def get(self, name: str, default=None): return self._entries.get(name, default)

    def resolve(self, region: Region) -> tuple[FaiEntry, int, int]:
        """
        Resolves a region against the index.

        Returns:
            The contig's entry and the 0-based, half-open ``(start, end)`` of the region.

        Raises:
            IndexLookupError: For unknown contigs or coordinates past the contig end.
        """
        entry = self[region.name]
        start, end = region.interval(entry.length)
        return entry, start, end

    def offset_of(self, name: str, position: int) -> int:
        """
        Byte offset of a 0-based position on a contig, computed without reading the file.

        Raises:
            IndexLookupError: For unknown contigs or positions outside the contig.
        """
        entry = self[name]
        if not 0 <= position < entry.length:
            raise IndexLookupError(f"Position {position} is out of bounds for '{name}' (length {entry.length})")
        return entry.offset_of(position)

    @classmethod
    def read(cls, file: Union[str, Path]) -> 'FaiIndex':
        """
        Reads a ``.fai`` file.

        Raises:
            ParserError: If a line does not have five valid columns.
        """
        entries = []
        with open(file, 'rt') as handle:
            for line_no, line in enumerate(handle, 1):
                if not (line := line.rstrip('\r\n')): continue
                parts = line.split('\t')
                if len(parts) < 5: raise ParserError("FASTA index lines must have 5 columns", line_no)
                try: entries.append(FaiEntry(parts[0], *map(int, parts[1:5])))
                except ValueError: raise ParserError(f"Invalid FASTA index line: {line!r}", line_no) from None
        return cls(entries)

    def write(self, file: Union[str, Path]):
        with open(file, 'wt') as handle:
            for entry in self._entries.values(): handle.write(entry.to_line())

    @classmethod
    def build(cls, file: Union[str, Path, BinaryIO]) -> 'FaiIndex':
        """
        Builds an index by scanning an uncompressed FASTA file.

        Raises:
            InvalidInputError: If the file is gzip-compressed or line lengths within a sequence are not uniform.
        """
        if isinstance(file, (str, Path)):
            with open(file, 'rb') as handle:
                if handle.read(2) == b'\x1f\x8b': raise InvalidInputError("FASTA indexes require an uncompressed file")
                handle.seek(0)
                return cls._build(handle)
        return cls._build(file)

    @classmethod
    def _build(cls, handle: BinaryIO) -> 'FaiIndex':
        entries = []
        name = None
        offset = length = line_bases = line_width = 0
        # Line number of the last short line; only the final line of a sequence may be short
        short_line = None
        pos = 0
        for line_no, line in enumerate(handle, 1):
            width = len(line)
            if line.startswith(b'>'):
                if name is not None: entries.append(FaiEntry(name, length, offset, line_bases, line_width))
                try: name = line[1:].split(None, 1)[0].decode() if line[1:].strip() else ''
                except UnicodeDecodeError: raise ParserError("Sequence name is not valid UTF-8", line_no) from None
                offset, length, line_bases, line_width, short_line = pos + width, 0, 0, 0, None
            elif name is None:
                if line.strip(): raise InvalidInputError(f"Sequence data before the first header (line {line_no})")
            else:
                bases = len(line.rstrip(b'\r\n'))
                if short_line is not None and bases:
                    raise InvalidInputError(f"Different line length in sequence '{name}' (line {short_line})")
                if bases == 0:
                    short_line = line_no
                elif line_bases == 0:
                    line_bases, line_width = bases, width
                elif bases > line_bases:
                    raise InvalidInputError(f"Different line length in sequence '{name}' (line {line_no})")
                elif bases < line_bases or width != line_width:
                    # A full final line may lack its newline
                    short_line = line_no
                length += bases
            pos += width
        if name is not None: entries.append(FaiEntry(name, length, offset, line_bases, line_width))
        return cls(entries)


class _ContigWindows(NamedTuple):
    offsets: np.ndarray
    end_offset: int


class LinearIndex:
    """
    Tabix-style linear index over a coordinate-sorted, uncompressed GTF, GFF3, BED, VCF or SAM file.

    Each contig's records must be contiguous and sorted by start position.

    Examples:
        >>> index = LinearIndex.build("annotation.gtf", "gtf")
        >>> index.lookup(Region.parse("chr1:100000-200000"))
        (1843, 52210)
    """
    WINDOW_SHIFT = 14
    __slots__ = ('_contigs',)

    def __init__(self, contigs: dict[str, _ContigWindows] = None):
        self._contigs = contigs or {}

    def __contains__(self, name: str): return name in self._contigs
    def __len__(self): return len(self._contigs)
    def __repr__(self): return f"LinearIndex({len(self)} sequences)"

    @property
    def names(self) -> list[str]: return list(self._contigs)

    def lookup(self, region: Region) -> tuple[int, int]:
        """
        Finds the byte range to read for a region.

        Returns:
            ``(seek_offset, stop_offset)``: every record overlapping the region starts in this range.

        Raises:
            IndexLookupError: If the contig is not in the index.
        """
        if (contig := self._contigs.get(region.name)) is None:
            raise IndexLookupError(f"Reference sequence '{region.name}' is not in the index")
        start, _ = region.interval()
        window = start >> self.WINDOW_SHIFT
        if window >= len(contig.offsets): return contig.end_offset, contig.end_offset
        return int(contig.offsets[window]), contig.end_offset

    @classmethod
    def build(cls, file: Union[str, Path], fmt: str) -> 'LinearIndex':
        """
        Builds the index with a single pass over the file.

        Args:
            file: Path to an uncompressed, coordinate-sorted file.
            fmt: ``'gtf'``, ``'gff'``, ``'bed'``, ``'vcf'`` or ``'sam'``.

        Raises:
            InvalidInputError: For unknown formats, compressed input, or unsorted records.
            ParserError: For rows with too few columns or non-integer coordinates.
        """
        if (layout := _LAYOUTS.get(fmt)) is None:
            raise InvalidInputError(f"Cannot build a linear index for format '{fmt}'")
        with open(file, 'rb') as handle:
            if handle.read(2) == b'\x1f\x8b':
                raise InvalidInputError("Linear indexes require an uncompressed file")
            handle.seek(0)
            return cls._build(handle, layout)

    @classmethod
    def _build(cls, handle: BinaryIO, layout: '_Layout') -> 'LinearIndex':
        contigs: dict[str, _ContigWindows] = {}
        current, windows, last_start = None, [], -1
        pos = 0

        for line_no, line in enumerate(handle, 1):
            offset, pos = pos, pos + len(line)
            if line.startswith(b"##FASTA"):
                pos = offset
                break
            if not line.strip() or line.startswith(layout.skip): continue
            parts = line.rstrip(b'\r\n').split(b'\t')
            if len(parts) < layout.n_cols: raise ParserError(f"Expected at least {layout.n_cols} columns", line_no)
            try: span = layout.span(parts)
            except (ValueError, ParserError): raise ParserError("Invalid coordinates", line_no) from None
            if span is None: continue
            name, start, end = span
            name = name.decode()

            if name != current:
                if current is not None: contigs[current] = cls._close(windows, offset)
                if name in contigs:
                    raise InvalidInputError(f"Records for '{name}' are not contiguous (line {line_no}); sort the file")
                current, windows, last_start = name, [], -1
            if start < last_start:
                raise InvalidInputError(f"Records are not sorted by start position (line {line_no}); sort the file")
            last_start = start

            first = start >> cls.WINDOW_SHIFT
            last = (max(end, start + 1) - 1) >> cls.WINDOW_SHIFT
            if len(windows) <= last: windows.extend([-1] * (last + 1 - len(windows)))
            for w in range(first, last + 1):
                if windows[w] == -1: windows[w] = offset

        if current is not None: contigs[current] = cls._close(windows, pos)
        return cls(contigs)

    @staticmethod
    def _close(windows: list[int], end_offset: int) -> _ContigWindows:
        # Empty windows take the offset of the next populated window
        offsets = np.array(windows, dtype=np.int64)
        fill = end_offset
        for i in range(len(offsets) - 1, -1, -1):
            if offsets[i] == -1: offsets[i] = fill
            else: fill = offsets[i]
        return _ContigWindows(offsets, end_offset)

    def save(self, file: Union[str, Path]):
        """Saves the index as a numpy ``.npz`` archive."""
        names = np.array(self.names, dtype=str)
        ends = np.array([c.end_offset for c in self._contigs.values()], dtype=np.int64)
        arrays = {f'offsets_{i}': c.offsets for i, c in enumerate(self._contigs.values())}
        np.savez(file, names=names, ends=ends, **arrays)

    @classmethod
    def load(cls, file: Union[str, Path]) -> 'LinearIndex':
        with np.load(file, allow_pickle=False) as data:
            names, ends = data['names'], data['ends']
            return cls({
                str(n): _ContigWindows(data[f'offsets_{i}'], int(e)) for i, (n, e) in enumerate(zip(names, ends))
            })


# Functions ------------------------------------------------------------------------------------------------------------
# Each returns (name, 0-based start, exclusive end) for a split data line, or None for a line that is not indexed
def _gxf_span(parts: list[bytes]): return parts[0], int(parts[3]) - 1, int(parts[4])
def _bed_span(parts: list[bytes]): return parts[0], int(parts[1]), int(parts[2])


def _vcf_span(parts: list[bytes]):
    start = int(parts[1]) - 1
    end = start + max(len(parts[3]), 1)
    for item in parts[7].split(b';') if len(parts) > 7 else ():
        if item.startswith(b'END='): end = int(item[4:])
    return parts[0], start, end


def _sam_span(parts: list[bytes]) -> Optional[tuple]:
    if parts[2] == b'*' or parts[3] == b'0': return None
    start = int(parts[3]) - 1
    return parts[2], start, start + cigar_reference_length(parts[5].decode())


class _Layout(NamedTuple):
    span: Callable
    n_cols: int
    skip: tuple[bytes, ...] = (b'#', b'track', b'browser')


# Constants ------------------------------------------------------------------------------------------------------------
_LAYOUTS = {
    'gtf': _Layout(_gxf_span, 5),
    'gff': _Layout(_gxf_span, 5),
    'bed': _Layout(_bed_span, 3),
    'vcf': _Layout(_vcf_span, 4, (b'#',)),
    'sam': _Layout(_sam_span, 6, (b'@',)),
}
