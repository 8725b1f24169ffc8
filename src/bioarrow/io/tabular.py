"""
Tab-delimited record readers: GTF, GFF3, BED, VCF and SAM.

Each reader yields one record per data line and can answer region queries through a ``LinearIndex`` when its file is
uncompressed and coordinate-sorted.
"""
import re
from abc import abstractmethod
from typing import Union, Generator, Optional
from urllib.parse import unquote
from warnings import warn

from bioarrow import ParserWarning
from bioarrow.containers.record import GxfRecord, GtfRecord, GffRecord, BedRecord, VcfRecord, SamRecord
from bioarrow.core.region import Region
from bioarrow.errors import ParserError
from bioarrow.io import BaseReader
from bioarrow.io.index import LinearIndex
from bioarrow.model.attribute import AttributeType


# Classes --------------------------------------------------------------------------------------------------------------
class AttributeParser:
    """
    Parses the attribute column of GTF and GFF3 lines into ordered ``(key, value)`` pairs.
    """
    _GTF_ENTRY = re.compile(r'([^\s";]+)\s+(?:"((?:[^"\\]|\\.)*)"|([^\s";]+))\s*(?:;|$)')

    @classmethod
    def parse_gtf(cls, text: str) -> list[tuple[str, str]]:
        """
        Parses GTF attributes.

        Args:
            text: The attribute string (e.g., ``gene_id "g1"; exon_number 2;``).

        Returns:
            A list of ``(key, value)`` pairs, quotes removed.

        Raises:
            ParserError: If an entry is not a key followed by a single value.
        """
        entries = []
        pos, n = 0, len(text)
        while True:
            while pos < n and text[pos] in ' \t;': pos += 1
            if pos >= n: break
            if (m := cls._GTF_ENTRY.match(text, pos)) is None:
                raise ParserError(f"Invalid GTF attribute entry: {text[pos:]!r}")
            entries.append((m[1], m[2] if m[2] is not None else m[3]))
            pos = m.end()
        return entries

    @staticmethod
    def parse_gff(text: str) -> list[tuple[str, Union[str, list[str]]]]:
        """
        Parses GFF3 attributes, percent-decoding keys and values.

        Args:
            text: The attribute string (e.g., ``ID=gene1;Parent=tx1,tx2``).

        Returns:
            A list of ``(key, value)`` pairs; comma-separated values are returned as lists.

        Raises:
            ParserError: If an entry has no ``=`` or an empty key.
        """
        if text == '.': return []
        entries = []
        for item in text.split(';'):
            if not (item := item.strip()): continue
            key, sep, value = item.partition('=')
            if not sep or not key: raise ParserError(f"Invalid GFF attribute entry: {item!r}")
            if ',' in value: entries.append((unquote(key), [unquote(v) for v in value.split(',')]))
            else: entries.append((unquote(key), unquote(value)))
        return entries


class TabularReader(BaseReader):
    """Base class for readers of tab-delimited formats."""
    _delim = '\t'
    _min_cols: int = 1
    _comment_prefixes: tuple[str, ...] = ('#',)
    __slots__ = ()

    def _read_parts(self) -> Generator[tuple[int, list[str]], None, None]:
        """Internal generator that yields ``(line_number, columns)`` for data lines."""
        for line_no, line in enumerate(self._handle, 1):
            if (parts := self._split(line, line_no)) is not None: yield line_no, parts

    def _split(self, line: bytes, line_no: int) -> Optional[list[str]]:
        try: text = line.decode().rstrip('\r\n')
        except UnicodeDecodeError: raise ParserError("Line is not valid UTF-8", line_no) from None
        if not text.strip() or text.startswith(self._comment_prefixes): return None
        parts = text.split(self._delim)
        if len(parts) < self._min_cols:
            raise ParserError(f"Expected at least {self._min_cols} columns, found {len(parts)}", line_no)
        return parts

    def __iter__(self) -> Generator:
        """
        Iterates over data lines, parsing each into a record.

        Raises:
            ParserError: On malformed lines.
        """
        parse = self.parse_row
        for line_no, parts in self._read_parts():
            try: record = parse(parts)
            except ValueError as e:  # ParserError included
                if isinstance(e, ParserError) and e.line is not None: raise
                raise ParserError(str(e), line_no) from None
            yield record

    def query(self, index: LinearIndex, region: Region) -> Generator:
        """
        Yields the records overlapping a region, reading only the byte range the index points to.

        Args:
            index: Linear index of the underlying (uncompressed, sorted) file.
            region: The region to fetch.

        Raises:
            IndexLookupError: If the contig is not in the index.
        """
        seek_offset, stop_offset = index.lookup(region)
        start, end = region.interval()
        self.seek(seek_offset)
        readline = self._handle.readline
        pos = seek_offset
        while pos < stop_offset:
            if not (line := readline()): break
            pos += len(line)
            if (parts := self._split(line, None)) is None: continue
            try: record = self.parse_row(parts)
            except ValueError as e: raise ParserError(str(e)) from None
            if (span := self.span(record)) is None: continue
            rec_start, rec_end = span
            if end is not None and rec_start >= end: break
            if max(rec_end, rec_start + 1) > start: yield record

    @abstractmethod
    def parse_row(self, parts: list[str]):
        """
        Parses a single row split by delimiter.

        Args:
            parts: List of column strings.
        """
        ...

    @staticmethod
    @abstractmethod
    def span(record) -> Optional[tuple[int, int]]:
        """Returns the 0-based, half-open extent of a record, or None if it is not placed on the reference."""
        ...

    @staticmethod
    def _optional(value: str) -> Optional[str]: return None if value == '.' else value

    @staticmethod
    def _score(value: str) -> Optional[float]:
        if value == '.': return None
        try: return float(value)
        except ValueError: raise ParserError(f"Invalid score: {value!r}") from None

    @staticmethod
    def _position(value: str) -> int:
        try: return int(value)
        except ValueError: raise ParserError(f"Invalid position: {value!r}") from None


class GxfReader(TabularReader):
    """Shared parsing for the nine-column GTF and GFF3 layouts."""
    _min_cols = 8
    _record_type: type[GxfRecord] = GxfRecord
    __slots__ = ()

    def parse_row(self, parts: list[str]) -> GxfRecord:
        attributes = self.parse_attributes(parts[8]) if len(parts) > 8 else []
        opt = self._optional
        return self._record_type(
            parts[0], opt(parts[1]), parts[2], self._position(parts[3]), self._position(parts[4]),
            self._score(parts[5]), opt(parts[6]), opt(parts[7]), attributes
        )

    @staticmethod
    def span(record: GxfRecord) -> tuple[int, int]: return record.start - 1, record.end

    @staticmethod
    @abstractmethod
    def parse_attributes(text: str) -> list: ...


class GtfReader(GxfReader):
    """
    Reader for GTF (GFF2) format files.

    Examples:
        >>> with GtfReader.open("genes.gtf") as reader:
        ...     for record in reader:
        ...         print(record.type, record.attributes)
    """
    _record_type = GtfRecord
    __slots__ = ()

    @staticmethod
    def parse_attributes(text: str) -> list[tuple[str, str]]: return AttributeParser.parse_gtf(text)


class GffReader(GxfReader):
    """
    Reader for GFF3 format files. Reading stops at a ``##FASTA`` directive.

    Examples:
        >>> with GffReader.open("features.gff3") as reader:
        ...     for record in reader:
        ...         print(record.type)
    """
    _record_type = GffRecord
    __slots__ = ()

    def _read_parts(self) -> Generator[tuple[int, list[str]], None, None]:
        for line_no, line in enumerate(self._handle, 1):
            if line.startswith(b'##FASTA'):
                warn(f"Skipping the embedded ##FASTA section at line {line_no}", ParserWarning)
                return
            if (parts := self._split(line, line_no)) is not None: yield line_no, parts

    @staticmethod
    def parse_attributes(text: str) -> list[tuple[str, Union[str, list[str]]]]:
        return AttributeParser.parse_gff(text)


class BedReader(TabularReader):
    """
    Reader for BED3 to BED6 files; columns beyond the sixth are ignored.

    Examples:
        >>> with BedReader.open("peaks.bed") as reader:
        ...     for record in reader:
        ...         print(record.chrom, record.start, record.end)
    """
    _min_cols = 3
    _comment_prefixes = ('#', 'track', 'browser')
    __slots__ = ()

    def parse_row(self, parts: list[str]) -> BedRecord:
        n_cols = len(parts)
        return BedRecord(
            parts[0], self._position(parts[1]), self._position(parts[2]),
            self._optional(parts[3]) if n_cols > 3 else None,
            self._score(parts[4]) if n_cols > 4 else None,
            self._optional(parts[5]) if n_cols > 5 else None
        )

    @staticmethod
    def span(record: BedRecord) -> tuple[int, int]: return record.start, record.end


class VcfHeader:
    """
    The meta-information and column header lines of a VCF file.

    INFO declarations fix the shape of each key: flags (``Number=0``) and single values (``Number=1``) are strings,
    and every other ``Number`` (``A``, ``R``, ``G``, ``.`` or a count above one) is an array. Keys missing from the
    header are shaped by their values, with comma-separated values becoming arrays.

    Examples:
        >>> header = VcfHeader.from_text('##INFO=<ID=AF,Number=A,Type=Float,Description="Allele frequency">')
        >>> header.attribute_defs()
        [('AF', 'Array')]
    """
    _META = re.compile(r'^##(\w+)=<(.*)>$')
    _ITEM = re.compile(r'(\w+)=("(?:[^"\\]|\\.)*"|[^,]*)')
    __slots__ = ('lines', 'info', 'samples')

    def __init__(self):
        self.lines: list[str] = []
        self.info: dict[str, AttributeType] = {}
        self.samples: list[str] = []

    def __len__(self): return len(self.lines)
    def __repr__(self): return f"VcfHeader({len(self.info)} INFO keys, {len(self.samples)} samples)"

    @classmethod
    def from_text(cls, text: str) -> 'VcfHeader':
        header = cls()
        for line in text.splitlines():
            if line: header.add_line(line)
        return header

    def add_line(self, line: str):
        """
        Records one header line (without its newline).

        Raises:
            ParserError: If an INFO declaration has no ID.
        """
        self.lines.append(line)
        if line.startswith('#CHROM'):
            self.samples = line.split('\t')[9:]
        elif (m := self._META.match(line)) is not None and m[1] == 'INFO':
            items = {}
            for key, value in self._ITEM.findall(m[2]): items.setdefault(key, value)
            if not items.get('ID'): raise ParserError(f"INFO declaration without an ID: {line!r}")
            number = items.get('Number', '.')
            self.info.setdefault(items['ID'], AttributeType.STRING if number in ('0', '1') else AttributeType.ARRAY)

    def attribute_defs(self) -> list[tuple[str, str]]:
        """Returns the declared INFO keys as ``(name, type)`` pairs sorted by name."""
        return [(name, self.info[name].value) for name in sorted(self.info)]

    def parse_info(self, text: str) -> list[tuple[str, Union[str, list[str]]]]:
        """
        Parses an INFO column into ``(key, value)`` pairs, percent-decoding values. Present flags hold ``'true'``.
        """
        if text == '.': return []
        entries = []
        for item in text.split(';'):
            if not item: continue
            key, sep, value = item.partition('=')
            if not key: raise ParserError(f"Invalid INFO entry: {item!r}")
            if not sep:
                entries.append((key, 'true'))
                continue
            shape = self.info.get(key)
            if shape is AttributeType.ARRAY or (shape is None and ',' in value):
                entries.append((key, [unquote(v) for v in value.split(',')]))
            else:
                entries.append((key, unquote(value)))
        return entries


class VcfReader(TabularReader):
    """
    Reader for VCF files. The header is read before the first record; its INFO declarations shape the values of each
    record's INFO column. Per-sample columns are not parsed.

    Examples:
        >>> with VcfReader.open("calls.vcf.gz") as reader:
        ...     print(reader.header.samples)
        ...     for record in reader:
        ...         print(record.chrom, record.pos, record.alt)
    """
    _min_cols = 8
    __slots__ = ('_header', '_pending')

    def __init__(self, handle, **kwargs):
        super().__init__(handle, **kwargs)
        self._header: Optional[VcfHeader] = None
        self._pending: Optional[tuple[int, bytes]] = None

    @property
    def header(self) -> VcfHeader:
        """The file header, read on first access."""
        if self._header is None: self._header = self._read_header()
        return self._header

    def _read_header(self) -> VcfHeader:
        header = VcfHeader()
        line_no = 0
        while line := self._handle.readline():
            line_no += 1
            if not line.startswith(b'#'):
                self._pending = (line_no, line)
                break
            try: header.add_line(line.decode().rstrip('\r\n'))
            except UnicodeDecodeError: raise ParserError("Line is not valid UTF-8", line_no) from None
            except ParserError as e: raise ParserError(str(e), line_no) from None
        return header

    def _read_parts(self) -> Generator[tuple[int, list[str]], None, None]:
        first = len(self.header) + 1
        if self._pending is not None:
            line_no, line = self._pending
            self._pending = None
            if (parts := self._split(line, line_no)) is not None: yield line_no, parts
        for line_no, line in enumerate(self._handle, first + 1):
            if (parts := self._split(line, line_no)) is not None: yield line_no, parts

    def seek(self, offset: int):
        self._pending = None
        super().seek(offset)

    def query(self, index: LinearIndex, region: Region) -> Generator[VcfRecord, None, None]:
        self.header
        yield from super().query(index, region)

    def parse_row(self, parts: list[str]) -> VcfRecord: return self.parse_fields(parts, self.header)

    @classmethod
    def parse_fields(cls, parts: list[str], header: VcfHeader) -> VcfRecord:
        """Parses the first eight columns of a data line."""
        opt = cls._optional
        return VcfRecord(
            parts[0], cls._position(parts[1]), opt(parts[2]), parts[3], [] if parts[4] == '.' else parts[4].split(','),
            cls._score(parts[5]), opt(parts[6]), header.parse_info(parts[7])
        )

    @staticmethod
    def span(record: VcfRecord) -> tuple[int, int]: return record.pos - 1, record.end


class SamReader(TabularReader):
    """
    Reader for SAM text files. ``@`` header lines are skipped.

    Examples:
        >>> with SamReader.open("aligned.sam") as reader:
        ...     for record in reader:
        ...         print(record.qname, record.rname, record.pos, record.cigar)
    """
    _min_cols = 11
    _comment_prefixes = ('@',)
    _TAG = re.compile(r'([A-Za-z][A-Za-z0-9]):([AifZHB]):(.*)')
    __slots__ = ()

    @classmethod
    def parse_row(cls, parts: list[str]) -> SamRecord:
        opt, position = cls._missing, cls._position
        mapq = position(parts[4])
        return SamRecord(
            opt(parts[0]), position(parts[1]), opt(parts[2]), position(parts[3]) or None,
            None if mapq == 255 else mapq, opt(parts[5]), opt(parts[6]), position(parts[7]) or None,
            position(parts[8]), opt(parts[9]), opt(parts[10]), cls.parse_tags(parts[11:])
        )

    @classmethod
    def parse_tags(cls, items: list[str]) -> list[tuple[str, Union[str, list[str]]]]:
        """
        Parses ``TAG:TYPE:VALUE`` fields. ``B`` arrays become lists (their element subtype is dropped); every other
        type keeps its text value.

        Raises:
            ParserError: For malformed fields.
        """
        tags = []
        for item in items:
            if (m := cls._TAG.fullmatch(item)) is None: raise ParserError(f"Invalid SAM tag: {item!r}")
            tag, type_, value = m.groups()
            if type_ == 'B':
                _, _, values = value.partition(',')
                tags.append((tag, values.split(',') if values else []))
            else:
                tags.append((tag, value))
        return tags

    @staticmethod
    def _missing(value: str) -> Optional[str]: return None if value == '*' else value

    @staticmethod
    def span(record: SamRecord) -> Optional[tuple[int, int]]:
        if record.rname is None or record.pos is None: return None
        return record.pos - 1, record.end
