"""
FASTA and FASTQ readers. Records are parsed from fixed-size chunks rather than line by line.
"""
from typing import Generator, Iterable

from bioarrow.containers.record import FastaRecord, FastqRecord
from bioarrow.core.region import Region
from bioarrow.errors import ParserError
from bioarrow.io import BaseReader
from bioarrow.io.index import FaiIndex


# Constants ------------------------------------------------------------------------------------------------------------
_WHITESPACE = b'\r\n\t '


# Classes --------------------------------------------------------------------------------------------------------------
class FastaReader(BaseReader):
    """
    Reader for FASTA format files.

    Examples:
        >>> with FastaReader.open("genome.fasta") as reader:
        ...     for record in reader:
        ...         print(record.name, len(record))
    """
    __slots__ = ()

    def __iter__(self) -> Generator[FastaRecord, None, None]:
        """
        Iterates over FASTA records from the current position.

        Yields:
            FastaRecord objects.

        Raises:
            ParserError: If sequence data appears before the first header, or a record holds undecodable bytes.
        """
        for n, (header, seq_parts) in enumerate(self._read_entries(), 1):
            try: record = self._make_record(header, seq_parts)
            except UnicodeDecodeError as e:
                raise ParserError(f"Invalid byte {e.object[e.start:e.end]!r} in FASTA record {n}") from None
            yield record

    def _read_entries(self):
        """Internal generator that yields (header, seq_parts_list)."""
        read = self._handle.read
        buf = b""
        header = None
        seq_parts = []

        while True:
            chunk = read(self._CHUNK_SIZE)
            if not chunk:
                if header is not None:
                    seq_parts.append(buf)
                    yield header, seq_parts
                elif buf.startswith(b'>'):
                    yield buf[1:].rstrip(), []  # Final header without a newline
                elif buf.strip():
                    raise ParserError("Sequence data before the first FASTA header")
                break

            buf += chunk
            pos = 0

            while True:
                gt_pos = buf.find(b'>', pos)

                if gt_pos == -1:
                    if header is not None: seq_parts.append(buf[pos:])
                    elif buf[pos:].strip(): raise ParserError("Sequence data before the first FASTA header")
                    buf = b""
                    break

                if header is not None:
                    seq_parts.append(buf[pos:gt_pos])
                    yield header, seq_parts
                    seq_parts = []
                    header = None
                elif buf[pos:gt_pos].strip():
                    raise ParserError("Sequence data before the first FASTA header")

                nl_pos = buf.find(b'\n', gt_pos)
                if nl_pos == -1:
                    buf = buf[gt_pos:]
                    break

                header = buf[gt_pos + 1:nl_pos].rstrip()
                pos = nl_pos + 1

    @staticmethod
    def _make_record(header: bytes, seq_parts: Iterable[bytes]) -> FastaRecord:
        name, _, desc = header.partition(b' ')
        sequence = b"".join(seq_parts).translate(None, _WHITESPACE)
        return FastaRecord(name.decode(), desc.strip().decode() or None, sequence.decode('ascii'))

    def query(self, index: FaiIndex, region: Region) -> Generator[FastaRecord, None, None]:
        """
        Reads the slice of a sequence covered by a region, seeking directly to it.

        Args:
            index: The FASTA index of the underlying file.
            region: The region to fetch.

        Yields:
            One record named after the region, holding the requested subsequence.

        Raises:
            IndexLookupError: For unknown contigs or out-of-range coordinates.
            ParserError: If the file is shorter than the index claims.
        """
        entry, start, end = index.resolve(region)
        if end <= start:
            yield FastaRecord(str(region), None, '')
            return
        first, last = entry.offset_of(start), entry.offset_of(end - 1) + 1
        self.seek(first)
        data = self._handle.read(last - first).translate(None, _WHITESPACE)
        try: sequence = data.decode('ascii')
        except UnicodeDecodeError: raise ParserError(f"Non-ASCII sequence data in {region}") from None
        if len(data) != end - start:
            raise ParserError(f"Unexpected end of file reading {region} (the index may be stale)")
        yield FastaRecord(str(region), None, sequence)


class FastqReader(BaseReader):
    """
    Reader for FASTQ format files. Only standard 4-line records are supported.

    Examples:
        >>> with FastqReader.open("reads.fastq.gz") as reader:
        ...     for record in reader:
        ...         print(record.name)
    """
    __slots__ = ()

    def __iter__(self) -> Generator[FastqRecord, None, None]:
        """
        Iterates over FASTQ records.

        Raises:
            ParserError: On a missing ``@``/``+`` line, mismatched sequence/quality lengths, a truncated
                record or undecodable bytes.
        """
        for n, (header, seq_bytes, qual_bytes) in enumerate(self._read_entries(), 1):
            name, _, desc = header.partition(b' ')
            try:
                record = FastqRecord(name.decode(), desc.strip().decode() or None, seq_bytes.decode('ascii'),
                                     qual_bytes.decode('ascii'))
            except UnicodeDecodeError as e:
                raise ParserError(f"Invalid byte {e.object[e.start:e.end]!r} in FASTQ record {n}") from None
            yield record

    def _read_entries(self):
        buf = b""
        n_records = 0
        while True:
            chunk = self._handle.read(self._CHUNK_SIZE)
            eof = not chunk
            if eof:
                if buf and not buf.endswith(b'\n'): buf += b'\n'
            else:
                buf += chunk

            pos = 0
            n_len = len(buf)

            while pos < n_len:
                # Skip whitespace between records
                while pos < n_len and buf[pos] in (10, 13, 32, 9):
                    pos += 1

                if pos >= n_len: break

                if buf[pos] != 64:  # @
                    raise ParserError(f"Invalid FASTQ header in record {n_records + 1}: expected '@'")

                nl1 = buf.find(b'\n', pos)
                if nl1 == -1: break
                nl2 = buf.find(b'\n', nl1 + 1)
                if nl2 == -1: break
                nl3 = buf.find(b'\n', nl2 + 1)
                if nl3 == -1: break
                nl4 = buf.find(b'\n', nl3 + 1)
                if nl4 == -1: break

                header = buf[pos + 1:nl1].rstrip()
                seq_bytes = buf[nl1 + 1:nl2].rstrip()
                if buf[nl2 + 1:nl2 + 2] != b'+':
                    raise ParserError(f"Missing '+' separator in FASTQ record {n_records + 1}")
                qual_bytes = buf[nl3 + 1:nl4].rstrip()
                if len(seq_bytes) != len(qual_bytes):
                    raise ParserError(f"Sequence and quality lengths differ in FASTQ record {n_records + 1}")

                n_records += 1
                yield header, seq_bytes, qual_bytes
                pos = nl4 + 1

            buf = buf[pos:]
            if eof:
                if buf.strip(): raise ParserError(f"Truncated FASTQ record {n_records + 1}")
                break
