"""
Binary alignment and variant files (BAM, BCF), decoded by pysam.

Records are converted through their SAM or VCF text form, so a binary file yields the same records as its text
equivalent. Region queries use the file's own ``.bai``/``.csi`` index rather than a ``LinearIndex``.
"""
from importlib import import_module
from pathlib import Path
from typing import Union, Generator, Optional

from bioarrow import RESOURCES
from bioarrow.containers.record import SamRecord, VcfRecord
from bioarrow.core.region import Region
from bioarrow.errors import InvalidInputError, IndexLookupError, ParserError
from bioarrow.io import BaseReader
from bioarrow.io.tabular import SamReader, VcfReader, VcfHeader


# Functions ------------------------------------------------------------------------------------------------------------
def load_pysam():
    """Imports pysam, an optional dependency."""
    if not RESOURCES.has_module('pysam'):
        raise ModuleNotFoundError("Reading BAM and BCF files requires the optional 'pysam' package")
    return import_module('pysam')


# Classes --------------------------------------------------------------------------------------------------------------
class HtsReader(BaseReader):
    """
    Base class for readers over a pysam file object. Readers created with ``open`` close the file on ``close``.
    """
    __slots__ = ('_owned',)

    def __init__(self, handle, **kwargs):
        super().__init__(handle, **kwargs)
        self._owned = False

    @classmethod
    def open(cls, file: Union[str, Path], index: Union[str, Path, None] = None, **kwargs) -> 'HtsReader':
        """
        Opens a file by path.

        Args:
            file: Path to the binary file.
            index: Path to its index. When None, htslib looks for one next to the file.

        Raises:
            InvalidInputError: If ``file`` is not a path.
            ModuleNotFoundError: If pysam is not installed.
        """
        if not isinstance(file, (str, Path)): raise InvalidInputError(f"{cls.__name__} can only open paths")
        reader = cls(cls._open_file(str(Path(file).expanduser()), None if index is None else str(index)), **kwargs)
        reader._owned = True
        return reader

    @staticmethod
    def _open_file(path: str, index: Optional[str]): raise NotImplementedError

    @property
    def closed(self) -> bool: return not self._handle.is_open

    def seekable(self) -> bool: return False

    def close(self):
        super().close()
        if self._owned and self._handle.is_open: self._handle.close()

    def query(self, index, region: Region) -> Generator:
        """
        Yields the records overlapping a region through the file's index. The ``index`` argument is unused: the index
        is the one loaded with the file.

        Raises:
            IndexLookupError: If the contig is not in the file header.
            InvalidInputError: If the file has no index.
        """
        if region.name not in self._contigs():
            raise IndexLookupError(f"Reference sequence '{region.name}' is not in the file header")
        start, end = region.interval()
        try: items = self._handle.fetch(region.name, start, end)
        except ValueError as e: raise InvalidInputError(f"Cannot query {region}: {e}") from None
        convert = self._convert
        for item in items: yield convert(item)

    def __iter__(self) -> Generator:
        convert = self._convert
        for item in self._handle: yield convert(item)

    def _contigs(self): raise NotImplementedError
    def _convert(self, item): raise NotImplementedError


class BamReader(HtsReader):
    """
    Reader for BAM files.

    Examples:
        >>> with BamReader.open("aligned.bam") as reader:
        ...     for record in reader:
        ...         print(record.qname, record.cigar)
    """
    __slots__ = ()

    @staticmethod
    def _open_file(path: str, index: Optional[str]):
        return load_pysam().AlignmentFile(path, 'rb', index_filename=index, check_sq=False)

    def _contigs(self): return self._handle.references

    def _convert(self, segment) -> SamRecord:
        try: return SamReader.parse_row(segment.to_string().split('\t'))
        except ValueError as e:  # ParserError included
            raise ParserError(f"{e} in alignment {segment.query_name!r}") from None


class BcfReader(HtsReader):
    """
    Reader for BCF (and bgzipped, indexed VCF) files. Per-sample columns are not decoded.

    Examples:
        >>> with BcfReader.open("calls.bcf") as reader:
        ...     for record in reader:
        ...         print(record.chrom, record.pos, record.info)
    """
    __slots__ = ('_header',)

    def __init__(self, handle, **kwargs):
        super().__init__(handle, **kwargs)
        self._header = VcfHeader.from_text(str(handle.header))

    @staticmethod
    def _open_file(path: str, index: Optional[str]):
        return load_pysam().VariantFile(path, 'r', index_filename=index)

    @property
    def header(self) -> VcfHeader: return self._header

    def _contigs(self): return self._handle.header.contigs

    def _convert(self, variant) -> VcfRecord:
        parts = str(variant).rstrip('\n').split('\t')
        try: return VcfReader.parse_fields(parts, self._header)
        except ValueError as e: raise ParserError(f"{e} at {parts[0]}:{parts[1]}") from None
