"""
Record readers for genomic text formats, the physical file layer, and coordinate indexes.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union, Generator, BinaryIO, Optional

from bioarrow.errors import InvalidInputError
from bioarrow.io.open import Xopen


# Classes --------------------------------------------------------------------------------------------------------------
class BaseReader(ABC):
    """
    Abstract base class for record readers.

    A reader yields one parsed record at a time starting from the current position of its handle. Readers created
    with ``open`` own their handle and release it on ``close``; readers wrapping a caller's handle leave it open.
    """
    _CHUNK_SIZE = 65536
    __slots__ = ('_handle', '_iterator', '_opener')

    def __init__(self, handle: BinaryIO, **kwargs):
        """
        Initializes the reader.

        Args:
            handle: The open binary handle to read from.
        """
        self._handle = handle
        self._iterator = None
        self._opener: Optional[Xopen] = None

    @classmethod
    def open(cls, file: Union[str, Path, BinaryIO], **kwargs) -> 'BaseReader':
        """
        Opens a path (or stream), transparently decompressing it.

        Examples:
            >>> with FastaReader.open("genome.fa") as reader:
            ...     names = [r.name for r in reader]
        """
        opener = Xopen(file, mode='rb')
        reader = cls(opener.__enter__(), **kwargs)
        reader._opener = opener
        return reader

    @abstractmethod
    def __iter__(self) -> Generator: ...
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()
    def __next__(self):
        if self._iterator is None:
            self._iterator = self.__iter__()
        return next(self._iterator)

    @property
    def compressed(self) -> bool:
        return self._opener is not None and self._opener.compression is not None

    @property
    def closed(self) -> bool: return getattr(self._handle, 'closed', False)

    def seekable(self) -> bool:
        """True when the reader supports index queries (uncompressed, seekable handle)."""
        if self.compressed: return False
        try: return self._handle.seekable()
        except (AttributeError, ValueError): return False

    def seek(self, offset: int):
        """
        Repositions the reader at a byte offset, discarding any in-progress iteration.

        Raises:
            InvalidInputError: If the underlying source is compressed or not seekable.
        """
        if not self.seekable():
            raise InvalidInputError("Reader is not seekable; indexed queries require an uncompressed file")
        self._iterator = None
        self._handle.seek(offset)

    def close(self):
        """Closes the reader, releasing the handle if this reader opened it."""
        self._iterator = None
        if self._opener is not None:
            self._opener.__exit__(None, None, None)
            self._opener = None
