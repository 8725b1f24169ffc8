"""
Physical file layer: opens paths, streams and stdin, and transparently decompresses them by sniffing magic bytes.
"""
from io import IOBase, BufferedReader
from typing import Union, BinaryIO, Optional
from pathlib import Path
from sys import stdin
from importlib import import_module

from bioarrow import RESOURCES


# Classes --------------------------------------------------------------------------------------------------------------
class PeekableHandle:
    """
    A wrapper around a non-seekable BinaryIO stream that allows peeking at the beginning of the content without
    consuming it. Used by Xopen to sniff compression on pipes.
    """
    __slots__ = ('_stream', '_peek_buffer', '_buffer_pos', '_buffer_len')

    def __init__(self, stream: BinaryIO, max_peek: int = 4096):
        """
        Initializes the PeekableHandle.

        Args:
            stream: The underlying binary stream.
            max_peek: Maximum number of bytes to buffer for peeking.
        """
        self._stream = stream
        self._peek_buffer = stream.read(max_peek)
        self._buffer_pos = 0
        self._buffer_len = len(self._peek_buffer)

    def peek(self, size: int = -1) -> bytes:
        """Returns buffered content without advancing the stream position."""
        if size == -1 or size > self._buffer_len: return self._peek_buffer
        return self._peek_buffer[:size]

    def read(self, size: int = -1) -> bytes:
        """
        Reads from the stream, consuming the buffer first if available.

        Args:
            size: Number of bytes to read. If -1, reads until EOF.
        """
        if self._buffer_pos >= self._buffer_len:
            return self._stream.read(size)

        if size is None or size < 0:
            chunk = self._peek_buffer[self._buffer_pos:]
            self._buffer_pos = self._buffer_len
            return chunk + self._stream.read()

        available = self._buffer_len - self._buffer_pos
        if size <= available:
            chunk = self._peek_buffer[self._buffer_pos: self._buffer_pos + size]
            self._buffer_pos += size
            return chunk
        chunk = self._peek_buffer[self._buffer_pos:]
        self._buffer_pos = self._buffer_len
        return chunk + self._stream.read(size - available)

    def readline(self, size: int = -1) -> bytes:
        if self._buffer_pos >= self._buffer_len: return self._stream.readline(size)
        nl_pos = self._peek_buffer.find(b'\n', self._buffer_pos)
        if nl_pos != -1:
            line = self._peek_buffer[self._buffer_pos:nl_pos + 1]
            self._buffer_pos = nl_pos + 1
            return line
        # Line continues past the buffer
        line = self._peek_buffer[self._buffer_pos:]
        self._buffer_pos = self._buffer_len
        return line + self._stream.readline()

    def __iter__(self):
        while line := self.readline(): yield line

    def seekable(self) -> bool: return False

    def close(self):
        """Closes the underlying stream if possible."""
        if hasattr(self._stream, 'close'): self._stream.close()


class Xopen:
    """
    Handles the Physical Layer: Compression and File System.

    Examples:
        >>> with Xopen("annotation.gff.gz") as f:
        ...     content = f.read()
    """
    _MAGIC = {
        b'\x1f\x8b': 'gzip',
        b'\x42\x5a\x68': 'bz2',
        b'\xfd7zXZ\x00': 'lzma',
        b'\x28\xb5\x2f\xfd': 'zstandard'
    }
    _MIN_N_BYTES = max(len(i) for i in _MAGIC.keys())
    _OPEN_FUNCS = {}

    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'rb'):
        """
        Initializes the Xopen context manager.

        Args:
            file: File path (str or Path), ``-`` for stdin, or an existing binary file object.
            mode: Only reading (``'rb'``) is supported.
        """
        if 'r' not in mode: raise ValueError(f"Xopen only supports reading, got mode '{mode}'")
        self.file = file
        self.mode = mode
        self.compression: Optional[str] = None
        self._handle: Optional[BinaryIO] = None
        self._raw: Optional[BinaryIO] = None
        self._close_on_exit = False

    @property
    def name(self) -> str: return getattr(self.file, 'name', str(self.file))

    def __enter__(self) -> BinaryIO:
        """Opens the file and returns the (decompressed) binary handle."""
        self._handle = self._open()
        return self._handle

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Closes the handles opened by this instance."""
        if self._close_on_exit:
            if self._handle is not None: self._handle.close()
            if self._raw is not None and self._raw is not self._handle: self._raw.close()
        self._handle = self._raw = None

    def _get_opener(self, pkg_name: str):
        """Retrieves the open function for a compression package, importing it if necessary."""
        if pkg_name not in self._OPEN_FUNCS:
            if pkg_name == 'zstandard' and not RESOURCES.has_module(pkg_name):
                raise ModuleNotFoundError(f"Compression module '{pkg_name}' not installed.")
            self._OPEN_FUNCS[pkg_name] = import_module(pkg_name).open
        return self._OPEN_FUNCS[pkg_name]

    def _open(self) -> BinaryIO:
        if isinstance(self.file, (IOBase, PeekableHandle)) or hasattr(self.file, 'read'):
            raw_stream = self.file
        elif str(self.file) in {'-', 'stdin'}:
            raw_stream = stdin.buffer
        else:
            raw_stream = open(Path(self.file).expanduser(), mode='rb')
            self._raw = raw_stream
            self._close_on_exit = True

        # Seekable streams: sniff and rewind
        try:
            if raw_stream.seekable():
                here = raw_stream.tell()
                start = raw_stream.read(self._MIN_N_BYTES)
                raw_stream.seek(here)
                return self._wrap(raw_stream, start)
        except (AttributeError, ValueError, OSError): pass

        # Non-seekable (stdin, pipes)
        peekable = PeekableHandle(raw_stream)
        return self._wrap(peekable, peekable.peek(self._MIN_N_BYTES))

    def _wrap(self, stream: BinaryIO, start: bytes) -> BinaryIO:
        for magic, pkg in self._MAGIC.items():
            if start.startswith(magic):
                self.compression = pkg
                self._close_on_exit = True
                handle = self._get_opener(pkg)(stream, mode='rb')
                # zstandard readers have no readline or line iteration
                return BufferedReader(handle) if pkg == 'zstandard' else handle
        return stream
