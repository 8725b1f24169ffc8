"""Genomic query regions in samtools notation (1-based, inclusive)."""
import re
from numbers import Integral
from typing import Optional, Union

from bioarrow.errors import InvalidInputError, IndexLookupError


# Classes --------------------------------------------------------------------------------------------------------------
class Region:
    """
    Immutable query region on a named reference sequence.

    Attributes:
        name: Reference sequence (contig) name.
        start: 1-based inclusive start, or None for the beginning of the contig.
        end: 1-based inclusive end, or None for the end of the contig.

    Examples:
        >>> r = Region.parse('chr1:1,001-2,000')
        >>> r.start, r.end
        (1001, 2000)
        >>> str(r)
        'chr1:1001-2000'
        >>> r.interval()
        (1000, 2000)
    """
    __slots__ = ('_name', '_start', '_end')
    _COORDS = re.compile(r'^(\d+)?(?:-(\d+)?)?$')

    def __init__(self, name: str, start: Optional[int] = None, end: Optional[int] = None):
        if not isinstance(name, str) or not name:
            raise InvalidInputError(f"Region name must be a non-empty string, got {name!r}")
        for coord in (start, end):
            if coord is not None and (not isinstance(coord, Integral) or isinstance(coord, bool)):
                raise InvalidInputError(f"Region coordinates must be integers, got {coord!r}")
        if start is not None and start < 1:
            raise InvalidInputError(f"Region start must be >= 1 (1-based), got {start}")
        if start is not None and end is not None and end < start:
            raise InvalidInputError(f"Region end ({end}) is before its start ({start})")
        self._name = name
        self._start = None if start is None else int(start)
        self._end = None if end is None else int(end)

    @property
    def name(self) -> str: return self._name
    @property
    def start(self) -> Optional[int]: return self._start
    @property
    def end(self) -> Optional[int]: return self._end
    def __hash__(self): return hash((self._name, self._start, self._end))
    def __repr__(self): return f"Region({str(self)!r})"

    def __eq__(self, other):
        if not isinstance(other, Region): return False
        return (self._name, self._start, self._end) == (other._name, other._start, other._end)

    def __str__(self):
        if self._start is None and self._end is None: return self._name
        if self._end is None: return f"{self._name}:{self._start}"
        return f"{self._name}:{self._start or 1}-{self._end}"

    @classmethod
    def parse(cls, s: str) -> 'Region':
        """
        Parses ``name``, ``name:start``, ``name:start-`` or ``name:start-end``. Thousands separators are ignored.
        Names containing ``:`` are supported when the suffix is not numeric.

        Raises:
            InvalidInputError: If the string is empty or the coordinates are malformed.
        """
        if not isinstance(s, str) or not s: raise InvalidInputError(f"Invalid region: {s!r}")
        name, sep, coords = s.rpartition(':')
        if not sep: return cls(s)
        if (m := cls._COORDS.match(coords.replace(',', ''))) is None or not coords:
            return cls(s)  # Colon belongs to the contig name
        start, end = m.groups()
        if start is None and end is not None: raise InvalidInputError(f"Invalid region: {s!r}")
        return cls(name, int(start) if start else None, int(end) if end else None)

    @classmethod
    def coerce(cls, item: Union[str, 'Region', tuple]) -> 'Region':
        """Accepts a ``Region``, a region string, or a ``(name, start, end)`` tuple."""
        if isinstance(item, cls): return item
        if isinstance(item, str): return cls.parse(item)
        if isinstance(item, tuple) and 1 <= len(item) <= 3: return cls(*item)
        raise InvalidInputError(f"Cannot interpret {item!r} as a region")

    def interval(self, length: Optional[int] = None) -> tuple[int, Optional[int]]:
        """
        Returns the region as a 0-based, half-open ``(start, end)`` pair.

        Args:
            length: Contig length. When given, an open end is resolved to it and the region is bounds-checked.

        Raises:
            IndexLookupError: If the region lies beyond ``length``.
        """
        start = self._start - 1 if self._start is not None else 0
        end = self._end
        if length is not None:
            if end is None: end = length
            if (self._start is not None and start >= length) or end > length:
                raise IndexLookupError(f"Region {self} is out of bounds for '{self._name}' (length {length})")
        return start, end
