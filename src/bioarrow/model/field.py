"""
Fixed, format-defined columns. Each member names a column, its pyarrow type and the record attribute it reads.
"""
from enum import Enum
from typing import Any, Iterable, Optional

import pyarrow as pa

from bioarrow.errors import InvalidInputError


# Classes --------------------------------------------------------------------------------------------------------------
class Field(Enum):
    """
    Base for per-format field enums. Members are declared as ``(column, arrow_type, record_attribute)``.

    Examples:
        >>> GffField.from_name('phase').get_arrow_field()
        pyarrow.Field<phase: string>
    """
    def __new__(cls, column: str, arrow_type: pa.DataType, attr: str = None):
        obj = object.__new__(cls)
        obj._value_ = column
        obj.arrow_type = arrow_type
        obj.attr = attr or column
        return obj

    def __str__(self): return self.value

    def get_arrow_field(self) -> pa.Field: return pa.field(self.value, self.arrow_type, nullable=True)

    def get(self, record) -> Any: return getattr(record, self.attr)

    @classmethod
    def default_field_names(cls) -> list[str]: return [m.value for m in cls]

    @classmethod
    def from_name(cls, name: str) -> 'Field':
        """
        Looks up a member by column name.

        Raises:
            InvalidInputError: If the column does not exist for this format.
        """
        try: return cls(name)
        except ValueError:
            raise InvalidInputError(f"Invalid field name: '{name}'. Must be one of "
                                    f"{', '.join(cls.default_field_names())}") from None

    @classmethod
    def resolve(cls, names: Optional[Iterable[str]]) -> list['Field']:
        """
        Validates a field filter, preserving the caller's order. ``None`` selects every field in default order.

        Raises:
            InvalidInputError: For unknown or repeated names.
        """
        if names is None: return list(cls)
        if isinstance(names, str): names = [names]
        fields = []
        for name in names:
            member = cls.from_name(name)
            if member in fields: raise InvalidInputError(f"Field '{name}' requested more than once")
            fields.append(member)
        return fields


class FastaField(Field):
    NAME = ('name', pa.string())
    DESCRIPTION = ('description', pa.string())
    SEQUENCE = ('sequence', pa.large_string())


class FastqField(Field):
    NAME = ('name', pa.string())
    DESCRIPTION = ('description', pa.string())
    SEQUENCE = ('sequence', pa.string())
    QUALITY = ('quality', pa.string())


class GtfField(Field):
    SEQID = ('seqid', pa.string())
    SOURCE = ('source', pa.string())
    TYPE = ('type', pa.string())
    START = ('start', pa.int32())
    END = ('end', pa.int32())
    SCORE = ('score', pa.float32())
    STRAND = ('strand', pa.string())
    FRAME = ('frame', pa.string())


class GffField(Field):
    SEQID = ('seqid', pa.string())
    SOURCE = ('source', pa.string())
    TYPE = ('type', pa.string())
    START = ('start', pa.int32())
    END = ('end', pa.int32())
    SCORE = ('score', pa.float32())
    STRAND = ('strand', pa.string())
    PHASE = ('phase', pa.string(), 'frame')


class BedField(Field):
    CHROM = ('chrom', pa.string())
    START = ('start', pa.int64())
    END = ('end', pa.int64())
    NAME = ('name', pa.string())
    SCORE = ('score', pa.float32())
    STRAND = ('strand', pa.string())


class VcfField(Field):
    CHROM = ('chrom', pa.string())
    POS = ('pos', pa.int32())
    ID = ('id', pa.string())
    REF = ('ref', pa.string())
    ALT = ('alt', pa.list_(pa.string()))
    QUAL = ('qual', pa.float32())
    FILTER = ('filter', pa.string())


class SamField(Field):
    QNAME = ('qname', pa.string())
    FLAG = ('flag', pa.uint16())
    RNAME = ('rname', pa.string())
    POS = ('pos', pa.int32())
    MAPQ = ('mapq', pa.uint8())
    CIGAR = ('cigar', pa.string())
    RNEXT = ('rnext', pa.string())
    PNEXT = ('pnext', pa.int32())
    TLEN = ('tlen', pa.int32())
    SEQ = ('seq', pa.large_string())
    QUAL = ('qual', pa.large_string())
