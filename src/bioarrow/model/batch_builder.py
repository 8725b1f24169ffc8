"""
Per-batch accumulators: one column per selected fixed field, plus the attribute struct for GTF, GFF, VCF and SAM.

A builder is reused across the batches of a scan: ``finish`` emits the accumulated rows and resets it.
"""
from typing import ClassVar, Iterable, Mapping, Optional, Union

import pyarrow as pa

from bioarrow.errors import InvalidInputError
from bioarrow.model.attribute import AttributeDef, AttributeBuilder
from bioarrow.model.field import Field, FastaField, FastqField, GtfField, GffField, BedField, VcfField, SamField


# Classes --------------------------------------------------------------------------------------------------------------
class BatchBuilder:
    """
    Accumulates records column by column and finalizes them into a ``pyarrow.RecordBatch``.

    Args:
        fields: Column names to emit, in order. ``None`` selects the format's default fields.
        capacity: Expected number of records per batch.

    Raises:
        InvalidInputError: For unknown or repeated field names, or when no column would be produced.
    """
    _FIELDS: ClassVar[type[Field]]
    __slots__ = ('_fields', '_capacity', '_columns', '_length')

    def __init__(self, fields: Optional[Iterable[str]] = None, capacity: int = 0):
        self._fields: list[Field] = self._FIELDS.resolve(fields)
        self._capacity = capacity
        self._reset()
        if len(self.get_arrow_schema()) == 0: raise InvalidInputError("At least one column must be selected")

    def __len__(self) -> int: return self._length
    def __repr__(self): return f"{self.__class__.__name__}({', '.join(self.get_arrow_schema().names)})"

    @property
    def fields(self) -> list[Field]: return list(self._fields)
    @property
    def capacity(self) -> int: return self._capacity

    def _reset(self):
        self._columns = [[] for _ in self._fields]
        self._length = 0

    def get_arrow_schema(self) -> pa.Schema:
        """Returns the schema of the batches this builder produces. No records are required."""
        return pa.schema([f.get_arrow_field() for f in self._fields])

    def push(self, record):
        """Appends one record."""
        values = [f.get(record) for f in self._fields]
        for column, value in zip(self._columns, values): column.append(value)
        self._length += 1

    def _finish_columns(self) -> list[pa.Array]:
        return [pa.array(column, type=f.arrow_type) for f, column in zip(self._fields, self._columns)]

    def finish(self) -> pa.RecordBatch:
        """Returns the accumulated rows as a record batch and resets the builder."""
        schema = self.get_arrow_schema()
        batch = pa.RecordBatch.from_arrays(self._finish_columns(), schema=schema)
        self._reset()
        return batch


class FastaBatchBuilder(BatchBuilder):
    _FIELDS = FastaField
    __slots__ = ()


class FastqBatchBuilder(BatchBuilder):
    _FIELDS = FastqField
    __slots__ = ()


class BedBatchBuilder(BatchBuilder):
    _FIELDS = BedField
    __slots__ = ()


class AttributeBatchBuilder(BatchBuilder):
    """
    Builder for records with per-record attributes (GTF/GFF attributes, VCF INFO, SAM tags). With attribute
    definitions, a struct column named ``ATTRIBUTES`` follows the fixed fields; its children are the attribute columns
    sorted by name. Attributes missing from a record are null, and attributes without a definition are not emitted.

    Args:
        fields: Fixed column names to emit, in order. ``None`` selects the default fields.
        attribute_defs: A ``{name: type}`` mapping or ``(name, type)`` pairs (e.g. ``AttributeScanner.collect()``).
        capacity: Expected number of records per batch.

    Examples:
        >>> builder = GtfBatchBuilder(['seqid', 'start'], [('gene_id', 'String')])
        >>> builder.get_arrow_schema().names
        ['seqid', 'start', 'attributes']
    """
    ATTRIBUTES = 'attributes'
    __slots__ = ('_attr_defs', '_attr_builders')

    def __init__(self, fields: Optional[Iterable[str]] = None,
                 attribute_defs: Union[Mapping[str, str], Iterable[tuple[str, str]], None] = None, capacity: int = 0):
        self._attr_defs: list[AttributeDef] = AttributeDef.from_pairs(attribute_defs or ())
        super().__init__(fields, capacity)

    @property
    def attribute_defs(self) -> list[AttributeDef]: return list(self._attr_defs)

    def _reset(self):
        super()._reset()
        self._attr_builders = [AttributeBuilder(d.type) for d in self._attr_defs]

    def get_arrow_schema(self) -> pa.Schema:
        schema = super().get_arrow_schema()
        if not self._attr_defs: return schema
        return schema.append(pa.field(self.ATTRIBUTES, pa.struct([d.get_arrow_field() for d in self._attr_defs])))

    def push(self, record):
        """
        Appends one record. Nothing is appended if any of its attributes has the wrong shape.

        Raises:
            TypeMismatchError: If an attribute value does not match its column type.
        """
        values = []
        if self._attr_defs:
            observed = {}
            for key, value in record.attribute_values(): observed.setdefault(key, value)
            for attr, builder in zip(self._attr_defs, self._attr_builders):
                if (value := observed.get(attr.name)) is not None: builder.check(value)
                values.append(value)
        super().push(record)
        for builder, value in zip(self._attr_builders, values):
            if value is None: builder.append_null()
            else: builder.append_value(value)

    def _finish_columns(self) -> list[pa.Array]:
        columns = super()._finish_columns()
        if self._attr_defs:
            children = [b.finish() for b in self._attr_builders]
            columns.append(pa.StructArray.from_arrays(children, fields=[d.get_arrow_field() for d in self._attr_defs]))
        return columns


class GtfBatchBuilder(AttributeBatchBuilder):
    _FIELDS = GtfField
    __slots__ = ()


class GffBatchBuilder(AttributeBatchBuilder):
    _FIELDS = GffField
    __slots__ = ()


class VcfBatchBuilder(AttributeBatchBuilder):
    """Builder for VCF records. INFO keys go to a struct column named ``info``."""
    ATTRIBUTES = 'info'
    _FIELDS = VcfField
    __slots__ = ()


class SamBatchBuilder(AttributeBatchBuilder):
    """Builder for SAM/BAM records. Optional tags go to a struct column named ``tags``."""
    ATTRIBUTES = 'tags'
    _FIELDS = SamField
    __slots__ = ()
