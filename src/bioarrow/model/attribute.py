"""
Harmonized attribute columns: type model, per-column builders and the schema-inference scanner.

The same model carries GTF/GFF attributes, VCF INFO keys and SAM optional tags. These vary from record to record, so
their columns are fixed before any batch is built, by a dedicated inference pass (``AttributeScanner``) or a header.
Conflicting observations for the same key follow a first-seen-wins policy: the first value shape seen for a key fixes
its column type, and later shapes are not reported.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Union, Optional

import pyarrow as pa

from bioarrow.errors import InvalidInputError, TypeMismatchError, ParserError


# Classes --------------------------------------------------------------------------------------------------------------
class AttributeType(str, Enum):
    """
    Closed set of attribute column kinds.

    Examples:
        >>> AttributeType.parse('array').arrow_type()
        ListType(list<item: string>)
    """
    STRING = 'String'
    ARRAY = 'Array'

    def arrow_type(self) -> pa.DataType:
        """Returns the pyarrow type allocated for columns of this kind."""
        if self is AttributeType.STRING: return pa.string()
        return pa.list_(pa.field('item', pa.string(), nullable=True))

    @classmethod
    def parse(cls, name: Union[str, 'AttributeType']) -> 'AttributeType':
        """
        Resolves a type tag case-insensitively.

        Args:
            name: ``"String"`` or ``"Array"`` in any case, or an ``AttributeType``.

        Returns:
            The matching ``AttributeType``.

        Raises:
            InvalidInputError: If the tag is not one of the two accepted names.
        """
        if isinstance(name, cls): return name
        if isinstance(name, str):
            for member in cls:
                if member.value.lower() == name.lower(): return member
        raise InvalidInputError(f"Invalid attribute type: '{name}'. Must be 'String' or 'Array'.")


@dataclass(frozen=True, slots=True, order=True)
class AttributeDef:
    """
    A named attribute column. Equality, hashing and ordering use the name only.

    Examples:
        >>> AttributeDef.from_pair(('gene_id', 'string'))
        AttributeDef(name='gene_id', type=<AttributeType.STRING: 'String'>)
    """
    name: str
    type: AttributeType = field(compare=False)

    def get_arrow_field(self) -> pa.Field:
        """Returns the nullable pyarrow field for this column."""
        return pa.field(self.name, self.type.arrow_type(), nullable=True)

    def to_pair(self) -> tuple[str, str]: return self.name, self.type.value

    @classmethod
    def from_pair(cls, pair: tuple[str, str]) -> 'AttributeDef':
        """
        Validates a raw ``(name, type)`` pair.

        Raises:
            InvalidInputError: If the pair is malformed or the type tag is unknown.
        """
        try: name, type_ = pair
        except (TypeError, ValueError):
            raise InvalidInputError(f"Attribute definitions must be (name, type) pairs, got {pair!r}") from None
        if not isinstance(name, str) or not name:
            raise InvalidInputError(f"Attribute name must be a non-empty string, got {name!r}")
        return cls(name, AttributeType.parse(type_))

    @classmethod
    def from_pairs(cls, defs: Union[Mapping[str, str], Iterable[Union[tuple[str, str], 'AttributeDef']]]
                   ) -> list['AttributeDef']:
        """
        Builds the frozen, name-sorted definition list used by batch builders.

        Args:
            defs: A ``{name: type}`` mapping, an iterable of ``(name, type)`` pairs, or ``AttributeDef`` objects.

        Returns:
            A list of ``AttributeDef`` sorted by name.

        Raises:
            InvalidInputError: For unknown type tags or a name declared twice with different types.
        """
        if isinstance(defs, Mapping): defs = defs.items()
        seen: dict[str, AttributeDef] = {}
        for item in defs:
            attr = item if isinstance(item, AttributeDef) else cls.from_pair(item)
            if (prev := seen.get(attr.name)) is not None and prev.type is not attr.type:
                raise InvalidInputError(f"Attribute '{attr.name}' declared as both {prev.type.value} and "
                                        f"{attr.type.value}")
            seen.setdefault(attr.name, attr)
        return sorted(seen.values())

    @staticmethod
    def to_mapping(defs: Iterable['AttributeDef']) -> dict[str, str]:
        """Returns the ``{name: type}`` form of a definition list, suitable for reuse on similar files."""
        return dict(d.to_pair() for d in defs)


@dataclass(frozen=True, slots=True)
class AttributeValue:
    """
    A harmonized attribute value: a single string or an ordered sequence of strings.

    Use the ``string``/``array`` constructors or the dialect adapters rather than the raw initializer.
    """
    kind: AttributeType
    value: Union[str, tuple[str, ...]]

    @classmethod
    def string(cls, text: str) -> 'AttributeValue': return cls(AttributeType.STRING, text)

    @classmethod
    def array(cls, items: Iterable[str]) -> 'AttributeValue': return cls(AttributeType.ARRAY, tuple(items))

    @classmethod
    def from_gtf(cls, value: str) -> 'AttributeValue':
        """GTF entries are always single-valued."""
        return cls.string(value)

    @classmethod
    def from_gff(cls, value: Union[str, list[Optional[str]]]) -> 'AttributeValue':
        """
        Adapts a parsed GFF3 value: lists become arrays, anything else a string.

        Raises:
            ParserError: If an array contains a null element.
        """
        if isinstance(value, (list, tuple)) and any(v is None for v in value):
            raise ParserError(f"GFF array attribute contains a null element: {value!r}")
        return cls.from_parsed(value)

    @classmethod
    def from_parsed(cls, value: Union[str, list[str]]) -> 'AttributeValue':
        """Adapts a value already shaped by its reader (VCF INFO, SAM tags): lists become arrays."""
        if isinstance(value, (list, tuple)): return cls.array(value)
        return cls.string(value)


class AttributeBuilder:
    """
    Accumulates the values of one attribute column for a batch.

    ``append_null`` marks the attribute as absent for a record; for array columns this is a null list, distinct from
    a present but empty list.

    Examples:
        >>> builder = AttributeBuilder(AttributeType.STRING)
        >>> builder.append_value(AttributeValue.string('g1'))
        >>> builder.append_null()
        >>> builder.finish().to_pylist()
        ['g1', None]
    """
    __slots__ = ('_type', '_values')

    def __init__(self, attr_type: AttributeType):
        self._type = attr_type
        self._values: Optional[list] = []

    def __len__(self) -> int: return len(self._check_open())
    def __repr__(self): return f"AttributeBuilder({self._type.value})"

    @property
    def type(self) -> AttributeType: return self._type

    def _check_open(self) -> list:
        if self._values is None: raise RuntimeError("AttributeBuilder has already been finished")
        return self._values

    def append_null(self):
        self._check_open().append(None)

    def check(self, value: AttributeValue):
        """Raises ``TypeMismatchError`` if ``value`` cannot be appended to this builder."""
        if value.kind is not self._type:
            raise TypeMismatchError(f"Type mismatch: {self._type.value} builder cannot accept "
                                    f"{value.kind.value} value {value.value!r}")

    def append_value(self, value: AttributeValue):
        """
        Appends a value whose variant must match this builder's variant.

        Raises:
            TypeMismatchError: On a variant mismatch. Nothing is appended in that case.
        """
        values = self._check_open()
        self.check(value)
        values.append(value.value if self._type is AttributeType.STRING else list(value.value))

    def finish(self) -> pa.Array:
        """Returns the finished column. The builder cannot be used afterwards."""
        values = self._check_open()
        self._values = None
        return pa.array(values, type=self._type.arrow_type())


class AttributeScanner:
    """
    Collects the attribute keys of a record stream and the type first observed for each.

    Examples:
        >>> scanner = AttributeScanner()
        >>> for record in reader: scanner.push(record)
        >>> scanner.collect()
        [('gene_id', 'String'), ('tag', 'Array')]
    """
    __slots__ = ('_attrs',)

    def __init__(self):
        self._attrs: dict[str, AttributeType] = {}

    def __len__(self): return len(self._attrs)
    def __contains__(self, name: str): return name in self._attrs

    def push(self, record):
        """
        Observes one record exposing ``attribute_values()``. Keys already seen keep their first type.
        """
        for key, value in record.attribute_values():
            if key not in self._attrs: self._attrs[key] = value.kind

    def collect(self) -> list[tuple[str, str]]:
        """Returns the observed ``(name, type)`` pairs sorted by name."""
        return [(name, self._attrs[name].value) for name in sorted(self._attrs)]
