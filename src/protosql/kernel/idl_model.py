"""Structured schema model parsed from IDL (protobuf) sources.

All entities are frozen dataclasses holding tuples, so a SchemaModel is
immutable once the parser returns it. Message and enum references are
name-keyed indirections (MessageRef / EnumRef) resolved through
SchemaModel.registry, never embedded objects, so self-referencing and
mutually-referencing messages need no special handling.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Dict, Iterator, Optional, Tuple, Union


class ScalarType(str, Enum):
    """Scalar type keywords of the IDL."""
    DOUBLE = "double"
    FLOAT = "float"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"


SCALAR_KEYWORDS: Dict[str, ScalarType] = {s.value: s for s in ScalarType}

# google.protobuf wrapper messages: nullable boxes around a single scalar
WRAPPER_TYPES: Dict[str, ScalarType] = {
    "google.protobuf.DoubleValue": ScalarType.DOUBLE,
    "google.protobuf.FloatValue": ScalarType.FLOAT,
    "google.protobuf.Int64Value": ScalarType.INT64,
    "google.protobuf.UInt64Value": ScalarType.UINT64,
    "google.protobuf.Int32Value": ScalarType.INT32,
    "google.protobuf.UInt32Value": ScalarType.UINT32,
    "google.protobuf.BoolValue": ScalarType.BOOL,
    "google.protobuf.StringValue": ScalarType.STRING,
    "google.protobuf.BytesValue": ScalarType.BYTES,
}

WELL_KNOWN_TYPES = frozenset({
    "google.protobuf.Timestamp",
    "google.protobuf.Duration",
    "google.protobuf.Struct",
    "google.protobuf.Value",
    "google.protobuf.ListValue",
    "google.protobuf.Any",
    *WRAPPER_TYPES,
})


class Cardinality(str, Enum):
    """Field cardinality."""
    SINGULAR = "singular"  # always present (unlabeled or proto2 `required`)
    OPTIONAL = "optional"  # `optional` label or oneof member
    REPEATED = "repeated"


@dataclass(frozen=True)
class MessageRef:
    """Reference to a message type by its registry key (e.g. "User.Address")."""
    name: str


@dataclass(frozen=True)
class EnumRef:
    """Reference to an enum type by its registry key."""
    name: str


@dataclass(frozen=True)
class MapType:
    """A `map<K, V>` field type."""
    key: ScalarType
    value: Union[ScalarType, MessageRef, EnumRef]


@dataclass(frozen=True)
class UnresolvedRef:
    """A non-scalar type name as written, before the resolution pass."""
    name: str


FieldType = Union[ScalarType, MessageRef, EnumRef, MapType]


def type_display(typ) -> str:
    """Human-readable spelling of a field type."""
    if isinstance(typ, ScalarType):
        return typ.value
    if isinstance(typ, (MessageRef, EnumRef, UnresolvedRef)):
        return typ.name
    if isinstance(typ, MapType):
        return f"map<{type_display(typ.key)}, {type_display(typ.value)}>"
    raise TypeError(f"Unknown field type variant: {typ!r}")


@dataclass(frozen=True)
class FieldDef:
    """A message field."""
    name: str
    type: FieldType
    cardinality: Cardinality
    number: int
    oneof: Optional[str] = None
    options: Tuple[Tuple[str, str], ...] = ()

    def option(self, name: str) -> Optional[str]:
        for key, value in self.options:
            if key == name:
                return value
        return None


@dataclass(frozen=True)
class EnumValue:
    label: str
    value: int


@dataclass(frozen=True)
class EnumDef:
    """An enum declaration. Values are unique unless allow_alias is set."""
    name: str
    full_name: str
    values: Tuple[EnumValue, ...]
    allow_alias: bool = False


@dataclass(frozen=True)
class MessageDef:
    """A message declaration with its fields and nested declarations."""
    name: str
    full_name: str
    fields: Tuple[FieldDef, ...]
    messages: Tuple["MessageDef", ...] = ()
    enums: Tuple[EnumDef, ...] = ()
    reserved_numbers: Tuple[Tuple[int, int], ...] = ()
    reserved_names: Tuple[str, ...] = ()

    def get_field(self, name: str) -> Optional[FieldDef]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def iter_messages(self) -> Iterator["MessageDef"]:
        """Yield this message and all nested messages in declaration pre-order."""
        yield self
        for nested in self.messages:
            yield from nested.iter_messages()

    def iter_enums(self) -> Iterator[EnumDef]:
        for msg in self.iter_messages():
            yield from msg.enums


@dataclass(frozen=True)
class SchemaModel:
    """Ordered collection of top-level declarations from one or more files."""
    messages: Tuple[MessageDef, ...]
    enums: Tuple[EnumDef, ...] = ()
    packages: Tuple[str, ...] = ()
    # source file per top-level name; informational, not structural
    origins: Tuple[Tuple[str, str], ...] = field(default=(), compare=False)

    def iter_messages(self) -> Iterator[MessageDef]:
        """All messages, top-level and nested, in declaration pre-order."""
        for msg in self.messages:
            yield from msg.iter_messages()

    def iter_enums(self) -> Iterator[EnumDef]:
        yield from self.enums
        for msg in self.messages:
            yield from msg.iter_enums()

    @cached_property
    def registry(self) -> Dict[str, Union[MessageDef, EnumDef]]:
        """Flat registry: full name -> declaration."""
        reg: Dict[str, Union[MessageDef, EnumDef]] = {}
        for msg in self.iter_messages():
            reg[msg.full_name] = msg
        for enum in self.iter_enums():
            reg[enum.full_name] = enum
        return reg

    def get_message(self, full_name: str) -> Optional[MessageDef]:
        decl = self.registry.get(full_name)
        return decl if isinstance(decl, MessageDef) else None

    def origin_of(self, name: str) -> Optional[str]:
        for top, source in self.origins:
            if top == name:
                return source
        return None
