"""Type compatibility engine: (field type, cardinality, column) -> Verdict.

The matrix below is the single source of truth for which native column tags
may store each IDL scalar. It must be total over ScalarType; an unmapped
scalar raises CompatibilityMatrixError instead of producing an issue.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Literal, Mapping, Optional

from .errors import CompatibilityMatrixError
from .idl_model import WRAPPER_TYPES, Cardinality, EnumRef, MapType, MessageRef, ScalarType, type_display
from .native_types import (
    BINARY,
    BOOLEAN,
    ENUM,
    INTERVAL,
    JSON,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    UUID,
    NativeType,
    floating,
    integer,
    normalize_type_name,
)
from .relation import ColumnDef

Tags = FrozenSet[NativeType]

DEFAULT_MATRIX: Dict[ScalarType, Tags] = {
    ScalarType.INT32: frozenset({integer(32), integer(64)}),
    ScalarType.SINT32: frozenset({integer(32), integer(64)}),
    ScalarType.SFIXED32: frozenset({integer(32), integer(64)}),
    # unsigned 32-bit values overflow a signed 32-bit column
    ScalarType.UINT32: frozenset({integer(64), NUMERIC}),
    ScalarType.FIXED32: frozenset({integer(64), NUMERIC}),
    ScalarType.INT64: frozenset({integer(64)}),
    ScalarType.SINT64: frozenset({integer(64)}),
    ScalarType.SFIXED64: frozenset({integer(64)}),
    ScalarType.UINT64: frozenset({integer(64), NUMERIC}),
    ScalarType.FIXED64: frozenset({integer(64), NUMERIC}),
    ScalarType.FLOAT: frozenset({floating(32), floating(64)}),
    ScalarType.DOUBLE: frozenset({floating(64)}),
    ScalarType.BOOL: frozenset({BOOLEAN}),
    ScalarType.STRING: frozenset({TEXT, UUID}),
    ScalarType.BYTES: frozenset({BINARY}),
}

ENUM_TAGS: Tags = frozenset({TEXT, ENUM, integer(16), integer(32), integer(64)})
MAP_TAGS: Tags = frozenset({JSON})

# well-known message types stored as a single column
WELL_KNOWN_TAGS: Dict[str, Tags] = {
    "google.protobuf.Timestamp": frozenset({TIMESTAMP}),
    "google.protobuf.Duration": frozenset({INTERVAL}),
    "google.protobuf.Struct": frozenset({JSON}),
    "google.protobuf.Value": frozenset({JSON}),
    "google.protobuf.ListValue": frozenset({JSON}),
    "google.protobuf.Any": frozenset({JSON}),
}

# foreign key columns when the referenced key type is unknown
KEY_TAGS: Tags = frozenset({integer(16), integer(32), integer(64), TEXT, UUID})


def check_matrix(matrix: Mapping[ScalarType, Iterable[NativeType]]) -> None:
    """Raise CompatibilityMatrixError unless every scalar has an accepted tag."""
    missing = [s.value for s in ScalarType if not matrix.get(s)]
    if missing:
        raise CompatibilityMatrixError(
            f"Compatibility matrix has no accepted column type for: {', '.join(missing)}"
        )


check_matrix(DEFAULT_MATRIX)


VerdictKind = Literal["compatible", "type_mismatch", "nullability_mismatch", "cardinality_mismatch"]


@dataclass(frozen=True)
class Verdict:
    """Outcome of one field-to-column check."""
    kind: VerdictKind
    detail: str = ""

    @property
    def compatible(self) -> bool:
        return self.kind == "compatible"


COMPATIBLE = Verdict("compatible")


def _tag_list(tags: Iterable[NativeType]) -> str:
    return ", ".join(sorted(str(t) for t in tags))


class TypeCompatibilityEngine:
    """Pure compatibility checks over the matrix.

    Args:
        matrix: scalar -> accepted tags; defaults to DEFAULT_MATRIX and is
            checked for totality.
        message_tags: message full name -> accepted tags, for message types
            stored in a single column (typeMappings). Extends WELL_KNOWN_TAGS.
    """

    def __init__(
        self,
        matrix: Optional[Mapping[ScalarType, Iterable[NativeType]]] = None,
        message_tags: Optional[Mapping[str, Iterable[NativeType]]] = None,
    ):
        source = DEFAULT_MATRIX if matrix is None else matrix
        check_matrix(source)
        self.matrix: Dict[ScalarType, Tags] = {s: frozenset(tags) for s, tags in source.items()}
        self.message_tags: Dict[str, Tags] = dict(WELL_KNOWN_TAGS)
        for name, tags in (message_tags or {}).items():
            self.message_tags[name] = frozenset(tags)

    @classmethod
    def from_config(cls, config) -> "TypeCompatibilityEngine":
        return cls(message_tags={
            name: [normalize_type_name(t) for t in type_names]
            for name, type_names in config.type_mappings.items()
        })

    def accepted_tags(self, field_type) -> Tags:
        """Native tags that may store one value of `field_type`.

        Raises:
            CompatibilityMatrixError: the type has no entry (unmapped scalar,
                or a message type that must go through an embedding policy).
        """
        if isinstance(field_type, ScalarType):
            tags = self.matrix.get(field_type)
            if not tags:
                raise CompatibilityMatrixError(f"No accepted column type for scalar '{field_type.value}'")
            return tags
        if isinstance(field_type, EnumRef):
            return ENUM_TAGS
        if isinstance(field_type, MapType):
            return MAP_TAGS
        if isinstance(field_type, MessageRef):
            if field_type.name in WRAPPER_TYPES:
                return self.accepted_tags(WRAPPER_TYPES[field_type.name])
            tags = self.message_tags.get(field_type.name)
            if tags is None:
                raise CompatibilityMatrixError(
                    f"Message type '{field_type.name}' has no column mapping; "
                    "it is reconciled through an embedding policy"
                )
            return tags
        raise TypeError(f"Unknown field type variant: {field_type!r}")

    def requires_embedding(self, field_type) -> bool:
        """True for message types that are not stored in a single column."""
        return (
            isinstance(field_type, MessageRef)
            and field_type.name not in WRAPPER_TYPES
            and field_type.name not in self.message_tags
        )

    @staticmethod
    def effective_cardinality(field_type, cardinality: Cardinality) -> Cardinality:
        # wrapper types exist to make a scalar nullable
        if (
            cardinality == Cardinality.SINGULAR
            and isinstance(field_type, MessageRef)
            and field_type.name in WRAPPER_TYPES
        ):
            return Cardinality.OPTIONAL
        return cardinality

    def compatible(self, field_type, cardinality: Cardinality, column: ColumnDef) -> Verdict:
        """Check cardinality, then element type, then nullability."""
        return self.check_tags(
            self.accepted_tags(field_type),
            self.effective_cardinality(field_type, cardinality),
            column,
            type_display(field_type),
            nullable_ok=isinstance(field_type, MapType),
        )

    def check_tags(
        self,
        accepted: Tags,
        cardinality: Cardinality,
        column: ColumnDef,
        described: str,
        nullable_ok: bool = False,
    ) -> Verdict:
        """The verdict for a value accepted as `accepted` stored in `column`."""
        col_type = column.native_type
        if cardinality == Cardinality.REPEATED:
            if not col_type.is_array:
                return Verdict(
                    "cardinality_mismatch",
                    f"repeated {described} requires an array column, found {col_type}",
                )
            element = col_type.element
        else:
            if col_type.is_array:
                return Verdict(
                    "cardinality_mismatch",
                    f"{cardinality.value} {described} cannot be stored in array column ({col_type})",
                )
            element = col_type

        if element not in accepted:
            return Verdict(
                "type_mismatch",
                f"{described} is not compatible with {column.declared_type or col_type} "
                f"({col_type}); expected one of: {_tag_list(accepted)}",
            )

        if cardinality == Cardinality.SINGULAR and column.nullable and not nullable_ok:
            return Verdict(
                "nullability_mismatch",
                f"singular {described} is always present but column is nullable",
            )
        return COMPATIBLE
