"""Native column type tags and catalog type-name normalization.

Catalogs spell the same storage type many ways ("character varying",
"varchar(255)", "VARCHAR", "bpchar", ...). Everything is collapsed into a
small tag vocabulary here so the compatibility engine never sees
vendor-specific spellings.
"""

import re
from dataclasses import dataclass
from typing import AbstractSet, Literal, Optional

from sqlalchemy import types as sqltypes

TypeKind = Literal[
    "integer",
    "float",
    "numeric",
    "text",
    "boolean",
    "binary",
    "timestamp",
    "date",
    "time",
    "interval",
    "uuid",
    "json",
    "enum",
    "array",
    "other",
]


@dataclass(frozen=True)
class NativeType:
    """A normalized column type tag.

    `width` is set for integer and float kinds (bits), `element` for arrays,
    `name` keeps the raw catalog spelling for kind "other".
    """
    kind: TypeKind
    width: Optional[int] = None
    element: Optional["NativeType"] = None
    name: Optional[str] = None

    def __str__(self) -> str:
        if self.kind == "array":
            return f"array({self.element})"
        if self.width is not None:
            return f"{self.kind}({self.width})"
        if self.kind == "other":
            return f"other({self.name})"
        return self.kind

    @property
    def is_array(self) -> bool:
        return self.kind == "array"


def integer(width: int) -> NativeType:
    return NativeType("integer", width=width)


def floating(width: int) -> NativeType:
    return NativeType("float", width=width)


def array_of(element: NativeType) -> NativeType:
    return NativeType("array", element=element)


TEXT = NativeType("text")
BOOLEAN = NativeType("boolean")
BINARY = NativeType("binary")
TIMESTAMP = NativeType("timestamp")
NUMERIC = NativeType("numeric")
UUID = NativeType("uuid")
JSON = NativeType("json")
ENUM = NativeType("enum")
INTERVAL = NativeType("interval")

# lower-cased, parameters stripped, "_" folded to " "
_TYPE_NAMES = {
    "tinyint": integer(8),
    "smallint": integer(16),
    "small integer": integer(16),
    "int2": integer(16),
    "smallserial": integer(16),
    "serial2": integer(16),
    "integer": integer(32),
    "int": integer(32),
    "int4": integer(32),
    "mediumint": integer(32),
    "serial": integer(32),
    "serial4": integer(32),
    "bigint": integer(64),
    "big integer": integer(64),
    "int8": integer(64),
    "bigserial": integer(64),
    "serial8": integer(64),
    "real": floating(32),
    "float4": floating(32),
    "float": floating(64),
    "float8": floating(64),
    "double": floating(64),
    "double precision": floating(64),
    "numeric": NUMERIC,
    "decimal": NUMERIC,
    "money": NUMERIC,
    "text": TEXT,
    "varchar": TEXT,
    "character varying": TEXT,
    "char": TEXT,
    "character": TEXT,
    "bpchar": TEXT,
    "nchar": TEXT,
    "nvarchar": TEXT,
    "national character varying": TEXT,
    "citext": TEXT,
    "string": TEXT,
    "unicode": TEXT,
    "unicode text": TEXT,
    "clob": TEXT,
    "tinytext": TEXT,
    "mediumtext": TEXT,
    "longtext": TEXT,
    "name": TEXT,
    "boolean": BOOLEAN,
    "bool": BOOLEAN,
    "bytea": BINARY,
    "blob": BINARY,
    "binary": BINARY,
    "varbinary": BINARY,
    "large binary": BINARY,
    "longblob": BINARY,
    "mediumblob": BINARY,
    "tinyblob": BINARY,
    "timestamp": TIMESTAMP,
    "timestamp without time zone": TIMESTAMP,
    "timestamp with time zone": TIMESTAMP,
    "timestamptz": TIMESTAMP,
    "datetime": TIMESTAMP,
    "datetime2": TIMESTAMP,
    "date": NativeType("date"),
    "time": NativeType("time"),
    "time without time zone": NativeType("time"),
    "time with time zone": NativeType("time"),
    "timetz": NativeType("time"),
    "interval": INTERVAL,
    "uuid": UUID,
    "uniqueidentifier": UUID,
    "json": JSON,
    "jsonb": JSON,
    "enum": ENUM,
}

_PARAMS = re.compile(r"\(.*?\)")
_ARRAY_SUFFIX = re.compile(r"(\[\d*\])+$")


def _clean(type_name: str) -> str:
    cleaned = _PARAMS.sub("", type_name).replace("_", " ").strip().lower()
    cleaned = re.sub(r"\s+", " ", cleaned)
    # "integer unsigned" and similar modifiers do not change the tag
    for suffix in (" unsigned", " signed", " zerofill"):
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
    return cleaned


# INTEGER and INT columns are 64-bit in SQLite (INTEGER PRIMARY KEY is the rowid)
_SQLITE_WIDE_INTEGERS = frozenset({"integer", "int"})


def normalize_type_name(
    type_name: str,
    udt_name: Optional[str] = None,
    enum_names: AbstractSet[str] = frozenset(),
    dialect: Optional[str] = None,
) -> NativeType:
    """Map a catalog type spelling to a NativeType tag.

    Args:
        type_name: declared type as reported by the catalog, e.g.
            "character varying", "INTEGER", "text[]", "ARRAY".
        udt_name: the underlying type name, used by information_schema for
            arrays ("_int4") and user-defined types.
        enum_names: catalog enum type names; a user-defined type (or array
            element) with one of these names is an enum.
        dialect: SQLAlchemy dialect name, for dialect-specific widths.
    """
    raw = type_name.strip()
    if _ARRAY_SUFFIX.search(raw):
        return array_of(normalize_type_name(_ARRAY_SUFFIX.sub("", raw), enum_names=enum_names, dialect=dialect))

    cleaned = _clean(raw)
    if cleaned == "array":
        if udt_name:
            element = udt_name[1:] if udt_name.startswith("_") else udt_name
            if element in enum_names:
                return array_of(ENUM)
            return array_of(normalize_type_name(element, dialect=dialect))
        return array_of(NativeType("other", name="unknown"))
    if cleaned == "user-defined" and udt_name:
        if udt_name in enum_names:
            return ENUM
        return _TYPE_NAMES.get(_clean(udt_name), NativeType("other", name=udt_name))
    if raw in enum_names:
        return ENUM

    tag = _TYPE_NAMES.get(cleaned)
    if tag is not None:
        if dialect == "sqlite" and cleaned in _SQLITE_WIDE_INTEGERS:
            return integer(64)
        return tag
    # "timestamp(3) with time zone" style spellings keep the modifier after params
    if cleaned.startswith("timestamp"):
        return TIMESTAMP
    if cleaned.startswith(("varchar", "character", "char")):
        return TEXT
    return NativeType("other", name=raw)


def native_type_from_sqlalchemy(sqltype, dialect: Optional[str] = None) -> NativeType:
    """Normalize a reflected SQLAlchemy type object.

    Arrays and enums are detected structurally; everything else goes through
    normalize_type_name() using the type's visit name ("VARCHAR",
    "big_integer", "DOUBLE_PRECISION", ...).
    """
    if isinstance(sqltype, sqltypes.ARRAY):
        return array_of(native_type_from_sqlalchemy(sqltype.item_type, dialect))
    if isinstance(sqltype, sqltypes.Enum):
        return ENUM
    if isinstance(sqltype, sqltypes.NullType):
        return NativeType("other", name="null")
    visit_name = getattr(sqltype, "__visit_name__", None) or type(sqltype).__name__
    return normalize_type_name(visit_name, dialect=dialect)
