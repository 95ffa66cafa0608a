"""Tests for catalog type-name normalization into NativeType tags."""

import pytest
from sqlalchemy import types as sqltypes

from protosql.kernel.native_types import (
    BINARY,
    BOOLEAN,
    ENUM,
    JSON,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    UUID,
    NativeType,
    array_of,
    floating,
    integer,
    native_type_from_sqlalchemy,
    normalize_type_name,
)


@pytest.mark.parametrize(
    "type_name, expected",
    [
        ("character varying", TEXT),
        ("varchar(255)", TEXT),
        ("VARCHAR", TEXT),
        ("bpchar", TEXT),
        ("text", TEXT),
        ("INTEGER", integer(32)),
        ("int4", integer(32)),
        ("smallint", integer(16)),
        ("bigint", integer(64)),
        ("int8", integer(64)),
        ("bigserial", integer(64)),
        ("integer unsigned", integer(32)),
        ("real", floating(32)),
        ("double precision", floating(64)),
        ("numeric(10,2)", NUMERIC),
        ("boolean", BOOLEAN),
        ("bytea", BINARY),
        ("timestamp with time zone", TIMESTAMP),
        ("timestamp(3) without time zone", TIMESTAMP),
        ("timestamptz", TIMESTAMP),
        ("uuid", UUID),
        ("jsonb", JSON),
    ],
)
def test_normalize_type_name(type_name, expected):
    assert normalize_type_name(type_name) == expected


def test_array_spellings():
    assert normalize_type_name("text[]") == array_of(TEXT)
    assert normalize_type_name("integer[][]") == array_of(integer(32))
    assert normalize_type_name("ARRAY", "_int4") == array_of(integer(32))
    assert normalize_type_name("ARRAY", "_varchar") == array_of(TEXT)


def test_user_defined_types():
    assert normalize_type_name("USER-DEFINED", "citext") == TEXT
    assert normalize_type_name("USER-DEFINED", "mood") == NativeType("other", name="mood")


def test_unknown_type_keeps_raw_spelling():
    tag = normalize_type_name("geometry(Point,4326)")
    assert tag.kind == "other"
    assert str(tag) == "other(geometry(Point,4326))"


def test_tag_display():
    assert str(integer(32)) == "integer(32)"
    assert str(array_of(TEXT)) == "array(text)"
    assert str(BOOLEAN) == "boolean"
    assert array_of(TEXT).is_array
    assert not TEXT.is_array


@pytest.mark.parametrize(
    "sqltype, expected",
    [
        (sqltypes.Integer(), integer(32)),
        (sqltypes.BigInteger(), integer(64)),
        (sqltypes.SmallInteger(), integer(16)),
        (sqltypes.String(50), TEXT),
        (sqltypes.VARCHAR(20), TEXT),
        (sqltypes.Text(), TEXT),
        (sqltypes.Boolean(), BOOLEAN),
        (sqltypes.LargeBinary(), BINARY),
        (sqltypes.DateTime(), TIMESTAMP),
        (sqltypes.REAL(), floating(32)),
        (sqltypes.Numeric(), NUMERIC),
        (sqltypes.JSON(), JSON),
        (sqltypes.Enum("a", "b", name="ab"), ENUM),
        (sqltypes.ARRAY(sqltypes.Integer()), array_of(integer(32))),
    ],
)
def test_native_type_from_sqlalchemy(sqltype, expected):
    assert native_type_from_sqlalchemy(sqltype) == expected


def test_null_type_is_other():
    assert native_type_from_sqlalchemy(sqltypes.NullType()).kind == "other"


def test_sqlite_integers_are_64_bit():
    assert normalize_type_name("INTEGER", dialect="sqlite") == integer(64)
    assert normalize_type_name("INT", dialect="sqlite") == integer(64)
    assert normalize_type_name("SMALLINT", dialect="sqlite") == integer(16)
    assert normalize_type_name("INTEGER", dialect="postgresql") == integer(32)
    assert native_type_from_sqlalchemy(sqltypes.Integer(), "sqlite") == integer(64)
    assert native_type_from_sqlalchemy(sqltypes.ARRAY(sqltypes.Integer()), "sqlite") == array_of(integer(64))


def test_catalog_enum_names():
    enums = frozenset({"mood"})
    assert normalize_type_name("USER-DEFINED", "mood", enum_names=enums) == ENUM
    assert normalize_type_name("ARRAY", "_mood", enum_names=enums) == array_of(ENUM)
    assert normalize_type_name("mood[]", enum_names=enums) == array_of(ENUM)
    assert normalize_type_name("USER-DEFINED", "citext", enum_names=enums) == TEXT
