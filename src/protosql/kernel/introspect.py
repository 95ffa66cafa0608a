"""Database introspection: catalog rows -> RelationModel.

The connection is an external collaborator: callers hand in a SQLAlchemy
Engine or Connection. All catalog queries for a run go through exactly one
connection, sequentially. Any failure aborts the whole introspection with
IntrospectionError; a partial table list is never returned.
"""

import logging
from typing import Dict, List, Optional, Protocol, Set, Tuple

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import IntrospectionError
from .native_types import native_type_from_sqlalchemy, normalize_type_name
from .relation import CatalogColumn, CatalogTable, RelationModel, build_relation_model

logger = logging.getLogger(__name__)


CatalogRows = Tuple[List[CatalogTable], List[CatalogColumn]]


class CatalogReader(Protocol):
    """Reads table and column rows for one schema over an open connection."""

    def read(self, connection: Connection, schema: Optional[str]) -> CatalogRows:
        ...


def _declared_type(sqltype) -> str:
    try:
        return str(sqltype)
    except SQLAlchemyError:
        return type(sqltype).__name__


class InspectorCatalog:
    """Catalog reader based on the SQLAlchemy Inspector (portable across dialects)."""

    def read(self, connection: Connection, schema: Optional[str]) -> CatalogRows:
        insp = inspect(connection)
        dialect = connection.dialect.name
        tables: List[CatalogTable] = []
        columns: List[CatalogColumn] = []
        for table_name in insp.get_table_names(schema=schema):
            pk = insp.get_pk_constraint(table_name, schema=schema) or {}
            tables.append(CatalogTable(
                name=table_name,
                primary_key=tuple(pk.get("constrained_columns") or ()),
            ))
            reflected = insp.get_columns(table_name, schema=schema)
            logger.debug("table %s: %d column(s)", table_name, len(reflected))
            # reflected columns come back in ordinal order
            for position, col in enumerate(reflected, start=1):
                default = col.get("default")
                columns.append(CatalogColumn(
                    table_name=table_name,
                    name=col["name"],
                    native_type=native_type_from_sqlalchemy(col["type"], dialect),
                    declared_type=_declared_type(col["type"]),
                    nullable=bool(col.get("nullable", True)),
                    has_default=default is not None,
                    default=None if default is None else str(default),
                    ordinal_position=position,
                ))
        return tables, columns


_TABLES_SQL = text(
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = :schema AND table_type = 'BASE TABLE'"
)

_COLUMNS_SQL = text(
    "SELECT table_name, column_name, data_type, udt_schema, udt_name, is_nullable, "
    "column_default, ordinal_position "
    "FROM information_schema.columns WHERE table_schema = :schema"
)

_PRIMARY_KEYS_SQL = text(
    "SELECT tc.table_name, kcu.column_name, kcu.ordinal_position "
    "FROM information_schema.table_constraints tc "
    "JOIN information_schema.key_column_usage kcu "
    "ON tc.constraint_name = kcu.constraint_name "
    "AND tc.table_schema = kcu.table_schema "
    "AND tc.table_name = kcu.table_name "
    "WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = :schema"
)

_ENUM_TYPES_SQL = text(
    "SELECT n.nspname AS type_schema, t.typname AS type_name "
    "FROM pg_catalog.pg_type t "
    "JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace "
    "WHERE t.typtype = 'e'"
)


class InformationSchemaCatalog:
    """Catalog reader issuing information_schema queries (PostgreSQL spelling).

    Array element types come from `udt_name` ("_int4" -> integer(32)); user-defined
    types listed in pg_type as enums normalize to `enum`.
    """

    def read(self, connection: Connection, schema: Optional[str]) -> CatalogRows:
        if schema is None:
            schema = inspect(connection).default_schema_name
        params = {"schema": schema}

        pk_rows = connection.execute(_PRIMARY_KEYS_SQL, params).mappings().all()
        primary_keys: Dict[str, List[Tuple[int, str]]] = {}
        for row in pk_rows:
            primary_keys.setdefault(row["table_name"], []).append(
                (int(row["ordinal_position"]), row["column_name"])
            )

        tables = [
            CatalogTable(
                name=row["table_name"],
                primary_key=tuple(name for _, name in sorted(primary_keys.get(row["table_name"], []))),
            )
            for row in connection.execute(_TABLES_SQL, params).mappings().all()
        ]

        enum_types: Dict[str, Set[str]] = {}
        for row in connection.execute(_ENUM_TYPES_SQL).mappings().all():
            enum_types.setdefault(row["type_schema"], set()).add(row["type_name"])

        columns: List[CatalogColumn] = []
        for row in connection.execute(_COLUMNS_SQL, params).mappings().all():
            data_type = row["data_type"]
            udt_name = row.get("udt_name")
            enum_names = enum_types.get(row.get("udt_schema") or schema, frozenset())
            default = row.get("column_default")
            columns.append(CatalogColumn(
                table_name=row["table_name"],
                name=row["column_name"],
                native_type=normalize_type_name(data_type, udt_name, enum_names=enum_names),
                declared_type=data_type if data_type not in ("ARRAY", "USER-DEFINED") else str(udt_name),
                nullable=str(row["is_nullable"]).upper() == "YES",
                has_default=default is not None,
                default=None if default is None else str(default),
                ordinal_position=int(row["ordinal_position"]),
            ))
        return tables, columns


READERS = {
    "inspector": InspectorCatalog,
    "information_schema": InformationSchemaCatalog,
}


def introspect(
    bind,
    schema: Optional[str] = None,
    reader: Optional[CatalogReader] = None,
) -> RelationModel:
    """Build a RelationModel for the tables visible in `schema`.

    Args:
        bind: SQLAlchemy Engine or Connection. An Engine is checked out once
            and the single connection is used for every catalog query.
        schema: target schema/namespace; None means the connection default.
        reader: catalog reader strategy; defaults to InspectorCatalog.

    Raises:
        IntrospectionError: any catalog query failed.
    """
    reader = reader or InspectorCatalog()
    try:
        if isinstance(bind, Engine):
            with bind.connect() as connection:
                tables, columns = reader.read(connection, schema)
        else:
            tables, columns = reader.read(bind, schema)
    except (SQLAlchemyError, NotImplementedError) as e:
        where = f"schema '{schema}'" if schema else "default schema"
        raise IntrospectionError(f"Catalog query failed for {where}", cause=e) from e

    model = build_relation_model(tables, columns, schema=schema)
    for table in model.tables:
        if not table.columns:
            logger.warning("table %s has no columns", table.name)
    logger.info(
        "introspected %d table(s) in %s",
        len(model.tables), f"schema '{schema}'" if schema else "default schema",
    )
    return model
