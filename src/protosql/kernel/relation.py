"""Structural model of the live database schema.

Catalog readers produce plain rows (CatalogTable / CatalogColumn); the pure
function build_relation_model() turns them into an immutable RelationModel
with a stable order: tables by name, columns by ordinal position. Row order
coming back from the catalog therefore never leaks into the model.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from .native_types import NativeType


class CatalogTable(BaseModel):
    """A table row from the catalog."""
    model_config = ConfigDict(frozen=True)

    name: str
    primary_key: Tuple[str, ...] = ()


class CatalogColumn(BaseModel):
    """A column row from the catalog, already carrying its normalized type."""
    model_config = ConfigDict(frozen=True)

    table_name: str
    name: str
    native_type: NativeType
    declared_type: str  # catalog spelling, for messages
    nullable: bool
    has_default: bool = False
    default: Optional[str] = None
    ordinal_position: int


@dataclass(frozen=True)
class ColumnDef:
    """A table column."""
    name: str
    native_type: NativeType
    nullable: bool
    has_default: bool
    ordinal: int
    declared_type: str = ""
    default: Optional[str] = None


@dataclass(frozen=True)
class TableDef:
    """A table with its columns in ordinal order."""
    name: str
    columns: Tuple[ColumnDef, ...]
    primary_key: FrozenSet[str] = frozenset()

    def find_column(self, name: str, case_sensitive: bool = False) -> Optional[ColumnDef]:
        """Exact match first; case-folded match when not case sensitive."""
        for col in self.columns:
            if col.name == name:
                return col
        if case_sensitive:
            return None
        folded = name.casefold()
        for col in self.columns:
            if col.name.casefold() == folded:
                return col
        return None

    def primary_key_column(self) -> Optional[ColumnDef]:
        """The primary key column when the key has exactly one column."""
        if len(self.primary_key) != 1:
            return None
        (name,) = tuple(self.primary_key)
        return self.find_column(name, case_sensitive=True)


@dataclass(frozen=True)
class RelationModel:
    """Ordered collection of tables visible in one schema/namespace."""
    tables: Tuple[TableDef, ...]
    schema: Optional[str] = None

    def get_table_names(self) -> Set[str]:
        return {t.name for t in self.tables}

    def find_table(self, name: str, case_sensitive: bool = False) -> Optional[TableDef]:
        """Exact match first; case-folded match when not case sensitive."""
        for table in self.tables:
            if table.name == name:
                return table
        if case_sensitive:
            return None
        folded = name.casefold()
        for table in self.tables:
            if table.name.casefold() == folded:
                return table
        return None


def build_relation_model(
    tables: Iterable[CatalogTable],
    columns: Iterable[CatalogColumn],
    schema: Optional[str] = None,
) -> RelationModel:
    """Assemble a RelationModel from catalog rows.

    Columns whose table is not in `tables` are ignored. Tables are ordered by
    name and columns by (ordinal_position, name), so any permutation of the
    input rows yields the same model.
    """
    table_rows: Dict[str, CatalogTable] = {t.name: t for t in tables}
    by_table: Dict[str, List[CatalogColumn]] = {name: [] for name in table_rows}
    for col in columns:
        if col.table_name in by_table:
            by_table[col.table_name].append(col)

    result: List[TableDef] = []
    for name in sorted(table_rows):
        rows = sorted(by_table[name], key=lambda c: (c.ordinal_position, c.name))
        result.append(TableDef(
            name=name,
            columns=tuple(
                ColumnDef(
                    name=c.name,
                    native_type=c.native_type,
                    nullable=c.nullable,
                    has_default=c.has_default or c.default is not None,
                    ordinal=c.ordinal_position,
                    declared_type=c.declared_type,
                    default=c.default,
                )
                for c in rows
            ),
            primary_key=frozenset(table_rows[name].primary_key),
        ))
    return RelationModel(tables=tuple(result), schema=schema)
