"""Tests for snake-casing, pluralization and NameResolver."""

import pytest

from protosql.config import ValidationConfig
from protosql.kernel.naming import (
    ExplicitConvention,
    NameResolver,
    PluralRules,
    SnakePluralConvention,
    SnakeSingularConvention,
    snake_case,
)
from protosql.kernel.native_types import TEXT
from protosql.kernel.relation import ColumnDef, RelationModel, TableDef


def _table(name: str, *columns: str) -> TableDef:
    return TableDef(
        name=name,
        columns=tuple(
            ColumnDef(name=c, native_type=TEXT, nullable=False, has_default=False, ordinal=i)
            for i, c in enumerate(columns, start=1)
        ),
    )


@pytest.mark.parametrize(
    "name, expected",
    [
        ("User", "user"),
        ("OrderItem", "order_item"),
        ("emailAddress", "email_address"),
        ("HTTPRequest", "http_request"),
        ("UserV2", "user_v2"),
        ("user_id", "user_id"),
        ("User.Address", "user_address"),
    ],
)
def test_snake_case(name, expected):
    assert snake_case(name) == expected


@pytest.mark.parametrize(
    "word, expected",
    [
        ("user", "users"),
        ("address", "addresses"),
        ("box", "boxes"),
        ("batch", "batches"),
        ("category", "categories"),
        ("key", "keys"),
        ("person", "people"),
        ("child", "children"),
        ("data", "data"),
        ("order_item", "order_items"),
        ("sales_person", "sales_people"),
    ],
)
def test_default_plural_rules(word, expected):
    assert PluralRules().pluralize(word) == expected


def test_irregular_plurals_extend_builtins():
    rules = PluralRules({"cactus": "cacti"})
    assert rules.pluralize("cactus") == "cacti"
    assert rules.pluralize("person") == "people"


def test_conventions():
    assert SnakePluralConvention().resolve_candidates("OrderItem") == ["order_items"]
    assert SnakeSingularConvention().resolve_candidates("OrderItem") == ["order_item"]
    assert ExplicitConvention().resolve_candidates("OrderItem") == ["OrderItem"]


def test_default_resolver_candidates():
    resolver = NameResolver()
    assert resolver.table_candidates("User") == ["users"]
    assert resolver.table_candidates("User.Address") == ["addresses"]
    assert resolver.column_candidates("User", "emailAddress") == ["email_address"]
    assert resolver.foreign_key_candidates("Order", "customer") == ["customer_id"]


def test_convention_list_is_tried_in_order():
    config = ValidationConfig(namingConvention=["snake_plural", "snake_singular"])
    resolver = NameResolver.from_config(config)
    assert resolver.table_candidates("User") == ["users", "user"]

    relation = RelationModel(tables=(_table("user", "email"),))
    table, candidates = resolver.match_table(relation, "User")
    assert table.name == "user"
    assert candidates == ["users", "user"]


def test_overrides_come_first():
    config = ValidationConfig(nameOverrides={
        "User": "app_users",
        "User.Address": "user_addresses",
        "User.email": "mail",
        "Order.customer": "buyer_ref",
    })
    resolver = NameResolver.from_config(config)
    assert resolver.table_candidates("User") == ["app_users", "users"]
    assert resolver.table_candidates("User.Address") == ["user_addresses", "addresses"]
    assert resolver.column_candidates("User", "email") == ["mail", "email"]
    assert resolver.foreign_key_candidates("Order", "customer") == ["buyer_ref", "customer_id"]


def test_explicit_convention_uses_names_verbatim():
    resolver = NameResolver.from_config(ValidationConfig(namingConvention="explicit"))
    assert resolver.table_candidates("UserProfile") == ["UserProfile"]
    assert resolver.column_candidates("UserProfile", "displayName") == ["displayName"]


def test_matching_is_case_insensitive_by_default():
    relation = RelationModel(tables=(_table("Users", "Email"),))
    resolver = NameResolver()
    table, _ = resolver.match_table(relation, "User")
    assert table is not None and table.name == "Users"
    assert resolver.match_column(table, ["email"]).name == "Email"


def test_case_sensitive_matching():
    relation = RelationModel(tables=(_table("Users", "Email"),))
    resolver = NameResolver(case_sensitive=True)
    table, candidates = resolver.match_table(relation, "User")
    assert table is None
    assert candidates == ["users"]


def test_exact_match_preferred_over_case_folded():
    relation = RelationModel(tables=(_table("USERS", "id"), _table("users", "id")))
    table, _ = NameResolver().match_table(relation, "User")
    assert table.name == "users"


def test_resolver_never_raises_on_missing_names():
    resolver = NameResolver()
    table, candidates = resolver.match_table(RelationModel(tables=()), "Ghost")
    assert table is None
    assert candidates == ["ghosts"]
    assert resolver.match_column(_table("ghosts"), ["anything"]) is None
