"""Name correspondence between IDL declarations and relation names.

A naming convention is a strategy object with one capability,
resolve_candidates(name) -> ordered list of candidate names. NameResolver
combines overrides with one or more conventions and looks the candidates up
in a RelationModel. It never raises for a missing name; the reconciler turns
an empty match into MissingTable / MissingColumn.
"""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .relation import ColumnDef, RelationModel, TableDef

logger = logging.getLogger(__name__)


_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s.\-]+")
_UNDERSCORES = re.compile(r"_+")


def snake_case(name: str) -> str:
    """Convert a CamelCase / camelCase / dotted name to lower snake_case.

    HTTPRequest -> http_request, emailAddress -> email_address,
    UserV2 -> user_v2, User.Address -> user_address.
    """
    s = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    s = _WORD_BOUNDARY.sub(r"\1_\2", s)
    s = _SEPARATORS.sub("_", s)
    s = _UNDERSCORES.sub("_", s)
    return s.strip("_").lower()


DEFAULT_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "ox": "oxen",
}

UNCOUNTABLE = frozenset({
    "data", "metadata", "information", "equipment", "news", "series", "species", "sheep", "fish",
})

_VOWELS = frozenset("aeiou")


class PluralRules:
    """Simple English suffix rules plus an irregular table.

    Only the last underscore-separated word is pluralized:
    order_item -> order_items, sales_person -> sales_people.
    """

    def __init__(self, irregular: Optional[Mapping[str, str]] = None):
        self.irregular = dict(DEFAULT_IRREGULAR_PLURALS)
        if irregular:
            self.irregular.update({k.lower(): v.lower() for k, v in irregular.items()})

    def pluralize_word(self, word: str) -> str:
        if not word:
            return word
        if word in self.irregular:
            return self.irregular[word]
        if word in UNCOUNTABLE:
            return word
        if word.endswith(("s", "x", "z", "ch", "sh")):
            return word + "es"
        if word.endswith("y") and len(word) > 1 and word[-2] not in _VOWELS:
            return word[:-1] + "ies"
        return word + "s"

    def pluralize(self, name: str) -> str:
        head, sep, last = name.rpartition("_")
        return f"{head}{sep}{self.pluralize_word(last)}"


class NamingStrategy(Protocol):
    def resolve_candidates(self, name: str) -> List[str]:
        ...


class SnakePluralConvention:
    """User -> users, OrderItem -> order_items."""

    def __init__(self, rules: Optional[PluralRules] = None):
        self.rules = rules or PluralRules()

    def resolve_candidates(self, name: str) -> List[str]:
        return [self.rules.pluralize(snake_case(name))]


class SnakeSingularConvention:
    """User -> user, emailAddress -> email_address."""

    def resolve_candidates(self, name: str) -> List[str]:
        return [snake_case(name)]


class ExplicitConvention:
    """Names are used exactly as declared."""

    def resolve_candidates(self, name: str) -> List[str]:
        return [name]


def _dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def strategy_for(convention: str, rules: Optional[PluralRules] = None) -> NamingStrategy:
    """Build the table naming strategy for a convention name."""
    value = getattr(convention, "value", convention)
    if value == "snake_plural":
        return SnakePluralConvention(rules)
    if value == "snake_singular":
        return SnakeSingularConvention()
    if value == "explicit":
        return ExplicitConvention()
    raise ValueError(f"Unknown naming convention: {convention!r}")


class NameResolver:
    """Computes candidate relation names and matches them case-insensitively.

    Args:
        table_strategies: conventions tried in order for message -> table.
        column_strategy: convention for field -> column (snake_case unless
            every table convention is explicit).
        overrides: IDL name -> relation name. Keys are message names
            ("User", "User.Address") or "Message.field".
        case_sensitive: match relation names exactly instead of case-folded.
    """

    def __init__(
        self,
        table_strategies: Optional[Sequence[NamingStrategy]] = None,
        column_strategy: Optional[NamingStrategy] = None,
        overrides: Optional[Mapping[str, str]] = None,
        case_sensitive: bool = False,
    ):
        self.table_strategies: Tuple[NamingStrategy, ...] = tuple(
            table_strategies or (SnakePluralConvention(),)
        )
        self.column_strategy = column_strategy or SnakeSingularConvention()
        self.overrides = dict(overrides or {})
        self.case_sensitive = case_sensitive

    @classmethod
    def from_config(cls, config) -> "NameResolver":
        rules = PluralRules(config.irregular_plurals)
        strategies = [strategy_for(c, rules) for c in config.naming_convention]
        explicit_only = all(isinstance(s, ExplicitConvention) for s in strategies)
        return cls(
            table_strategies=strategies,
            column_strategy=ExplicitConvention() if explicit_only else SnakeSingularConvention(),
            overrides=config.name_overrides,
            case_sensitive=config.case_sensitive,
        )

    def _override(self, *keys: str) -> Optional[str]:
        for key in keys:
            if key in self.overrides:
                return self.overrides[key]
        return None

    def table_candidates(self, full_name: str) -> List[str]:
        """Candidate table names for a message, override first.

        Nested messages ("User.Address") are named after their simple name;
        an override may be keyed by either the full or the simple name.
        """
        simple = full_name.rsplit(".", 1)[-1]
        names: List[str] = []
        override = self._override(full_name, simple)
        if override:
            names.append(override)
        for strategy in self.table_strategies:
            names.extend(strategy.resolve_candidates(simple))
        return _dedupe(names)

    def column_candidates(self, message: str, field: str) -> List[str]:
        """Candidate column names for `message.field`, override first."""
        simple = message.rsplit(".", 1)[-1]
        names: List[str] = []
        override = self._override(f"{message}.{field}", f"{simple}.{field}")
        if override:
            names.append(override)
        names.extend(self.column_strategy.resolve_candidates(field))
        return _dedupe(names)

    def foreign_key_candidates(self, message: str, field: str) -> List[str]:
        """Candidate `<field>_id` columns for a message-typed field.

        An override for `Message.field` names the key column verbatim.
        """
        simple = message.rsplit(".", 1)[-1]
        names: List[str] = []
        override = self._override(f"{message}.{field}", f"{simple}.{field}")
        if override:
            names.append(override)
        names.extend(f"{c}_id" for c in self.column_strategy.resolve_candidates(field))
        return _dedupe(names)

    def match_table(self, relation: RelationModel, full_name: str) -> Tuple[Optional[TableDef], List[str]]:
        """First candidate that exists in the relation model, plus all candidates tried."""
        candidates = self.table_candidates(full_name)
        for name in candidates:
            table = relation.find_table(name, case_sensitive=self.case_sensitive)
            if table is not None:
                logger.debug("message %s -> table %s", full_name, table.name)
                return table, candidates
        logger.debug("message %s: no table among %s", full_name, candidates)
        return None, candidates

    def match_column(self, table: TableDef, candidates: Sequence[str]) -> Optional[ColumnDef]:
        """First candidate column present on `table`."""
        for name in candidates:
            column = table.find_column(name, case_sensitive=self.case_sensitive)
            if column is not None:
                return column
        return None
