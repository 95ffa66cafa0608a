"""Recursive-descent parser for IDL (protobuf) source text.

Parsing happens in two passes:

1. Each file is parsed independently into a ParsedFile. Non-scalar type
   names are kept as UnresolvedRef values.
2. merge_files() concatenates the partial models, rejects duplicate
   top-level names, and resolves every UnresolvedRef against a flat registry
   built from all declarations of the input set.

The parser performs no I/O: callers supply source text.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import DuplicateMessageError, ParseError, UnresolvedTypeError
from .idl_lexer import Token, escape_string, tokenize
from .idl_model import (
    SCALAR_KEYWORDS,
    WELL_KNOWN_TYPES,
    Cardinality,
    EnumDef,
    EnumRef,
    EnumValue,
    FieldDef,
    MapType,
    MessageDef,
    MessageRef,
    ScalarType,
    SchemaModel,
    UnresolvedRef,
)

logger = logging.getLogger(__name__)

MAX_FIELD_NUMBER = 536870911  # 2^29 - 1

LABELS = {
    "optional": Cardinality.OPTIONAL,
    "repeated": Cardinality.REPEATED,
    "required": Cardinality.SINGULAR,
}

# keys usable in `map<K, V>`
MAP_KEY_TYPES = frozenset(SCALAR_KEYWORDS.values()) - {ScalarType.DOUBLE, ScalarType.FLOAT, ScalarType.BYTES}


@dataclass(frozen=True)
class ParsedFile:
    """Partial schema model for a single source file (types unresolved)."""
    source: str
    syntax: str
    package: Optional[str]
    imports: Tuple[str, ...]
    messages: Tuple[MessageDef, ...]
    enums: Tuple[EnumDef, ...]
    options: Tuple[Tuple[str, str], ...] = field(default=())


class _Parser:
    """Single-file parser over a token list."""

    def __init__(self, text: str, source: str):
        self.source = source
        self.tokens: List[Token] = tokenize(text, source)
        self.pos = 0
        self.syntax = "proto2"

    # -- token helpers -----------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != "eof":
            self.pos += 1
        return tok

    def at(self, value: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok.kind in ("punct", "ident") and tok.value == value

    def error(self, expected: str, tok: Optional[Token] = None, message: Optional[str] = None) -> ParseError:
        tok = tok or self.peek()
        found = tok.describe()
        return ParseError(
            message or f"expected {expected}, found {found}",
            tok.line,
            tok.column,
            expected=expected,
            found=found,
            source=self.source,
        )

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error(f"'{value}'")
        return self.advance()

    def expect_ident(self, what: str = "identifier") -> Token:
        tok = self.peek()
        if tok.kind != "ident":
            raise self.error(what)
        return self.advance()

    def expect_int(self, what: str = "integer literal") -> Tuple[int, Token]:
        negative = False
        first = self.peek()
        if self.at("-"):
            self.advance()
            negative = True
        tok = self.peek()
        if tok.kind != "int":
            raise self.error(what, tok)
        self.advance()
        value = _int_value(tok.value)
        return (-value if negative else value), first

    # -- grammar -----------------------------------------------------------

    def parse_file(self) -> ParsedFile:
        package: Optional[str] = None
        imports: List[str] = []
        options: List[Tuple[str, str]] = []
        messages: List[MessageDef] = []
        enums: List[EnumDef] = []
        top_names: Dict[str, Token] = {}

        while self.peek().kind != "eof":
            tok = self.peek()
            if self.at(";"):
                self.advance()
            elif self.at("syntax"):
                self.parse_syntax()
            elif self.at("package"):
                self.advance()
                if package is not None:
                    raise self.error("single package declaration", tok,
                                     message="package declared more than once")
                package = self.full_ident()
                self.expect(";")
            elif self.at("import"):
                self.advance()
                if self.at("public") or self.at("weak"):
                    self.advance()
                path = self.peek()
                if path.kind != "string":
                    raise self.error("import path string")
                self.advance()
                imports.append(path.value)
                self.expect(";")
            elif self.at("option"):
                options.append(self.parse_option_statement())
            elif self.at("message"):
                self.declare(top_names, "")
                messages.append(self.parse_message(""))
            elif self.at("enum"):
                self.declare(top_names, "")
                enums.append(self.parse_enum(""))
            elif self.at("service") or self.at("extend"):
                self.advance()
                self.type_name()
                self.skip_block()
            else:
                raise self.error("top-level declaration ('message', 'enum', 'syntax', 'package', ...)")

        return ParsedFile(
            source=self.source,
            syntax=self.syntax,
            package=package,
            imports=tuple(imports),
            messages=tuple(messages),
            enums=tuple(enums),
            options=tuple(options),
        )

    def parse_syntax(self) -> None:
        self.expect("syntax")
        self.expect("=")
        tok = self.peek()
        if tok.kind != "string" or tok.value not in ("proto2", "proto3"):
            raise self.error('"proto2" or "proto3"')
        self.advance()
        self.syntax = tok.value
        self.expect(";")

    def full_ident(self) -> str:
        parts = [self.expect_ident().value]
        while self.at("."):
            self.advance()
            parts.append(self.expect_ident().value)
        return ".".join(parts)

    def type_name(self) -> str:
        prefix = ""
        if self.at("."):
            self.advance()
            prefix = "."
        return prefix + self.full_ident()

    def option_name(self) -> str:
        if self.at("("):
            self.advance()
            name = "(" + self.type_name() + ")"
            self.expect(")")
        else:
            name = self.expect_ident("option name").value
        while self.at("."):
            self.advance()
            name += "." + self.expect_ident("option name").value
        return name

    def constant(self) -> str:
        """Parse an option value and return its source spelling."""
        tok = self.peek()
        if tok.kind == "string":
            self.advance()
            return escape_string(tok.value)
        if self.at("{"):
            return self.skip_block()
        sign = ""
        if self.at("-") or self.at("+"):
            sign = self.advance().value
        tok = self.peek()
        if tok.kind in ("int", "float"):
            self.advance()
            return sign + tok.value
        if tok.kind == "ident":
            return sign + self.full_ident()
        raise self.error("constant")

    def skip_block(self) -> str:
        """Skip a brace-delimited block, returning a compact spelling of it."""
        self.expect("{")
        depth = 1
        parts = ["{"]
        while depth:
            tok = self.peek()
            if tok.kind == "eof":
                raise self.error("'}'")
            self.advance()
            if self.at_token(tok, "{"):
                depth += 1
            elif self.at_token(tok, "}"):
                depth -= 1
            parts.append(escape_string(tok.value) if tok.kind == "string" else tok.value)
        return " ".join(parts)

    def declare(self, names: Dict[str, Token], scope: str) -> None:
        """Register the name of the `message`/`enum` declaration at the cursor."""
        tok = self.peek(1)
        if tok.kind != "ident" or tok.value not in names:
            if tok.kind == "ident":
                names[tok.value] = tok
            return
        if not scope:
            # top-level names share one namespace across all files
            raise DuplicateMessageError(tok.value, [self.source, self.source])
        raise self.error(
            "unique nested name", tok,
            message=f"'{tok.value}' is declared twice in '{scope}'",
        )

    @staticmethod
    def at_token(tok: Token, value: str) -> bool:
        return tok.kind == "punct" and tok.value == value

    def parse_option_statement(self) -> Tuple[str, str]:
        self.expect("option")
        name = self.option_name()
        self.expect("=")
        value = self.constant()
        self.expect(";")
        return name, value

    def parse_field_options(self) -> Tuple[Tuple[str, str], ...]:
        if not self.at("["):
            return ()
        self.advance()
        options: List[Tuple[str, str]] = []
        while True:
            name = self.option_name()
            self.expect("=")
            options.append((name, self.constant()))
            if self.at(","):
                self.advance()
                continue
            self.expect("]")
            return tuple(options)

    def is_block_decl(self, keyword: str) -> bool:
        """`keyword Ident {` starts a nested declaration (keywords are contextual)."""
        return (
            self.at(keyword)
            and self.peek(1).kind == "ident"
            and self.at("{", 2)
        )

    def parse_message(self, parent: str) -> MessageDef:
        self.expect("message")
        name_tok = self.expect_ident("message name")
        name = name_tok.value
        full_name = f"{parent}.{name}" if parent else name
        self.expect("{")

        fields: List[FieldDef] = []
        positions: Dict[int, Token] = {}
        nested: List[MessageDef] = []
        enums: List[EnumDef] = []
        reserved_numbers: List[Tuple[int, int]] = []
        reserved_names: List[str] = []
        scope_names: Dict[str, Token] = {}

        while not self.at("}"):
            if self.peek().kind == "eof":
                raise self.error("'}'")
            if self.at(";"):
                self.advance()
            elif self.is_block_decl("message"):
                self.declare(scope_names, full_name)
                nested.append(self.parse_message(full_name))
            elif self.is_block_decl("enum"):
                self.declare(scope_names, full_name)
                enums.append(self.parse_enum(full_name))
            elif self.is_block_decl("oneof"):
                for f, tok in self.parse_oneof():
                    positions[len(fields)] = tok
                    fields.append(f)
            elif self.at("option"):
                self.parse_option_statement()
            elif self.at("reserved") and self.peek(1).kind in ("int", "string"):
                nums, names = self.parse_reserved()
                reserved_numbers.extend(nums)
                reserved_names.extend(names)
            elif self.at("extensions") and self.peek(1).kind == "int":
                while not self.at(";"):
                    if self.peek().kind == "eof":
                        raise self.error("';'")
                    self.advance()
                self.advance()
            elif self.at("extend") and (self.peek(1).kind == "ident" or self.at(".", 1)):
                self.advance()
                self.type_name()
                self.skip_block()
            else:
                tok = self.peek()
                positions[len(fields)] = tok
                fields.append(self.parse_field())
        self.expect("}")

        _validate_fields(fields, positions, reserved_numbers, reserved_names, full_name, self.source)
        return MessageDef(
            name=name,
            full_name=full_name,
            fields=tuple(fields),
            messages=tuple(nested),
            enums=tuple(enums),
            reserved_numbers=tuple(reserved_numbers),
            reserved_names=tuple(reserved_names),
        )

    def parse_field(self, oneof: Optional[str] = None) -> FieldDef:
        cardinality = Cardinality.SINGULAR
        label_tok = self.peek()
        if (
            label_tok.kind == "ident"
            and label_tok.value in LABELS
            and (self.peek(1).kind == "ident" or self.at(".", 1))
            and not self.at("=", 2)
        ):
            if oneof is not None:
                raise self.error("field type", label_tok,
                                 message=f"fields in oneof '{oneof}' cannot have a label")
            if label_tok.value == "required" and self.syntax == "proto3":
                raise self.error("field type", label_tok,
                                 message="required fields are not allowed in proto3")
            cardinality = LABELS[label_tok.value]
            self.advance()

        if self.at("group"):
            raise self.error("field type", message="group fields are not supported")

        if self.at("map") and self.at("<", 1):
            if oneof is not None:
                raise self.error("field type", message=f"map fields are not allowed in oneof '{oneof}'")
            if label_tok is not self.peek():
                raise self.error("field type", label_tok, message="map fields cannot have a label")
            typ = self.parse_map_type()
        else:
            typ = _scalar_or_ref(self.type_name())

        name = self.expect_ident("field name").value
        self.expect("=")
        number, number_tok = self.expect_int("field number")
        options = self.parse_field_options()
        self.expect(";")

        if number < 1 or number > MAX_FIELD_NUMBER:
            raise self.error(
                f"field number between 1 and {MAX_FIELD_NUMBER}",
                number_tok,
                message=f"field number {number} of '{name}' is out of range",
            )
        if oneof is not None:
            cardinality = Cardinality.OPTIONAL
        return FieldDef(
            name=name,
            type=typ,
            cardinality=cardinality,
            number=number,
            oneof=oneof,
            options=options,
        )

    def parse_map_type(self) -> MapType:
        self.expect("map")
        self.expect("<")
        key_tok = self.peek()
        key = _scalar_or_ref(self.type_name())
        if key not in MAP_KEY_TYPES:
            raise self.error("integral or string map key type", key_tok,
                             message=f"invalid map key type '{key_tok.value}'")
        self.expect(",")
        value = _scalar_or_ref(self.type_name())
        self.expect(">")
        return MapType(key=key, value=value)

    def parse_oneof(self) -> List[Tuple[FieldDef, Token]]:
        self.expect("oneof")
        name = self.expect_ident("oneof name").value
        self.expect("{")
        members: List[Tuple[FieldDef, Token]] = []
        while not self.at("}"):
            if self.peek().kind == "eof":
                raise self.error("'}'")
            if self.at(";"):
                self.advance()
            elif self.at("option"):
                self.parse_option_statement()
            else:
                tok = self.peek()
                members.append((self.parse_field(oneof=name), tok))
        self.expect("}")
        if not members:
            raise self.error("oneof member", message=f"oneof '{name}' has no fields")
        return members

    def parse_reserved(self) -> Tuple[List[Tuple[int, int]], List[str]]:
        self.expect("reserved")
        numbers: List[Tuple[int, int]] = []
        names: List[str] = []
        while True:
            tok = self.peek()
            if tok.kind == "string":
                self.advance()
                names.append(tok.value)
            else:
                low, _ = self.expect_int("reserved number or name")
                high = low
                if self.at("to"):
                    self.advance()
                    if self.at("max"):
                        self.advance()
                        high = MAX_FIELD_NUMBER
                    else:
                        high, _ = self.expect_int("range end")
                numbers.append((low, high))
            if self.at(","):
                self.advance()
                continue
            self.expect(";")
            return numbers, names

    def parse_enum(self, parent: str) -> EnumDef:
        self.expect("enum")
        name = self.expect_ident("enum name").value
        full_name = f"{parent}.{name}" if parent else name
        self.expect("{")
        values: List[EnumValue] = []
        value_toks: List[Token] = []
        allow_alias = False
        while not self.at("}"):
            if self.peek().kind == "eof":
                raise self.error("'}'")
            if self.at(";"):
                self.advance()
            elif self.at("option"):
                opt, val = self.parse_option_statement()
                if opt == "allow_alias":
                    allow_alias = val == "true"
            elif self.at("reserved") and self.peek(1).kind in ("int", "string", "punct"):
                self.parse_reserved()
            else:
                label_tok = self.expect_ident("enum value name")
                self.expect("=")
                number, _ = self.expect_int("enum value number")
                self.parse_field_options()
                self.expect(";")
                values.append(EnumValue(label=label_tok.value, value=number))
                value_toks.append(label_tok)
        self.expect("}")

        labels: Dict[str, EnumValue] = {}
        numbers: Dict[int, EnumValue] = {}
        for value, tok in zip(values, value_toks):
            if value.label in labels:
                raise self.error("unique enum value name", tok,
                                 message=f"enum value '{value.label}' is declared twice in '{full_name}'")
            labels[value.label] = value
            if value.value in numbers and not allow_alias:
                raise self.error(
                    "unique enum value number", tok,
                    message=(
                        f"enum value {value.value} of '{value.label}' is already used by "
                        f"'{numbers[value.value].label}' in '{full_name}' (set allow_alias to permit)"
                    ),
                )
            numbers.setdefault(value.value, value)
        return EnumDef(name=name, full_name=full_name, values=tuple(values), allow_alias=allow_alias)


def _int_value(text: str) -> int:
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    if len(text) > 1 and text.startswith("0"):
        return int(text, 8)
    return int(text)


def _scalar_or_ref(name: str) -> Union[ScalarType, UnresolvedRef]:
    scalar = SCALAR_KEYWORDS.get(name)
    return scalar if scalar is not None else UnresolvedRef(name)


def _validate_fields(
    fields: Sequence[FieldDef],
    positions: Dict[int, Token],
    reserved_numbers: Sequence[Tuple[int, int]],
    reserved_names: Sequence[str],
    message: str,
    source: str,
) -> None:
    """Enforce name uniqueness and reserved declarations within one message.

    Duplicate field numbers are deliberately left to reconciliation, which
    reports them as DuplicateFieldNumber issues.
    """
    seen: Dict[str, FieldDef] = {}
    for idx, f in enumerate(fields):
        tok = positions[idx]
        if f.name in seen:
            raise ParseError(
                f"field '{f.name}' is declared twice in message '{message}'",
                tok.line, tok.column, expected="unique field name", found=f"'{f.name}'", source=source,
            )
        seen[f.name] = f
        if f.name in reserved_names:
            raise ParseError(
                f"field name '{f.name}' is reserved in message '{message}'",
                tok.line, tok.column, expected="unreserved field name", found=f"'{f.name}'", source=source,
            )
        for low, high in reserved_numbers:
            if low <= f.number <= high:
                raise ParseError(
                    f"field number {f.number} of '{f.name}' is reserved in message '{message}'",
                    tok.line, tok.column, expected="unreserved field number", found=str(f.number),
                    source=source,
                )


def parse_file(text: str, source: Optional[str] = None) -> ParsedFile:
    """First pass: parse one file into a partial model with unresolved references."""
    parsed = _Parser(text, source or "<input>").parse_file()
    logger.debug(
        "parsed %s: %d message(s), %d enum(s)",
        parsed.source, len(parsed.messages), len(parsed.enums),
    )
    return parsed


class _Resolver:
    """Second pass: resolve UnresolvedRef values against the merged registry."""

    def __init__(self, kinds: Dict[str, str], packages: Sequence[str]):
        self.kinds = kinds
        # longest package first so nested package names win
        self.packages = sorted(set(packages), key=lambda p: (-len(p), p))

    def candidates(self, raw: str, scope: str, package: Optional[str]) -> List[str]:
        if raw.startswith("."):
            names = [raw[1:]]
        else:
            parts = scope.split(".") if scope else []
            names = []
            for i in range(len(parts), -1, -1):
                prefix = ".".join(parts[:i])
                names.append(f"{prefix}.{raw}" if prefix else raw)
            if package:
                pkg_parts = package.split(".")
                for j in range(len(pkg_parts)):
                    qualifier = ".".join(pkg_parts[j:])
                    if raw.startswith(qualifier + "."):
                        names.append(raw[len(qualifier) + 1:])
        base = names[0] if raw.startswith(".") else raw
        for pkg in self.packages:
            if base.startswith(pkg + "."):
                names.append(base[len(pkg) + 1:])
        return names

    def resolve(self, typ, scope: str, package: Optional[str], source: str):
        if isinstance(typ, MapType):
            return MapType(key=typ.key, value=self.resolve(typ.value, scope, package, source))
        if not isinstance(typ, UnresolvedRef):
            return typ
        bare = typ.name.lstrip(".")
        if bare in WELL_KNOWN_TYPES:
            return MessageRef(bare)
        for candidate in self.candidates(typ.name, scope, package):
            kind = self.kinds.get(candidate)
            if kind == "message":
                return MessageRef(candidate)
            if kind == "enum":
                return EnumRef(candidate)
        raise UnresolvedTypeError(typ.name, scope, source)

    def resolve_message(self, msg: MessageDef, package: Optional[str], source: str) -> MessageDef:
        fields = tuple(
            replace(f, type=self.resolve(f.type, msg.full_name, package, source))
            for f in msg.fields
        )
        nested = tuple(self.resolve_message(m, package, source) for m in msg.messages)
        return replace(msg, fields=fields, messages=nested)


def merge_files(files: Sequence[ParsedFile]) -> SchemaModel:
    """Merge partial models into one SchemaModel and resolve all type references.

    Raises:
        DuplicateMessageError: two files declare the same top-level name.
        UnresolvedTypeError: a reference matches no declaration in the set.
    """
    origins: Dict[str, str] = {}
    for parsed in files:
        for decl in list(parsed.messages) + list(parsed.enums):
            if decl.name in origins:
                raise DuplicateMessageError(decl.name, [origins[decl.name], parsed.source])
            origins[decl.name] = parsed.source

    kinds: Dict[str, str] = {}
    for parsed in files:
        for top in parsed.messages:
            for msg in top.iter_messages():
                kinds[msg.full_name] = "message"
            for enum in top.iter_enums():
                kinds[enum.full_name] = "enum"
        for enum in parsed.enums:
            kinds[enum.full_name] = "enum"

    packages: List[str] = []
    for parsed in files:
        if parsed.package and parsed.package not in packages:
            packages.append(parsed.package)

    resolver = _Resolver(kinds, packages)
    messages: List[MessageDef] = []
    enums: List[EnumDef] = []
    for parsed in files:
        for msg in parsed.messages:
            messages.append(resolver.resolve_message(msg, parsed.package, parsed.source))
        enums.extend(parsed.enums)

    return SchemaModel(
        messages=tuple(messages),
        enums=tuple(enums),
        packages=tuple(packages),
        origins=tuple(origins.items()),
    )


def parse_sources(
    sources: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
) -> SchemaModel:
    """Parse several (source name, text) pairs as one flattened namespace.

    Every file is parsed before any merging happens, so a ParseError in any
    file is reported before cross-file consistency errors.
    """
    items = list(sources.items()) if isinstance(sources, Mapping) else list(sources)
    parsed = [parse_file(text, name) for name, text in items]
    model = merge_files(parsed)
    logger.debug(
        "merged %d file(s) into %d top-level message(s)", len(parsed), len(model.messages)
    )
    return model


def parse(text: str, source: Optional[str] = None) -> SchemaModel:
    """Parse a single IDL text into a resolved SchemaModel."""
    return merge_files([parse_file(text, source)])
