"""Render a SchemaModel back to IDL text.

The output is proto3 syntax that parses back into a structurally identical
SchemaModel: fields keep their order, numbers, cardinality and options, and
type references are written fully qualified with a leading dot.
"""

from typing import List, Sequence

from .idl_lexer import escape_string
from .idl_model import (
    Cardinality,
    EnumDef,
    EnumRef,
    FieldDef,
    MapType,
    MessageDef,
    MessageRef,
    ScalarType,
    SchemaModel,
)

INDENT = "  "


def _type_text(typ) -> str:
    if isinstance(typ, ScalarType):
        return typ.value
    if isinstance(typ, (MessageRef, EnumRef)):
        return "." + typ.name
    if isinstance(typ, MapType):
        return f"map<{_type_text(typ.key)}, {_type_text(typ.value)}>"
    raise TypeError(f"Cannot render field type {typ!r}")


def _field_text(f: FieldDef, in_oneof: bool) -> str:
    label = ""
    if not in_oneof and not isinstance(f.type, MapType):
        if f.cardinality == Cardinality.OPTIONAL:
            label = "optional "
        elif f.cardinality == Cardinality.REPEATED:
            label = "repeated "
    options = ""
    if f.options:
        options = " [" + ", ".join(f"{name} = {value}" for name, value in f.options) + "]"
    return f"{label}{_type_text(f.type)} {f.name} = {f.number}{options};"


def _reserved_lines(msg: MessageDef, depth: int) -> List[str]:
    pad = INDENT * depth
    lines = []
    if msg.reserved_numbers:
        ranges = [str(lo) if lo == hi else f"{lo} to {hi}" for lo, hi in msg.reserved_numbers]
        lines.append(f"{pad}reserved {', '.join(ranges)};")
    if msg.reserved_names:
        lines.append(f"{pad}reserved {', '.join(escape_string(n) for n in msg.reserved_names)};")
    return lines


def _render_enum(enum: EnumDef, depth: int) -> List[str]:
    pad = INDENT * depth
    lines = [f"{pad}enum {enum.name} {{"]
    if enum.allow_alias:
        lines.append(f"{pad}{INDENT}option allow_alias = true;")
    for value in enum.values:
        lines.append(f"{pad}{INDENT}{value.label} = {value.value};")
    lines.append(f"{pad}}}")
    return lines


def _render_fields(fields: Sequence[FieldDef], depth: int) -> List[str]:
    pad = INDENT * depth
    lines: List[str] = []
    i = 0
    while i < len(fields):
        f = fields[i]
        if f.oneof is None:
            lines.append(pad + _field_text(f, in_oneof=False))
            i += 1
            continue
        # contiguous members of the same oneof form one block
        lines.append(f"{pad}oneof {f.oneof} {{")
        while i < len(fields) and fields[i].oneof == f.oneof:
            lines.append(pad + INDENT + _field_text(fields[i], in_oneof=True))
            i += 1
        lines.append(f"{pad}}}")
    return lines


def _render_message(msg: MessageDef, depth: int) -> List[str]:
    pad = INDENT * depth
    lines = [f"{pad}message {msg.name} {{"]
    lines.extend(_reserved_lines(msg, depth + 1))
    for enum in msg.enums:
        lines.extend(_render_enum(enum, depth + 1))
    for nested in msg.messages:
        lines.extend(_render_message(nested, depth + 1))
    lines.extend(_render_fields(msg.fields, depth + 1))
    lines.append(f"{pad}}}")
    return lines


def render_schema(model: SchemaModel) -> str:
    """Serialize a SchemaModel to IDL text."""
    lines = ['syntax = "proto3";']
    if len(model.packages) == 1:
        lines.append(f"package {model.packages[0]};")
    for enum in model.enums:
        lines.append("")
        lines.extend(_render_enum(enum, 0))
    for msg in model.messages:
        lines.append("")
        lines.extend(_render_message(msg, 0))
    return "\n".join(lines) + "\n"
