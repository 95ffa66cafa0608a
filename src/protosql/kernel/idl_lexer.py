"""Tokenizer for IDL source text.

Produces a flat list of tokens with 1-based line/column positions.
Whitespace and comments are dropped.
"""

from dataclasses import dataclass
from typing import List, Literal, Optional

from .errors import ParseError


TokenKind = Literal["ident", "int", "float", "string", "punct", "eof"]

PUNCTUATION = frozenset("{}()[];=,.<>-+:")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}

_UNESCAPES = {v: "\\" + k for k, v in _ESCAPES.items() if k != "'"}


def escape_string(value: str) -> str:
    """Double-quoted source spelling of a string token value; inverse of the lexer's escapes."""
    return '"' + "".join(_UNESCAPES.get(c, c) for c in value) + '"'


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    line: int
    column: int

    def describe(self) -> str:
        """Spelling used in 'found ...' error messages."""
        if self.kind == "eof":
            return "end of input"
        if self.kind == "string":
            return f'string "{self.value}"'
        return f"'{self.value}'"


def tokenize(text: str, source: Optional[str] = None) -> List[Token]:
    """Split IDL text into tokens. The last token is always `eof`."""
    tokens: List[Token] = []
    i = 0
    line = 1
    line_start = 0
    n = len(text)

    def error(message: str, at: int, expected: Optional[str] = None, found: Optional[str] = None):
        return ParseError(message, line, at - line_start + 1, expected=expected, found=found, source=source)

    while i < n:
        ch = text[i]

        if ch == "\n":
            i += 1
            line += 1
            line_start = i
            continue
        if ch.isspace():
            i += 1
            continue

        # line comment
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue

        # block comment (may span lines)
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise error("unterminated block comment", i, expected="'*/'", found="end of input")
            for j in range(i, end):
                if text[j] == "\n":
                    line += 1
                    line_start = j + 1
            i = end + 2
            continue

        column = i - line_start + 1

        if ch.isalpha() or ch == "_":
            start = i
            while i < n and (text[i].isalnum() or text[i] == "_"):
                i += 1
            tokens.append(Token("ident", text[start:i], line, column))
            continue

        if ch.isdigit():
            start = i
            kind: TokenKind = "int"
            if text.startswith(("0x", "0X"), i):
                i += 2
                while i < n and text[i] in "0123456789abcdefABCDEF":
                    i += 1
                if i == start + 2:
                    raise error("malformed hexadecimal literal", start, expected="hex digit",
                                found=repr(text[i]) if i < n else "end of input")
            else:
                while i < n and text[i].isdigit():
                    i += 1
                if i + 1 < n and text[i] == "." and text[i + 1].isdigit():
                    kind = "float"
                    i += 1
                    while i < n and text[i].isdigit():
                        i += 1
                if i < n and text[i] in "eE":
                    kind = "float"
                    i += 1
                    if i < n and text[i] in "+-":
                        i += 1
                    while i < n and text[i].isdigit():
                        i += 1
            if i < n and (text[i].isalpha() or text[i] == "_"):
                raise error("invalid character in numeric literal", i, expected="digit",
                            found=repr(text[i]))
            literal = text[start:i]
            if kind == "int" and len(literal) > 1 and literal[0] == "0" and literal[1] not in "xX" \
                    and any(c in "89" for c in literal):
                raise error("malformed octal literal", start, expected="octal digit", found=literal)
            tokens.append(Token(kind, text[start:i], line, column))
            continue

        if ch in ("'", '"'):
            quote = ch
            start = i
            i += 1
            chars: List[str] = []
            while True:
                if i >= n or text[i] == "\n":
                    raise error("unterminated string literal", start, expected=quote,
                                found="end of line" if i < n else "end of input")
                c = text[i]
                if c == quote:
                    i += 1
                    break
                if c == "\\" and i + 1 < n:
                    chars.append(_ESCAPES.get(text[i + 1], text[i + 1]))
                    i += 2
                    continue
                chars.append(c)
                i += 1
            tokens.append(Token("string", "".join(chars), line, column))
            continue

        if ch in PUNCTUATION:
            tokens.append(Token("punct", ch, line, column))
            i += 1
            continue

        raise error(f"unexpected character {ch!r}", i, expected="token", found=repr(ch))

    tokens.append(Token("eof", "", line, i - line_start + 1))
    return tokens
