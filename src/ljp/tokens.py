"""Token types, trivia, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    NAME = auto()  # identifiers, including contextual words (continue, type, export)
    KEYWORD = auto()  # reserved words: local, function, end, ...
    SYMBOL = auto()  # operators and punctuation
    NUMBER = auto()
    STRING = auto()  # quoted and long-bracket strings, raw text kept
    INTERP_STRING = auto()  # `backtick` strings (Luau)

    # Placeholder produced by the token editor: carries literal text that is
    # never lexed or validated
    DECORATION = auto()

    EOF = auto()


class TriviaKind(Enum):
    WHITESPACE = auto()  # spaces, tabs, newlines
    COMMENT = auto()  # -- line comments and --[[ long comments ]]
    INJECTED = auto()  # generated text spliced in by the token editor


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Trivia:
    """Non-semantic text attached before or after a token."""

    kind: TriviaKind
    text: str


@dataclass(frozen=True, slots=True)
class Token:
    """A single token with the trivia it owns.

    Trailing trivia runs from the end of the token up to and including the
    first newline; everything else before the next token is leading trivia
    of that next token.
    """

    type: TokenType
    text: str
    span: Span
    leading: tuple[Trivia, ...] = ()
    trailing: tuple[Trivia, ...] = ()


NO_SPAN = Span(Position(0, 0, 0), Position(0, 0, 0))

KEYWORDS = frozenset(
    {
        "and",
        "break",
        "do",
        "else",
        "elseif",
        "end",
        "false",
        "for",
        "function",
        "goto",
        "if",
        "in",
        "local",
        "nil",
        "not",
        "or",
        "repeat",
        "return",
        "then",
        "true",
        "until",
        "while",
    }
)

# Longest first so that the lexer can match greedily
SYMBOLS = (
    "...",
    "..=",
    "//=",
    "..",
    "==",
    "~=",
    "<=",
    ">=",
    "<<",
    ">>",
    "//",
    "::",
    "->",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "^=",
    "+",
    "-",
    "*",
    "/",
    "%",
    "^",
    "#",
    "&",
    "~",
    "|",
    "<",
    ">",
    "=",
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
    ";",
    ":",
    ",",
    ".",
    "?",
)

COMPOUND_OPERATORS = frozenset({"+=", "-=", "*=", "/=", "//=", "%=", "^=", "..="})


def is_name_start(ch: str) -> bool:
    """Return True if ch can start an identifier."""
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ord(ch or "\0") >= 0x80


def is_name_char(ch: str) -> bool:
    """Return True if ch can continue an identifier."""
    return is_name_start(ch) or ("0" <= ch <= "9")


def is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"
