"""Concrete syntax tree node types for parsed Lua chunks.

Every node is a frozen dataclass whose fields are declared in source order,
so walking the fields of a node yields its tokens in the order they appear
in the text. Nothing is ever dropped: keywords, punctuation and separators
are kept as tokens, and all whitespace and comments live in token trivia.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ljp.tokens import Token


@dataclass(frozen=True, slots=True)
class Pair:
    """One element of a separated list and the separator that follows it."""

    value: object
    sep: Token | None


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Symbol:
    """nil, true, false or ..."""

    token: Token


@dataclass(frozen=True, slots=True)
class Number:
    token: Token


@dataclass(frozen=True, slots=True)
class String:
    token: Token


@dataclass(frozen=True, slots=True)
class InterpolatedString:
    """Luau `backtick` string, kept opaque."""

    token: Token


@dataclass(frozen=True, slots=True)
class Name:
    """A bare variable reference."""

    token: Token


@dataclass(frozen=True, slots=True)
class Parentheses:
    open: Token
    expression: Expression
    close: Token


@dataclass(frozen=True, slots=True)
class UnaryOp:
    op: Token
    operand: Expression


@dataclass(frozen=True, slots=True)
class BinaryOp:
    lhs: Expression
    op: Token
    rhs: Expression


@dataclass(frozen=True, slots=True)
class TypeAnnotation:
    """Luau type annotation: ': type', kept as raw tokens."""

    colon: Token
    tokens: tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class Parameter:
    """A formal parameter: a name or '...', with an optional type."""

    name: Token
    annotation: TypeAnnotation | None


@dataclass(frozen=True, slots=True)
class FunctionBody:
    generics: tuple[Token, ...]
    open: Token
    params: tuple[Pair, ...]  # Pair[Parameter]
    close: Token
    return_type: TypeAnnotation | None
    block: Block
    end: Token


@dataclass(frozen=True, slots=True)
class FunctionExpr:
    """Anonymous function: function (...) ... end"""

    function: Token
    body: FunctionBody


@dataclass(frozen=True, slots=True)
class NameKey:
    """Table field name = value"""

    key: Token
    equals: Token
    value: Expression


@dataclass(frozen=True, slots=True)
class ExprKey:
    """Table field [key] = value"""

    open: Token
    key: Expression
    close: Token
    equals: Token
    value: Expression


@dataclass(frozen=True, slots=True)
class TableConstructor:
    open: Token
    fields: tuple[Pair, ...]  # Pair[NameKey | ExprKey | Expression]
    close: Token


@dataclass(frozen=True, slots=True)
class DotIndex:
    dot: Token
    name: Token


@dataclass(frozen=True, slots=True)
class BracketIndex:
    open: Token
    expression: Expression
    close: Token


@dataclass(frozen=True, slots=True)
class ParenArgs:
    open: Token
    args: tuple[Pair, ...]  # Pair[Expression]
    close: Token


@dataclass(frozen=True, slots=True)
class StringArgs:
    token: Token


@dataclass(frozen=True, slots=True)
class TableArgs:
    table: TableConstructor


@dataclass(frozen=True, slots=True)
class MethodCall:
    colon: Token
    name: Token
    args: Args


@dataclass(frozen=True, slots=True)
class AnonymousCall:
    args: Args


@dataclass(frozen=True, slots=True)
class VarExpression:
    """prefix followed by suffixes, ending in an index."""

    prefix: Name | Parentheses
    suffixes: tuple[Suffix, ...]


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """prefix followed by suffixes, ending in a call."""

    prefix: Name | Parentheses
    suffixes: tuple[Suffix, ...]


@dataclass(frozen=True, slots=True)
class IfExpressionClause:
    elseif: Token
    condition: Expression
    then: Token
    value: Expression


@dataclass(frozen=True, slots=True)
class IfExpression:
    """Luau: if c then a elseif d then b else e"""

    if_: Token
    condition: Expression
    then: Token
    value: Expression
    else_ifs: tuple[IfExpressionClause, ...]
    else_: Token
    else_value: Expression


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Attrib:
    """Lua 5.4 local attribute: <const> / <close>"""

    open: Token
    name: Token
    close: Token


@dataclass(frozen=True, slots=True)
class Binding:
    """A name introduced by local or for, with optional attribute or type."""

    name: Token
    attrib: Attrib | None
    annotation: TypeAnnotation | None


@dataclass(frozen=True, slots=True)
class LocalAssignment:
    local: Token
    names: tuple[Pair, ...]  # Pair[Binding]
    equals: Token | None
    expressions: tuple[Pair, ...]  # Pair[Expression]


@dataclass(frozen=True, slots=True)
class LocalFunction:
    local: Token
    function: Token
    name: Token
    body: FunctionBody


@dataclass(frozen=True, slots=True)
class FunctionName:
    """a.b.c or a.b:c"""

    names: tuple[Pair, ...]  # Pair[Token], separated by '.'
    colon: Token | None
    method: Token | None


@dataclass(frozen=True, slots=True)
class FunctionDeclaration:
    function: Token
    name: FunctionName
    body: FunctionBody


@dataclass(frozen=True, slots=True)
class Assignment:
    targets: tuple[Pair, ...]  # Pair[Name | VarExpression]
    equals: Token
    expressions: tuple[Pair, ...]


@dataclass(frozen=True, slots=True)
class CompoundAssignment:
    """Luau: target op= value"""

    target: Name | VarExpression
    op: Token
    value: Expression


@dataclass(frozen=True, slots=True)
class CallStatement:
    call: FunctionCall


@dataclass(frozen=True, slots=True)
class Do:
    do: Token
    block: Block
    end: Token


@dataclass(frozen=True, slots=True)
class While:
    while_: Token
    condition: Expression
    do: Token
    block: Block
    end: Token


@dataclass(frozen=True, slots=True)
class Repeat:
    repeat: Token
    block: Block
    until: Token
    condition: Expression


@dataclass(frozen=True, slots=True)
class ElseIf:
    elseif: Token
    condition: Expression
    then: Token
    block: Block


@dataclass(frozen=True, slots=True)
class If:
    if_: Token
    condition: Expression
    then: Token
    block: Block
    else_ifs: tuple[ElseIf, ...]
    else_: Token | None
    else_block: Block | None
    end: Token


@dataclass(frozen=True, slots=True)
class NumericFor:
    for_: Token
    var: Binding
    equals: Token
    start: Expression
    comma: Token
    limit: Expression
    step_comma: Token | None
    step: Expression | None
    do: Token
    block: Block
    end: Token


@dataclass(frozen=True, slots=True)
class GenericFor:
    for_: Token
    names: tuple[Pair, ...]  # Pair[Binding]
    in_: Token
    expressions: tuple[Pair, ...]
    do: Token
    block: Block
    end: Token


@dataclass(frozen=True, slots=True)
class Goto:
    goto: Token
    label: Token


@dataclass(frozen=True, slots=True)
class Label:
    open: Token
    name: Token
    close: Token


@dataclass(frozen=True, slots=True)
class Break:
    token: Token


@dataclass(frozen=True, slots=True)
class Continue:
    """Luau continue."""

    token: Token


@dataclass(frozen=True, slots=True)
class Semicolon:
    token: Token


@dataclass(frozen=True, slots=True)
class TypeDeclaration:
    """Luau: [export] type Name<...> = type, kept as raw tokens."""

    export: Token | None
    type_: Token
    tokens: tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class Return:
    return_: Token
    expressions: tuple[Pair, ...]
    semicolon: Token | None


@dataclass(frozen=True, slots=True)
class Block:
    statements: tuple[Statement, ...]
    last: Return | None


@dataclass(frozen=True, slots=True)
class Chunk:
    """Root node: the whole file. The EOF token carries the final trivia."""

    block: Block
    eof: Token


Expression = Union[
    Symbol,
    Number,
    String,
    InterpolatedString,
    Name,
    Parentheses,
    UnaryOp,
    BinaryOp,
    FunctionExpr,
    TableConstructor,
    VarExpression,
    FunctionCall,
    IfExpression,
]

Suffix = Union[DotIndex, BracketIndex, MethodCall, AnonymousCall]

Args = Union[ParenArgs, StringArgs, TableArgs]

Statement = Union[
    LocalAssignment,
    LocalFunction,
    FunctionDeclaration,
    Assignment,
    CompoundAssignment,
    CallStatement,
    Do,
    While,
    Repeat,
    If,
    NumericFor,
    GenericFor,
    Goto,
    Label,
    Break,
    Continue,
    Semicolon,
    TypeDeclaration,
]
