"""Token editor — pure functions that splice literal text into syntax trees.

Inserted text is attached to an existing token as INJECTED trivia, so it
reaches the output verbatim and is never lexed or validated. Every function
returns a modified copy; the input is left untouched.

Composite nodes are edited at their first leaf token (insert before) or
their last leaf token (insert after). The supported node shapes are listed
explicitly; anything else raises UnsupportedNodeError.
"""

from __future__ import annotations

from dataclasses import replace

from ljp.ast import (
    AnonymousCall,
    Attrib,
    BinaryOp,
    BracketIndex,
    DotIndex,
    Expression,
    FunctionCall,
    FunctionExpr,
    IfExpression,
    InterpolatedString,
    Label,
    MethodCall,
    Name,
    Number,
    Pair,
    ParenArgs,
    Parentheses,
    String,
    StringArgs,
    Symbol,
    TableArgs,
    TableConstructor,
    UnaryOp,
    VarExpression,
)
from ljp.errors import UnsupportedNodeError
from ljp.render import render
from ljp.tokens import Token, TokenType, Trivia, TriviaKind

# Nodes delimited by a balanced open/close token pair
ContainedSpan = Parentheses | ParenArgs | TableConstructor | BracketIndex | Attrib | Label
_CONTAINED = (Parentheses, ParenArgs, TableConstructor, BracketIndex, Attrib, Label)

_ATOMS = (Number, String, InterpolatedString, Name, Symbol)


def _injected(text: str) -> Trivia:
    return Trivia(TriviaKind.INJECTED, text)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def empty_token(tok: Token) -> Token:
    """Replace the token's text with nothing. Its trivia is kept."""
    return replace(tok, type=TokenType.DECORATION, text="")


def replace_token(tok: Token, text: str) -> Token:
    """Replace the token's text with an inert literal. Its trivia is kept."""
    return replace(tok, type=TokenType.DECORATION, text=text)


def insert_before_token(tok: Token, text: str) -> Token:
    """Insert text immediately before the token's own text."""
    return replace(tok, leading=(*tok.leading, _injected(text)))


def insert_after_token(tok: Token, text: str) -> Token:
    """Insert text immediately after the token's own text."""
    return replace(tok, trailing=(_injected(text), *tok.trailing))


def surround_token(tok: Token, before: str, after: str) -> Token:
    return insert_after_token(insert_before_token(tok, before), after)


# ---------------------------------------------------------------------------
# Delimited spans
# ---------------------------------------------------------------------------


def _check_contained(operation: str, node: object) -> None:
    if not isinstance(node, _CONTAINED):
        raise UnsupportedNodeError(operation, node)


def insert_before_span(node: ContainedSpan, text: str) -> ContainedSpan:
    """Insert text before the opening delimiter."""
    _check_contained("insert_before_span", node)
    return replace(node, open=insert_before_token(node.open, text))


def insert_after_span(node: ContainedSpan, text: str) -> ContainedSpan:
    """Insert text after the closing delimiter."""
    _check_contained("insert_after_span", node)
    return replace(node, close=insert_after_token(node.close, text))


def empty_span(node: ContainedSpan) -> ContainedSpan:
    """Erase both delimiters, keeping what is between them."""
    _check_contained("empty_span", node)
    return replace(node, open=empty_token(node.open), close=empty_token(node.close))


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


def insert_before_expr(expr: Expression, text: str) -> Expression:
    """Insert text before the first token of an expression."""
    if isinstance(expr, _ATOMS):
        return replace(expr, token=insert_before_token(expr.token, text))
    if isinstance(expr, (Parentheses, TableConstructor)):
        return insert_before_span(expr, text)
    if isinstance(expr, UnaryOp):
        return replace(expr, op=insert_before_token(expr.op, text))
    if isinstance(expr, BinaryOp):
        return replace(expr, lhs=insert_before_expr(expr.lhs, text))
    if isinstance(expr, (VarExpression, FunctionCall)):
        return replace(expr, prefix=insert_before_expr(expr.prefix, text))
    if isinstance(expr, FunctionExpr):
        return replace(expr, function=insert_before_token(expr.function, text))
    if isinstance(expr, IfExpression):
        return replace(expr, if_=insert_before_token(expr.if_, text))
    raise UnsupportedNodeError("insert_before_expr", expr)


def insert_after_expr(expr: Expression, text: str) -> Expression:
    """Insert text after the last token of an expression."""
    if isinstance(expr, _ATOMS):
        return replace(expr, token=insert_after_token(expr.token, text))
    if isinstance(expr, (Parentheses, TableConstructor)):
        return insert_after_span(expr, text)
    if isinstance(expr, UnaryOp):
        return replace(expr, operand=insert_after_expr(expr.operand, text))
    if isinstance(expr, BinaryOp):
        return replace(expr, rhs=insert_after_expr(expr.rhs, text))
    if isinstance(expr, (VarExpression, FunctionCall)):
        return insert_after_var_expr(expr, text)
    if isinstance(expr, FunctionExpr):
        body = replace(expr.body, end=insert_after_token(expr.body.end, text))
        return replace(expr, body=body)
    if isinstance(expr, IfExpression):
        return replace(expr, else_value=insert_after_expr(expr.else_value, text))
    raise UnsupportedNodeError("insert_after_expr", expr)


def _insert_after_args(args: object, text: str) -> object:
    if isinstance(args, ParenArgs):
        return insert_after_span(args, text)
    if isinstance(args, StringArgs):
        return replace(args, token=insert_after_token(args.token, text))
    if isinstance(args, TableArgs):
        return replace(args, table=insert_after_span(args.table, text))
    raise UnsupportedNodeError("insert_after_args", args)


def _insert_after_suffix(suffix: object, text: str) -> object:
    if isinstance(suffix, DotIndex):
        return replace(suffix, name=insert_after_token(suffix.name, text))
    if isinstance(suffix, BracketIndex):
        return insert_after_span(suffix, text)
    if isinstance(suffix, (MethodCall, AnonymousCall)):
        return replace(suffix, args=_insert_after_args(suffix.args, text))
    raise UnsupportedNodeError("insert_after_suffix", suffix)


def insert_after_var_expr(
    expr: VarExpression | FunctionCall, text: str
) -> VarExpression | FunctionCall:
    """Insert text after the last suffix of an index or call chain.

    For a call this lands after the closing delimiter of its arguments.
    """
    if not isinstance(expr, (VarExpression, FunctionCall)) or not expr.suffixes:
        raise UnsupportedNodeError("insert_after_var_expr", expr)
    last = _insert_after_suffix(expr.suffixes[-1], text)
    return replace(expr, suffixes=(*expr.suffixes[:-1], last))


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


def insert_before_var_list(targets: tuple[Pair, ...], text: str) -> tuple[Pair, ...]:
    """Insert text before the first assignment target."""
    if not targets:
        raise UnsupportedNodeError("insert_before_var_list", targets)
    first = targets[0]
    return (replace(first, value=insert_before_expr(first.value, text)), *targets[1:])


def insert_after_expr_list(expressions: tuple[Pair, ...], text: str) -> tuple[Pair, ...]:
    """Insert text after the last expression of a list."""
    if not expressions:
        raise UnsupportedNodeError("insert_after_expr_list", expressions)
    last = expressions[-1]
    return (*expressions[:-1], replace(last, value=insert_after_expr(last.value, text)))


# ---------------------------------------------------------------------------
# Call names
# ---------------------------------------------------------------------------


def is_plain_chain(call: FunctionCall) -> bool:
    """True for name(.name)*(:name)?(args): a single call on a dotted name."""
    if not isinstance(call, FunctionCall) or not isinstance(call.prefix, Name):
        return False
    *indexes, last = call.suffixes
    return all(isinstance(s, DotIndex) for s in indexes) and isinstance(
        last, (MethodCall, AnonymousCall)
    )


def _args_texts(args: object) -> tuple[str, ...]:
    if isinstance(args, ParenArgs):
        return tuple(render(pair.value).strip() for pair in args.args)
    if isinstance(args, StringArgs):
        return (args.token.text,)
    if isinstance(args, TableArgs):
        return (render(args.table).strip(),)
    raise UnsupportedNodeError("call_name", args)


def call_name(call: FunctionCall) -> tuple[str, tuple[str, ...]]:
    """Return the qualified callee name and the source text of each argument.

    ``_G.__LJP:include("mod")`` gives ``("_G.__LJP:include", ('"mod"',))``.
    """
    if not is_plain_chain(call):
        raise UnsupportedNodeError("call_name", call)
    parts = [call.prefix.token.text]
    *indexes, last = call.suffixes
    for suffix in indexes:
        parts.append("." + suffix.name.text)
    if isinstance(last, MethodCall):
        parts.append(":" + last.name.text)
    return "".join(parts), _args_texts(last.args)
