"""Inject build parameters as constants and drop the branches they disable.

Every read of a parameter's global (``DEBUG``, ``_G.DEBUG``,
``_G["DEBUG"]``) that is not shadowed by a local becomes the literal
``true`` or ``false``. Afterwards each ``if`` statement whose conditions
can now be decided is reduced: dead clauses disappear, a clause that is
certainly taken becomes a ``do ... end`` block (or the ``else``).

Removed code leaves its whitespace and comments behind, so the line
numbers of everything that remains are unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ljp.ast import (
    Assignment,
    BinaryOp,
    Block,
    BracketIndex,
    Chunk,
    CompoundAssignment,
    Do,
    DotIndex,
    ElseIf,
    Expression,
    FunctionBody,
    FunctionCall,
    FunctionDeclaration,
    GenericFor,
    If,
    LocalAssignment,
    LocalFunction,
    Name,
    Number,
    NumericFor,
    Parentheses,
    Repeat,
    String,
    Symbol,
    UnaryOp,
    VarExpression,
)
from ljp.editor import replace_token
from ljp.parser import parse
from ljp.pragma import Params, flag_value
from ljp.render import iter_tokens, render
from ljp.tokens import NO_SPAN, Token, TokenType, Trivia, TriviaKind
from ljp.visitor import Transformer

# ---------------------------------------------------------------------------
# Static evaluation of conditions
# ---------------------------------------------------------------------------


class _Unknown:
    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN = _Unknown()


def _truthy(value: object) -> bool:
    return value is not None and value is not False


def _number(text: str) -> float | None:
    try:
        if text[:2].lower() == "0x":
            return float(int(text, 16))
        return float(text)
    except ValueError:
        return None


def _string(text: str) -> str | None:
    # Only plain quoted strings without escapes are compared
    if len(text) >= 2 and text[0] in "\"'" and text[-1] == text[0] and "\\" not in text:
        return text[1:-1]
    return None


def static_value(expr: Expression) -> object:
    """Value of an expression made of literals, or UNKNOWN.

    Lua nil is None; numbers are floats. Tables and functions are
    UNKNOWN even though they are always truthy.
    """
    if isinstance(expr, Symbol):
        text = expr.token.text
        if text == "true":
            return True
        if text == "false":
            return False
        if text == "nil":
            return None
        return UNKNOWN
    if isinstance(expr, Number):
        value = _number(expr.token.text)
        return UNKNOWN if value is None else value
    if isinstance(expr, String):
        value = _string(expr.token.text)
        return UNKNOWN if value is None else value
    if isinstance(expr, Parentheses):
        return static_value(expr.expression)
    if isinstance(expr, UnaryOp) and expr.op.text == "not":
        operand = static_value(expr.operand)
        return UNKNOWN if operand is UNKNOWN else not _truthy(operand)
    if isinstance(expr, BinaryOp):
        return _static_binary(expr)
    return UNKNOWN


def _static_binary(expr: BinaryOp) -> object:
    op = expr.op.text
    lhs = static_value(expr.lhs)
    if op == "and":
        if lhs is UNKNOWN:
            return UNKNOWN
        return static_value(expr.rhs) if _truthy(lhs) else lhs
    if op == "or":
        if lhs is UNKNOWN:
            return UNKNOWN
        return lhs if _truthy(lhs) else static_value(expr.rhs)
    if op in ("==", "~="):
        rhs = static_value(expr.rhs)
        if lhs is UNKNOWN or rhs is UNKNOWN:
            return UNKNOWN
        # Lua never equates values of different types, and bool is not a number
        same = type(lhs) is type(rhs) and lhs == rhs
        return same if op == "==" else not same
    return UNKNOWN


# ---------------------------------------------------------------------------
# Branch elimination
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Clause:
    keyword: Token
    condition: Expression | None  # None for else
    then: Token | None
    block: Block


def _residue(nodes: tuple[object, ...]) -> str:
    """Whitespace and comments of dropped nodes, plus line breaks inside their text."""
    parts: list[str] = []
    for tok in iter_tokens(nodes):
        parts.extend(t.text for t in tok.leading)
        parts.append("\n" * tok.text.count("\n"))
        parts.extend(t.text for t in tok.trailing)
    return "".join(parts)


def _pad_before(tok: Token, text: str) -> Token:
    if not text:
        return tok
    return replace(tok, leading=(Trivia(TriviaKind.INJECTED, text), *tok.leading))


def _pad_after(tok: Token, text: str) -> Token:
    if not text:
        return tok
    return replace(tok, trailing=(*tok.trailing, Trivia(TriviaKind.INJECTED, text)))


def _rename(tok: Token, text: str) -> Token:
    return tok if tok.text == text else replace_token(tok, text)


def fold_if(node: If) -> If | Do:
    """Reduce an if statement whose conditions are statically known.

    Returns node itself when nothing can be decided.
    """
    clauses = [_Clause(node.if_, node.condition, node.then, node.block)]
    clauses.extend(_Clause(e.elseif, e.condition, e.then, e.block) for e in node.else_ifs)
    if node.else_ is not None and node.else_block is not None:
        clauses.append(_Clause(node.else_, None, None, node.else_block))

    values = [UNKNOWN if c.condition is None else static_value(c.condition) for c in clauses]
    if all(v is UNKNOWN for v in values):
        return node

    live: list[_Clause] = []
    final: tuple[Token, Block] | None = None
    pending = ""
    for index, (clause, value) in enumerate(zip(clauses, values)):
        if clause.condition is not None and value is not UNKNOWN and not _truthy(value):
            pending += _residue((clause.keyword, clause.condition, clause.then, clause.block))
            continue

        keyword = _pad_before(clause.keyword, pending)
        pending = ""
        if clause.condition is None or value is not UNKNOWN:
            # Taken whenever reached: the rest of the statement is dead
            keyword = _rename(keyword, "else" if live else "do")
            keyword = _pad_after(keyword, _residue((clause.condition, clause.then)))
            final = (keyword, clause.block)
            for rest in clauses[index + 1 :]:
                pending += _residue((rest.keyword, rest.condition, rest.then, rest.block))
            break
        live.append(replace(clause, keyword=_rename(keyword, "elseif" if live else "if")))

    end = _pad_before(node.end, pending)

    if not live:
        if final is not None:
            return Do(final[0], final[1], end)
        # Nothing left but the layout
        return Do(
            Token(TokenType.DECORATION, "", NO_SPAN),
            Block((), None),
            replace_token(end, ""),
        )

    first, *others = live
    else_ifs = tuple(ElseIf(c.keyword, c.condition, c.then, c.block) for c in others)
    return If(
        first.keyword,
        first.condition,
        first.then,
        first.block,
        else_ifs,
        final[0] if final else None,
        final[1] if final else None,
        end,
    )


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------


def _global_key(expr: VarExpression) -> str | None:
    """KEY for _G.KEY and _G["KEY"], else None."""
    if not isinstance(expr.prefix, Name) or expr.prefix.token.text != "_G":
        return None
    if len(expr.suffixes) != 1:
        return None
    suffix = expr.suffixes[0]
    if isinstance(suffix, DotIndex):
        return suffix.name.text
    if isinstance(suffix, BracketIndex) and isinstance(suffix.expression, String):
        return _string(suffix.expression.token.text)
    return None


def _literal(tokens: list[Token], value: bool) -> Symbol:
    """A true/false literal carrying the trivia of the tokens it replaces."""
    first, last = tokens[0], tokens[-1]
    middle: list[Trivia] = []
    for tok in tokens[1:]:
        middle.extend(tok.leading)
    for tok in tokens[:-1]:
        middle.extend(tok.trailing)
    text = "true" if value else "false"
    leading = first.leading
    trailing = (*last.trailing, *middle) if len(tokens) > 1 else last.trailing
    return Symbol(Token(TokenType.KEYWORD, text, first.span, leading, trailing))


class GlobalInjector(Transformer):
    """Replaces reads of parameter globals with literals and folds ifs.

    Tracks local scopes so that a local of the same name shadows the
    parameter.
    """

    def __init__(self, values: dict[str, bool]) -> None:
        self.values = values
        self.scopes: list[set[str]] = [set()]
        self._pending: dict[int, set[str]] = {}  # id(block) -> names declared in it
        self._deferred: set[int] = set()  # repeat blocks, popped after the condition
        self._block_deferred: list[bool] = []
        self._not_reads: set[int] = set()

    def _shadowed(self, name: str) -> bool:
        return any(name in scope for scope in self.scopes)

    # -- scopes ----------------------------------------------------------

    def visit_block(self, node: Block) -> Block:
        self.scopes.append(self._pending.pop(id(node), set()))
        self._block_deferred.append(id(node) in self._deferred)
        return node

    def leave_block(self, node: Block) -> Block:
        if not self._block_deferred.pop():
            self.scopes.pop()
        return node

    def visit_repeat(self, node: Repeat) -> Repeat:
        self._deferred.add(id(node.block))
        return node

    def leave_repeat(self, node: Repeat) -> Repeat:
        self.scopes.pop()
        return node

    def visit_local_function(self, node: LocalFunction) -> LocalFunction:
        self.scopes[-1].add(node.name.text)
        return node

    def leave_local_assignment(self, node: LocalAssignment) -> LocalAssignment:
        self.scopes[-1].update(pair.value.name.text for pair in node.names)
        return node

    def visit_function_declaration(self, node: FunctionDeclaration) -> FunctionDeclaration:
        if node.name.method is not None:
            self._pending[id(node.body.block)] = {"self"}
        return node

    def visit_function_body(self, node: FunctionBody) -> FunctionBody:
        names = self._pending.setdefault(id(node.block), set())
        names.update(pair.value.name.text for pair in node.params)
        return node

    def visit_numeric_for(self, node: NumericFor) -> NumericFor:
        self._pending[id(node.block)] = {node.var.name.text}
        return node

    def visit_generic_for(self, node: GenericFor) -> GenericFor:
        self._pending[id(node.block)] = {pair.value.name.text for pair in node.names}
        return node

    # -- reads -----------------------------------------------------------

    def visit_assignment(self, node: Assignment) -> Assignment:
        for pair in node.targets:
            self._not_reads.add(id(pair.value))
        return node

    def visit_compound_assignment(self, node: CompoundAssignment) -> CompoundAssignment:
        self._not_reads.add(id(node.target))
        return node

    def visit_function_call(self, node: FunctionCall) -> FunctionCall:
        self._not_reads.add(id(node.prefix))
        return node

    def visit_var_expression(self, node: VarExpression) -> VarExpression | Symbol:
        if id(node) in self._not_reads:
            self._not_reads.add(id(node.prefix))
            return node
        key = _global_key(node)
        if key is not None and key in self.values and not self._shadowed("_G"):
            return _literal(list(iter_tokens(node)), self.values[key])
        self._not_reads.add(id(node.prefix))
        return node

    def visit_name(self, node: Name) -> Name | Symbol:
        name = node.token.text
        if id(node) in self._not_reads or name not in self.values or self._shadowed(name):
            return node
        return _literal([node.token], self.values[name])

    # -- folding ---------------------------------------------------------

    def leave_if(self, node: If) -> If | Do:
        return fold_if(node)


def inject_globals(tree: Chunk, params: Params) -> Chunk:
    """Replace parameter reads in tree with literals and fold decided ifs."""
    values = {key: flag_value(value) for key, value in params}
    return GlobalInjector(values).transform(tree)


def inject_source(source: str, params: Params, filename: str = "<input>") -> str:
    """Parse, inject and re-render source text."""
    return render(inject_globals(parse(source, filename), params))
