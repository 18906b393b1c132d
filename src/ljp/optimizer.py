"""Annotation-driven optimizer pass.

Annotations are long comments right after the ``local`` keyword:

``local --[[@comp_time_enum]] Color = { RED = 1, GREEN = "g" }``
    Later reads of ``Color.RED`` are replaced by ``1 --[[Color.RED]]``.

``local --[[@used]] x = 1234``
    Becomes ``local --[[@used]] x = 1234 _ = x``, so the local is never
    removed as unused.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ljp.ast import (
    Chunk,
    DotIndex,
    ExprKey,
    LocalAssignment,
    Name,
    NameKey,
    Number,
    String,
    TableConstructor,
    VarExpression,
)
from ljp.editor import empty_token, insert_after_expr_list, replace_token
from ljp.errors import ConfigError
from ljp.parser import parse
from ljp.render import render
from ljp.tokens import TriviaKind
from ljp.visitor import Transformer

log = logging.getLogger(__name__)

COMP_TIME_ENUM = "@comp_time_enum"
USED = "@used"


def _annotation(node: LocalAssignment) -> str | None:
    for t in node.local.trailing:
        if t.kind == TriviaKind.COMMENT and t.text in (f"--[[{COMP_TIME_ENUM}]]", f"--[[{USED}]]"):
            return t.text[4:-2]
    return None


class Optimizer(Transformer):
    """Applies @comp_time_enum and @used annotations, top to bottom."""

    def __init__(self, source: str = "", filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.enums: dict[str, dict[str, str]] = {}

    def _error(self, message: str, node: LocalAssignment) -> ConfigError:
        return ConfigError(message, node.local.span, self.source, self.filename)

    def visit_local_assignment(self, node: LocalAssignment) -> LocalAssignment:
        annotation = _annotation(node)
        if annotation is None:
            return node
        if len(node.names) != 1:
            raise self._error(f"[{annotation}] expects exactly one variable name", node)
        if len(node.expressions) != 1:
            raise self._error(f"[{annotation}] expects exactly one expression", node)
        name = node.names[0].value.name.text

        if annotation == COMP_TIME_ENUM:
            self.enums[name] = self._enum_values(name, node)
            return node

        log.debug("[@used] keeping local %s", name)
        expressions = insert_after_expr_list(node.expressions, f" _ = {name} ")
        return replace(node, expressions=expressions)

    def _enum_values(self, name: str, node: LocalAssignment) -> dict[str, str]:
        table = node.expressions[0].value
        if not isinstance(table, TableConstructor):
            raise self._error(f"[{COMP_TIME_ENUM}] {name} must be a table constructor", node)
        values: dict[str, str] = {}
        for pair in table.fields:
            field = pair.value
            if isinstance(field, ExprKey):
                raise self._error(
                    f"[{COMP_TIME_ENUM}] {name}: only name = value fields are supported", node
                )
            if not isinstance(field, NameKey):
                continue
            if isinstance(field.value, (Number, String)):
                values[field.key.text] = field.value.token.text
            else:
                log.warning(
                    "[%s] %s.%s is not a number or string literal: %s",
                    COMP_TIME_ENUM,
                    name,
                    field.key.text,
                    render(field.value).strip(),
                )
        return values

    def visit_var_expression(self, node: VarExpression) -> VarExpression:
        if not isinstance(node.prefix, Name) or len(node.suffixes) != 1:
            return node
        members = self.enums.get(node.prefix.token.text)
        suffix = node.suffixes[0]
        if members is None or not isinstance(suffix, DotIndex):
            return node
        value = members.get(suffix.name.text)
        if value is None:
            return node
        label = f"{node.prefix.token.text}.{suffix.name.text}"
        token = replace_token(node.prefix.token, f"{value} --[[{label}]]")
        prefix = replace(node.prefix, token=token)
        emptied = DotIndex(empty_token(suffix.dot), empty_token(suffix.name))
        return VarExpression(prefix, (emptied,))


def optimize(tree: Chunk, source: str = "", filename: str = "<input>") -> Chunk:
    return Optimizer(source, filename).transform(tree)


def optimize_source(source: str, filename: str = "<input>") -> str:
    """Parse, optimize and re-render source text."""
    return render(optimize(parse(source, filename), source, filename))
