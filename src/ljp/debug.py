"""--debug syntax tree dump to stderr."""

from __future__ import annotations

import sys
from dataclasses import fields
from typing import TextIO

from ljp.ast import Pair
from ljp.tokens import Token, TokenType

# Token fields shown inline on the node header line
_LABELLED = frozenset(
    {
        TokenType.NAME,
        TokenType.NUMBER,
        TokenType.STRING,
        TokenType.INTERP_STRING,
        TokenType.DECORATION,
    }
)


def dump_tree(node: object, *, file: TextIO = sys.stderr) -> None:
    """Print a human-readable syntax tree to *file*."""
    _dump(node, 0, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _token(tok: Token) -> str:
    if tok.type == TokenType.DECORATION:
        return f"Decoration({tok.text!r})"
    return f"{tok.text!r}"


def _dump(node: object, depth: int, f: TextIO) -> None:
    if isinstance(node, Pair):
        _dump(node.value, depth, f)
        return
    name = type(node).__name__
    node_fields = fields(node)  # type: ignore[arg-type]

    # Single-token nodes print on one line
    if len(node_fields) == 1 and isinstance(getattr(node, node_fields[0].name), Token):
        f.write(f"{_indent(depth)}{name}({_token(getattr(node, node_fields[0].name))})\n")
        return

    labels: list[str] = []
    for fld in node_fields:
        value = getattr(node, fld.name)
        if isinstance(value, Token) and (fld.name == "op" or value.type in _LABELLED):
            labels.append(f"{fld.name}={_token(value)}")
    header = " ".join([name, *labels])
    f.write(f"{_indent(depth)}{header}\n")
    for fld in node_fields:
        value = getattr(node, fld.name)
        if value is None or isinstance(value, Token):
            continue
        if isinstance(value, tuple):
            if value and all(isinstance(v, Token) for v in value):
                text = " ".join(tok.text for tok in value)
                f.write(f"{_indent(depth + 1)}{fld.name}: {text!r}\n")
                continue
            for item in value:
                _dump(item, depth + 1, f)
            continue
        _dump(value, depth + 1, f)
