"""Serialize syntax trees back to source text."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import fields

from ljp.tokens import Token


def iter_tokens(node: object) -> Iterator[Token]:
    """Yield every token under node in source order."""
    if node is None:
        return
    if isinstance(node, Token):
        yield node
        return
    if isinstance(node, tuple):
        for item in node:
            yield from iter_tokens(item)
        return
    for f in fields(node):  # type: ignore[arg-type]
        yield from iter_tokens(getattr(node, f.name))


def token_text(token: Token) -> str:
    """Leading trivia, text and trailing trivia of a single token."""
    parts = [t.text for t in token.leading]
    parts.append(token.text)
    parts.extend(t.text for t in token.trailing)
    return "".join(parts)


def render(node: object) -> str:
    """Concatenate every token's trivia and text, in tree order."""
    return "".join(token_text(tok) for tok in iter_tokens(node))


def render_bare(node: object) -> str:
    """Token texts only, no trivia. Used for names and markers."""
    return "".join(tok.text for tok in iter_tokens(node))


def first_token(node: object) -> Token | None:
    return next(iter_tokens(node), None)
