"""Comment stripping and line-break collapsing for Lua source text.

Both operate on tokens rather than raw text, so comment markers and line
breaks inside string literals are left alone.
"""

from __future__ import annotations

import re

from ljp.lexer import tokenize
from ljp.tokens import Trivia, TriviaKind

# Optimizer annotations survive comment stripping
_ANNOTATION = re.compile(r"--\[\[@(comp_time_enum|used)\]\]")
_LONG_COMMENT = re.compile(r"--\[=*\[")
_NEWLINE = re.compile(r"\r\n|\n|\r")


def _is_line_comment(t: Trivia) -> bool:
    return t.kind == TriviaKind.COMMENT and not _LONG_COMMENT.match(t.text)


def _strip_trivia(trivia: tuple[Trivia, ...]) -> str:
    parts: list[str] = []
    for t in trivia:
        if t.kind != TriviaKind.COMMENT or _ANNOTATION.fullmatch(t.text):
            parts.append(t.text)
        elif t.text.startswith("#"):
            parts.append(t.text)  # shebang
        elif "\n" in t.text:
            parts.append("\n" * t.text.count("\n"))
        elif not _is_line_comment(t):
            # --[[ inline ]] comments separate the tokens around them
            parts.append(" ")
    return "".join(parts)


def strip_comments(source: str) -> str:
    """Remove every comment, keeping line breaks and token separation."""
    parts: list[str] = []
    for tok in tokenize(source):
        parts.append(_strip_trivia(tok.leading))
        parts.append(tok.text)
        parts.append(_strip_trivia(tok.trailing))
    return "".join(parts)


def _flatten_trivia(trivia: tuple[Trivia, ...]) -> str:
    parts: list[str] = []
    for t in trivia:
        if _is_line_comment(t):
            # must stay terminated or it would swallow the rest of the line
            parts.append(t.text + "\n")
        else:
            parts.append(_NEWLINE.sub(" ", t.text))
    return "".join(parts)


def collapse_lines(source: str) -> str:
    """Turn line breaks between tokens into spaces.

    Line breaks inside string literals are kept. Callers normally strip
    comments first; a surviving line comment keeps its own line break.
    """
    parts: list[str] = []
    for tok in tokenize(source):
        parts.append(_flatten_trivia(tok.leading))
        parts.append(tok.text)
        parts.append(_flatten_trivia(tok.trailing))
    return "".join(parts)
