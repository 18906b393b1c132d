"""Lua lexer — converts source text into tokens that own their trivia."""

from __future__ import annotations

import re

from ljp.errors import LexError
from ljp.tokens import (
    KEYWORDS,
    SYMBOLS,
    Position,
    Span,
    Token,
    TokenType,
    Trivia,
    TriviaKind,
    is_digit,
    is_name_char,
    is_name_start,
)

_NUMBER = re.compile(
    r"""
    (?:
        0[xX][0-9a-fA-F_]*\.?[0-9a-fA-F_]*(?:[pP][+-]?[0-9]+)?
      | 0[bB][01_]+
      | (?:[0-9][0-9_]*\.?[0-9_]*|\.[0-9][0-9_]*)(?:[eE][+-]?[0-9]+)?
    )
    (?:[uU]?[lL][lL]|[iI])?
    """,
    re.VERBOSE,
)

_HSPACE = " \t\f\v"


class Lexer:
    """Tokenize Lua source text into a list of Token objects.

    Every character of the source ends up either in a token's text or in
    one of its trivia lists, so concatenating the tokens reproduces the
    source exactly.
    """

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self._source = source
        self._filename = filename
        self._pos = 0
        self._line = 1
        self._col = 1

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list, ending with EOF."""
        tokens: list[Token] = []
        leading: list[Trivia] = []

        if self._source.startswith("#"):
            # Shebang line
            end = self._line_end(self._pos)
            leading.append(Trivia(TriviaKind.COMMENT, self._take(end - self._pos)))

        while True:
            self._lex_leading(leading)
            if self._pos >= len(self._source):
                break
            tt, text, span = self._lex_token()
            trailing = self._lex_trailing()
            tokens.append(Token(tt, text, span, tuple(leading), tuple(trailing)))
            leading = []

        here = self._current_pos()
        tokens.append(Token(TokenType.EOF, "", Span(here, here), tuple(leading), ()))
        return tokens

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _take(self, count: int) -> str:
        text = self._source[self._pos : self._pos + count]
        for ch in text:
            if ch == "\n":
                self._line += 1
                self._col = 1
            else:
                self._col += 1
        self._pos += len(text)
        return text

    def _line_end(self, start: int) -> int:
        idx = start
        while idx < len(self._source) and self._source[idx] not in "\r\n":
            idx += 1
        return idx

    def _error(self, message: str, pos: Position | None = None) -> LexError:
        if pos is None:
            pos = self._current_pos()
        return LexError(message, pos, self._source, self._filename)

    # ------------------------------------------------------------------
    # Trivia
    # ------------------------------------------------------------------

    def _lex_leading(self, out: list[Trivia]) -> None:
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in _HSPACE or ch in "\r\n":
                start = self._pos
                while self._pos < len(self._source) and (
                    self._peek() in _HSPACE or self._peek() in "\r\n"
                ):
                    self._take(1)
                out.append(Trivia(TriviaKind.WHITESPACE, self._source[start : self._pos]))
            elif ch == "-" and self._peek(1) == "-":
                out.append(Trivia(TriviaKind.COMMENT, self._lex_comment()))
            else:
                return

    def _lex_trailing(self) -> list[Trivia]:
        """Collect same-line trivia, up to and including the first newline."""
        out: list[Trivia] = []
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in _HSPACE or ch in "\r\n":
                start = self._pos
                while self._pos < len(self._source) and self._peek() in _HSPACE:
                    self._take(1)
                newline = False
                if self._peek() == "\n":
                    self._take(1)
                    newline = True
                elif self._peek() == "\r" and self._peek(1) == "\n":
                    self._take(2)
                    newline = True
                elif self._peek() == "\r":
                    self._take(1)
                    newline = True
                out.append(Trivia(TriviaKind.WHITESPACE, self._source[start : self._pos]))
                if newline:
                    return out
            elif ch == "-" and self._peek(1) == "-":
                comment = self._lex_comment()
                out.append(Trivia(TriviaKind.COMMENT, comment))
                if "\n" in comment:
                    return out
            else:
                return out
        return out

    def _lex_comment(self) -> str:
        start = self._current_pos()
        if self._peek(2) == "[":
            level = self._long_bracket_level(self._pos + 2)
            if level is not None:
                return self._read_long_bracket(self._pos + 2, level, start, "comment")
        end = self._line_end(self._pos)
        return self._take(end - self._pos)

    def _long_bracket_level(self, idx: int) -> int | None:
        """Return the level of a long bracket opener at idx ([[, [=[, ...), or None."""
        if idx >= len(self._source) or self._source[idx] != "[":
            return None
        level = 0
        idx += 1
        while idx < len(self._source) and self._source[idx] == "=":
            level += 1
            idx += 1
        if idx < len(self._source) and self._source[idx] == "[":
            return level
        return None

    def _read_long_bracket(self, idx: int, level: int, start: Position, what: str) -> str:
        """Consume from self._pos through the closing bracket and return the text.

        idx is the offset of the opening bracket.
        """
        close = "]" + "=" * level + "]"
        end = self._source.find(close, idx + level + 2)
        if end < 0:
            raise self._error(f"unfinished long {what}", start)
        return self._take(end + len(close) - self._pos)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _lex_token(self) -> tuple[TokenType, str, Span]:
        start = self._current_pos()
        ch = self._peek()

        if is_name_start(ch):
            end = self._pos
            while end < len(self._source) and is_name_char(self._source[end]):
                end += 1
            text = self._take(end - self._pos)
            tt = TokenType.KEYWORD if text in KEYWORDS else TokenType.NAME
            return tt, text, Span(start, self._current_pos())

        if is_digit(ch) or (ch == "." and is_digit(self._peek(1))):
            match = _NUMBER.match(self._source, self._pos)
            assert match is not None
            text = self._take(match.end() - self._pos)
            if is_name_char(self._peek()):
                raise self._error(f"malformed number near '{text}{self._peek()}'", start)
            return TokenType.NUMBER, text, Span(start, self._current_pos())

        if ch in "\"'":
            text = self._lex_quoted(ch, start)
            return TokenType.STRING, text, Span(start, self._current_pos())

        if ch == "[":
            level = self._long_bracket_level(self._pos)
            if level is not None:
                text = self._read_long_bracket(self._pos, level, start, "string")
                return TokenType.STRING, text, Span(start, self._current_pos())

        if ch == "`":
            text = self._lex_quoted("`", start)
            return TokenType.INTERP_STRING, text, Span(start, self._current_pos())

        for symbol in SYMBOLS:
            if self._source.startswith(symbol, self._pos):
                self._take(len(symbol))
                return TokenType.SYMBOL, symbol, Span(start, self._current_pos())

        if ch == "\0":
            raise self._error("NUL character in source")
        raise self._error(f"unexpected character '{ch}'")

    def _lex_quoted(self, quote: str, start: Position) -> str:
        idx = self._pos + 1
        while idx < len(self._source):
            c = self._source[idx]
            if c == "\\":
                if self._source.startswith("z", idx + 1):
                    # \z skips the whitespace that follows, line breaks included
                    idx += 2
                    while idx < len(self._source) and self._source[idx] in _HSPACE + "\r\n":
                        idx += 1
                    continue
                idx += 3 if self._source.startswith("\r\n", idx + 1) else 2
                continue
            if c == quote:
                return self._take(idx + 1 - self._pos)
            if c in "\r\n" and quote != "`":
                break
            idx += 1
        raise self._error("unfinished string", start)


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source, filename).tokenize()
