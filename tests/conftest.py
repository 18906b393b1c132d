"""Shared test fixtures and helpers."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from ljp.ast import Chunk, Expression, Statement
from ljp.evaluator import Evaluator
from ljp.lexer import tokenize
from ljp.parser import parse
from ljp.tokens import Token, TokenType

_ENV_FLAGS = ("LJP_NO_CACHE", "LJP_GEN_ONLY", "LJP_NO_OPT", "LJP_OUT_DIR")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove ljp's environment switches so host settings cannot leak in."""
    for name in _ENV_FLAGS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns a Chunk."""

    def _parse(source: str, filename: str = "test.lua") -> Chunk:
        return parse(source, filename)

    return _parse


@pytest.fixture
def evaluator() -> Evaluator:
    """A fresh interpreter per test."""
    return Evaluator()


def first_statement(source: str) -> Statement:
    """Parse source and return its first statement."""
    return parse(source).block.statements[0]


def expression(source: str) -> Expression:
    """Parse a single expression (wrapped as ``x = <source>``)."""
    return first_statement(f"x = {source}").expressions[0].value


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_texts(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token texts match the expected list."""
    actual = [t.text for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def squash(text: str) -> str:
    """Collapse runs of whitespace, for comparing text whose layout was padded."""
    return " ".join(text.split())


def make_script(path: Path, body: str) -> Path:
    """Write a small executable shell script standing in for an external tool."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path
