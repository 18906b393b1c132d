"""Tests for the annotation-driven optimizer pass."""

from __future__ import annotations

import logging

import pytest

from ljp.errors import ConfigError
from ljp.optimizer import optimize_source

ENUM = 'local --[[@comp_time_enum]] Color = { RED = 1, GREEN = "g" }\n'


class TestCompTimeEnum:
    def test_members_replaced(self) -> None:
        result = optimize_source(ENUM + "print(Color.RED, Color.GREEN)")
        assert result.split("\n")[1] == 'print(1 --[[Color.RED]], "g" --[[Color.GREEN]])'

    def test_declaration_unchanged(self) -> None:
        assert optimize_source(ENUM) == ENUM

    def test_unknown_member_unchanged(self) -> None:
        source = ENUM + "print(Color.BLUE)"
        assert optimize_source(source) == source

    def test_use_before_declaration_unchanged(self) -> None:
        source = "print(Color.RED)\n" + ENUM
        assert optimize_source(source) == source

    def test_longer_chains_unchanged(self) -> None:
        source = ENUM + "print(Color.RED.x, Color.RED())"
        assert optimize_source(source) == source

    def test_positional_fields_ignored(self) -> None:
        source = "local --[[@comp_time_enum]] E = { 10, A = 2 }\nx = E.A"
        assert optimize_source(source).endswith("x = 2 --[[E.A]]")

    def test_other_comments_ignored(self) -> None:
        source = "local --[[note]] E = { A = 1 }\nx = E.A"
        assert optimize_source(source) == source

    def test_non_literal_value_warns(self, caplog) -> None:
        source = "local --[[@comp_time_enum]] E = { A = f(), B = 2 }\nx = E.A y = E.B"
        with caplog.at_level(logging.WARNING, logger="ljp.optimizer"):
            result = optimize_source(source)
        assert "E.A is not a number or string literal: f()" in caplog.text
        assert result.endswith("x = E.A y = 2 --[[E.B]]")

    def test_bracket_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="only name = value fields"):
            optimize_source('local --[[@comp_time_enum]] E = { ["A"] = 1 }')

    def test_non_table_rejected(self) -> None:
        with pytest.raises(ConfigError, match="must be a table constructor"):
            optimize_source("local --[[@comp_time_enum]] E = 1")


class TestUsed:
    def test_reference_appended(self) -> None:
        source = "local --[[@used]] x = 1234"
        assert optimize_source(source) == "local --[[@used]] x = 1234 _ = x "

    def test_reference_before_newline(self) -> None:
        source = "local --[[@used]] x = 1234\nreturn 1\n"
        assert optimize_source(source) == "local --[[@used]] x = 1234 _ = x \nreturn 1\n"

    def test_two_names_rejected(self) -> None:
        with pytest.raises(ConfigError, match="exactly one variable name"):
            optimize_source("local --[[@used]] a, b = 1, 2")

    def test_missing_expression_rejected(self) -> None:
        with pytest.raises(ConfigError, match="exactly one expression"):
            optimize_source("local --[[@used]] a")
