"""Tests for first-line pragma parsing and parameter handling."""

from __future__ import annotations

import pytest

from ljp.errors import ConfigError
from ljp.pragma import (
    effective_params,
    first_line,
    flag_value,
    format_params,
    parse_params,
    parse_pragma,
    rewrite_pragma,
)


class TestParsePragma:
    def test_unmarked(self) -> None:
        pragma = parse_pragma("local x = 1 -- opt pretty\n")
        assert not pragma.marked
        assert not pragma.opt
        assert pragma.params is None

    def test_flags(self) -> None:
        pragma = parse_pragma("--[[luajit-pro, opt, pretty, no-cache]]\nx = 1\n")
        assert pragma.marked
        assert pragma.opt
        assert pragma.pretty
        assert pragma.no_cache
        assert not pragma.teal
        assert not pragma.format

    def test_teal_syntax_only(self) -> None:
        pragma = parse_pragma("--[[luajit-pro, teal, syntax-only]]")
        assert pragma.teal
        assert pragma.syntax_only

    def test_params_in_order(self) -> None:
        pragma = parse_pragma("--[[luajit-pro, { DEBUG = false, TRACE = 1 }]]\n")
        assert pragma.params == (("DEBUG", "false"), ("TRACE", "1"))

    def test_only_first_line(self) -> None:
        pragma = parse_pragma("\n--[[luajit-pro, opt]]\n")
        assert not pragma.marked

    def test_crlf_first_line(self) -> None:
        pragma = parse_pragma("--[[luajit-pro, { A = true }]]\r\nx = 1")
        assert pragma.line == "--[[luajit-pro, { A = true }]]"
        assert pragma.params == (("A", "true"),)

    def test_teal_and_luau_exclusive(self) -> None:
        with pytest.raises(ConfigError, match="both 'teal' and 'luau'"):
            parse_pragma("--[[luajit-pro, teal, luau]]")


class TestParseParams:
    def test_no_record(self) -> None:
        assert parse_params("--[[luajit-pro]]") is None

    def test_empty_record(self) -> None:
        assert parse_params("--[[luajit-pro, {}]]") == ()

    def test_trailing_comma(self) -> None:
        assert parse_params("{ A = 0, }") == (("A", "0"),)

    def test_invalid_value(self) -> None:
        with pytest.raises(ConfigError, match="invalid value 'maybe' for parameter 'A'"):
            parse_params("{ A = maybe }")

    def test_missing_equals(self) -> None:
        with pytest.raises(ConfigError, match="malformed parameter"):
            parse_params("{ A true }")

    def test_bad_key(self) -> None:
        with pytest.raises(ConfigError, match="malformed parameter"):
            parse_params("{ 1A = true }")

    def test_unbalanced_record(self) -> None:
        with pytest.raises(ConfigError, match="malformed parameter record"):
            parse_params("} A = true {")


class TestValues:
    @pytest.mark.parametrize(
        ("value", "expected"), [("true", True), ("1", True), ("false", False), ("0", False)]
    )
    def test_flag_value(self, value: str, expected: bool) -> None:
        assert flag_value(value) is expected

    def test_flag_value_invalid(self) -> None:
        with pytest.raises(ConfigError):
            flag_value("TRUE")

    def test_effective_without_override(self) -> None:
        assert effective_params((("A", "true"),), {}) == [("A", "true")]

    def test_effective_with_override(self) -> None:
        params = (("A", "true"), ("B", "0"))
        assert effective_params(params, {"A": "false"}) == [("A", "false"), ("B", "0")]

    def test_effective_invalid_override(self) -> None:
        with pytest.raises(ConfigError, match="from the environment"):
            effective_params((("A", "true"),), {"A": "on"})

    def test_effective_none(self) -> None:
        assert effective_params(None, {"A": "1"}) == []

    def test_effective_reads_process_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LJP_PRAGMA_TEST", "1")
        assert effective_params((("LJP_PRAGMA_TEST", "0"),)) == [("LJP_PRAGMA_TEST", "1")]


class TestRewrite:
    def test_format_params(self) -> None:
        assert format_params([("A", "true"), ("B", "0")]) == "{ A = true, B = 0 }"
        assert format_params([]) == "{}"

    def test_rewrite_keeps_rest_of_line(self) -> None:
        line = "--[[luajit-pro, opt, {A=true}]] -- tail"
        assert rewrite_pragma(line, [("A", "false")]) == (
            "--[[luajit-pro, opt, { A = false }]] -- tail"
        )

    def test_rewrite_without_record(self) -> None:
        assert rewrite_pragma("--[[luajit-pro]]", [("A", "1")]) == "--[[luajit-pro]]"

    def test_first_line(self) -> None:
        assert first_line("a\nb") == "a"
        assert first_line("only") == "only"
        assert first_line("") == ""
