"""Test error messages, position accuracy, and context snippets."""

import pytest

from ljp.editor import insert_before_span
from ljp.errors import (
    ConfigError,
    EvalError,
    LexError,
    ParseError,
    TemplateError,
    ToolError,
    UnsupportedNodeError,
)
from ljp.lexer import tokenize
from ljp.parser import parse
from ljp.tokens import Position, Span
from tests.conftest import expression


class TestErrorPositions:
    def test_unexpected_character_position(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("x = @")
        err = exc_info.value
        assert err.position.line == 1
        assert err.position.column == 5

    def test_error_on_second_line(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("local a = 1\n@")
        err = exc_info.value
        assert err.position.line == 2
        assert err.position.column == 1

    def test_parse_error_span(self):
        with pytest.raises(ParseError) as exc_info:
            parse("local a = 1\nlocal = 2\n")
        assert exc_info.value.span.start.line == 2


class TestErrorFormatting:
    def test_lex_error_format(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("x = @", filename="t.lua")
        assert exc_info.value.format() == (
            "error: unexpected character '@'\n"
            "  --> t.lua:1:5\n"
            "  |\n"
            "1 | x = @\n"
            "  |     ^"
        )

    def test_format_is_message(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("@")
        assert str(exc_info.value) == exc_info.value.format()

    def test_parse_error_names_file(self):
        with pytest.raises(ParseError) as exc_info:
            parse("if x then", "main.lua")
        formatted = exc_info.value.format()
        assert formatted.startswith("error:")
        assert "--> main.lua:1:" in formatted
        assert "if x then" in formatted

    def test_wide_gutter(self):
        source = "\n" * 11 + "@"
        with pytest.raises(LexError) as exc_info:
            tokenize(source)
        formatted = exc_info.value.format()
        assert "12 | @" in formatted
        assert "   --> <input>:12:1" in formatted


class TestConfigError:
    def test_without_span(self):
        assert str(ConfigError("bad parameter")) == "error: bad parameter"

    def test_with_span_underlines_range(self):
        span = Span(Position(1, 4, 3), Position(1, 7, 6))
        err = ConfigError("bad name", span, "ab cde f", "f.lua")
        assert err.format() == (
            "error: bad name\n"
            "  --> f.lua:1:4\n"
            "  |\n"
            "1 | ab cde f\n"
            "  |    ^^^"
        )


class TestOtherErrors:
    def test_eval_error(self):
        err = EvalError("failed: boom", "main.lua [Anonymous]", "error('boom')")
        assert err.format() == (
            "error: failed: boom\n"
            "  --> main.lua [Anonymous]\n"
            "----------\n"
            "error('boom')\n"
            "----------"
        )

    def test_tool_error_without_source(self):
        assert str(ToolError("stylua", "executable not found: stylua")) == (
            "error: [stylua] executable not found: stylua"
        )

    def test_tool_error_with_source(self):
        err = ToolError("darklua", "failed (exit 1)", "x += 1")
        assert err.format().endswith("content:\n----------\nx += 1\n----------")

    def test_template_error(self):
        err = TemplateError("name", "{{name}} = 1")
        assert err.key == "name"
        assert "undefined template variable 'name'" in str(err)

    def test_unsupported_node_is_type_error(self):
        with pytest.raises(TypeError, match="insert_before_span: unsupported node Name") as info:
            insert_before_span(expression("x"), "--")
        assert isinstance(info.value, UnsupportedNodeError)
