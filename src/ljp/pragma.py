"""First-line pragma: per-file pipeline options and build parameters.

A marked file starts with a comment such as::

    --[[luajit-pro, opt, pretty, { DEBUG = false, TRACE = 1 }]]

Options are recognised by substring anywhere on the line. The parameter
record is the text between the first ``{`` and the last ``}``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

from ljp.builtins import PRAGMA_MARKER
from ljp.errors import ConfigError
from ljp.tokens import Position, Span

FLAG_VALUES = ("true", "false", "1", "0")

_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

Params = list[tuple[str, str]]


@dataclass(frozen=True, slots=True)
class Pragma:
    """Options parsed from a file's first line."""

    line: str
    marked: bool = False
    teal: bool = False
    luau: bool = False
    syntax_only: bool = False
    no_cache: bool = False
    no_comment: bool = False
    format: bool = False
    pretty: bool = False
    opt: bool = False
    params: tuple[tuple[str, str], ...] | None = None


def first_line(source: str) -> str:
    """The first line of source, without its line break."""
    return source.split("\n", 1)[0].rstrip("\r")


def _line_span(line: str) -> Span:
    return Span(Position(1, 1, 0), Position(1, len(line) + 1, len(line)))


def flag_value(value: str) -> bool:
    """Interpret a parameter value as a boolean."""
    if value not in FLAG_VALUES:
        raise ConfigError(f"invalid parameter value '{value}' (expected true, false, 1 or 0)")
    return value in ("true", "1")


def _record_bounds(line: str) -> tuple[int, int] | None:
    start = line.find("{")
    end = line.rfind("}")
    if start < 0 and end < 0:
        return None
    if start < 0 or end < start:
        raise ConfigError("malformed parameter record in pragma", _line_span(line), line)
    return start, end


def parse_params(line: str, filename: str = "<input>") -> tuple[tuple[str, str], ...] | None:
    """Parse the ``{ KEY = value, ... }`` record of a pragma line, in order.

    Returns None when the line has no record.
    """
    bounds = _record_bounds(line)
    if bounds is None:
        return None
    start, end = bounds
    params: list[tuple[str, str]] = []
    for entry in line[start + 1 : end].split(","):
        if not entry.strip():
            continue
        key, sep, value = entry.partition("=")
        key = key.strip()
        value = value.strip()
        if not sep or not _KEY.fullmatch(key):
            raise ConfigError(
                f"malformed parameter '{entry.strip()}' (expected KEY = value)",
                _line_span(line),
                line,
                filename,
            )
        if value not in FLAG_VALUES:
            raise ConfigError(
                f"invalid value '{value}' for parameter '{key}' (expected true, false, 1 or 0)",
                _line_span(line),
                line,
                filename,
            )
        params.append((key, value))
    return tuple(params)


def parse_pragma(source: str, filename: str = "<input>") -> Pragma:
    """Parse the pragma on the first line of source.

    Lines without the marker yield a Pragma with every option off.
    """
    line = first_line(source)
    if PRAGMA_MARKER not in line:
        return Pragma(line)

    teal = "teal" in line
    luau = "luau" in line
    if teal and luau:
        raise ConfigError(
            "pragma cannot request both 'teal' and 'luau'", _line_span(line), line, filename
        )
    return Pragma(
        line,
        marked=True,
        teal=teal,
        luau=luau,
        syntax_only="syntax-only" in line,
        no_cache="no-cache" in line,
        no_comment="no-comment" in line,
        format="format" in line,
        pretty="pretty" in line,
        opt="opt" in line,
        params=parse_params(line, filename),
    )


def effective_params(
    params: tuple[tuple[str, str], ...] | None,
    environ: Mapping[str, str] | None = None,
) -> Params:
    """Apply same-named environment variable overrides to declared parameters."""
    if params is None:
        return []
    env = os.environ if environ is None else environ
    result: Params = []
    for key, default in params:
        value = env.get(key, default)
        if value not in FLAG_VALUES:
            raise ConfigError(
                f"invalid value '{value}' for parameter '{key}' from the environment "
                f"(expected true, false, 1 or 0)"
            )
        result.append((key, value))
    return result


def format_params(params: Params) -> str:
    if not params:
        return "{}"
    return "{ " + ", ".join(f"{key} = {value}" for key, value in params) + " }"


def rewrite_pragma(line: str, params: Params) -> str:
    """Replace the parameter record of a pragma line with the given values."""
    bounds = _record_bounds(line)
    if bounds is None:
        return line
    start, end = bounds
    return line[:start] + format_params(params) + line[end + 1 :]
