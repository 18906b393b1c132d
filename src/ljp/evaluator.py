"""Staged evaluation: run compile-time Lua snippets in an embedded interpreter.

Each thread owns one long-lived ``lupa.LuaRuntime`` pre-loaded with a small
prelude. Snippets append text through ``output``/``outputf`` and may also
return a string; ``run`` hands back both, concatenated, and resets the
accumulator whatever the outcome.
"""

from __future__ import annotations

import logging
import os
import re
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from lupa import LuaError, LuaRuntime, LuaSyntaxError, lua_type

from ljp.errors import EvalError, TemplateError
from ljp.pragma import Params, flag_value

log = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(.*?)\}\}")

ANONYMOUS = "[Anonymous]"

_PURPLE = "\x1b[35m"
_RESET = "\x1b[0m"

# Evaluated once per runtime with the Python hooks as arguments. Returns the
# function that drains the output accumulator.
_PRELUDE = r"""
function(render_template, getenv, warn, emit)
    local format = string.format
    local unpack = table.unpack or unpack

    __code_name__ = "[Anonymous]"
    package.path = package.path .. ";?.lua"

    local buffer = {}
    local keep = false

    -- Locals and upvalues of the function running at the given stack level,
    -- as strings. Inner locals shadow outer ones and upvalues.
    local function capture(level)
        local vars = {}
        local info = debug.getinfo(level, "f")
        if info and info.func then
            local i = 1
            while true do
                local name, value = debug.getupvalue(info.func, i)
                if name == nil then break end
                vars[name] = tostring(value)
                i = i + 1
            end
        end
        local i = 1
        while true do
            local name, value = debug.getlocal(level, i)
            if name == nil then break end
            if name:sub(1, 1) ~= "(" then
                vars[name] = tostring(value)
            end
            i = i + 1
        end
        return vars
    end

    local function stringify(vars)
        local result = {}
        for key, value in pairs(vars) do
            result[tostring(key)] = tostring(value)
        end
        return result
    end

    local function append(text)
        buffer[#buffer + 1] = " " .. text .. " "
    end

    function output(template, vars)
        local env
        if vars == nil then env = capture(3) else env = stringify(vars) end
        append(render_template(tostring(template), env))
    end

    function outputf(template, ...)
        local text = render_template(tostring(template), capture(3))
        append(format(text, ...))
    end

    out, o = output, output
    outf, of = outputf, outputf

    function render(template, vars)
        local env
        if vars == nil then env = capture(3) else env = stringify(vars) end
        return render_template(tostring(template), env)
    end

    local string_methods = getmetatable("").__index

    function string_methods.render(template, vars)
        local env
        if vars == nil then env = capture(3) else env = stringify(vars) end
        return render_template(template, env)
    end

    function string_methods.strip(str, suffix)
        if suffix == nil then
            return (str:gsub("^%s+", ""):gsub("%s+$", ""))
        end
        if #suffix > 0 and str:sub(-#suffix) == suffix then
            return str:sub(1, -#suffix - 1)
        end
        return str
    end

    env_vars = setmetatable({}, {
        __index = function(_, key)
            local value = getenv(key)
            if value == nil then
                warn(key, __code_name__)
            end
            return value
        end,
    })

    function print(...)
        local parts = {}
        for i = 1, select("#", ...) do
            parts[i] = tostring((select(i, ...)))
        end
        emit(__code_name__, table.concat(parts, "\t"))
    end

    function printf(...)
        emit(__code_name__, format(...))
    end

    function keep_lines()
        keep = true
    end

    __LJP = setmetatable({}, {
        __index = function()
            return function() end
        end,
    })

    return function()
        local text = table.concat(buffer)
        local keep_result = keep
        buffer = {}
        keep = false
        return text, keep_result
    end
end
"""


def render_template(template: str, env: Mapping[str, Any]) -> str:
    """Replace each ``{{name}}`` in template with ``env[name]``.

    Names are stripped of surrounding spaces. A name missing from env
    raises TemplateError.
    """

    def substitute(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key not in env:
            raise TemplateError(key, template)
        return str(env[key])

    return _PLACEHOLDER.sub(substitute, template)


def _render_from_lua(template: str, table: Any) -> str:
    env = {str(key): value for key, value in table.items()}
    return render_template(template, env)


def _warn_missing(key: str, label: str) -> None:
    log.warning("env_vars[%s] is not set (in %s)", key, label)


def _emit(label: str, text: str) -> None:
    sys.stderr.write(f"{_PURPLE}[comp_time] {label}{_RESET}\t{text}\n")
    sys.stderr.flush()


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Result of one snippet: its text and whether it asked to keep line breaks."""

    text: str
    keep_lines: bool = False


class Evaluator:
    """One embedded Lua interpreter with the compile-time prelude loaded.

    Not thread-safe: use get_evaluator() to obtain the current thread's
    instance.
    """

    def __init__(self) -> None:
        self._lua = LuaRuntime()
        setup = self._lua.eval(_PRELUDE)
        self._drain = setup(_render_from_lua, os.environ.get, _warn_missing, _emit)

    def run(self, label: str, source: str) -> Evaluation:
        """Execute source as a Lua chunk and collect its output."""
        self._lua.globals()["__code_name__"] = label
        try:
            result = self._lua.execute(source)
        except LuaSyntaxError as exc:
            raise EvalError(f"compile-time code does not parse: {exc}", label, source) from exc
        except (LuaError, TemplateError) as exc:
            raise EvalError(f"compile-time code failed: {exc}", label, source) from exc
        finally:
            text, keep = self._drain()

        if result is None:
            return Evaluation(text, bool(keep))
        if isinstance(result, bytes):
            result = result.decode("utf-8")
        if not isinstance(result, str):
            kind = lua_type(result) or type(result).__name__
            raise EvalError(f"expected a string or nil result, got {kind}", label, source)
        return Evaluation(text + result, bool(keep))

    def evaluate(self, label: str, source: str) -> str:
        """Execute source and return its output text."""
        return self.run(label, source).text

    @contextmanager
    def bind_globals(self, params: Params) -> Iterator[None]:
        """Bind each parameter as a boolean global for the duration of the block.

        Previous values of those globals are restored on exit, including
        when the block raises.
        """
        values = [(key, flag_value(value)) for key, value in params]
        g = self._lua.globals()
        saved = [(key, g[key]) for key, _ in values]
        try:
            for key, value in values:
                g[key] = value
            yield
        finally:
            for key, old in reversed(saved):
                g[key] = old

    def search_module(self, module: str, label: str = "include") -> str:
        """Resolve a module name expression to a file path via package.searchpath."""
        code = f"return assert(package.searchpath({module}, package.path))"
        try:
            path = self._lua.execute(code)
        except LuaError as exc:
            raise EvalError(f"cannot find module {module}: {exc}", label, code) from exc
        if isinstance(path, bytes):
            path = path.decode("utf-8")
        return path


_local = threading.local()


def get_evaluator() -> Evaluator:
    """Return the calling thread's evaluator, creating it on first use."""
    evaluator = getattr(_local, "evaluator", None)
    if evaluator is None:
        evaluator = Evaluator()
        _local.evaluator = evaluator
    return evaluator
