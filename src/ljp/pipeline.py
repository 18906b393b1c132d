"""Pipeline — runs every stage over one file's text, in a fixed order.

1. Teal frontend, when the pragma says ``teal``.
2. Macro resolution.
3. Optimizer, when the pragma says ``opt`` and LJP_NO_OPT is not set.
4. Parameter injection and dead-branch folding, when parameters are given.
5. Luau backend, when the pragma says ``luau``.
6. Comment stripping and formatting, per ``no-comment``/``format``/``pretty``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from ljp.dialects import ToolChain
from ljp.evaluator import Evaluator, get_evaluator
from ljp.inject import inject_source
from ljp.optimizer import optimize_source
from ljp.pragma import Params, parse_pragma
from ljp.resolver import resolve
from ljp.strings import strip_comments

log = logging.getLogger(__name__)


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """True if the environment variable is set to 1 or true."""
    env = os.environ if environ is None else environ
    return env.get(name, "").strip().lower() in ("1", "true")


def transform_source(
    source: str,
    file_path: str | Path,
    params: Params | None = None,
    *,
    tools: ToolChain | None = None,
    evaluator: Evaluator | None = None,
    no_opt: bool | None = None,
) -> str:
    """Run the full pipeline over source text and return the expanded text.

    file_path names the file for labels and errors; the Teal frontend
    reads it from disk.
    """
    filename = str(file_path)
    pragma = parse_pragma(source, filename)
    if tools is None:
        tools = ToolChain()
    if evaluator is None:
        evaluator = get_evaluator()
    if no_opt is None:
        no_opt = env_flag("LJP_NO_OPT")

    def expand(text: str, path: Path) -> str:
        return transform_source(text, path, tools=tools, evaluator=evaluator, no_opt=no_opt)

    text = source
    if pragma.teal:
        log.debug("%s: teal frontend", filename)
        text = tools.teal_to_lua(Path(file_path), pragma.syntax_only)

    text = resolve(text, filename, params or [], evaluator, expand)

    if pragma.opt and not no_opt:
        log.debug("%s: optimizer", filename)
        text = optimize_source(text, filename)

    if params:
        text = inject_source(text, params, filename)

    if pragma.luau:
        log.debug("%s: luau backend", filename)
        text = tools.luau_to_lua(text)

    if pragma.pretty:
        text = tools.format(strip_comments(text))
    else:
        if pragma.no_comment:
            text = strip_comments(text)
        if pragma.format:
            text = tools.format(text)
    return text


def transform_file(
    path: str | Path,
    params: Params | None = None,
    *,
    tools: ToolChain | None = None,
    evaluator: Evaluator | None = None,
    no_opt: bool | None = None,
) -> str:
    """Read a file and run the pipeline over it."""
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return transform_source(
        source, path, params, tools=tools, evaluator=evaluator, no_opt=no_opt
    )
