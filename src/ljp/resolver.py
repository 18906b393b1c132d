"""Macro resolution — expands compile-time functions and includes in a tree.

Two forms are recognised:

``function __LJP:COMP_TIME(name) ... end``
    The body runs in the evaluator. Its output replaces the declaration,
    which stays in the file inside a long comment::

        <output> --[=====[ function __LJP:COMP_TIME(name) ... end --]=====]

``__LJP:include("module")`` / ``__LJP:include_no_trailing_value("module")``
    The module file is located through ``package.searchpath`` and its text
    (expanded first if the file carries the pragma marker) is spliced in
    before the call, which is likewise commented out.

Both forms may be qualified with ``_G.``. Marker names match regardless of
case. Spliced text has its comments stripped and its line breaks collapsed,
so the lines after a site keep their numbers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from ljp.ast import Chunk, FunctionCall, FunctionDeclaration, Name, Return
from ljp.builtins import (
    NAMESPACES,
    PRAGMA_MARKER,
    MarkerKind,
    classify_call_name,
    classify_function_name,
    comment_brackets,
    mentions_comp_time,
)
from ljp.editor import (
    call_name,
    empty_token,
    insert_after_token,
    insert_after_var_expr,
    insert_before_expr,
    insert_before_token,
    is_plain_chain,
)
from ljp.errors import ConfigError
from ljp.evaluator import ANONYMOUS, Evaluator
from ljp.parser import parse
from ljp.pragma import Params, first_line
from ljp.render import first_token, iter_tokens, render
from ljp.strings import collapse_lines, strip_comments
from ljp.tokens import Span
from ljp.visitor import Transformer

log = logging.getLogger(__name__)

# (source, path) -> expanded source, for included files carrying the pragma
Expand = Callable[[str, Path], str]


def _is_comp_time(node: object) -> bool:
    if not isinstance(node, FunctionDeclaration):
        return False
    name = "".join(tok.text for tok in iter_tokens(node.name))
    return classify_function_name(name) is not None


def _node_span(node: object) -> Span:
    tokens = list(iter_tokens(node))
    return Span(tokens[0].span.start, tokens[-1].span.end)


# ---------------------------------------------------------------------------
# Site validation, shared by the resolver and check_sites
# ---------------------------------------------------------------------------


def comp_time_kind(node: FunctionDeclaration, source: str, filename: str) -> MarkerKind | None:
    """Classify a declaration, raising ConfigError for a misused marker."""
    name = "".join(tok.text for tok in iter_tokens(node.name))
    kind = classify_function_name(name)
    if kind is None and not mentions_comp_time(name):
        return None
    name_line = first_token(node.name).span.start.line
    if kind is None or name_line != node.function.span.start.line:
        raise ConfigError(
            "the compile-time marker must be the entire declaration name, "
            "on the same line as the 'function' keyword",
            _node_span(node.name),
            source,
            filename,
        )
    return kind


def comp_time_param(node: FunctionDeclaration, source: str, filename: str) -> str | None:
    """The single optional parameter name of a compile-time function."""
    params = node.body.params
    if len(params) > 1:
        raise ConfigError(
            f"a compile-time function takes at most one parameter, got {len(params)}",
            Span(node.body.open.span.start, node.body.close.span.end),
            source,
            filename,
        )
    if not params:
        return None
    name = params[0].value.name
    if name.text == "...":
        raise ConfigError(
            "a compile-time function cannot take '...'", name.span, source, filename
        )
    return name.text


def include_kind(node: FunctionCall) -> MarkerKind | None:
    """Marker kind of a call, or None for an ordinary call."""
    if not isinstance(node.prefix, Name) or node.prefix.token.text.lower() not in NAMESPACES:
        return None
    if not is_plain_chain(node):
        return None
    name, _ = call_name(node)
    return classify_call_name(name)


def include_argument(node: FunctionCall, source: str, filename: str) -> str:
    """The single module argument of an include call, as source text."""
    name, args = call_name(node)
    if len(args) != 1:
        raise ConfigError(
            f"{name} takes exactly one module argument, got {len(args)}",
            _node_span(node),
            source,
            filename,
        )
    return args[0]


def strip_trailing_return(text: str, filename: str = "<input>") -> str:
    """Remove the final top-level return statement's keyword and values."""
    chunk = parse(text, filename)
    last = chunk.block.last
    if last is None:
        raise ConfigError(
            f"{filename} has no trailing return statement to remove "
            "(include_no_trailing_value)"
        )
    semicolon = None if last.semicolon is None else empty_token(last.semicolon)
    emptied = Return(empty_token(last.return_), (), semicolon)
    return render(replace(chunk, block=replace(chunk.block, last=emptied)))


def splice_text(text: str, keep_lines: bool = False) -> str:
    """Normalise generated text before splicing it into a line."""
    if text.startswith("#"):
        # Shebang is only legal on a file's first line; keep its line break
        text = text[len(text.partition("\n")[0]) :]
    text = strip_comments(text)
    if not keep_lines:
        text = collapse_lines(text)
    return text


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver(Transformer):
    """Expands macro sites in one file's tree.

    Compile-time declarations are resolved before anything nested in them
    and are never descended into: their bodies are Lua source for the
    evaluator, not part of the output program.
    """

    def __init__(
        self,
        file_path: str | Path,
        params: Params,
        evaluator: Evaluator,
        *,
        source: str = "",
        expand: Expand | None = None,
    ) -> None:
        self.file_path = str(file_path)
        self.params = list(params)
        self.evaluator = evaluator
        self.source = source
        self.expand = expand

    def descend(self, node: object) -> bool:
        return not _is_comp_time(node)

    def visit_function_declaration(self, node: FunctionDeclaration) -> FunctionDeclaration:
        if comp_time_kind(node, self.source, self.file_path) is None:
            return node
        param = comp_time_param(node, self.source, self.file_path)

        body = render(node.body.block)
        label = f"{self.file_path} {param or ANONYMOUS}"
        with self.evaluator.bind_globals(self.params):
            result = self.evaluator.run(label, body)
        text = splice_text(result.text, result.keep_lines)
        log.debug("resolved %s at line %d", label, node.function.span.start.line)

        open_, close = comment_brackets(render(node))
        function = insert_before_token(node.function, text + open_)
        end = insert_after_token(node.body.end, close)
        return replace(node, function=function, body=replace(node.body, end=end))

    def visit_function_call(self, node: FunctionCall) -> FunctionCall:
        kind = include_kind(node)
        if kind is None:
            return node
        module = include_argument(node, self.source, self.file_path)

        path = Path(self.evaluator.search_module(module, f"{self.file_path} include {module}"))
        text = path.read_text(encoding="utf-8")
        log.debug("including %s into %s", path, self.file_path)
        if PRAGMA_MARKER in first_line(text):
            text = self._expand(text, path)
        if kind is MarkerKind.INCLUDE_NO_TRAILING_VALUE:
            text = strip_trailing_return(text, str(path))
        text = splice_text(text)

        open_, close = comment_brackets(render(node))
        node = insert_before_expr(node, text + open_)
        return insert_after_var_expr(node, close)

    def _expand(self, text: str, path: Path) -> str:
        if self.expand is not None:
            return self.expand(text, path)
        from ljp.pipeline import transform_source

        return transform_source(text, path, evaluator=self.evaluator)


def resolve(
    source: str,
    file_path: str | Path,
    params: Params,
    evaluator: Evaluator,
    expand: Expand | None = None,
) -> str:
    """Parse source, expand its macro sites and return the new text."""
    chunk = parse(source, str(file_path))
    resolver = Resolver(file_path, params, evaluator, source=source, expand=expand)
    return render(resolver.transform(chunk))


# ---------------------------------------------------------------------------
# Validation without evaluation
# ---------------------------------------------------------------------------


class _SiteChecker(Transformer):
    def __init__(self, source: str, filename: str) -> None:
        self.source = source
        self.filename = filename
        self.errors: list[ConfigError] = []

    def descend(self, node: object) -> bool:
        return not _is_comp_time(node)

    def visit_function_declaration(self, node: FunctionDeclaration) -> FunctionDeclaration:
        try:
            if comp_time_kind(node, self.source, self.filename) is not None:
                comp_time_param(node, self.source, self.filename)
        except ConfigError as exc:
            self.errors.append(exc)
        return node

    def visit_function_call(self, node: FunctionCall) -> FunctionCall:
        if include_kind(node) is not None:
            try:
                include_argument(node, self.source, self.filename)
            except ConfigError as exc:
                self.errors.append(exc)
        return node


def check_sites(tree: Chunk, source: str, filename: str = "<input>") -> list[ConfigError]:
    """Validate every macro site in tree without evaluating anything."""
    checker = _SiteChecker(source, filename)
    checker.transform(tree)
    return checker.errors
