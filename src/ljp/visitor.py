"""Generic tree rewriting for syntax trees.

A Transformer walks a tree pre-order. For each node it calls
``visit_<node_type>`` (snake case) if defined, then rebuilds the node's
children unless ``descend`` says otherwise, then calls ``leave_<node_type>``.
Both hooks return the node to keep, which may be a replacement.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import fields, replace
from typing import Any

from ljp.tokens import Token

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")
_method_names: dict[type, tuple[str, str]] = {}


def _hook_names(cls: type) -> tuple[str, str]:
    names = _method_names.get(cls)
    if names is None:
        snake = _CAMEL.sub("_", cls.__name__).lower()
        names = (f"visit_{snake}", f"leave_{snake}")
        _method_names[cls] = names
    return names


class Transformer:
    """Base class for single-pass, depth-first tree rewrites.

    Unchanged subtrees are returned as the same objects, so callers can
    compare with ``is`` to detect edits.
    """

    def transform(self, node: Any) -> Any:
        if node is None or isinstance(node, (Token, str)):
            return node
        if isinstance(node, tuple):
            items = tuple(self.transform(item) for item in node)
            if all(new is old for new, old in zip(items, node)):
                return node
            return items

        visit_name, _ = _hook_names(type(node))
        visit = getattr(self, visit_name, None)
        if visit is not None:
            node = visit(node)

        if self.descend(node):
            node = self._transform_children(node)

        _, leave_name = _hook_names(type(node))
        leave = getattr(self, leave_name, None)
        if leave is not None:
            node = leave(node)
        return node

    def descend(self, node: Any) -> bool:
        """Whether to rewrite the children of node. Defaults to always."""
        return True

    def _transform_children(self, node: Any) -> Any:
        changes: dict[str, Any] = {}
        for f in fields(node):
            old = getattr(node, f.name)
            new = self.transform(old)
            if new is not old:
                changes[f.name] = new
        if not changes:
            return node
        return replace(node, **changes)


class _TokenMapper(Transformer):
    def __init__(self, fn: Callable[[Token], Token]) -> None:
        self._fn = fn

    def transform(self, node: Any) -> Any:
        if isinstance(node, Token):
            return self._fn(node)
        return super().transform(node)


def map_tokens(node: Any, fn: Callable[[Token], Token]) -> Any:
    """Rebuild node with fn applied to every token."""
    return _TokenMapper(fn).transform(node)
