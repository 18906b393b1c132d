"""Reserved macro markers and their recognition."""

from __future__ import annotations

from enum import Enum, auto

# Pragma marker that opts a file into the full pipeline
PRAGMA_MARKER = "luajit-pro"

# Lowest long-comment level wrapped around a resolved site
COMMENT_LEVEL = 5


class MarkerKind(Enum):
    COMP_TIME = auto()
    INCLUDE = auto()
    INCLUDE_NO_TRAILING_VALUE = auto()


# Lowercased qualified names, with and without the _G. prefix
_FUNCTION_MARKERS: dict[str, MarkerKind] = {
    "__ljp:comp_time": MarkerKind.COMP_TIME,
    "_g.__ljp:comp_time": MarkerKind.COMP_TIME,
}

_CALL_MARKERS: dict[str, MarkerKind] = {
    "__ljp:include": MarkerKind.INCLUDE,
    "_g.__ljp:include": MarkerKind.INCLUDE,
    "__ljp:include_no_trailing_value": MarkerKind.INCLUDE_NO_TRAILING_VALUE,
    "_g.__ljp:include_no_trailing_value": MarkerKind.INCLUDE_NO_TRAILING_VALUE,
}

# Callee prefixes that can start a marker call
NAMESPACES = frozenset({"__ljp", "_g"})

COMP_TIME_NAME = "__ljp:comp_time"


def classify_function_name(name: str) -> MarkerKind | None:
    """Marker kind of a declared function name, matched case-insensitively."""
    return _FUNCTION_MARKERS.get(name.lower())


def classify_call_name(name: str) -> MarkerKind | None:
    """Marker kind of a qualified callee name, matched case-insensitively."""
    return _CALL_MARKERS.get(name.lower())


def mentions_comp_time(name: str) -> bool:
    """True if the compile-time marker appears anywhere in name."""
    return COMP_TIME_NAME in name.lower()


def comment_brackets(text: str) -> tuple[str, str]:
    """Return the opening and closing comment wrappers for text.

    The level starts at COMMENT_LEVEL and rises until no closing bracket
    of that level occurs inside text.
    """
    level = COMMENT_LEVEL
    while "]" + "=" * level + "]" in text:
        level += 1
    equals = "=" * level
    return f" --[{equals}[ ", f" --]{equals}]"
