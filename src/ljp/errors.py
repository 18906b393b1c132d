"""Error types with formatted source context."""

from __future__ import annotations

from ljp.tokens import Position, Span


def _context(
    message: str,
    filename: str,
    source: str,
    start: Position,
    underline_len: int | None = None,
) -> str:
    lines = source.splitlines(keepends=True)
    line_idx = start.line - 1
    col = start.column

    # Build the source line (strip trailing newline for display)
    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    if underline_len is None:
        underline_len = max(1, min(2, len(source_line) - col + 1))

    pad = " " * (col - 1)
    carets = "^" * underline_len

    line_num = str(start.line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    return (
        f"error: {message}\n"
        f"{' ' * gutter_width}--> {filename}:{start.line}:{col}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )


def _span_underline(span: Span, source: str) -> int:
    lines = source.splitlines()
    line_idx = span.start.line - 1
    source_line = lines[line_idx] if 0 <= line_idx < len(lines) else ""
    # Underline the full span when on one line, otherwise to end of line
    if span.end.line == span.start.line:
        return max(1, span.end.column - span.start.column)
    return max(1, len(source_line) - span.start.column + 1)


class LexError(Exception):
    """Raised on the first lexing error, with position and source context."""

    def __init__(
        self, message: str, position: Position, source: str, filename: str = "<input>"
    ) -> None:
        self.message = message
        self.position = position
        self.source = source
        self.filename = filename
        super().__init__(self.format())

    def format(self) -> str:
        return _context(self.message, self.filename, self.source, self.position)


class ParseError(Exception):
    """Raised on the first parse error, with span and source context."""

    def __init__(self, message: str, span: Span, source: str, filename: str = "<input>") -> None:
        self.message = message
        self.span = span
        self.source = source
        self.filename = filename
        super().__init__(self.format())

    def format(self) -> str:
        return _context(
            self.message,
            self.filename,
            self.source,
            self.span.start,
            _span_underline(self.span, self.source),
        )


class ConfigError(Exception):
    """A user configuration mistake: bad pragma, misused macro marker, bad parameter.

    The span is optional because some configuration comes from the
    environment rather than from a place in the source.
    """

    def __init__(
        self,
        message: str,
        span: Span | None = None,
        source: str = "",
        filename: str = "<input>",
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.filename = filename
        super().__init__(self.format())

    def format(self) -> str:
        if self.span is None:
            return f"error: {self.message}"
        return _context(
            self.message,
            self.filename,
            self.source,
            self.span.start,
            _span_underline(self.span, self.source),
        )


class EvalError(Exception):
    """Raised when a compile-time snippet fails inside the embedded interpreter."""

    def __init__(self, message: str, label: str, source: str) -> None:
        self.message = message
        self.label = label
        self.source = source
        super().__init__(self.format())

    def format(self) -> str:
        return (
            f"error: {self.message}\n"
            f"  --> {self.label}\n"
            f"----------\n"
            f"{self.source}\n"
            f"----------"
        )


class TemplateError(Exception):
    """A {{name}} placeholder with no value in the template environment."""

    def __init__(self, key: str, template: str) -> None:
        self.key = key
        self.template = template
        super().__init__(f"undefined template variable '{key}' in {template!r}")


class ToolError(Exception):
    """Raised when an external tool (frontend, backend, formatter) is missing or fails."""

    def __init__(self, tool: str, message: str, source: str = "") -> None:
        self.tool = tool
        self.message = message
        self.source = source
        super().__init__(self.format())

    def format(self) -> str:
        result = f"error: [{self.tool}] {self.message}"
        if self.source:
            result += f"\ncontent:\n----------\n{self.source}\n----------"
        return result


class UnsupportedNodeError(TypeError):
    """The token editor was handed a node shape it does not know how to edit.

    This is an internal contract violation, not a user error.
    """

    def __init__(self, operation: str, node: object) -> None:
        self.operation = operation
        self.node = node
        super().__init__(f"{operation}: unsupported node {type(node).__name__}")
