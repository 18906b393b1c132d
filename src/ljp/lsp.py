"""Minimal LSP server for ljp — diagnostics only.

Nothing is evaluated: the server reports syntax errors, pragma mistakes
and malformed macro sites as the document is edited.
"""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from ljp import __version__
from ljp.errors import ConfigError, LexError, ParseError
from ljp.parser import parse
from ljp.pragma import parse_pragma
from ljp.resolver import check_sites
from ljp.tokens import Span

server = LanguageServer("ljp-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)


def _range(span: Span | None) -> Range:
    if span is None:
        return Range(start=Position(line=0, character=0), end=Position(line=0, character=1))
    return Range(
        start=Position(line=span.start.line - 1, character=span.start.column - 1),
        end=Position(line=span.end.line - 1, character=span.end.column - 1),
    )


def _config_diagnostic(exc: ConfigError) -> Diagnostic:
    return Diagnostic(
        range=_range(exc.span),
        message=exc.message,
        severity=DiagnosticSeverity.Warning,
        source="ljp",
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Parse the document and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    diagnostics: list[Diagnostic] = []

    try:
        parse_pragma(source, filename)
    except ConfigError as exc:
        diagnostics.append(_config_diagnostic(exc))

    try:
        tree = parse(source, filename)
    except LexError as exc:
        line = exc.position.line - 1
        col = exc.position.column - 1
        diagnostics.append(
            Diagnostic(
                range=Range(
                    start=Position(line=line, character=col),
                    end=Position(line=line, character=col + 1),
                ),
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="ljp",
            )
        )
    except ParseError as exc:
        diagnostics.append(
            Diagnostic(
                range=_range(exc.span),
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="ljp",
            )
        )
    else:
        for err in check_sites(tree, source, filename):
            diagnostics.append(_config_diagnostic(err))

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
