"""Shared parse exception handling for the driver and CLI."""
from __future__ import annotations

from typing import Optional

from lark import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from kiln_lang.internals import errors as er
from kiln_lang.internals.report import Reporter, Span
from kiln_lang.semantics.ast_builder import ASTBuildError


def _span(exc: UnexpectedInput, filename: Optional[str]) -> Optional[Span]:
    line = getattr(exc, "line", None)
    col = getattr(exc, "column", None)
    # lark uses '?' when the position is unknown
    if not isinstance(line, int) or not isinstance(col, int) or line < 1 or col < 1:
        return Span(1, 1, 1, 1, filename) if filename else None
    return Span(line, col, line, col, filename)


def handle_parse_exception(exc: Exception, reporter: Reporter, filename: Optional[str] = None) -> bool:
    """Turn a parse exception into a diagnostic.

    Args:
        exc: The exception to handle.
        reporter: Reporter for error collection.
        filename: File being parsed, used for the diagnostic location.

    Returns:
        True if the exception was handled, False otherwise.
    """
    if isinstance(exc, ASTBuildError):
        er.emit(reporter, er.ERR.CE0103, exc.span, message=str(exc))
        return True

    if isinstance(exc, UnexpectedEOF):
        er.emit(reporter, er.ERR.CE0102, _span(exc, filename))
        return True

    if isinstance(exc, UnexpectedToken):
        if exc.token.type == "$END":
            er.emit(reporter, er.ERR.CE0102, _span(exc, filename))
        else:
            er.emit(reporter, er.ERR.CE0100, _span(exc, filename), token=str(exc.token))
        return True

    if isinstance(exc, UnexpectedCharacters):
        er.emit(reporter, er.ERR.CE0101, _span(exc, filename), char=exc.char)
        return True

    return False
