"""Diagnostic collection and rendering.

The Reporter is the shared error/warning channel of a compilation run. It
never aborts: diagnostics accumulate, and `success` turns false as soon as
one error has been recorded. Rendering is deferred to `print()`.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Any

from lark import Token


class C:
    """ANSI color/style escape codes."""
    RESET = "\x1b[0m"
    BOLD  = "\x1b[1m"
    DIM   = "\x1b[2m"
    RED   = "\x1b[31m"
    YELLOW = "\x1b[33m"
    CYAN  = "\x1b[36m"
    GRAY  = "\x1b[90m"


@dataclass(frozen=True)
class Span:
    """Source location of a node. Lines and columns are 1-based."""
    line: int
    col: int
    end_line: int
    end_col: int
    file: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.file or '<input>'}:{self.line}:{self.col}"


@dataclass
class Diagnostic:
    kind: str
    code: str
    message: str
    span: Optional[Span] = None
    filename: Optional[str] = None


def span_of(t: Any, file: Optional[str] = None) -> Optional[Span]:
    """Build a Span from a lark Tree (via its meta) or Token."""
    if isinstance(t, Token):
        line = getattr(t, "line", None)
        col = getattr(t, "column", None)
        if line is None or col is None:
            return None
        end_line = getattr(t, "end_line", None)
        end_col = getattr(t, "end_column", None)
        return Span(line, col, end_line or line, end_col or col, file)
    m = getattr(t, "meta", None)
    if m is not None and not getattr(m, "empty", True):
        return Span(m.line, m.column, m.end_line, m.end_column, file)
    return None


class Reporter:
    def __init__(self, source: Optional[str] = None, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.items: List[Diagnostic] = []
        self._sources: dict[str, Optional[List[str]]] = {}

    def error(self, code: str, msg: str, span: Optional[Span]) -> None:
        self.items.append(Diagnostic("error", code, msg, span, filename=self._file_of(span)))

    def warn(self, code: str, msg: str, span: Optional[Span]) -> None:
        self.items.append(Diagnostic("warning", code, msg, span, filename=self._file_of(span)))

    def _file_of(self, span: Optional[Span]) -> str:
        if span is not None and span.file:
            return span.file
        return self.filename

    @property
    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.items)

    @property
    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.items)

    @property
    def success(self) -> bool:
        return not self.has_errors

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.items if d.kind == "error"]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.items if d.kind == "warning"]

    def _source_lines(self, filename: str) -> Optional[List[str]]:
        if filename == self.filename and self.source is not None:
            return self.source.splitlines()
        if filename not in self._sources:
            try:
                self._sources[filename] = Path(filename).read_text(encoding="utf-8").splitlines()
            except OSError:
                self._sources[filename] = None
        return self._sources[filename]

    @staticmethod
    def _display_name(filename: str) -> str:
        if filename.startswith("<"):
            return filename
        try:
            rel_path = Path(filename).resolve().relative_to(Path.cwd())
            return f"./{rel_path}"
        except ValueError:
            return filename

    def format(self, use_color: bool = True, use_unicode: bool = True) -> str:
        """Render all diagnostics.

        use_color   → ANSI colorize location/kind/markers
        use_unicode → use │ / ╰ guides around the source line
        """
        out: List[str] = []

        for d in self.items:
            filename = self._display_name(d.filename or self.filename)
            loc = f"{filename}:{d.span.line}:{d.span.col}" if d.span else filename

            if use_color:
                kind = f"{C.BOLD}{C.RED}error{C.RESET}" if d.kind == "error" else f"{C.BOLD}{C.YELLOW}warning{C.RESET}"
                head = f"{C.CYAN}{loc}{C.RESET}: {kind} [{C.DIM}{d.code}{C.RESET}]: {d.message}"
            else:
                head = f"{loc}: {d.kind} [{d.code}]: {d.message}"

            if d.span is None:
                out.append(head)
                continue

            src_lines = self._source_lines(d.filename or self.filename)
            line_idx = d.span.line - 1
            line_text = src_lines[line_idx] if src_lines and 0 <= line_idx < len(src_lines) else ""
            start = max(1, d.span.col)

            if use_unicode:
                marker_color = C.RED if d.kind == "error" else C.YELLOW
                gray = (lambda s: f"{C.GRAY}{s}{C.RESET}") if use_color else (lambda s: s)
                caret = " " * (start - 1) + "┯"
                if use_color:
                    caret = f"{marker_color}{caret}{C.RESET}"
                out.append(f"{gray('  ╭──┤ ')}{head}")
                out.append(f"{gray('  │')}  {line_text}")
                out.append(f"{gray('  │')}  {caret}")
                out.append(f"{gray('  ╰' + '─' * (start + 1) + '╯')}")
            else:
                out.append(head)
                out.append(f"  | {line_text}")
                out.append(f"  ` {' ' * (start - 1)}^")

        return "\n".join(out)

    def print(self, stream=None, use_color: Optional[bool] = None, use_unicode: Optional[bool] = None) -> None:
        """Print diagnostics to `stream` (default: sys.stderr).

        Color and unicode guides are auto-enabled for a TTY unless NO_COLOR /
        NO_UNICODE is set or TERM=dumb.
        """
        import os, sys
        stream = stream or sys.stderr

        is_tty = getattr(stream, "isatty", lambda: False)()
        dumb = os.getenv("TERM") == "dumb"
        if use_color is None:
            use_color = bool(is_tty and os.getenv("NO_COLOR") is None and not dumb)
        if use_unicode is None:
            use_unicode = bool(is_tty and os.getenv("NO_UNICODE") is None and not dumb)

        text = self.format(use_color=use_color, use_unicode=use_unicode)
        if text:
            print(text, file=stream)
