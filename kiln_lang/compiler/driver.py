"""
Compilation driver: orders top-level nodes and dispatches them to a back end.

The driver owns everything that is independent of the target: header/main
ordering, include resolution with de-duplication, feature versions, while
condition validation and the `error` word. Everything else is delegated to
the bound CompilerBackend, one compile_* call per node.
"""
from __future__ import annotations
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from kiln_lang.backend.interfaces import CompilerBackend
from kiln_lang.compiler.options import CompilerOptions
from kiln_lang.internals import errors as er
from kiln_lang.internals.parse_errors import handle_parse_exception
from kiln_lang.internals.parser import parse_file as default_parse_file, parse_source
from kiln_lang.internals.report import Reporter
from kiln_lang.semantics.ast import (
    AsmNode, EnableNode, HEADER_KINDS, IncludeNode, Node, NodeKind,
    RequiresNode, WhileNode, WordNode,
)
from kiln_lang.semantics.symbols import SymbolTable

ParseFile = Callable[[Path], List[Node]]

# Words the driver routes to dedicated back-end methods
_RESERVED_WORDS = {
    "return": "compile_return",
    "continue": "compile_continue",
    "break": "compile_break",
    "call": "compile_call",
    "throw": "compile_throw",
}

# Node kinds translated by the back end without driver involvement
_DELEGATED: Dict[NodeKind, str] = {
    NodeKind.INTEGER: "compile_integer",
    NodeKind.FUNC_DEF: "compile_func_def",
    NodeKind.IF: "compile_if",
    NodeKind.LET: "compile_let",
    NodeKind.ARRAY: "compile_array",
    NodeKind.STRING: "compile_string",
    NodeKind.STRUCT: "compile_struct",
    NodeKind.CONST: "compile_const",
    NodeKind.ENUM: "compile_enum",
    NodeKind.UNION: "compile_union",
    NodeKind.ALIAS: "compile_alias",
    NodeKind.EXTERN: "compile_extern",
    NodeKind.ADDR: "compile_addr",
    NodeKind.IMPLEMENT: "compile_implement",
    NodeKind.SET: "compile_set",
    NodeKind.TRY_CATCH: "compile_try_catch",
}


class Compiler:
    """Drives one back end over a program.

    Args:
        backend: Target receiving the compile_* calls.
        options: Compilation settings; defaults to CompilerOptions().
        reporter: Diagnostic sink; a fresh Reporter when omitted.
        parse_file: Reads and parses an included file. Defaults to the lark
            parser; tests inject fakes.
    """

    def __init__(self, backend: CompilerBackend, options: Optional[CompilerOptions] = None,
                 reporter: Optional[Reporter] = None, parse_file: Optional[ParseFile] = None) -> None:
        self.backend = backend
        self.options = options or CompilerOptions()
        self.reporter = reporter if reporter is not None else Reporter()
        self.parse_file: ParseFile = parse_file or default_parse_file
        self.include_dirs: List[Path] = list(self.options.include_dirs)
        self.versions: List[str] = list(self.options.versions)
        self.included: Set[Path] = set()
        self.symbols = SymbolTable()

        self._handlers: Dict[NodeKind, Callable[[Node], None]] = {
            NodeKind.WORD: self._word,
            NodeKind.INCLUDE: self._include,
            NodeKind.ASM: self._asm,
            NodeKind.WHILE: self._while,
            NodeKind.REQUIRES: self._requires,
            NodeKind.ENABLE: self._enable,
        }
        for kind, method in _DELEGATED.items():
            self._handlers[kind] = getattr(self.backend, method)

    @property
    def success(self) -> bool:
        return not self.reporter.has_errors

    # --- Entry points

    def compile(self, nodes: List[Node], source_path: Optional[Path | str] = None) -> None:
        """Compile a whole program: header nodes first, then the main program.

        Each call starts from a clean state, so a Compiler can be reused.
        """
        self.symbols = SymbolTable()
        self.included = set()
        self.versions = list(self.options.versions)
        self.backend.bind(self, self.symbols)
        if source_path is not None:
            self.included.add(Path(source_path).resolve())

        self.backend.init()
        self.backend.new_const("true", self.backend.max_int())
        self.backend.new_const("false", 0)

        header = [n for n in nodes if n.kind in HEADER_KINDS]
        main = [n for n in nodes if n.kind not in HEADER_KINDS]

        for node in header:
            self.compile_node(node)
        self.backend.begin_main()
        for node in main:
            self.compile_node(node)
        self.backend.end()

    def compile_file(self, path: Path | str) -> None:
        """Parse `path` (plus the back end's default header) and compile it.

        Parse errors are reported, not raised; nothing is compiled then.
        """
        path = Path(path)
        nodes = self.header_nodes()
        try:
            nodes += self.parse_file(path)
        except (OSError, UnicodeDecodeError) as e:
            er.emit(self.reporter, er.ERR.CE3002, None, path=str(path), reason=_read_failure(e))
            return
        except Exception as exc:
            if handle_parse_exception(exc, self.reporter, str(path)):
                return
            raise
        self.compile(nodes, source_path=path)

    def header_nodes(self) -> List[Node]:
        """Nodes of the back end's default header, unless disabled."""
        if self.options.no_header:
            return []
        return parse_source(self.backend.default_header())

    # --- Dispatch

    def compile_node(self, node: Node) -> None:
        handler = self._handlers.get(node.kind)
        if handler is None:
            er.emit(self.reporter, er.ERR.CE2003, node.loc, kind=node.kind)
            return
        handler(node)

        if self.options.assembly_lines:
            line = self.backend.output_line_count()
            print(f"{node.loc or '<unknown>'} - line {line}, node {node.kind}")

    def _word(self, node: WordNode) -> None:
        method = _RESERVED_WORDS.get(node.name)
        if method is not None:
            getattr(self.backend, method)(node)
        elif node.name == "error":
            er.emit(self.reporter, er.ERR.CE2004, node.loc)
        else:
            self.backend.compile_word(node)

    def _asm(self, node: AsmNode) -> None:
        self.backend.output += node.code

    def _while(self, node: WhileNode) -> None:
        valid = True
        for cond in node.condition:
            if cond.kind not in (NodeKind.WORD, NodeKind.INTEGER):
                er.emit(self.reporter, er.ERR.CE2001, cond.loc, kind=cond.kind)
                valid = False
        if valid:
            self.backend.compile_while(node)

    def _requires(self, node: RequiresNode) -> None:
        if node.version not in self.versions:
            er.emit(self.reporter, er.ERR.CE2002, node.loc, version=node.version)

    def _enable(self, node: EnableNode) -> None:
        if node.version not in self.versions:
            self.versions.append(node.version)

    # --- Includes

    def resolve_include(self, node: IncludeNode) -> Optional[Path]:
        """First existing candidate: the including file's directory, then include dirs."""
        candidates = []
        if node.loc is not None and node.loc.file:
            candidates.append(Path(node.loc.file).parent / node.path)
        candidates.extend(Path(d) / node.path for d in self.include_dirs)

        for candidate in candidates:
            if candidate.is_file():
                return candidate.resolve()
        return None

    def _include(self, node: IncludeNode) -> None:
        path = self.resolve_include(node)
        if path is None:
            er.emit(self.reporter, er.ERR.CE3001, node.loc, path=node.path)
            return
        if path in self.included:
            return
        self.included.add(path)

        try:
            nodes = self.parse_file(path)
        except (OSError, UnicodeDecodeError) as e:
            er.emit(self.reporter, er.ERR.CE3002, node.loc, path=str(path), reason=_read_failure(e))
            return
        except Exception as exc:
            if handle_parse_exception(exc, self.reporter, str(path)):
                return
            raise

        for child in nodes:
            self.compile_node(child)


def _read_failure(e: Exception) -> str:
    if isinstance(e, UnicodeDecodeError):
        return f"not valid UTF-8 ({e.reason} at byte {e.start})"
    return e.strerror or str(e)


def _check_exhaustive() -> None:
    handled = set(_DELEGATED) | {
        NodeKind.WORD, NodeKind.INCLUDE, NodeKind.ASM,
        NodeKind.WHILE, NodeKind.REQUIRES, NodeKind.ENABLE,
    }
    missing = set(NodeKind) - handled
    if missing:
        er.raise_internal_error("CE0007", kinds=", ".join(sorted(missing)))


_check_exhaustive()
