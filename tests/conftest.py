"""Shared fixtures: a recording back end and parse helpers."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from kiln_lang.backend.interfaces import CompilerBackend
from kiln_lang.compiler.driver import Compiler
from kiln_lang.compiler.options import CompilerOptions
from kiln_lang.internals.parser import parse_file, parse_source
from kiln_lang.internals.report import Reporter, Span
from kiln_lang.semantics.ast import IntegerNode, LetNode, Node, StructNode
from kiln_lang.semantics.layout import layout_struct
from kiln_lang.semantics.symbols import Constant, Global, StructEntry, Type, Variable


def _recorder(name: str):
    def method(self, node):
        self.calls.append((name, node))
    method.__name__ = f"compile_{name}"
    return method


class RecordingBackend(CompilerBackend):
    """Back end that records every call instead of generating code.

    Structs and lets are registered for real so member paths resolve.
    Inside `func` bodies, lets become variables; everywhere else globals.
    """

    name = "recording"

    def __init__(self, versions: Optional[List[str]] = None) -> None:
        super().__init__()
        self.calls: List[Tuple[str, object]] = []
        self.consts: Dict[str, int] = {}
        self.offsets: List[Tuple[str, Optional[int]]] = []
        self._versions = versions if versions is not None else ["Recording"]
        self._in_func = False

    def kinds(self) -> List[str]:
        return [name for name, _ in self.calls]

    # --- Target description

    def get_versions(self) -> List[str]:
        return list(self._versions)

    def final_commands(self) -> List[str]:
        return [f"link {self.out_file}"]

    def max_int(self) -> int:
        return 0xFFFF

    def new_const(self, name: str, value: int, loc: Optional[Span] = None) -> None:
        self.consts[name] = value
        self.symbols.add_constant(name, Constant(IntegerNode(loc=loc, value=value)))

    def default_header(self) -> str:
        return ""

    def handle_option(self, opt: str, versions: List[str]) -> bool:
        if opt == "extra":
            versions.append("Extra")
            return True
        return False

    # --- Lifecycle

    def init(self) -> None:
        self.calls.append(("init", None))
        for name, size in (("u8", 1), ("u32", 4), ("cell", 8)):
            self.symbols.add_type(Type(name, size))

    def begin_main(self) -> None:
        self.calls.append(("begin_main", None))

    def end(self) -> None:
        self.calls.append(("end", None))

    # --- Translation

    def compile_word(self, node) -> None:
        self.calls.append(("word", node))
        if "." in node.name:
            self.offsets.append((node.name, self.get_struct_offset(node, node.name)))

    def compile_func_def(self, node) -> None:
        self.calls.append(("func_def", node))
        self._in_func = True
        try:
            for child in node.body:
                self.compiler.compile_node(child)
        finally:
            self._in_func = False

    def compile_let(self, node: LetNode) -> None:
        self.calls.append(("let", node))
        ty = self.get_type(node.type_name)
        if self._in_func:
            self.symbols.add_variable(Variable(node.name, ty, array=node.array, array_size=node.array_size))
        else:
            self.symbols.add_global(Global(node.name, ty, node.array, node.array_size))

    def compile_struct(self, node: StructNode) -> None:
        self.calls.append(("struct", node))
        entries = [StructEntry(self.get_type(m.type_name), m.name, m.array, m.size) for m in node.members]
        self.symbols.add_type(layout_struct(node.name, entries, self.struct_alignment))

    compile_integer = _recorder("integer")
    compile_if = _recorder("if")
    compile_while = _recorder("while")
    compile_array = _recorder("array")
    compile_string = _recorder("string")
    compile_return = _recorder("return")
    compile_const = _recorder("const")
    compile_enum = _recorder("enum")
    compile_break = _recorder("break")
    compile_continue = _recorder("continue")
    compile_union = _recorder("union")
    compile_alias = _recorder("alias")
    compile_extern = _recorder("extern")
    compile_call = _recorder("call")
    compile_addr = _recorder("addr")
    compile_implement = _recorder("implement")
    compile_set = _recorder("set")
    compile_try_catch = _recorder("try_catch")
    compile_throw = _recorder("throw")


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def make_compiler(backend):
    """Build a Compiler around the recording back end."""
    def make(options: Optional[CompilerOptions] = None, parse=parse_file) -> Compiler:
        return Compiler(backend, options or CompilerOptions(no_header=True), Reporter(), parse)
    return make


@pytest.fixture
def compile_source(make_compiler):
    """Parse and compile a snippet; returns the Compiler."""
    def run(src: str, options: Optional[CompilerOptions] = None) -> Compiler:
        compiler = make_compiler(options)
        compiler.compile(parse_source(src, filename="<test>"))
        return compiler
    return run


@pytest.fixture
def write_kiln(tmp_path: Path):
    """Write a .kiln file under tmp_path and return its path."""
    def write(name: str, src: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(src, encoding="utf-8")
        return path
    return write


def codes(reporter: Reporter) -> List[str]:
    return [d.code for d in reporter.items]


def nodes_of(kind: str, backend: RecordingBackend) -> List[Node]:
    return [node for name, node in backend.calls if name == kind]
