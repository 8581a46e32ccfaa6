"""
Backend contract for Kiln code generation targets.

Every target subclasses CompilerBackend and implements one compile_* method
per syntax-tree node kind, plus the target description and lifecycle hooks.
The driver (kiln_lang.compiler.driver.Compiler) binds a fresh SymbolTable
and itself to the backend before init(), and is the only caller of these
methods.

Translation methods return nothing. They emit target code into `output`
and/or register symbols, and report user errors through error()/warn(),
which never interrupt them.

Usage:
    from kiln_lang.backend.interfaces import CompilerBackend

    class MyBackend(CompilerBackend):
        def compile_integer(self, node: IntegerNode) -> None:
            self.output += f"push {node.value}\\n"
        ...
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

from kiln_lang.internals import errors as er
from kiln_lang.internals.report import Span
from kiln_lang.semantics import layout
from kiln_lang.semantics.ast import (
    AddrNode, AliasNode, ArrayNode, ConstNode, EnumNode, ExternNode,
    FuncDefNode, IfNode, ImplementNode, IntegerNode, LetNode, Node, SetNode,
    StringNode, StructNode, TryCatchNode, UnionNode, WhileNode, WordNode,
)
from kiln_lang.semantics.symbols import Global, SymbolTable, Type, Variable

if TYPE_CHECKING:
    from kiln_lang.compiler.driver import Compiler
    from kiln_lang.compiler.options import CompilerOptions


class CompilerBackend(ABC):
    """Base class of every code generation target."""

    #: Registry name, also used in diagnostics.
    name: str = "abstract"
    #: Alignment cap used for struct/union layout (1 = packed).
    struct_alignment: int = 1
    #: Operating system assumed when the options leave it unset.
    default_os: str = "linux"

    def __init__(self) -> None:
        self.output: str = ""
        self.org: int = 0
        self.org_set: bool = False
        self.use_debug: bool = False
        self.export_symbols: bool = False
        self.link: List[str] = []
        self.keep_assembly: bool = False
        self.os: str = self.default_os
        self.out_file: str = "out"
        self._compiler: Optional["Compiler"] = None
        self._symbols: Optional[SymbolTable] = None

    # --- Binding and configuration

    def configure(self, options: "CompilerOptions") -> None:
        """Copy the target-related settings out of the compiler options."""
        self.org_set = options.org is not None
        self.org = options.org or 0
        self.use_debug = options.debug
        self.export_symbols = options.export_symbols
        self.link = list(options.link)
        self.keep_assembly = options.keep_assembly
        self.os = options.os or self.default_os
        self.out_file = options.out_file

    def bind(self, compiler: "Compiler", symbols: SymbolTable) -> None:
        self._compiler = compiler
        self._symbols = symbols

    @property
    def compiler(self) -> "Compiler":
        if self._compiler is None:
            er.raise_internal_error("CE0003")
        return self._compiler

    @property
    def symbols(self) -> SymbolTable:
        if self._symbols is None:
            er.raise_internal_error("CE0003")
        return self._symbols

    # --- Target description

    @abstractmethod
    def get_versions(self) -> List[str]:
        """Feature/version flags this target enables by default."""

    @abstractmethod
    def final_commands(self) -> List[str]:
        """Shell commands that turn `output` into the final artifact."""

    @abstractmethod
    def max_int(self) -> int:
        """Largest integer a stack cell can hold."""

    @abstractmethod
    def new_const(self, name: str, value: int, loc: Optional[Span] = None) -> None:
        """Register an integer constant."""

    @abstractmethod
    def default_header(self) -> str:
        """Source text compiled before the program unless disabled."""

    @abstractmethod
    def handle_option(self, opt: str, versions: List[str]) -> bool:
        """Apply a backend option; may extend `versions`. False if unknown."""

    def output_line_count(self) -> int:
        """Lines of target code produced so far, for the assembly-lines trace."""
        return self.output.count("\n")

    # --- Lifecycle

    @abstractmethod
    def init(self) -> None: ...

    @abstractmethod
    def begin_main(self) -> None: ...

    @abstractmethod
    def end(self) -> None: ...

    # --- Node translation

    @abstractmethod
    def compile_word(self, node: WordNode) -> None: ...

    @abstractmethod
    def compile_integer(self, node: IntegerNode) -> None: ...

    @abstractmethod
    def compile_func_def(self, node: FuncDefNode) -> None: ...

    @abstractmethod
    def compile_if(self, node: IfNode) -> None: ...

    @abstractmethod
    def compile_while(self, node: WhileNode) -> None: ...

    @abstractmethod
    def compile_let(self, node: LetNode) -> None: ...

    @abstractmethod
    def compile_array(self, node: ArrayNode) -> None: ...

    @abstractmethod
    def compile_string(self, node: StringNode) -> None: ...

    @abstractmethod
    def compile_struct(self, node: StructNode) -> None: ...

    @abstractmethod
    def compile_return(self, node: WordNode) -> None: ...

    @abstractmethod
    def compile_const(self, node: ConstNode) -> None: ...

    @abstractmethod
    def compile_enum(self, node: EnumNode) -> None: ...

    @abstractmethod
    def compile_break(self, node: WordNode) -> None: ...

    @abstractmethod
    def compile_continue(self, node: WordNode) -> None: ...

    @abstractmethod
    def compile_union(self, node: UnionNode) -> None: ...

    @abstractmethod
    def compile_alias(self, node: AliasNode) -> None: ...

    @abstractmethod
    def compile_extern(self, node: ExternNode) -> None: ...

    @abstractmethod
    def compile_call(self, node: WordNode) -> None: ...

    @abstractmethod
    def compile_addr(self, node: AddrNode) -> None: ...

    @abstractmethod
    def compile_implement(self, node: ImplementNode) -> None: ...

    @abstractmethod
    def compile_set(self, node: SetNode) -> None: ...

    @abstractmethod
    def compile_try_catch(self, node: TryCatchNode) -> None: ...

    @abstractmethod
    def compile_throw(self, node: WordNode) -> None: ...

    # --- Diagnostics

    def error(self, loc: Optional[Span], em: er.ErrorMessage, **kwargs) -> None:
        """Report a user error; the run is marked failed but continues."""
        er.emit(self.compiler.reporter, em, loc, **kwargs)

    def warn(self, loc: Optional[Span], em: er.ErrorMessage, **kwargs) -> None:
        er.emit(self.compiler.reporter, em, loc, **kwargs)

    # --- Symbol model shortcuts

    def variable_exists(self, name: str) -> bool:
        return self.symbols.variable_exists(name)

    def get_variable(self, name: str) -> Variable:
        return self.symbols.get_variable(name)

    def global_exists(self, name: str) -> bool:
        return self.symbols.global_exists(name)

    def get_global(self, name: str) -> Global:
        return self.symbols.get_global(name)

    def type_exists(self, name: str) -> bool:
        return self.symbols.type_exists(name)

    def get_type(self, name: str) -> Type:
        return self.symbols.get_type(name)

    def set_type(self, name: str, ty: Type) -> None:
        self.symbols.set_type(name, ty)

    def is_struct_member(self, identifier: str) -> bool:
        return self.symbols.is_struct_member(identifier)

    def get_stack_size(self) -> int:
        return self.symbols.get_stack_size()

    def get_struct_offset(self, node: Node, identifier: str) -> Optional[int]:
        """Byte offset of a member path, or None after reporting why not."""
        return layout.get_struct_offset(self.symbols, identifier, node.loc, self.compiler.reporter)
