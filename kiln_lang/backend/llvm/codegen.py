"""
LLVM back end for the Kiln compiler.

Kiln words become `void()` LLVM functions operating on a global data stack
(see runtime.py). The top-level program becomes `i32 main()`: code outside
any function definition is emitted straight into it, starting with whatever
included files contribute while declarations are still being processed.

API:
    from kiln_lang.backend.llvm import LLVMBackend
    from kiln_lang.compiler.driver import Compiler

    backend = LLVMBackend()
    compiler = Compiler(backend)
    compiler.compile_file("hello.kiln")
    if compiler.success:
        Path("out.ll").write_text(backend.output)
"""
from __future__ import annotations
import re
import sys
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from llvmlite import ir

from kiln_lang.backend.interfaces import CompilerBackend
from kiln_lang.backend.llvm import control_flow, target
from kiln_lang.backend.llvm.intrinsics import emit_intrinsic, is_intrinsic
from kiln_lang.backend.llvm.runtime import (
    BYTE, CELL, DEFAULT_DATA_STACK, SIZED_ACCESS, WORD_TYPE, MachineRuntime, cell,
)
from kiln_lang.backend.llvm.scopes import ScopeManager
from kiln_lang.backend.llvm.types import ARRAY_META, register_builtin_types
from kiln_lang.compiler.options import LIB_DIR
from kiln_lang.internals import errors as er
from kiln_lang.internals.errors import raise_internal_error
from kiln_lang.internals.report import Span
from kiln_lang.semantics.ast import (
    AddrNode, AliasNode, ArrayNode, ConstNode, EnumNode, ExternNode,
    FuncDefNode, IfNode, ImplementNode, IntegerNode, LetNode, Node, Param,
    SetNode, StringNode, StructMember, StructNode, TryCatchNode, UnionNode,
    WhileNode, WordNode,
)
from kiln_lang.semantics.ast_builder import parse_integer
from kiln_lang.semantics.layout import DuplicateMemberError, layout_struct, layout_union, resolve_member
from kiln_lang.semantics.symbols import Array, Constant, Global, StructEntry, Type, Variable

_SIZEOF_RE = re.compile(r"sizeof\((.+)\)")

_OS_VERSIONS = {
    "linux": "Linux",
    "osx": "OSX",
    "macos": "OSX",
    "freebsd": "FreeBSD",
    "windows": "Windows",
}

HOOK_METHODS = ("init", "deinit")


def _host_os() -> str:
    if sys.platform == "darwin":
        return "osx"
    if sys.platform.startswith("freebsd"):
        return "freebsd"
    return "linux"


def mangle(name: str) -> str:
    """Make a Kiln identifier safe for C linkage: `1+` -> `1_2b`."""
    return "".join(c if c.isascii() and c.isalnum() else f"_{ord(c):02x}" for c in name)


class LLVMBackend(CompilerBackend):
    """Compiles Kiln programs to textual LLVM IR."""

    name = "llvm"
    default_os = _host_os()

    def __init__(self) -> None:
        super().__init__()
        self.runtime = MachineRuntime(self)
        self.scopes = ScopeManager(self)
        self.data_stack_cells: int = DEFAULT_DATA_STACK

        self.module: Optional[ir.Module] = None
        self.main_func: Optional[ir.Function] = None
        self.func: Optional[ir.Function] = None
        self.builder: Optional[ir.IRBuilder] = None

        # Word name -> LLVM function (user words and raw externs)
        self.functions: Dict[str, ir.Function] = {}
        # C function name -> (declaration, parameter count, returns a value)
        self.c_functions: Dict[str, Tuple[ir.Function, int, bool]] = {}
        # (type name, method) -> hook function
        self.hooks: Dict[Tuple[str, str], ir.Function] = {}
        # (continue target, break target, scope depth) per open loop
        self.loop_stack: List[Tuple[ir.Block, ir.Block, int]] = []

        self.in_function = False
        self.main_started = False
        # set once end() has rendered the module into `output`
        self.rendered = False
        self._array_count = 0
        self._expanding: set[str] = set()

    # --- Target description

    def get_versions(self) -> List[str]:
        return ["LLVM", "Kiln", "IO", _OS_VERSIONS.get(self.os, self.os.capitalize())]

    def final_commands(self) -> List[str]:
        out = self.out_file
        cmd = f"clang {out}.ll -o {out}"
        if self.use_debug:
            cmd += " -g"
        if self.export_symbols:
            cmd += " -rdynamic"
        for lib in self.link:
            cmd += f" -l{lib}"
        if self.org_set:
            if self.os == "osx":
                self.warn(None, er.ERR.CW0003, os=self.os)
            else:
                cmd += f" -no-pie -Wl,-Ttext-segment=0x{self.org:x}"

        cmds = [cmd]
        if not self.keep_assembly:
            cmds.append(f"rm {out}.ll")
        return cmds

    def max_int(self) -> int:
        return 2 ** 64 - 1

    def new_const(self, name: str, value: int, loc: Optional[Span] = None) -> None:
        self.symbols.add_constant(name, Constant(IntegerNode(loc=loc, value=value)))

    def default_header(self) -> str:
        return 'include "core.kiln"'

    def handle_option(self, opt: str, versions: List[str]) -> bool:
        if opt == "natural-align":
            self.struct_alignment = 8
            return True
        if opt.startswith("data-stack="):
            try:
                cells = int(opt.split("=", 1)[1], 0)
            except ValueError:
                return False
            if cells <= 0:
                return False
            self.data_stack_cells = cells
            return True
        return False

    # --- Lifecycle

    def init(self) -> None:
        self.output = ""
        self.rendered = False
        self.functions.clear()
        self.c_functions.clear()
        self.hooks.clear()
        self.loop_stack = []
        self.scopes.scopes = []
        self.main_started = False
        self._array_count = 0

        self.module = ir.Module(name="kiln")
        target.ensure_target(self.module)
        self.runtime.declare(self.module, self.data_stack_cells)
        register_builtin_types(self.symbols, self.struct_alignment)

        self.main_func = ir.Function(self.module, ir.FunctionType(ir.IntType(32), []), name="main")
        self.func = self.main_func
        self.builder = ir.IRBuilder(self.main_func.append_basic_block(name="entry"))

        if LIB_DIR not in self.compiler.include_dirs:
            self.compiler.include_dirs.append(LIB_DIR)

    def begin_main(self) -> None:
        self.main_started = True
        self.ensure_open_block()
        for glob in list(self.symbols.globals.values()):
            if not glob.array:
                self.emit_hook(glob.type, "init", self._global_address(glob))

    def end(self) -> None:
        self.ensure_open_block()
        self._emit_main_exit()
        ir_text = str(self.module)
        if self.compiler.success:
            target.verify(self.module)
        # raw `asm` text follows the generated module
        self.output = ir_text + ("\n" + self.output if self.output else "")
        self.rendered = True

    def output_line_count(self) -> int:
        if self.rendered or self.module is None:
            return self.output.count("\n")
        return str(self.module).count("\n") + self.output.count("\n")

    # --- Builder helpers

    def require_builder(self) -> ir.IRBuilder:
        if self.builder is None:
            raise_internal_error("CE0004")
        return self.builder

    def block_open(self) -> bool:
        return self.builder is not None and self.builder.block.terminator is None

    def open_dead_block(self) -> None:
        """Continue in a fresh unreachable block after a terminator."""
        self.builder.position_at_end(self.func.append_basic_block(name="dead"))

    def ensure_open_block(self) -> None:
        if not self.block_open():
            self.open_dead_block()

    def compile_body(self, nodes: List[Node]) -> None:
        for node in nodes:
            self.compiler.compile_node(node)

    def _hook(self, ty: Type, method: str) -> Optional[ir.Function]:
        current = self.symbols.types.get(ty.name, ty)
        implemented = current.has_init if method == "init" else current.has_deinit
        return self.hooks.get((ty.name, method)) if implemented else None

    def emit_hook(self, ty: Type, method: str, address: ir.Value) -> None:
        """Call the type's init/deinit hook, if any, with `address` on the stack."""
        fn = self._hook(ty, method)
        if fn is not None:
            self.runtime.push(address)
            self.builder.call(fn, [])

    def _emit_main_exit(self) -> None:
        for glob in reversed(list(self.symbols.globals.values())):
            if not glob.array:
                self.emit_hook(glob.type, "deinit", self._global_address(glob))
        self.builder.ret(ir.Constant(ir.IntType(32), 0))

    def _emit_function(self, fn: ir.Function, params: List[Param], body: List[Node]) -> None:
        """Emit a word body into `fn`, then return to the enclosing builder."""
        saved = (self.func, self.builder, self.loop_stack, self.scopes.scopes)
        self.func = fn
        self.builder = ir.IRBuilder(fn.append_basic_block(name="entry"))
        self.loop_stack = []
        self.scopes.scopes = []
        self.in_function = True
        try:
            self.scopes.push_scope()
            declared = [var for var in (self._declare_param(p) for p in params) if var is not None]
            # the last parameter is on top of the stack
            for var in reversed(declared):
                value = self.runtime.pop()
                self.runtime.store(self.runtime.local_address(var.offset), value, var.type.size)
            self.compile_body(body)
            self.scopes.pop_scope()
            if self.block_open():
                self.builder.ret_void()
        finally:
            self.in_function = False
            self.func, self.builder, self.loop_stack, self.scopes.scopes = saved

    def _declare_param(self, param: Param) -> Optional[Variable]:
        if not self.type_exists(param.type_name):
            self.error(param.loc, er.ERR.CE4002, name=param.type_name)
            return None
        if self.variable_exists(param.name):
            self.error(param.loc, er.ERR.CE4004, name=param.name)
            return None
        ty = self.get_type(param.type_name)
        if ty.is_struct or ty.size not in SIZED_ACCESS:
            self.error(param.loc, er.ERR.CE4010, name=param.name, size=ty.size)
            return None
        return self.scopes.declare(Variable(param.name, ty))

    # --- Calls

    def _call_word(self, fn: ir.Function) -> None:
        self.builder.call(fn, [])
        self._propagate_exception()

    def _propagate_exception(self) -> None:
        """Inside a word, return early while an exception is in flight."""
        if not self.in_function:
            return
        with self.builder.if_then(self.runtime.exception_raised()):
            self.scopes.release_to(0)
            self.builder.ret_void()

    def _call_c(self, name: str) -> None:
        fn, arity, has_result = self.c_functions[name]
        args = [self.runtime.pop() for _ in range(arity)]
        args.reverse()
        result = self.builder.call(fn, args)
        if has_result:
            self.runtime.push(result)

    # --- Storage addressing

    def _global_address(self, glob: Global) -> ir.Value:
        return self.builder.ptrtoint(glob.extra, CELL)

    def _root_address(self, name: str) -> ir.Value:
        if self.variable_exists(name):
            return self.runtime.local_address(self.get_variable(name).offset)
        return self._global_address(self.get_global(name))

    def _member(self, node: Node, identifier: str) -> Optional[Tuple[ir.Value, StructEntry]]:
        offset = self.get_struct_offset(node, identifier)
        if offset is None:
            return None
        entry = resolve_member(self.symbols, identifier)
        address = self.builder.add(self._root_address(identifier.split(".")[0]), cell(offset))
        return address, entry

    def _push_value(self, node: Node, name: str, ty: Type, is_array: bool, address: ir.Value) -> None:
        if is_array or ty.is_struct:
            self.runtime.push(address)
        elif ty.size in SIZED_ACCESS:
            self.runtime.push(self.runtime.load(address, ty.size))
        else:
            self.error(node.loc, er.ERR.CE4010, name=name, size=ty.size)

    def _store_value(self, node: Node, name: str, ty: Type, is_array: bool, address: ir.Value) -> None:
        if is_array or ty.is_struct:
            self.error(node.loc, er.ERR.CE4014, name=name)
        elif ty.size in SIZED_ACCESS:
            self.runtime.store(address, self.runtime.pop(), ty.size)
        else:
            self.error(node.loc, er.ERR.CE4010, name=name, size=ty.size)

    def _name_taken(self, name: str) -> bool:
        return (name in self.functions or name in self.c_functions
                or self.global_exists(name) or self.symbols.constant_exists(name))

    # --- Leaves

    def compile_word(self, node: WordNode) -> None:
        name = node.name
        if name in self.functions:
            self._call_word(self.functions[name])
        elif name in self.c_functions:
            self._call_c(name)
        elif self.symbols.constant_exists(name):
            self._expand_constant(node)
        elif self.variable_exists(name):
            var = self.get_variable(name)
            address = self.runtime.local_address(var.offset)
            self._push_value(node, name, var.type, var.array, address)
        elif self.global_exists(name):
            glob = self.get_global(name)
            self._push_value(node, name, glob.type, glob.array, self._global_address(glob))
        elif "." in name:
            member = self._member(node, name)
            if member is not None:
                address, entry = member
                self._push_value(node, name, entry.type, entry.array, address)
        elif _SIZEOF_RE.fullmatch(name):
            type_name = _SIZEOF_RE.fullmatch(name).group(1)
            if not self.type_exists(type_name):
                self.error(node.loc, er.ERR.CE4002, name=type_name)
                return
            self.runtime.push_const(self.get_type(type_name).size)
        elif is_intrinsic(name):
            emit_intrinsic(self.runtime, name)
        else:
            self.error(node.loc, er.ERR.CE4001, name=name)

    def _expand_constant(self, node: WordNode) -> None:
        if node.name in self._expanding:
            self.error(node.loc, er.ERR.CE4001, name=node.name)
            return
        self._expanding.add(node.name)
        try:
            self.compiler.compile_node(self.symbols.get_constant(node.name).value)
        finally:
            self._expanding.discard(node.name)

    def compile_integer(self, node: IntegerNode) -> None:
        value = node.value
        if value > self.max_int() or value < -(2 ** 63):
            self.error(node.loc, er.ERR.CE4008, value=value)
            return
        if value >= 2 ** 63:
            value -= 2 ** 64
        self.runtime.push_const(value)

    def compile_string(self, node: StringNode) -> None:
        data = node.value.encode("utf-8")
        # NUL-terminated for C, but the terminator is not counted
        self._emit_static_array(list(data) + [0], self.get_type("u8"), len(data))

    def compile_array(self, node: ArrayNode) -> None:
        if not self.type_exists(node.type_name):
            self.error(node.loc, er.ERR.CE4002, name=node.type_name)
            return
        ty = self.get_type(node.type_name)
        if ty.is_struct or ty.size not in SIZED_ACCESS:
            self.error(node.loc, er.ERR.CE4010, name=node.type_name, size=ty.size)
            return

        values = []
        for text in node.elements:
            value = self._array_value(text)
            if value is None:
                self.error(node.loc, er.ERR.CE4009, value=text)
                return
            values.append(value)
        self._emit_static_array(values, ty, len(values))

    def _array_value(self, text: str) -> Optional[int]:
        value = parse_integer(text)
        if value is None and self.symbols.constant_exists(text):
            const = self.symbols.get_constant(text).value
            if isinstance(const, IntegerNode):
                value = const.value
        return value

    def _emit_static_array(self, values: List[int], ty: Type, length: int) -> None:
        """Emit element data plus an Array metadata record; push its address."""
        n = self._array_count
        self._array_count += 1

        elem = ir.IntType(ty.size * 8)
        mask = (1 << (ty.size * 8)) - 1
        data_ty = ir.ArrayType(elem, len(values))
        data = ir.GlobalVariable(self.module, data_ty, name=f"kiln_array_{n}_data")
        data.linkage = "internal"
        data.initializer = ir.Constant(data_ty, [ir.Constant(elem, v & mask) for v in values] if values else None)

        elements = data.gep([ir.Constant(ir.IntType(32), 0), ir.Constant(ir.IntType(32), 0)])
        if ty.size != 1:
            elements = elements.bitcast(BYTE.as_pointer())
        meta = ir.GlobalVariable(self.module, ARRAY_META, name=f"kiln_array_{n}")
        meta.linkage = "internal"
        meta.initializer = ir.Constant(ARRAY_META, [cell(length), cell(ty.size), elements])

        self.symbols.add_array(Array([str(v) for v in values], ty, extra=meta))
        self.runtime.push(self.builder.ptrtoint(meta, CELL))

    # --- Definitions

    def compile_func_def(self, node: FuncDefNode) -> None:
        if self.in_function:
            self.error(node.loc, er.ERR.CE4005)
            return
        if self._name_taken(node.name):
            self.error(node.loc, er.ERR.CE4004, name=node.name)
            return
        for type_name in node.returns:
            if not self.type_exists(type_name):
                self.error(node.loc, er.ERR.CE4002, name=type_name)

        fn = ir.Function(self.module, WORD_TYPE, name=f"word_{mangle(node.name)}")
        # registered before the body so the word can recurse
        self.functions[node.name] = fn
        self._emit_function(fn, node.params, node.body)

    def compile_let(self, node: LetNode) -> None:
        if not self.type_exists(node.type_name):
            self.error(node.loc, er.ERR.CE4002, name=node.type_name)
            return
        ty = self.get_type(node.type_name)

        if self.in_function:
            if self.variable_exists(node.name):
                self.error(node.loc, er.ERR.CE4004, name=node.name)
                return
            if self.global_exists(node.name):
                self.warn(node.loc, er.ERR.CW0002, name=node.name)
            var = self.scopes.declare(Variable(node.name, ty, array=node.array, array_size=node.array_size))
            if not var.array:
                self.emit_hook(ty, "init", self.runtime.local_address(var.offset))
            return

        if self._name_taken(node.name):
            self.error(node.loc, er.ERR.CE4004, name=node.name)
            return
        glob: Global[ir.GlobalVariable] = Global(node.name, ty, node.array, node.array_size)
        storage = ir.ArrayType(BYTE, glob.size())
        gv = ir.GlobalVariable(self.module, storage, name=f"kiln_global_{mangle(node.name)}")
        gv.initializer = ir.Constant(storage, None)
        gv.align = 8
        glob.extra = gv
        self.symbols.add_global(glob)
        # globals declared before main are initialized by begin_main()
        if self.main_started and not glob.array:
            self.emit_hook(ty, "init", self._global_address(glob))

    def _entries(self, members: List[StructMember]) -> Optional[List[StructEntry]]:
        entries = []
        for m in members:
            if not self.type_exists(m.type_name):
                self.error(m.loc, er.ERR.CE4002, name=m.type_name)
                return None
            entries.append(StructEntry(self.get_type(m.type_name), m.name, m.array, m.size))
        return entries

    def compile_struct(self, node: StructNode) -> None:
        if self.type_exists(node.name):
            self.error(node.loc, er.ERR.CE4003, name=node.name)
            return
        parent = None
        if node.inherits is not None:
            if not self.type_exists(node.inherits) or not self.get_type(node.inherits).is_struct:
                self.error(node.loc, er.ERR.CE1001, name=node.inherits)
                return
            parent = self.get_type(node.inherits)

        entries = self._entries(node.members)
        if entries is None:
            return
        try:
            ty = layout_struct(node.name, entries, self.struct_alignment, parent)
        except DuplicateMemberError as e:
            self.error(node.loc, er.ERR.CE4007, name=e.name, owner=e.owner)
            return
        if not ty.structure:
            self.warn(node.loc, er.ERR.CW0001, name=node.name)
        self.symbols.add_type(ty)

    def compile_union(self, node: UnionNode) -> None:
        if self.type_exists(node.name):
            self.error(node.loc, er.ERR.CE4003, name=node.name)
            return
        entries = self._entries(node.members)
        if entries is None:
            return
        try:
            ty = layout_union(node.name, entries, self.struct_alignment)
        except DuplicateMemberError as e:
            self.error(node.loc, er.ERR.CE4007, name=e.name, owner=e.owner)
            return
        if not ty.structure:
            self.warn(node.loc, er.ERR.CW0001, name=node.name)
        self.symbols.add_type(ty)

    def compile_const(self, node: ConstNode) -> None:
        if self.symbols.constant_exists(node.name):
            self.error(node.loc, er.ERR.CE4004, name=node.name)
            return
        self.symbols.add_constant(node.name, Constant(node.value))

    def compile_enum(self, node: EnumNode) -> None:
        """`enum Color : u8 red green end` defines type Color and Color.red, Color.green."""
        if self.type_exists(node.name):
            self.error(node.loc, er.ERR.CE4003, name=node.name)
            return
        base_name = node.type_name or "cell"
        if not self.type_exists(base_name):
            self.error(node.loc, er.ERR.CE4002, name=base_name)
            return
        self.symbols.add_type(Type(node.name, self.get_type(base_name).size))
        for name, value in zip(node.names, node.values):
            self.new_const(f"{node.name}.{name}", value, node.loc)

    def compile_alias(self, node: AliasNode) -> None:
        if not self.type_exists(node.from_):
            self.error(node.loc, er.ERR.CE4002, name=node.from_)
            return
        if self.type_exists(node.to):
            self.error(node.loc, er.ERR.CE4003, name=node.to)
            return
        self.symbols.add_type(self.get_type(node.from_), name=node.to)

    def compile_extern(self, node: ExternNode) -> None:
        if self._name_taken(node.name):
            self.error(node.loc, er.ERR.CE4004, name=node.name)
            return
        if not node.c_func:
            self.functions[node.name] = ir.Function(self.module, WORD_TYPE, name=f"word_{mangle(node.name)}")
            return

        if len(node.returns) > 1:
            self.error(node.loc, er.ERR.CE4016, name=node.name)
            return
        for type_name in node.params + node.returns:
            if not self.type_exists(type_name):
                self.error(node.loc, er.ERR.CE4002, name=type_name)
                return
        if node.name in self.module.globals:
            self.error(node.loc, er.ERR.CE4004, name=node.name)
            return
        ret = CELL if node.returns else ir.VoidType()
        fn = ir.Function(self.module, ir.FunctionType(ret, [CELL] * len(node.params)), name=node.name)
        self.c_functions[node.name] = (fn, len(node.params), bool(node.returns))

    def compile_implement(self, node: ImplementNode) -> None:
        if self.in_function:
            self.error(node.loc, er.ERR.CE4005)
            return
        if not self.type_exists(node.struct_name):
            self.error(node.loc, er.ERR.CE4002, name=node.struct_name)
            return
        if node.method not in HOOK_METHODS:
            self.error(node.loc, er.ERR.CE4011, method=node.method)
            return
        ty = self.get_type(node.struct_name)
        if (ty.name, node.method) in self.hooks:
            self.error(node.loc, er.ERR.CE4012, name=node.struct_name, method=node.method)
            return

        fn = ir.Function(self.module, WORD_TYPE, name=f"kiln_{mangle(ty.name)}_{node.method}")
        self.hooks[(ty.name, node.method)] = fn
        flag = {"has_init": True} if node.method == "init" else {"has_deinit": True}
        # aliases share the hook, so every name bound to this type is updated
        for key, registered in list(self.symbols.types.items()):
            if registered.name == ty.name:
                self.set_type(key, replace(registered, **flag))
        self._emit_function(fn, [], node.body)

    # --- Control flow

    def compile_if(self, node: IfNode) -> None:
        control_flow.emit_if(self, node)

    def compile_while(self, node: WhileNode) -> None:
        control_flow.emit_while(self, node)

    def compile_return(self, node: WordNode) -> None:
        if not self.in_function:
            self._emit_main_exit()
        else:
            self.scopes.release_to(0)
            self.builder.ret_void()
        self.open_dead_block()

    def compile_break(self, node: WordNode) -> None:
        if not self.loop_stack:
            self.error(node.loc, er.ERR.CE4006, word=node.name)
            return
        control_flow.emit_loop_exit(self, continue_loop=False)

    def compile_continue(self, node: WordNode) -> None:
        if not self.loop_stack:
            self.error(node.loc, er.ERR.CE4006, word=node.name)
            return
        control_flow.emit_loop_exit(self, continue_loop=True)

    def compile_call(self, node: WordNode) -> None:
        address = self.runtime.pop()
        target_fn = self.builder.inttoptr(address, WORD_TYPE.as_pointer())
        self.builder.call(target_fn, [])
        self._propagate_exception()

    def compile_throw(self, node: WordNode) -> None:
        if not self.in_function:
            self.error(node.loc, er.ERR.CE4015, word=node.name)
            return
        self.builder.store(self.runtime.pop(), self.runtime.exception)
        self.scopes.release_to(0)
        self.builder.ret_void()
        self.open_dead_block()

    def compile_try_catch(self, node: TryCatchNode) -> None:
        fn = self.functions.get(node.func)
        if fn is None:
            known = (node.func in self.c_functions or self.variable_exists(node.func)
                     or self.global_exists(node.func) or self.symbols.constant_exists(node.func))
            self.error(node.loc, er.ERR.CE4013 if known else er.ERR.CE4001, name=node.func)
            return
        control_flow.emit_try_catch(self, node, fn)

    # --- Addresses and assignment

    def compile_addr(self, node: AddrNode) -> None:
        name = node.name
        if name in self.functions:
            self.runtime.push(self.builder.ptrtoint(self.functions[name], CELL))
        elif name in self.c_functions:
            self.runtime.push(self.builder.ptrtoint(self.c_functions[name][0], CELL))
        elif self.variable_exists(name) or self.global_exists(name):
            self.runtime.push(self._root_address(name))
        elif "." in name:
            member = self._member(node, name)
            if member is not None:
                self.runtime.push(member[0])
        else:
            self.error(node.loc, er.ERR.CE4001, name=name)

    def compile_set(self, node: SetNode) -> None:
        name = node.name
        if self.variable_exists(name):
            var = self.get_variable(name)
            self._store_value(node, name, var.type, var.array, self.runtime.local_address(var.offset))
        elif self.global_exists(name):
            glob = self.get_global(name)
            self._store_value(node, name, glob.type, glob.array, self._global_address(glob))
        elif "." in name and not self._name_taken(name):
            member = self._member(node, name)
            if member is not None:
                address, entry = member
                self._store_value(node, name, entry.type, entry.array, address)
        elif self._name_taken(name):
            self.error(node.loc, er.ERR.CE4014, name=name)
        else:
            self.error(node.loc, er.ERR.CE4001, name=name)
