"""
Machine model of generated programs.

Every Kiln program owns three pieces of global state:

- the data stack, a fixed array of 64-bit cells indexed by `kiln_dsp`,
  accessed only through the `kiln_push` / `kiln_pop` helpers;
- the call stack, a byte array holding function locals, whose pointer
  `kiln_csp` starts at the top and grows downward;
- the exception slot `kiln_exception`, non-zero while an error is in flight.

Globals keep default linkage so the state can be inspected after a JIT run.
"""
from __future__ import annotations
import typing
from typing import Optional

from llvmlite import ir

if typing.TYPE_CHECKING:
    from kiln_lang.backend.llvm.codegen import LLVMBackend

CELL = ir.IntType(64)
BYTE = ir.IntType(8)
VOID = ir.VoidType()
WORD_TYPE = ir.FunctionType(VOID, [])

DEFAULT_DATA_STACK = 4096
CALL_STACK_SIZE = 65536

#: Access widths the stack can move to and from memory, in bytes.
SIZED_ACCESS = (1, 2, 4, 8)


def cell(value: int) -> ir.Constant:
    return ir.Constant(CELL, value)


def _zero_global(module: ir.Module, ty: ir.Type, name: str, init: Optional[ir.Constant] = None) -> ir.GlobalVariable:
    gv = ir.GlobalVariable(module, ty, name=name)
    gv.initializer = init if init is not None else ir.Constant(ty, None)
    return gv


class MachineRuntime:
    """Declares the machine state and emits the primitive stack operations."""

    def __init__(self, codegen: 'LLVMBackend') -> None:
        self.codegen = codegen
        self.data_stack: Optional[ir.GlobalVariable] = None
        self.dsp: Optional[ir.GlobalVariable] = None
        self.call_stack: Optional[ir.GlobalVariable] = None
        self.csp: Optional[ir.GlobalVariable] = None
        self.exception: Optional[ir.GlobalVariable] = None
        self.push_fn: Optional[ir.Function] = None
        self.pop_fn: Optional[ir.Function] = None

    def declare(self, module: ir.Module, data_stack_cells: int) -> None:
        self.data_stack = _zero_global(module, ir.ArrayType(CELL, data_stack_cells), "kiln_data_stack")
        self.dsp = _zero_global(module, CELL, "kiln_dsp")
        self.call_stack = _zero_global(module, ir.ArrayType(BYTE, CALL_STACK_SIZE), "kiln_call_stack")
        self.csp = _zero_global(module, CELL, "kiln_csp", cell(CALL_STACK_SIZE))
        self.exception = _zero_global(module, CELL, "kiln_exception")
        self._declare_push(module)
        self._declare_pop(module)

    def _declare_push(self, module: ir.Module) -> None:
        fn = ir.Function(module, ir.FunctionType(VOID, [CELL]), name="kiln_push")
        b = ir.IRBuilder(fn.append_basic_block("entry"))
        sp = b.load(self.dsp)
        slot = b.gep(self.data_stack, [cell(0), sp], inbounds=True)
        b.store(fn.args[0], slot)
        b.store(b.add(sp, cell(1)), self.dsp)
        b.ret_void()
        self.push_fn = fn

    def _declare_pop(self, module: ir.Module) -> None:
        fn = ir.Function(module, ir.FunctionType(CELL, []), name="kiln_pop")
        b = ir.IRBuilder(fn.append_basic_block("entry"))
        sp = b.sub(b.load(self.dsp), cell(1))
        b.store(sp, self.dsp)
        slot = b.gep(self.data_stack, [cell(0), sp], inbounds=True)
        b.ret(b.load(slot))
        self.pop_fn = fn

    # --- Data stack

    @property
    def builder(self) -> ir.IRBuilder:
        return self.codegen.require_builder()

    def push(self, value: ir.Value) -> None:
        self.builder.call(self.push_fn, [value])

    def pop(self) -> ir.Value:
        return self.builder.call(self.pop_fn, [])

    def push_const(self, value: int) -> None:
        self.push(cell(value))

    def push_bool(self, flag: ir.Value) -> None:
        """Push an i1 as a Kiln flag: all ones for true, zero for false."""
        self.push(self.builder.sext(flag, CELL))

    # --- Call stack

    def allocate(self, size: int) -> None:
        b = self.builder
        b.store(b.sub(b.load(self.csp), cell(size)), self.csp)

    def release(self, size: int) -> None:
        if size == 0:
            return
        b = self.builder
        b.store(b.add(b.load(self.csp), cell(size)), self.csp)

    def local_address(self, offset: int) -> ir.Value:
        """Absolute address of `csp + offset` inside the call stack."""
        b = self.builder
        base = b.ptrtoint(self.call_stack, CELL)
        return b.add(b.add(base, b.load(self.csp)), cell(offset))

    # --- Memory

    def load(self, address: ir.Value, size: int) -> ir.Value:
        """Load a `size`-byte unsigned value and widen it to a cell."""
        b = self.builder
        width = ir.IntType(size * 8)
        value = b.load(b.inttoptr(address, width.as_pointer()))
        return value if size == 8 else b.zext(value, CELL)

    def store(self, address: ir.Value, value: ir.Value, size: int) -> None:
        b = self.builder
        width = ir.IntType(size * 8)
        if size != 8:
            value = b.trunc(value, width)
        b.store(value, b.inttoptr(address, width.as_pointer()))

    # --- Exceptions

    def clear_exception(self) -> None:
        self.builder.store(cell(0), self.exception)

    def exception_raised(self) -> ir.Value:
        b = self.builder
        return b.icmp_unsigned("!=", b.load(self.exception), cell(0))
