"""Built-in types of the LLVM back end."""
from __future__ import annotations
from typing import Dict

from llvmlite import ir

from kiln_lang.backend.llvm.runtime import BYTE, CELL
from kiln_lang.semantics.layout import layout_struct
from kiln_lang.semantics.symbols import StructEntry, SymbolTable, Type

BUILTIN_SIZES: Dict[str, int] = {
    "u8": 1, "i8": 1,
    "u16": 2, "i16": 2,
    "u32": 4, "i32": 4, "int": 4,
    "u64": 8, "i64": 8,
    "cell": 8, "addr": 8,
    "usize": 8, "isize": 8, "size": 8,
    "bool": 8,
}

#: Layout of static arrays and strings: { length, memberSize, elements }.
ARRAY_META = ir.LiteralStructType([CELL, CELL, BYTE.as_pointer()])


def register_builtin_types(symbols: SymbolTable, alignment: int) -> None:
    for name, size in BUILTIN_SIZES.items():
        symbols.add_type(Type(name, size))

    cell = symbols.get_type("cell")
    addr = symbols.get_type("addr")
    symbols.add_type(layout_struct("Array", [
        StructEntry(cell, "length"),
        StructEntry(cell, "memberSize"),
        StructEntry(addr, "elements"),
    ], alignment))
