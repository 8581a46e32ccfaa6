"""
Target machine setup and module verification for the LLVM back end.
"""
from __future__ import annotations

from typing import Dict, Optional

from llvmlite import binding as llvm, ir

from kiln_lang.internals.errors import raise_internal_error

_llvm_init = False
# triple -> data layout string; machines themselves are never shared
_layout_cache: Dict[str, str] = {}


def ensure_llvm() -> None:
    """Initialize the native target and asm printer once per process."""
    global _llvm_init
    if _llvm_init:
        return
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    _llvm_init = True


def create_target_machine(triple: Optional[str] = None) -> llvm.TargetMachine:
    """A new target machine for `triple`, with PIC relocation on Linux.

    Every call returns a fresh machine: an execution engine takes ownership
    of the machine it is given and frees it together with the engine.
    """
    ensure_llvm()
    triple = triple or llvm.get_default_triple()
    target = llvm.Target.from_triple(triple)
    reloc = "pic" if "linux" in triple.lower() else "default"
    return target.create_target_machine(reloc=reloc)


def data_layout(triple: Optional[str] = None) -> str:
    triple = triple or llvm.get_default_triple()
    layout = _layout_cache.get(triple)
    if layout is None:
        layout = str(create_target_machine(triple).target_data)
        _layout_cache[triple] = layout
    return layout


def ensure_target(module: ir.Module, triple: Optional[str] = None) -> None:
    """Stamp the module with the target triple and data layout."""
    ensure_llvm()
    triple = triple or llvm.get_default_triple()
    module.triple = triple
    module.data_layout = data_layout(triple)


def verify(module: ir.Module) -> llvm.ModuleRef:
    """Parse and verify the textual module.

    Raises:
        InternalCompilerError: If LLVM rejects the generated IR.
    """
    ensure_llvm()
    try:
        llmod = llvm.parse_assembly(str(module))
        llmod.verify()
    except RuntimeError as e:
        raise_internal_error("CE0005", message=str(e).strip())
    return llmod
