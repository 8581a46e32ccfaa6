"""Code generation back ends, selectable by name with `kilnc -b`."""
from __future__ import annotations
from typing import Dict, Type

from kiln_lang.backend.interfaces import CompilerBackend
from kiln_lang.backend.llvm import LLVMBackend

BACKENDS: Dict[str, Type[CompilerBackend]] = {
    LLVMBackend.name: LLVMBackend,
}


def get_backend(name: str) -> CompilerBackend:
    """Instantiate a registered back end.

    Raises:
        KeyError: If no back end is registered under `name`.
    """
    return BACKENDS[name]()
