"""
Lexical scopes of call-stack locals.

A local lives at `csp + offset`. Declaring a local moves csp down by its
size, so the newest local sits at offset 0 and every older one moves up by
the same amount. Releasing runs the inverse: deinit hooks first, newest
local first, then csp moves back up.
"""
from __future__ import annotations
import typing
from typing import List

from kiln_lang.internals.errors import raise_internal_error
from kiln_lang.semantics.symbols import Variable

if typing.TYPE_CHECKING:
    from kiln_lang.backend.llvm.codegen import LLVMBackend


class ScopeManager:
    """Tracks which locals each open block declared."""

    def __init__(self, codegen: 'LLVMBackend') -> None:
        self.codegen = codegen
        self.scopes: List[List[str]] = []

    @property
    def depth(self) -> int:
        return len(self.scopes)

    def push_scope(self) -> None:
        self.scopes.append([])

    def pop_scope(self) -> None:
        """Close the innermost scope, releasing its locals if code can still run."""
        if not self.scopes:
            raise_internal_error("CE0006")
        names = self.scopes[-1]
        if self.codegen.block_open():
            self._emit_release(names)
        symbols = self.codegen.symbols
        for name in reversed(names):
            released = symbols.remove_variable(name)
            for var in symbols.variables.values():
                var.offset -= released.size()
        self.scopes.pop()

    def declare(self, var: Variable) -> Variable:
        """Register a new local at offset 0 and emit its allocation."""
        if not self.scopes:
            raise_internal_error("CE0006")
        symbols = self.codegen.symbols
        size = var.size()
        for existing in symbols.variables.values():
            existing.offset += size
        var.offset = 0
        symbols.add_variable(var)
        self.scopes[-1].append(var.name)
        self.codegen.runtime.allocate(size)
        return var

    def release_to(self, depth: int) -> None:
        """Emit releases for every scope deeper than `depth`, keeping them open.

        Used before `return`, `break`, `continue` and `throw`, which leave
        blocks without reaching their end.
        """
        shift = 0
        for names in reversed(self.scopes[depth:]):
            shift += self._emit_release(names, shift)

    def _emit_release(self, names: List[str], shift: int = 0) -> int:
        # `shift` bytes of deeper locals were already released by the caller
        symbols = self.codegen.symbols
        total = 0
        for name in reversed(names):
            var = symbols.get_variable(name)
            if not var.array:
                address = self.codegen.runtime.local_address(var.offset - shift)
                self.codegen.emit_hook(var.type, "deinit", address)
            total += var.size()
        self.codegen.runtime.release(total)
        return total
