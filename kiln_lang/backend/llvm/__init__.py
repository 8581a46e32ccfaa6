"""LLVM IR back end (llvmlite)."""
from kiln_lang.backend.llvm.codegen import LLVMBackend

__all__ = ["LLVMBackend"]
