"""
Control flow emission: if/elseif/else, while loops and try/catch.

Conditions are ordinary node sequences that leave one cell on the data
stack; any non-zero value counts as true.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, List

from llvmlite import ir

from kiln_lang.backend.llvm.runtime import cell

if TYPE_CHECKING:
    from kiln_lang.backend.llvm.codegen import LLVMBackend
    from kiln_lang.semantics.ast import IfNode, Node, TryCatchNode, WhileNode


def _emit_block(codegen: 'LLVMBackend', nodes: List['Node']) -> None:
    codegen.scopes.push_scope()
    codegen.compile_body(nodes)
    codegen.scopes.pop_scope()


def _pop_condition(codegen: 'LLVMBackend', nodes: List['Node']) -> ir.Value:
    codegen.compile_body(nodes)
    return codegen.builder.icmp_unsigned("!=", codegen.runtime.pop(), cell(0))


def emit_if(codegen: 'LLVMBackend', node: 'IfNode') -> None:
    """Emit a chain of tested branches with an optional else block.

    Args:
        codegen: The active LLVM back end.
        node: The if statement node to emit.
    """
    codegen.ensure_open_block()
    func = codegen.func
    after_bb = func.append_basic_block(name="if.end")
    n = len(node.branches)

    for i, branch in enumerate(node.branches):
        cond = _pop_condition(codegen, branch.condition)
        body_bb = func.append_basic_block(name=f"if.{i}.body")
        if i + 1 < n:
            next_bb = func.append_basic_block(name=f"if.{i + 1}.test")
        elif node.else_body is not None:
            next_bb = func.append_basic_block(name="if.else")
        else:
            next_bb = after_bb
        codegen.builder.cbranch(cond, body_bb, next_bb)

        codegen.builder.position_at_end(body_bb)
        _emit_block(codegen, branch.body)
        if codegen.block_open():
            codegen.builder.branch(after_bb)
        codegen.builder.position_at_end(next_bb)

    if node.else_body is not None:
        _emit_block(codegen, node.else_body)
        if codegen.block_open():
            codegen.builder.branch(after_bb)
        codegen.builder.position_at_end(after_bb)


def emit_while(codegen: 'LLVMBackend', node: 'WhileNode') -> None:
    """Emit a pre-tested loop; `break`/`continue` target its end/test blocks."""
    codegen.ensure_open_block()
    func = codegen.func
    cond_bb = func.append_basic_block(name="while.cond")
    body_bb = func.append_basic_block(name="while.body")
    end_bb = func.append_basic_block(name="while.end")

    codegen.builder.branch(cond_bb)
    codegen.builder.position_at_end(cond_bb)
    codegen.builder.cbranch(_pop_condition(codegen, node.condition), body_bb, end_bb)

    codegen.builder.position_at_end(body_bb)
    codegen.loop_stack.append((cond_bb, end_bb, codegen.scopes.depth))
    _emit_block(codegen, node.body)
    codegen.loop_stack.pop()
    if codegen.block_open():
        codegen.builder.branch(cond_bb)

    codegen.builder.position_at_end(end_bb)


def emit_loop_exit(codegen: 'LLVMBackend', continue_loop: bool) -> None:
    """Leave the innermost loop body, releasing the locals it opened."""
    cond_bb, end_bb, depth = codegen.loop_stack[-1]
    codegen.scopes.release_to(depth)
    codegen.builder.branch(cond_bb if continue_loop else end_bb)
    codegen.open_dead_block()


def emit_try_catch(codegen: 'LLVMBackend', node: 'TryCatchNode', target: ir.Function) -> None:
    """Call `target`; if it throws, restore the data stack and run the handler.

    The handler starts with the thrown code on top of the stack, and the
    exception slot is cleared before it runs.
    """
    codegen.ensure_open_block()
    b = codegen.builder
    rt = codegen.runtime
    func = codegen.func

    saved_dsp = b.load(rt.dsp)
    rt.clear_exception()
    b.call(target, [])

    catch_bb = func.append_basic_block(name="try.catch")
    end_bb = func.append_basic_block(name="try.end")
    b.cbranch(rt.exception_raised(), catch_bb, end_bb)

    b.position_at_end(catch_bb)
    b.store(saved_dsp, rt.dsp)
    code = b.load(rt.exception)
    rt.clear_exception()
    rt.push(code)
    _emit_block(codegen, node.catch_body)
    if codegen.block_open():
        codegen.builder.branch(end_bb)

    codegen.builder.position_at_end(end_bb)
