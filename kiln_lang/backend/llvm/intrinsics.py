"""
Built-in words of the LLVM back end.

Each intrinsic is emitted inline at its use site and works directly on the
data stack. Stack effects are given in the usual ( before -- after ) form,
rightmost item on top. Comparisons leave -1 for true and 0 for false.
"""
from __future__ import annotations
from typing import Callable, Dict

from kiln_lang.backend.llvm.runtime import MachineRuntime

Intrinsic = Callable[[MachineRuntime], None]


def _binary(op: str) -> Intrinsic:
    """( a b -- a op b )"""
    def emit(rt: MachineRuntime) -> None:
        b = rt.pop()
        a = rt.pop()
        rt.push(getattr(rt.builder, op)(a, b))
    return emit


def _compare(cmp: str) -> Intrinsic:
    """( a b -- flag ), signed."""
    def emit(rt: MachineRuntime) -> None:
        b = rt.pop()
        a = rt.pop()
        rt.push_bool(rt.builder.icmp_signed(cmp, a, b))
    return emit


def _fetch(size: int) -> Intrinsic:
    """( addr -- value )"""
    def emit(rt: MachineRuntime) -> None:
        rt.push(rt.load(rt.pop(), size))
    return emit


def _store(size: int) -> Intrinsic:
    """( value addr -- )"""
    def emit(rt: MachineRuntime) -> None:
        addr = rt.pop()
        rt.store(addr, rt.pop(), size)
    return emit


def _not(rt: MachineRuntime) -> None:
    rt.push(rt.builder.not_(rt.pop()))


def _dup(rt: MachineRuntime) -> None:
    a = rt.pop()
    rt.push(a)
    rt.push(a)


def _drop(rt: MachineRuntime) -> None:
    rt.pop()


def _swap(rt: MachineRuntime) -> None:
    b = rt.pop()
    a = rt.pop()
    rt.push(b)
    rt.push(a)


def _over(rt: MachineRuntime) -> None:
    # ( a b -- a b a )
    b = rt.pop()
    a = rt.pop()
    rt.push(a)
    rt.push(b)
    rt.push(a)


def _rot(rt: MachineRuntime) -> None:
    # ( a b c -- b c a )
    c = rt.pop()
    b = rt.pop()
    a = rt.pop()
    rt.push(b)
    rt.push(c)
    rt.push(a)


INTRINSICS: Dict[str, Intrinsic] = {
    "+": _binary("add"),
    "-": _binary("sub"),
    "*": _binary("mul"),
    "/": _binary("sdiv"),
    "%": _binary("srem"),
    "and": _binary("and_"),
    "or": _binary("or_"),
    "xor": _binary("xor"),
    "lshift": _binary("shl"),
    "rshift": _binary("lshr"),
    "=": _compare("=="),
    "<>": _compare("!="),
    "<": _compare("<"),
    ">": _compare(">"),
    "<=": _compare("<="),
    ">=": _compare(">="),
    "not": _not,
    "dup": _dup,
    "drop": _drop,
    "swap": _swap,
    "over": _over,
    "rot": _rot,
    "@": _fetch(8),
    "!": _store(8),
    "c@": _fetch(1),
    "c!": _store(1),
    "w@": _fetch(2),
    "w!": _store(2),
    "d@": _fetch(4),
    "d!": _store(4),
}


def is_intrinsic(name: str) -> bool:
    return name in INTRINSICS


def emit_intrinsic(rt: MachineRuntime, name: str) -> None:
    INTRINSICS[name](rt)
