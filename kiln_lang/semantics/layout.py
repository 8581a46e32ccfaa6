# semantics/layout.py
"""
Struct/union layout and member offset resolution.

Layout policy: every member is aligned to the smaller of its natural
alignment and the backend's alignment cap, and the aggregate is padded to the
largest alignment actually applied. A cap of 1 (the default) gives a packed
layout where offsets are a plain running sum of member sizes.
"""
from __future__ import annotations
from typing import Optional, Sequence

from kiln_lang.internals import errors as er
from kiln_lang.internals.report import Reporter, Span
from kiln_lang.semantics.symbols import StructEntry, SymbolTable, Type


class DuplicateMemberError(ValueError):
    def __init__(self, owner: str, name: str) -> None:
        super().__init__(f"duplicate member '{name}' in '{owner}'")
        self.owner = owner
        self.name = name


def align_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) // alignment * alignment


def natural_alignment(ty: Type) -> int:
    if ty.is_struct:
        return max((natural_alignment(e.type) for e in ty.structure), default=1)
    if ty.size <= 1:
        return 1
    # round odd sizes up to a power of two
    return 1 << (ty.size - 1).bit_length()


def _member_alignment(entry: StructEntry, cap: int) -> int:
    return max(1, min(natural_alignment(entry.type), cap))


def _check_unique(owner: str, members: Sequence[StructEntry]) -> None:
    seen: set[str] = set()
    for entry in members:
        if entry.name in seen:
            raise DuplicateMemberError(owner, entry.name)
        seen.add(entry.name)


def layout_struct(name: str, members: Sequence[StructEntry], alignment: int = 1,
                  parent: Optional[Type] = None) -> Type:
    """Assign offsets to `members` and build the struct type.

    Args:
        name: Name of the new type.
        members: Entries in declaration order; their `offset` is ignored.
        alignment: Backend alignment cap in bytes.
        parent: Struct whose entries (and layout) are inherited first.

    Returns:
        The struct Type with monotonically non-decreasing entry offsets.

    Raises:
        DuplicateMemberError: If two members (inherited ones included) share a name.
    """
    entries: list[StructEntry] = list(parent.structure) if parent is not None else []
    offset = parent.size if parent is not None else 0
    struct_align = max((_member_alignment(e, alignment) for e in entries), default=1)

    for member in members:
        member_align = _member_alignment(member, alignment)
        struct_align = max(struct_align, member_align)
        offset = align_up(offset, member_align)
        entries.append(StructEntry(member.type, member.name, member.array, member.size, offset))
        offset += member.byte_size()

    _check_unique(name, entries)
    return Type(name, align_up(offset, struct_align), is_struct=True, structure=tuple(entries))


def layout_union(name: str, members: Sequence[StructEntry], alignment: int = 1) -> Type:
    """Build a union type: every member lives at offset 0."""
    _check_unique(name, members)
    entries = tuple(StructEntry(m.type, m.name, m.array, m.size, 0) for m in members)
    size = max((e.byte_size() for e in entries), default=0)
    union_align = max((_member_alignment(e, alignment) for e in entries), default=1)
    return Type(name, align_up(size, union_align), is_struct=True, structure=entries, is_union=True)


def get_struct_offset(symbols: SymbolTable, identifier: str, loc: Optional[Span],
                      reporter: Reporter) -> Optional[int]:
    """Resolve `root.m1...mk` to the byte offset of `mk` inside `root`.

    The offset is the sum of each traversed member's offset within its
    immediate enclosing structure. Every failure is reported through
    `reporter` and yields None; exactly one diagnostic is emitted per call.
    """
    parts = identifier.split(".")
    if len(parts) < 2:
        er.raise_internal_error("CE0002", name=identifier)

    root, *path = parts
    if symbols.variable_exists(root):
        current = symbols.get_variable(root).type
    elif symbols.global_exists(root):
        current = symbols.get_global(root).type
    else:
        er.emit(reporter, er.ERR.CE1001, loc, name=root)
        return None

    offset = 0
    for member_name in path[:-1]:
        entry = current.member(member_name)
        if entry is None:
            er.emit(reporter, er.ERR.CE1002, loc, name=member_name)
            return None
        if not entry.type.is_struct:
            er.emit(reporter, er.ERR.CE1003, loc, name=member_name)
            return None
        offset += entry.offset
        current = entry.type

    entry = current.member(path[-1])
    if entry is None:
        er.emit(reporter, er.ERR.CE1002, loc, name=path[-1])
        return None
    return offset + entry.offset


def resolve_member(symbols: SymbolTable, identifier: str) -> Optional[StructEntry]:
    """Return the final StructEntry of a valid member path, without reporting."""
    root, *path = identifier.split(".")
    if symbols.variable_exists(root):
        current = symbols.get_variable(root).type
    elif symbols.global_exists(root):
        current = symbols.get_global(root).type
    else:
        return None

    entry = None
    for member_name in path:
        if not current.is_struct:
            return None
        entry = current.member(member_name)
        if entry is None:
            return None
        current = entry.type
    return entry
