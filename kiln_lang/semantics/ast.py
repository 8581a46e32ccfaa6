# semantics/ast.py
"""Syntax tree for Kiln programs.

Every node is a dataclass carrying its source location in `loc` and its tag
in the class-level `kind`. The driver dispatches on `kind`, never on the
Python class, so a new node type only needs a new NodeKind member.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, List, Optional

from kiln_lang.internals.report import Span


class NodeKind(str, Enum):
    WORD = "word"
    INTEGER = "integer"
    FUNC_DEF = "func_def"
    INCLUDE = "include"
    ASM = "asm"
    IF = "if"
    WHILE = "while"
    LET = "let"
    ENABLE = "enable"
    REQUIRES = "requires"
    ARRAY = "array"
    STRING = "string"
    STRUCT = "struct"
    CONST = "const"
    ENUM = "enum"
    UNION = "union"
    ALIAS = "alias"
    EXTERN = "extern"
    ADDR = "addr"
    IMPLEMENT = "implement"
    SET = "set"
    TRY_CATCH = "try_catch"

    def __str__(self) -> str:
        return self.value


# === Core node base ===

@dataclass
class Node:
    kind: ClassVar[NodeKind]
    loc: Optional[Span]


# === Leaves ===

@dataclass
class WordNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.WORD
    name: str

@dataclass
class IntegerNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.INTEGER
    value: int

@dataclass
class StringNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.STRING
    value: str

@dataclass
class AddrNode(Node):
    """`&name` - push the address of a function, variable, global or member."""
    kind: ClassVar[NodeKind] = NodeKind.ADDR
    name: str

@dataclass
class SetNode(Node):
    """`-> name` - pop a value into a variable, global or member."""
    kind: ClassVar[NodeKind] = NodeKind.SET
    name: str

@dataclass
class AsmNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.ASM
    code: str


# === Declarations ===

@dataclass
class Param:
    type_name: str
    name: str
    loc: Optional[Span] = None

@dataclass
class FuncDefNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.FUNC_DEF
    name: str
    params: List[Param] = field(default_factory=list)
    returns: List[str] = field(default_factory=list)
    body: List[Node] = field(default_factory=list)

@dataclass
class IncludeNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.INCLUDE
    path: str

@dataclass
class LetNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.LET
    type_name: str
    name: str
    array: bool = False
    array_size: int = 0

@dataclass
class EnableNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.ENABLE
    version: str

@dataclass
class RequiresNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.REQUIRES
    version: str

@dataclass
class StructMember:
    """One declared member of a struct or union: `[array N] type name`."""
    type_name: str
    name: str
    array: bool = False
    size: int = 0
    loc: Optional[Span] = None

@dataclass
class StructNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.STRUCT
    name: str
    members: List[StructMember] = field(default_factory=list)
    inherits: Optional[str] = None

@dataclass
class UnionNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.UNION
    name: str
    members: List[StructMember] = field(default_factory=list)

@dataclass
class ConstNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.CONST
    name: str
    value: Node

@dataclass
class EnumNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.ENUM
    name: str
    type_name: Optional[str] = None
    names: List[str] = field(default_factory=list)
    values: List[int] = field(default_factory=list)

@dataclass
class AliasNode(Node):
    """`alias new old` - register `new` as another name for type `old`."""
    kind: ClassVar[NodeKind] = NodeKind.ALIAS
    to: str
    from_: str

@dataclass
class ExternNode(Node):
    """Raw extern (`extern name`) or C function (`extern func name ... end`)."""
    kind: ClassVar[NodeKind] = NodeKind.EXTERN
    name: str
    c_func: bool = False
    params: List[str] = field(default_factory=list)
    returns: List[str] = field(default_factory=list)

@dataclass
class ImplementNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.IMPLEMENT
    struct_name: str
    method: str
    body: List[Node] = field(default_factory=list)


# === Control flow ===

@dataclass
class IfBranch:
    condition: List[Node]
    body: List[Node]

@dataclass
class IfNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.IF
    branches: List[IfBranch] = field(default_factory=list)
    else_body: Optional[List[Node]] = None

@dataclass
class WhileNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.WHILE
    condition: List[Node] = field(default_factory=list)
    body: List[Node] = field(default_factory=list)

@dataclass
class ArrayNode(Node):
    """`[ type v1 v2 ... ]` - a static array literal."""
    kind: ClassVar[NodeKind] = NodeKind.ARRAY
    type_name: str
    elements: List[str] = field(default_factory=list)

@dataclass
class TryCatchNode(Node):
    kind: ClassVar[NodeKind] = NodeKind.TRY_CATCH
    func: str
    catch_body: List[Node] = field(default_factory=list)


# Kinds processed before the main entry point is opened
HEADER_KINDS = frozenset({
    NodeKind.FUNC_DEF,
    NodeKind.INCLUDE,
    NodeKind.LET,
    NodeKind.ENABLE,
    NodeKind.REQUIRES,
    NodeKind.STRUCT,
    NodeKind.CONST,
    NodeKind.ENUM,
    NodeKind.UNION,
    NodeKind.ALIAS,
    NodeKind.EXTERN,
    NodeKind.IMPLEMENT,
})
