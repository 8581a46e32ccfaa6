"""Build Kiln syntax-tree nodes from Lark parse trees."""
from __future__ import annotations
import re
from typing import Callable, Dict, List, Optional

from lark import Token, Tree

from kiln_lang.internals.report import Span, span_of
from kiln_lang.semantics.ast import (
    AddrNode, AliasNode, ArrayNode, AsmNode, ConstNode, EnableNode, EnumNode,
    ExternNode, FuncDefNode, IfBranch, IfNode, ImplementNode, IncludeNode,
    IntegerNode, LetNode, Node, Param, RequiresNode, SetNode, StringNode,
    StructMember, StructNode, TryCatchNode, UnionNode, WhileNode, WordNode,
)


class ASTBuildError(ValueError):
    """A parse tree that is grammatical but not a valid program fragment."""

    def __init__(self, message: str, span: Optional[Span]) -> None:
        super().__init__(message)
        self.span = span


_INT_RE = re.compile(r"-?(0x[0-9a-fA-F_]+|0b[01_]+|0o[0-7_]+|[0-9][0-9_]*)")

_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'e': '\x1b',
    '\\': '\\',
    '"': '"',
    "'": "'",
    '0': '\0',
}


def process_string_escapes(raw_string: str) -> str:
    r"""Process C-style escapes: \n \t \r \e \\ \" \' \0 and \xNN."""
    result = []
    i = 0
    while i < len(raw_string):
        ch = raw_string[i]
        if ch == '\\' and i + 1 < len(raw_string):
            next_char = raw_string[i + 1]
            if next_char in _SIMPLE_ESCAPES:
                result.append(_SIMPLE_ESCAPES[next_char])
                i += 2
                continue
            if next_char == 'x' and i + 3 < len(raw_string):
                try:
                    result.append(chr(int(raw_string[i + 2:i + 4], 16)))
                    i += 4
                    continue
                except ValueError:
                    pass
        result.append(ch)
        i += 1
    return ''.join(result)


def parse_integer(text: str) -> Optional[int]:
    """Parse a Kiln integer literal, or return None if `text` is not one.

    Accepts decimal, 0x/0b/0o prefixed forms with `_` separators, an
    optional leading minus, and character literals such as 'a' or '\\n'.
    """
    if _INT_RE.fullmatch(text):
        negative = text.startswith("-")
        digits = text[1:] if negative else text
        try:
            value = int(digits, 0) if digits[:2] in ("0x", "0b", "0o") else int(digits, 10)
        except ValueError:
            return None
        return -value if negative else value

    if len(text) >= 3 and text[0] == "'" and text[-1] == "'":
        inner = process_string_escapes(text[1:-1])
        if len(inner) == 1:
            return ord(inner)
    return None


class ASTBuilder:
    """Turns the tree produced by grammar.lark into a list of Nodes."""

    def __init__(self, filename: Optional[str] = None) -> None:
        self.filename = filename
        self._rules: Dict[str, Callable[[Tree], Node]] = {
            "func_def": self._func_def,
            "include": self._include,
            "let": self._let,
            "enable": self._enable,
            "requires": self._requires,
            "struct_def": self._struct_def,
            "union_def": self._union_def,
            "const_def": self._const_def,
            "enum_def": self._enum_def,
            "alias": self._alias,
            "extern_raw": self._extern_raw,
            "extern_c": self._extern_c,
            "implement": self._implement,
            "asm": self._asm,
            "if_stmt": self._if,
            "while_stmt": self._while,
            "array": self._array,
            "set": self._set,
            "try_catch": self._try_catch,
        }

    def build(self, tree: Tree) -> List[Node]:
        return self._nodes(tree.children)

    # --- Helpers

    def _span(self, t) -> Optional[Span]:
        return span_of(t, self.filename)

    def _nodes(self, children) -> List[Node]:
        return [self._node(child) for child in children]

    def _node(self, child) -> Node:
        if isinstance(child, Token):
            return self._atom(child)
        handler = self._rules.get(child.data)
        if handler is None:
            raise ASTBuildError(f"unexpected rule '{child.data}'", self._span(child))
        return handler(child)

    def _atom(self, tok: Token) -> Node:
        loc = self._span(tok)
        if tok.type == "STRING":
            return StringNode(loc=loc, value=self._string(tok))

        text = str(tok)
        value = parse_integer(text)
        if value is not None:
            return IntegerNode(loc=loc, value=value)
        if text.startswith("&") and len(text) > 1:
            return AddrNode(loc=loc, name=text[1:])
        return WordNode(loc=loc, name=text)

    @staticmethod
    def _string(tok: Token) -> str:
        return process_string_escapes(str(tok)[1:-1])

    @staticmethod
    def _words(children) -> List[Token]:
        return [c for c in children if isinstance(c, Token) and c.type == "WORD"]

    @staticmethod
    def _subtree(children, name: str) -> Optional[Tree]:
        for c in children:
            if isinstance(c, Tree) and c.data == name:
                return c
        return None

    def _int_word(self, tok: Token) -> int:
        value = parse_integer(str(tok))
        if value is None:
            raise ASTBuildError(f"expected an integer, got '{tok}'", self._span(tok))
        return value

    def _body(self, t: Optional[Tree]) -> List[Node]:
        return self._nodes(t.children) if t is not None else []

    # --- Declarations

    def _func_def(self, t: Tree) -> FuncDefNode:
        """func_def: "func" WORD param* returns? "begin" body "end" """
        name = t.children[0]
        params = [
            Param(type_name=str(p.children[0]), name=str(p.children[1]), loc=self._span(p))
            for p in t.children if isinstance(p, Tree) and p.data == "param"
        ]
        returns = self._subtree(t.children, "returns")
        return FuncDefNode(
            loc=self._span(t),
            name=str(name),
            params=params,
            returns=[str(w) for w in returns.children] if returns is not None else [],
            body=self._body(self._subtree(t.children, "body")),
        )

    def _include(self, t: Tree) -> IncludeNode:
        return IncludeNode(loc=self._span(t), path=self._string(t.children[0]))

    def _array_spec(self, children) -> tuple[bool, int]:
        spec = self._subtree(children, "array_spec")
        if spec is None:
            return False, 0
        return True, self._int_word(spec.children[0])

    def _let(self, t: Tree) -> LetNode:
        array, size = self._array_spec(t.children)
        type_tok, name_tok = self._words(t.children)
        return LetNode(loc=self._span(t), type_name=str(type_tok), name=str(name_tok),
                       array=array, array_size=size)

    def _enable(self, t: Tree) -> EnableNode:
        return EnableNode(loc=self._span(t), version=str(t.children[0]))

    def _requires(self, t: Tree) -> RequiresNode:
        return RequiresNode(loc=self._span(t), version=str(t.children[0]))

    def _members(self, children) -> List[StructMember]:
        members = []
        for m in children:
            if not (isinstance(m, Tree) and m.data == "member"):
                continue
            array, size = self._array_spec(m.children)
            type_tok, name_tok = self._words(m.children)
            members.append(StructMember(type_name=str(type_tok), name=str(name_tok),
                                        array=array, size=size, loc=self._span(m)))
        return members

    def _struct_def(self, t: Tree) -> StructNode:
        inherits = self._subtree(t.children, "inherits")
        return StructNode(
            loc=self._span(t),
            name=str(t.children[0]),
            members=self._members(t.children),
            inherits=str(inherits.children[0]) if inherits is not None else None,
        )

    def _union_def(self, t: Tree) -> UnionNode:
        return UnionNode(loc=self._span(t), name=str(t.children[0]), members=self._members(t.children))

    def _const_def(self, t: Tree) -> ConstNode:
        name, value = t.children
        return ConstNode(loc=self._span(t), name=str(name), value=self._atom(value))

    def _enum_def(self, t: Tree) -> EnumNode:
        name, *rest = t.children
        enum_type = self._subtree(rest, "enum_type")
        names = [str(w) for w in self._words(rest)]
        return EnumNode(
            loc=self._span(t),
            name=str(name),
            type_name=str(enum_type.children[0]) if enum_type is not None else None,
            names=names,
            values=list(range(len(names))),
        )

    def _alias(self, t: Tree) -> AliasNode:
        to, from_ = t.children
        return AliasNode(loc=self._span(t), to=str(to), from_=str(from_))

    def _extern_raw(self, t: Tree) -> ExternNode:
        return ExternNode(loc=self._span(t), name=str(t.children[0]))

    def _extern_c(self, t: Tree) -> ExternNode:
        name, *rest = t.children
        returns = self._subtree(rest, "returns")
        return ExternNode(
            loc=self._span(t),
            name=str(name),
            c_func=True,
            params=[str(w) for w in self._words(rest)],
            returns=[str(w) for w in returns.children] if returns is not None else [],
        )

    def _implement(self, t: Tree) -> ImplementNode:
        struct_name, method, body = t.children
        return ImplementNode(loc=self._span(t), struct_name=str(struct_name),
                             method=str(method), body=self._body(body))

    def _asm(self, t: Tree) -> AsmNode:
        return AsmNode(loc=self._span(t), code=self._string(t.children[0]))

    # --- Statements

    def _if(self, t: Tree) -> IfNode:
        condition, body, *rest = t.children
        branches = [IfBranch(condition=self._body(condition), body=self._body(body))]
        else_body = None
        for child in rest:
            if child.data == "elseif":
                cond, block = child.children
                branches.append(IfBranch(condition=self._body(cond), body=self._body(block)))
            elif child.data == "else_block":
                else_body = self._body(child.children[0])
        return IfNode(loc=self._span(t), branches=branches, else_body=else_body)

    def _while(self, t: Tree) -> WhileNode:
        condition, body = t.children
        return WhileNode(loc=self._span(t), condition=self._body(condition), body=self._body(body))

    def _array(self, t: Tree) -> ArrayNode:
        type_tok, *values = t.children
        return ArrayNode(loc=self._span(t), type_name=str(type_tok), elements=[str(v) for v in values])

    def _set(self, t: Tree) -> SetNode:
        return SetNode(loc=self._span(t), name=str(t.children[0]))

    def _try_catch(self, t: Tree) -> TryCatchNode:
        func, body = t.children
        return TryCatchNode(loc=self._span(t), func=str(func), catch_body=self._body(body))
