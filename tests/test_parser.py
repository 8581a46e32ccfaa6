"""Parsing Kiln source into syntax-tree nodes."""
import pytest
from lark import UnexpectedInput

from kiln_lang.internals.parse_errors import handle_parse_exception
from kiln_lang.internals.parser import parse_file, parse_source
from kiln_lang.internals.report import Reporter
from kiln_lang.semantics.ast import (
    AddrNode, AliasNode, ArrayNode, AsmNode, ConstNode, EnableNode, EnumNode,
    ExternNode, FuncDefNode, IfNode, ImplementNode, IncludeNode, IntegerNode,
    LetNode, NodeKind, RequiresNode, SetNode, StringNode, StructNode,
    TryCatchNode, UnionNode, WhileNode, WordNode,
)
from kiln_lang.semantics.ast_builder import parse_integer, process_string_escapes


def parse_one(src):
    nodes = parse_source(src)
    assert len(nodes) == 1
    return nodes[0]


@pytest.mark.parametrize("text, value", [
    ("42", 42),
    ("-7", -7),
    ("0x1F", 31),
    ("0b101", 5),
    ("0o17", 15),
    ("1_000", 1000),
    ("'a'", 97),
    ("'\\n'", 10),
])
def test_parse_integer(text, value):
    assert parse_integer(text) == value


@pytest.mark.parametrize("text", ["dup", "2dup", "1+", "-", "'ab'", "0xZZ"])
def test_parse_integer_rejects_words(text):
    assert parse_integer(text) is None


def test_string_escapes():
    assert process_string_escapes(r"a\tb\n") == "a\tb\n"
    assert process_string_escapes(r"\x41\\\"") == 'A\\"'
    assert process_string_escapes("plain") == "plain"


def test_atoms():
    nodes = parse_source('1 dup "hi" &x -> y # comment\n')
    assert [type(n) for n in nodes] == [IntegerNode, WordNode, StringNode, AddrNode, SetNode]
    assert nodes[2].value == "hi"
    assert nodes[3].name == "x"
    assert nodes[4].name == "y"


def test_locations_carry_file_line_and_column():
    nodes = parse_source("1\n  dup\n", filename="prog.kiln")
    loc = nodes[1].loc
    assert (loc.file, loc.line, loc.col) == ("prog.kiln", 2, 3)
    assert str(loc) == "prog.kiln:2:3"


def test_func_def_with_params_and_returns():
    node = parse_one("func add cell a cell b -> cell begin a b + end")
    assert isinstance(node, FuncDefNode)
    assert node.kind is NodeKind.FUNC_DEF
    assert node.name == "add"
    assert [(p.type_name, p.name) for p in node.params] == [("cell", "a"), ("cell", "b")]
    assert node.returns == ["cell"]
    assert [n.name for n in node.body] == ["a", "b", "+"]


def test_let_and_array_let():
    node = parse_one("let cell x")
    assert isinstance(node, LetNode)
    assert (node.type_name, node.name, node.array) == ("cell", "x", False)

    node = parse_one("let array 16 u8 buf")
    assert (node.type_name, node.name, node.array, node.array_size) == ("u8", "buf", True, 16)


def test_struct_union_and_inheritance():
    node = parse_one("struct Point u32 x u32 y array 4 u8 tag end")
    assert isinstance(node, StructNode)
    assert [(m.type_name, m.name, m.array, m.size) for m in node.members] == [
        ("u32", "x", False, 0), ("u32", "y", False, 0), ("u8", "tag", True, 4),
    ]
    assert node.inherits is None

    node = parse_one("struct Point3 : Point u32 z end")
    assert node.inherits == "Point"

    node = parse_one("union Value cell n u8 b end")
    assert isinstance(node, UnionNode)
    assert [m.name for m in node.members] == ["n", "b"]


def test_declarations():
    assert isinstance(parse_one('include "core.kiln"'), IncludeNode)
    assert parse_one("enable Feature").version == "Feature"
    assert isinstance(parse_one("requires IO"), RequiresNode)
    assert isinstance(parse_one("enable X"), EnableNode)

    const = parse_one("const size 64")
    assert isinstance(const, ConstNode) and const.value.value == 64
    assert isinstance(parse_one('const greeting "hi"').value, StringNode)

    alias = parse_one("alias word cell")
    assert isinstance(alias, AliasNode) and (alias.to, alias.from_) == ("word", "cell")

    asm = parse_one('asm "ret"')
    assert isinstance(asm, AsmNode) and asm.code == "ret"


def test_enum_values_are_sequential():
    node = parse_one("enum Color : u8 red green blue end")
    assert isinstance(node, EnumNode)
    assert node.type_name == "u8"
    assert node.names == ["red", "green", "blue"]
    assert node.values == [0, 1, 2]
    assert parse_one("enum E a end").type_name is None


def test_externs():
    raw = parse_one("extern helper")
    assert isinstance(raw, ExternNode) and not raw.c_func

    c = parse_one("extern func write cell addr cell -> cell end")
    assert c.c_func
    assert c.params == ["cell", "addr", "cell"]
    assert c.returns == ["cell"]


def test_implement():
    node = parse_one("implement Point init 0 swap ! end")
    assert isinstance(node, ImplementNode)
    assert (node.struct_name, node.method) == ("Point", "init")
    assert len(node.body) == 3


def test_if_elseif_else():
    node = parse_one("if x 1 = then a elseif x 2 = then b else c end")
    assert isinstance(node, IfNode)
    assert len(node.branches) == 2
    assert [n.name for n in node.branches[1].body] == ["b"]
    assert [n.name for n in node.else_body] == ["c"]

    node = parse_one("if x then end")
    assert node.else_body is None
    assert node.branches[0].body == []


def test_while_array_and_try():
    loop = parse_one("while i 10 < do i 1 + -> i end")
    assert isinstance(loop, WhileNode)
    assert len(loop.condition) == 3

    array = parse_one("[ u16 1 2 limit ]")
    assert isinstance(array, ArrayNode)
    assert (array.type_name, array.elements) == ("u16", ["1", "2", "limit"])

    try_node = parse_one("try risky catch drop end")
    assert isinstance(try_node, TryCatchNode)
    assert try_node.func == "risky"


def test_keywords_inside_words_stay_words():
    nodes = parse_source("ending begins do-it")
    assert [n.name for n in nodes] == ["ending", "begins", "do-it"]


def test_parse_file_sets_filename(tmp_path):
    path = tmp_path / "prog.kiln"
    path.write_text("1 2 +\n", encoding="utf-8")
    nodes = parse_file(path)
    assert nodes[0].loc.file == str(path)


@pytest.mark.parametrize("src, code", [
    ("func f begin 1", "CE0102"),
    ("end", "CE0100"),
])
def test_parse_errors_become_diagnostics(src, code):
    reporter = Reporter()
    with pytest.raises(UnexpectedInput) as exc:
        parse_source(src)
    assert handle_parse_exception(exc.value, reporter, "prog.kiln")
    assert [d.code for d in reporter.items] == [code]


def test_unrelated_exceptions_are_not_handled():
    assert not handle_parse_exception(ValueError("x"), Reporter())
