"""Compilation driver: ordering, dispatch, includes and versions."""
import pytest

from conftest import RecordingBackend, codes, nodes_of
from kiln_lang.compiler import driver
from kiln_lang.compiler.driver import Compiler
from kiln_lang.compiler.options import CompilerOptions
from kiln_lang.internals import errors as er
from kiln_lang.internals.errors import InternalCompilerError
from kiln_lang.internals.parser import parse_source
from kiln_lang.internals.report import Reporter
from kiln_lang.semantics.ast import AsmNode, IntegerNode, NodeKind


def test_header_nodes_run_before_main(compile_source, backend):
    compile_source("1 2 func f begin end let cell x 3 struct S cell a end")
    assert backend.kinds() == [
        "init", "func_def", "let", "struct", "begin_main",
        "integer", "integer", "integer", "end",
    ]


def test_order_within_groups_is_kept(compile_source, backend):
    compile_source("3 const a 1 2 const b 2 1")
    assert [n.value for n in nodes_of("integer", backend)] == [3, 2, 1]
    assert [n.name for n in nodes_of("const", backend)] == ["a", "b"]


def test_true_and_false_are_registered(compile_source, backend):
    compile_source("")
    assert backend.consts == {"true": 0xFFFF, "false": 0}
    assert backend.symbols.constant_exists("true")


def test_reserved_words_have_dedicated_methods(compile_source, backend):
    compiler = compile_source("return continue break call throw dup")
    assert backend.kinds()[2:-1] == ["return", "continue", "break", "call", "throw", "word"]
    assert compiler.success


def test_error_word_reports(compile_source, backend):
    compiler = compile_source("1 error 2")
    assert codes(compiler.reporter) == ["CE2004"]
    assert compiler.reporter.items[0].message == "Error thrown by code"
    assert not compiler.success
    # compilation goes on after a user error
    assert len(nodes_of("integer", backend)) == 2


def test_while_condition_rejects_non_words(compile_source, backend):
    compiler = compile_source('while "x" 1 [ u8 1 ] do end')
    assert codes(compiler.reporter) == ["CE2001", "CE2001"]
    assert compiler.reporter.items[0].message == "While conditions can't contain string"
    assert nodes_of("while", backend) == []


def test_valid_while_is_delegated(compile_source, backend):
    compiler = compile_source("while i 10 < do end")
    assert compiler.success
    assert len(nodes_of("while", backend)) == 1


def test_requires_missing_version(compile_source):
    compiler = compile_source("requires Threads")
    assert codes(compiler.reporter) == ["CE2002"]
    assert compiler.reporter.items[0].message == "Version 'Threads' required"


def test_requires_satisfied_by_options_and_enable(compile_source):
    assert compile_source("requires Threads", CompilerOptions(versions=["Threads"], no_header=True)).success
    compiler = compile_source("enable Threads requires Threads")
    assert compiler.success
    assert "Threads" in compiler.versions


def test_asm_is_appended_verbatim(compile_source, backend):
    compile_source('asm "first\\n" asm "second"')
    assert backend.output == "first\nsecond"


def test_unimplemented_node_kind(make_compiler, backend):
    compiler = make_compiler()
    compiler._handlers.pop(NodeKind.ASM)
    compiler.compile([AsmNode(loc=None, code="x")])
    assert codes(compiler.reporter) == ["CE2003"]
    assert compiler.reporter.items[0].message == "Unimplemented node 'asm'"


def test_every_node_kind_has_a_handler(make_compiler):
    compiler = make_compiler()
    assert set(compiler._handlers) == set(NodeKind)


def test_member_offset_end_to_end(compile_source, backend):
    compiler = compile_source("struct Point u32 x u32 y end let Point p p.y p.x")
    assert compiler.success
    assert backend.offsets == [("p.y", 4), ("p.x", 0)]


def test_local_struct_member_offset(compile_source, backend):
    compile_source("struct Pair cell a u8 b end func f begin let Pair q q.b end")
    assert backend.offsets == [("q.b", 8)]


def test_undeclared_root_reports_exactly_once(compile_source, backend):
    compiler = compile_source("q.z")
    assert backend.offsets == [("q.z", None)]
    assert codes(compiler.reporter) == ["CE1001"]
    assert compiler.reporter.items[0].message == "Structure 'q' doesn't exist"
    assert not compiler.success


def test_warnings_do_not_affect_success(compile_source, backend):
    compiler = compile_source("1")
    backend.warn(None, er.ERR.CW0001, name="S")
    assert compiler.success
    assert compiler.reporter.has_warnings
    backend.error(None, er.ERR.CE4001, name="x")
    assert not compiler.success


def test_unbound_backend_is_internal_error():
    with pytest.raises(InternalCompilerError) as exc:
        RecordingBackend().compiler
    assert exc.value.code == "CE0003"


def test_assembly_lines_trace(compile_source, capsys):
    compile_source("1\n  dup", CompilerOptions(assembly_lines=True, no_header=True))
    out = capsys.readouterr().out.splitlines()
    assert out == ["<test>:1:1 - line 0, node integer", "<test>:2:3 - line 0, node word"]


# --- Includes

def test_include_is_compiled_once(make_compiler, backend, write_kiln, tmp_path):
    write_kiln("lib.kiln", "7\n")
    (tmp_path / "sub").mkdir()
    main = write_kiln("main.kiln", 'include "lib.kiln"\ninclude "./sub/../lib.kiln"\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert compiler.success
    assert [n.value for n in nodes_of("integer", backend)] == [7]
    assert (tmp_path / "lib.kiln").resolve() in compiler.included


def test_included_code_runs_in_header_phase(make_compiler, backend, write_kiln):
    write_kiln("lib.kiln", "7\n")
    main = write_kiln("main.kiln", '1\ninclude "lib.kiln"\n')
    make_compiler().compile_file(main)
    assert backend.kinds() == ["init", "integer", "begin_main", "integer", "end"]
    assert [n.value for n in nodes_of("integer", backend)] == [7, 1]


def test_self_include_is_skipped(make_compiler, backend, write_kiln):
    main = write_kiln("main.kiln", 'include "main.kiln"\n5\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert compiler.success
    assert len(nodes_of("integer", backend)) == 1


def test_mutual_includes_terminate(make_compiler, backend, write_kiln):
    write_kiln("a.kiln", 'include "b.kiln"\n1\n')
    write_kiln("b.kiln", 'include "a.kiln"\n2\n')
    main = write_kiln("main.kiln", 'include "a.kiln"\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert compiler.success
    assert [n.value for n in nodes_of("integer", backend)] == [2, 1]


def test_missing_include(make_compiler, write_kiln):
    main = write_kiln("main.kiln", 'include "nope.kiln"\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert codes(compiler.reporter) == ["CE3001"]
    assert compiler.reporter.items[0].message == "Can't find file 'nope.kiln'"


def test_including_directory_wins_over_include_dirs(make_compiler, backend, write_kiln, tmp_path):
    write_kiln("src/util.kiln", "1\n")
    write_kiln("inc/util.kiln", "2\n")
    write_kiln("inc/only.kiln", "3\n")
    main = write_kiln("src/main.kiln", 'include "util.kiln"\ninclude "only.kiln"\n')
    compiler = make_compiler(CompilerOptions(include_dirs=[tmp_path / "inc"], no_header=True))
    compiler.compile_file(main)
    assert compiler.success
    assert [n.value for n in nodes_of("integer", backend)] == [1, 3]


def test_parse_error_in_include_is_reported(make_compiler, backend, write_kiln, tmp_path):
    write_kiln("bad.kiln", "func broken begin\n")
    main = write_kiln("main.kiln", 'include "bad.kiln"\n4\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert codes(compiler.reporter) == ["CE0102"]
    assert compiler.reporter.items[0].filename == str((tmp_path / "bad.kiln").resolve())
    # the rest of the program is still compiled
    assert backend.kinds()[-1] == "end"
    assert [n.value for n in nodes_of("integer", backend)] == [4]


def test_injected_parser(backend, write_kiln):
    seen = []

    def fake_parse(path):
        seen.append(path.name)
        return [IntegerNode(loc=None, value=len(seen))]

    main = write_kiln("main.kiln", "")
    write_kiln("dep.kiln", "")
    compiler = Compiler(backend, CompilerOptions(no_header=True), Reporter(), fake_parse)
    compiler.compile(parse_source('include "dep.kiln"', filename=str(main)), source_path=main)
    assert seen == ["dep.kiln"]
    assert [n.value for n in nodes_of("integer", backend)] == [1]


def test_missing_root_file(make_compiler, tmp_path):
    compiler = make_compiler()
    compiler.compile_file(tmp_path / "missing.kiln")
    assert codes(compiler.reporter) == ["CE3002"]
    assert not compiler.success


def test_invalid_utf8_root_file(make_compiler, tmp_path):
    path = tmp_path / "main.kiln"
    path.write_bytes(b"\xff 1\n")
    compiler = make_compiler()
    compiler.compile_file(path)
    assert codes(compiler.reporter) == ["CE3002"]
    assert "not valid UTF-8" in compiler.reporter.items[0].message


def test_invalid_utf8_include_is_reported(make_compiler, backend, write_kiln, tmp_path):
    (tmp_path / "bad.kiln").write_bytes(b"\xff\xfe 1\n")
    main = write_kiln("main.kiln", 'include "bad.kiln"\n2\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert codes(compiler.reporter) == ["CE3002"]
    assert backend.kinds()[-1] == "end"
    assert [n.value for n in nodes_of("integer", backend)] == [2]


def test_compiler_can_be_reused(make_compiler, backend, write_kiln):
    write_kiln("lib.kiln", "7\n")
    main = write_kiln("main.kiln", 'enable Extra\ninclude "lib.kiln"\n')
    compiler = make_compiler()
    compiler.compile_file(main)
    assert "Extra" in compiler.versions

    compiler.compile(parse_source("requires Extra 1"))
    # versions enabled by an earlier run are dropped
    assert "Extra" not in compiler.versions
    assert codes(compiler.reporter) == ["CE2002"]

    # so are the files it included
    compiler.compile_file(main)
    assert [n.value for n in nodes_of("integer", backend)] == [7, 1, 7]


def test_missing_handler_is_internal_error(monkeypatch):
    monkeypatch.setattr(driver, "_DELEGATED", {
        k: v for k, v in driver._DELEGATED.items() if k != NodeKind.ENUM
    })
    with pytest.raises(InternalCompilerError) as exc:
        driver._check_exhaustive()
    assert exc.value.code == "CE0007"
