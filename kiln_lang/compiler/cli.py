"""CLI entry point and argument parsing."""
from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path

from kiln_lang.internals.version import print_banner


def _int_address(text: str) -> int:
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid address: {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    from kiln_lang.backend import BACKENDS

    ap = argparse.ArgumentParser(prog="kilnc", description="Kiln compiler")

    ap.add_argument("source", nargs="?", help="Path to source file (.kiln)")
    ap.add_argument("--version", action="store_true", help="Show version and exit")
    ap.add_argument("-o", "--out", metavar="OUT", default="out",
                    help="Output path without extension (default: out)")
    ap.add_argument("-b", "--backend", choices=sorted(BACKENDS), default="llvm",
                    help="Code generation back end")
    ap.add_argument("-i", "--include", metavar="DIR", action="append", default=[],
                    help="Add a directory to the include search path")
    ap.add_argument("-v", "--enable", metavar="VER", action="append", default=[],
                    help="Enable a feature version")
    ap.add_argument("-bo", "--backend-option", metavar="OPT", action="append", default=[],
                    help="Pass an option to the back end (e.g. natural-align, data-stack=N)")
    ap.add_argument("--org", metavar="ADDR", type=_int_address,
                    help="Origin address of the generated code")
    ap.add_argument("-g", "--debug", action="store_true", help="Emit debug information")
    ap.add_argument("--export", action="store_true", help="Export all symbols")
    ap.add_argument("-l", "--link", metavar="LIB", action="append", default=[],
                    help="Link against a library")
    ap.add_argument("--keep", action="store_true", help="Keep the intermediate back-end output")
    ap.add_argument("--os", metavar="OS", help="Target operating system")
    ap.add_argument("--no-header", action="store_true", help="Don't include the default header")
    ap.add_argument("--no-link", action="store_true", help="Only write the back-end output")
    ap.add_argument("--assembly-lines", action="store_true",
                    help="Trace every compiled node with its output line")
    ap.add_argument("--dump-ast", action="store_true", help="Print the syntax tree and exit")
    return ap


def main(argv: list[str] | None = None) -> int:
    """Main compiler entry point."""
    print_banner()

    ap = build_parser()
    args = ap.parse_args(argv)

    if args.version:
        return 0

    if not args.source:
        print("error: source file required", file=sys.stderr)
        return 2

    from kiln_lang.backend import get_backend
    from kiln_lang.compiler.driver import Compiler
    from kiln_lang.compiler.options import CompilerOptions
    from kiln_lang.internals.parse_errors import handle_parse_exception
    from kiln_lang.internals.parser import parse_file
    from kiln_lang.internals.report import Reporter

    src_path = Path(args.source).resolve()
    try:
        src = src_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"error: cannot read {src_path}: {e}", file=sys.stderr)
        return 2

    reporter = Reporter(source=src, filename=str(src_path))

    if args.dump_ast:
        try:
            for node in parse_file(src_path):
                print(node)
        except Exception as exc:
            if handle_parse_exception(exc, reporter, str(src_path)):
                reporter.print()
                return 2
            raise
        return 0

    options = CompilerOptions(
        backend=args.backend,
        out_file=args.out,
        org=args.org,
        debug=args.debug,
        export_symbols=args.export,
        link=args.link,
        keep_assembly=args.keep,
        os=args.os,
        include_dirs=[Path(d) for d in args.include],
        versions=list(args.enable),
        backend_options=args.backend_option,
        assembly_lines=args.assembly_lines,
        no_header=args.no_header,
    )

    backend = get_backend(options.backend)
    backend.configure(options)
    options.versions += backend.get_versions()
    for opt in options.backend_options:
        if not backend.handle_option(opt, options.versions):
            print(f"error: unknown {backend.name} back-end option '{opt}'", file=sys.stderr)
            return 2

    compiler = Compiler(backend, options, reporter)
    compiler.compile_file(src_path)

    if not compiler.success:
        reporter.print()
        return 2

    commands = [] if args.no_link else backend.final_commands()
    reporter.print()

    out_path = Path(f"{options.out_file}.ll")
    out_path.write_text(backend.output, encoding="utf-8")
    print(f"Wrote {out_path}")

    for cmd in commands:
        print(f"$ {cmd}")
        try:
            subprocess.run(cmd, shell=True, check=True)
        except subprocess.CalledProcessError as e:
            print(f"error: command failed with exit code {e.returncode}", file=sys.stderr)
            return 2

    return 1 if reporter.has_warnings else 0


if __name__ == "__main__":
    raise SystemExit(main())
