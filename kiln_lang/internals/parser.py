"""Lark parser setup and AST construction."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from lark import Lark

from kiln_lang.semantics.ast import Node
from kiln_lang.semantics.ast_builder import ASTBuilder

GRAMMAR_PATH = Path(__file__).parent.parent / "grammar.lark"


@lru_cache(maxsize=1)
def _parser() -> Lark:
    return Lark.open(
        str(GRAMMAR_PATH),
        parser="lalr",
        lexer="basic",
        propagate_positions=True,
        maybe_placeholders=False,
    )


def parse_source(src: str, filename: Optional[str] = None) -> List[Node]:
    """Parse Kiln source text into a list of top-level nodes.

    Raises:
        lark.UnexpectedInput: On a syntax error.
        ASTBuildError: On a grammatical but malformed construct.
    """
    return ASTBuilder(filename).build(_parser().parse(src))


def parse_file(path: Path | str) -> List[Node]:
    """Read and parse a source file; node locations carry its path."""
    path = Path(path)
    return parse_source(path.read_text(encoding="utf-8"), filename=str(path))
