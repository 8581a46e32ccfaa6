# internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from kiln_lang.internals.report import Span, Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    GENERAL   = "general"
    PARSE     = "parse"
    NAME      = "name"
    STRUCTURE = "structure"
    NODE      = "node"
    INCLUDE   = "include"
    BACKEND   = "backend"
    INTERNAL  = "internal"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    category: Category = Category.GENERAL
    doc: str = ""


class InternalCompilerError(RuntimeError):
    """A broken invariant inside the compiler itself, never a user error."""

    def __init__(self, code: str, text: str) -> None:
        super().__init__(f"{code}: {text}")
        self.code = code
        self.text = text


REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)

def emit(r: Reporter, em: ErrorMessage, span: Optional[Span], **kwargs) -> None:
    text = _fmt(em.code, **kwargs)
    if em.severity == Severity.ERROR:
        r.error(em.code, text, span)
    else:
        r.warn(em.code, text, span)

def raise_internal_error(code: str, **kwargs) -> None:
    """Abort the run on an internal compiler error.

    Internal errors indicate compiler bugs, not problems in the program being
    compiled, so they are never routed through a Reporter.

    Args:
        code: Error code (e.g., "CE0001")
        **kwargs: Format parameters for the error message

    Raises:
        InternalCompilerError: Always raises with formatted error message
    """
    raise InternalCompilerError(code, _fmt(code, **kwargs))


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Internal errors (compiler bugs) - CE0xxx range
_add(ErrorMessage("CE0001", Severity.ERROR,
    "{what} '{name}' is not registered",
    Category.INTERNAL, "Lookup of a symbol an earlier check guaranteed to exist."))

_add(ErrorMessage("CE0002", Severity.ERROR,
    "'{name}' is not a member access path",
    Category.INTERNAL, "Struct offset requested for an identifier without a member component."))

_add(ErrorMessage("CE0003", Severity.ERROR,
    "backend is not bound to a compiler",
    Category.INTERNAL, "A backend method ran before Compiler.compile() bound it."))

_add(ErrorMessage("CE0004", Severity.ERROR,
    "builder not initialized",
    Category.INTERNAL, "IR builder is None - a function context is required."))

_add(ErrorMessage("CE0005", Severity.ERROR,
    "LLVM IR verification failed: {message}",
    Category.INTERNAL, "The backend produced an invalid module."))

_add(ErrorMessage("CE0006", Severity.ERROR,
    "scope stack underflow",
    Category.INTERNAL, "Each opened scope must be closed exactly once."))

_add(ErrorMessage("CE0007", Severity.ERROR,
    "node kinds without a handler: {kinds}",
    Category.INTERNAL, "Every node kind must be handled by the driver or delegated to the back end."))

# Parse errors - CE01xx range
_add(ErrorMessage("CE0100", Severity.ERROR,
    "unexpected token '{token}'",
    Category.PARSE, "The parser found a token that cannot appear here."))

_add(ErrorMessage("CE0101", Severity.ERROR,
    "unexpected character '{char}'",
    Category.PARSE, "The lexer could not match any token."))

_add(ErrorMessage("CE0102", Severity.ERROR,
    "unexpected end of input",
    Category.PARSE, "A block was left open (missing 'end'?)."))

_add(ErrorMessage("CE0103", Severity.ERROR,
    "{message}",
    Category.PARSE, "A construct that parsed but is not a valid program fragment."))

# Names and structures - CE1xxx range
_add(ErrorMessage("CE1001", Severity.ERROR,
    "Structure '{name}' doesn't exist",
    Category.STRUCTURE, "The root of a member access is neither a variable nor a global."))

_add(ErrorMessage("CE1002", Severity.ERROR,
    "Member '{name}' doesn't exist",
    Category.STRUCTURE, "No member with this name in the enclosing structure."))

_add(ErrorMessage("CE1003", Severity.ERROR,
    "Member '{name}' is not a structure",
    Category.STRUCTURE, "Only struct or union members can be traversed with '.'."))

# Driver / node-level errors - CE2xxx range
_add(ErrorMessage("CE2001", Severity.ERROR,
    "While conditions can't contain {kind}",
    Category.NODE, "Loop conditions are short word/integer sequences."))

_add(ErrorMessage("CE2002", Severity.ERROR,
    "Version '{version}' required",
    Category.NODE, "A 'requires' gate names a feature that is not enabled."))

_add(ErrorMessage("CE2003", Severity.ERROR,
    "Unimplemented node '{kind}'",
    Category.NODE, "No handler is registered for this node kind."))

_add(ErrorMessage("CE2004", Severity.ERROR,
    "Error thrown by code",
    Category.NODE, "The program invoked the 'error' word."))

# Includes - CE3xxx range
_add(ErrorMessage("CE3001", Severity.ERROR,
    "Can't find file '{path}'",
    Category.INCLUDE, "Neither the including file's directory nor any include directory has it."))

_add(ErrorMessage("CE3002", Severity.ERROR,
    "Can't read file '{path}': {reason}",
    Category.INCLUDE, "The included file exists but could not be read."))

# Backend user errors - CE4xxx range
_add(ErrorMessage("CE4001", Severity.ERROR,
    "Undefined identifier '{name}'",
    Category.NAME))

_add(ErrorMessage("CE4002", Severity.ERROR,
    "Type '{name}' doesn't exist",
    Category.NAME))

_add(ErrorMessage("CE4003", Severity.ERROR,
    "Type '{name}' already exists",
    Category.NAME))

_add(ErrorMessage("CE4004", Severity.ERROR,
    "Identifier '{name}' already defined",
    Category.NAME))

_add(ErrorMessage("CE4005", Severity.ERROR,
    "Functions can't be nested",
    Category.BACKEND))

_add(ErrorMessage("CE4006", Severity.ERROR,
    "'{word}' used outside of a loop",
    Category.BACKEND))

_add(ErrorMessage("CE4007", Severity.ERROR,
    "Duplicate member '{name}' in '{owner}'",
    Category.STRUCTURE))

_add(ErrorMessage("CE4008", Severity.ERROR,
    "Integer {value} is out of range",
    Category.BACKEND))

_add(ErrorMessage("CE4009", Severity.ERROR,
    "Array values must be integers or integer constants, got '{value}'",
    Category.BACKEND))

_add(ErrorMessage("CE4010", Severity.ERROR,
    "Can't move '{name}' to or from the stack: {size}-byte values are not supported",
    Category.BACKEND))

_add(ErrorMessage("CE4011", Severity.ERROR,
    "Unknown method '{method}', expected 'init' or 'deinit'",
    Category.BACKEND))

_add(ErrorMessage("CE4012", Severity.ERROR,
    "Type '{name}' already implements '{method}'",
    Category.BACKEND))

_add(ErrorMessage("CE4013", Severity.ERROR,
    "'{name}' is not a function",
    Category.NAME))

_add(ErrorMessage("CE4014", Severity.ERROR,
    "Can't assign to '{name}'",
    Category.NAME))

_add(ErrorMessage("CE4015", Severity.ERROR,
    "'{word}' used outside of a function",
    Category.BACKEND))

_add(ErrorMessage("CE4016", Severity.ERROR,
    "C function '{name}' can return at most one value",
    Category.BACKEND, "Results of external C functions are pushed as a single cell."))

# Warnings
_add(ErrorMessage("CW0001", Severity.WARNING,
    "Structure '{name}' has no members",
    Category.STRUCTURE))

_add(ErrorMessage("CW0002", Severity.WARNING,
    "Variable '{name}' shadows a global",
    Category.NAME))

_add(ErrorMessage("CW0003", Severity.WARNING,
    "Origin address is ignored when linking for '{os}'",
    Category.BACKEND))
