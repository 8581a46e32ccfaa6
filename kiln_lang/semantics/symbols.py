# semantics/symbols.py
"""
Type and symbol model shared by every backend.

A SymbolTable is created by the driver for one compilation run and bound to
the active backend, which is its only writer. Names are the only identity:
every lookup is by name, and registering a name twice replaces nothing
unless it goes through set_type().
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from kiln_lang.internals.errors import raise_internal_error
from kiln_lang.semantics.ast import Node

ExtraT = TypeVar("ExtraT")


@dataclass(frozen=True)
class StructEntry:
    """One member slot of a struct or union.

    The member type is held by value: a nested struct keeps the layout it had
    when the enclosing structure was registered.
    """
    type: "Type"
    name: str
    array: bool = False
    size: int = 0       # element count when `array`
    offset: int = 0

    def byte_size(self) -> int:
        return self.type.size * self.size if self.array else self.type.size


@dataclass(frozen=True)
class Type:
    name: str
    size: int
    is_struct: bool = False
    structure: Tuple[StructEntry, ...] = ()
    has_init: bool = False
    has_deinit: bool = False
    is_union: bool = False

    def __str__(self) -> str:
        return self.name

    def member(self, name: str) -> Optional[StructEntry]:
        for entry in self.structure:
            if entry.name == name:
                return entry
        return None


@dataclass
class Variable:
    name: str
    type: Type
    offset: int = 0     # call stack pointer + offset
    array: bool = False
    array_size: int = 0

    def size(self) -> int:
        return self.array_size * self.type.size if self.array else self.type.size


@dataclass
class Global(Generic[ExtraT]):
    name: str
    type: Type
    array: bool = False
    array_size: int = 0
    extra: Optional[ExtraT] = None

    def size(self) -> int:
        return self.array_size * self.type.size if self.array else self.type.size


@dataclass
class Constant:
    """Compile-time binding; `value` is compiled wherever the name is used."""
    value: Node


@dataclass
class Array(Generic[ExtraT]):
    values: List[str]
    type: Type
    is_global: bool = True
    extra: Optional[ExtraT] = None

    def size(self) -> int:
        return self.type.size * len(self.values)


@dataclass
class SymbolTable:
    """Symbol tables owned by the active backend for one compilation run."""
    variables: Dict[str, Variable] = field(default_factory=dict)
    globals: Dict[str, Global] = field(default_factory=dict)
    constants: Dict[str, Constant] = field(default_factory=dict)
    types: Dict[str, Type] = field(default_factory=dict)
    arrays: List[Array] = field(default_factory=list)

    # --- Variables

    def variable_exists(self, name: str) -> bool:
        return name in self.variables

    def get_variable(self, name: str) -> Variable:
        if name not in self.variables:
            raise_internal_error("CE0001", what="variable", name=name)
        return self.variables[name]

    def add_variable(self, var: Variable) -> Variable:
        self.variables[var.name] = var
        return var

    def remove_variable(self, name: str) -> Variable:
        if name not in self.variables:
            raise_internal_error("CE0001", what="variable", name=name)
        return self.variables.pop(name)

    # --- Globals

    def global_exists(self, name: str) -> bool:
        return name in self.globals

    def get_global(self, name: str) -> Global:
        if name not in self.globals:
            raise_internal_error("CE0001", what="global", name=name)
        return self.globals[name]

    def add_global(self, glob: Global) -> Global:
        self.globals[glob.name] = glob
        return glob

    # --- Constants

    def constant_exists(self, name: str) -> bool:
        return name in self.constants

    def get_constant(self, name: str) -> Constant:
        if name not in self.constants:
            raise_internal_error("CE0001", what="constant", name=name)
        return self.constants[name]

    def add_constant(self, name: str, const: Constant) -> Constant:
        self.constants[name] = const
        return const

    # --- Types

    def type_exists(self, name: str) -> bool:
        return name in self.types

    def get_type(self, name: str) -> Type:
        if name not in self.types:
            raise_internal_error("CE0001", what="type", name=name)
        return self.types[name]

    def add_type(self, ty: Type, name: Optional[str] = None) -> Type:
        """Register `ty` under its own name, or under `name` for an alias."""
        self.types[name or ty.name] = ty
        return ty

    def set_type(self, name: str, ty: Type) -> None:
        """Replace a registered type, keeping its registration position."""
        if name not in self.types:
            raise_internal_error("CE0001", what="type", name=name)
        self.types[name] = ty

    # --- Arrays

    def add_array(self, array: Array) -> Array:
        self.arrays.append(array)
        return array

    # --- Structural queries

    def is_struct_member(self, identifier: str) -> bool:
        parts = identifier.split(".")
        if len(parts) < 2:
            return False

        if self.variable_exists(parts[0]):
            return self.get_variable(parts[0]).type.is_struct
        if self.global_exists(parts[0]):
            return self.get_global(parts[0]).type.is_struct
        return False

    def get_stack_size(self) -> int:
        return sum(var.size() for var in self.variables.values())
