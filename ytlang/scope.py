from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from ytlang.errors import ScopeError
from ytlang.typesys import BUILTIN_TYPES, ConcreteType, TypeTerm


@dataclass
class VariableSymbol:
    name: str
    type: Optional[TypeTerm]
    mutable: bool = True


@dataclass
class FunctionSymbol:
    name: str
    param_types: list[TypeTerm] = field(default_factory=list)
    return_type: Optional[TypeTerm] = None


@dataclass
class TypeSymbol:
    name: str
    type: ConcreteType


Symbol = Union[VariableSymbol, FunctionSymbol, TypeSymbol]


class ScopeStack:
    """Lexical environments, innermost last.

    The root scope holds the builtin types and is never popped.
    """

    def __init__(self) -> None:
        builtins: dict[str, Symbol] = {name: TypeSymbol(name, t) for name, t in BUILTIN_TYPES.items()}
        self.scopes: list[dict[str, Symbol]] = [builtins]

    @property
    def depth(self) -> int:
        return len(self.scopes)

    @property
    def at_root(self) -> bool:
        return len(self.scopes) == 1

    def push(self) -> int:
        self.scopes.append({})
        return len(self.scopes) - 1

    def pop(self, handle: int) -> None:
        if handle == 0 or handle != len(self.scopes) - 1:
            raise RuntimeError(
                f"scope {handle} popped out of order (innermost is {len(self.scopes) - 1})"
            )
        self.scopes.pop()

    @contextmanager
    def scoped(self) -> Iterator[int]:
        handle = self.push()
        try:
            yield handle
        finally:
            self.pop(handle)

    def define(self, name: str, symbol: Symbol) -> None:
        if name in BUILTIN_TYPES:
            raise ScopeError(f"cannot redefine builtin type '{name}'")
        scope = self.scopes[-1]
        if name in scope:
            raise ScopeError(f"'{name}' is already declared in this scope")
        scope[name] = symbol

    def find(self, name: str) -> Optional[Symbol]:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return None

    def lookup(self, name: str) -> Symbol:
        symbol = self.find(name)
        if symbol is None:
            raise ScopeError(f"undefined symbol '{name}'")
        return symbol

    def lookup_type(self, name: str) -> ConcreteType:
        symbol = self.find(name)
        if not isinstance(symbol, TypeSymbol):
            raise ScopeError(f"unknown type '{name}'")
        return symbol.type
