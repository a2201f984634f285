import logging
from dataclasses import dataclass
from typing import Optional, Union

from ytlang.enums import TypeKind
from ytlang.utils.type_utils import NUMERIC_KINDS, SIZED_INTEGER_NAMES


@dataclass(frozen=True)
class ConcreteType:
    kind: TypeKind
    # Bit width for sized integers (i8..i64); None for plain int and other kinds
    width: Optional[int] = None

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    def __str__(self) -> str:
        if self.width is not None:
            return f"i{self.width}"
        return self.kind.value


@dataclass(frozen=True)
class Placeholder:
    """Type variable standing in for a type that is not known yet."""

    id: int

    def __str__(self) -> str:
        return f"'t{self.id}"


TypeTerm = Union[ConcreteType, Placeholder]


@dataclass(frozen=True)
class Constraint:
    left: TypeTerm
    right: TypeTerm

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


INT = ConcreteType(TypeKind.INT)
FLOAT = ConcreteType(TypeKind.FLOAT)
BOOL = ConcreteType(TypeKind.BOOL)
STRING = ConcreteType(TypeKind.STRING)
VOID = ConcreteType(TypeKind.VOID)
NULL = ConcreteType(TypeKind.NULL)

BUILTIN_TYPES: dict[str, ConcreteType] = {
    "int": INT,
    "float": FLOAT,
    "bool": BOOL,
    "string": STRING,
    "void": VOID,
    "null": NULL,
}
BUILTIN_TYPES.update(
    {name: ConcreteType(TypeKind.INT, width) for name, width in SIZED_INTEGER_NAMES.items()}
)


def assignable(target: ConcreteType, value: ConcreteType) -> bool:
    """Whether a value of type ``value`` may be stored where ``target`` is expected.

    Identical types always are; a plain ``int`` is also accepted by any sized
    integer so that integer literals can initialise ``i8``..``i64`` variables.
    """
    if target == value:
        return True
    return target.kind == TypeKind.INT and value == INT


class TypeArena:
    """Slots for placeholders, addressed by placeholder id.

    A slot holds the term its placeholder was bound to, or None while unbound.
    Binding a slot is seen by everything that holds the placeholder.
    """

    def __init__(self) -> None:
        self.slots: list[Optional[TypeTerm]] = []

    def fresh(self) -> Placeholder:
        placeholder = Placeholder(len(self.slots))
        self.slots.append(None)
        return placeholder

    def is_bound(self, placeholder: Placeholder) -> bool:
        return self.slots[placeholder.id] is not None

    def bind(self, placeholder: Placeholder, term: TypeTerm) -> None:
        target = self.resolve(term)
        if target == placeholder:
            return
        if self.is_bound(placeholder):
            raise ValueError(f"placeholder {placeholder} is already bound")
        logging.debug(f"binding {placeholder} to {target}")
        self.slots[placeholder.id] = target

    def resolve(self, term: TypeTerm) -> TypeTerm:
        """Follow bindings until a concrete type or an unbound placeholder."""
        while isinstance(term, Placeholder):
            bound = self.slots[term.id]
            if bound is None:
                return term
            term = bound
        return term

    def __len__(self) -> int:
        return len(self.slots)
