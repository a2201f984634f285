"""
Type checker for inferred programs.

Walks the AST a second time with a fresh scope stack and validates operator
operands, declarations, calls, conditions and returns against the types
written back by inference.

Type mismatches and unresolved types are collected and returned; structural
problems (unknown type names, undefined or redeclared symbols, declarations
with neither a type nor a value) abort the check by raising.
"""
import logging
from typing import List, Optional, Set, assert_never

from ytlang.enums import TypeKind
from ytlang.errors import CompilerError, TypeCheckError, UnresolvedTypeError
from ytlang.parser import (
    ASTNode,
    Binary,
    BooleanLiteral,
    Case,
    Comment,
    Else,
    Expression,
    FunctionCall,
    FunctionDeclaration,
    FunctionParam,
    Identifier,
    If,
    Import,
    MemberAccess,
    NullLiteral,
    NumberLiteral,
    PostUnary,
    PreUnary,
    Program,
    Return,
    StringLiteral,
    Switch,
    VariableDeclaration,
    While,
)
from ytlang.scope import FunctionSymbol, ScopeStack, TypeSymbol, VariableSymbol
from ytlang.typesys import (
    BOOL,
    FLOAT,
    INT,
    NULL,
    STRING,
    VOID,
    ConcreteType,
    Placeholder,
    TypeTerm,
    assignable,
)
from ytlang.utils.type_utils import ARITHMETIC_OPERATORS, COMPARISON_OPERATORS, LOGICAL_OPERATORS


def concrete(term: Optional[TypeTerm]) -> Optional[ConcreteType]:
    return term if isinstance(term, ConcreteType) else None


class TypeChecker:
    def __init__(self, program: Program):
        self.program = program
        self.errors: List[CompilerError] = []

        # Fresh environments; nothing is shared with inference
        self.scopes = ScopeStack()

        # (name, return type) of each enclosing function
        self.functions: List[tuple[str, Optional[TypeTerm]]] = []

        self.signatures: dict[FunctionDeclaration, FunctionSymbol] = {}
        self.predeclared: Set[ASTNode] = set()

    def check(self) -> List[CompilerError]:
        """Run the checker; returns the collected diagnostics (empty when the program is well typed)."""
        logging.debug("Type checking...")
        self._declare_top_level()
        for statement in self.program.body:
            self.check_node(statement)
        logging.debug(f"Type checking finished with {len(self.errors)} diagnostics")
        return self.errors

    def report(self, error: CompilerError) -> None:
        logging.debug(f"{error.label}: {error}")
        self.errors.append(error)

    def _declare_top_level(self) -> None:
        """Top-level functions and already-typed globals are visible from the start of the program."""
        for node in self.program.body:
            if isinstance(node, FunctionDeclaration):
                self.scopes.define(node.name.name, self._signature(node))
                self.predeclared.add(node)
            elif isinstance(node, VariableDeclaration) and node.resolved_type is not None:
                self.scopes.define(
                    node.name.name,
                    VariableSymbol(node.name.name, node.resolved_type, node.mutable),
                )
                self.predeclared.add(node)

    def _signature(self, node: FunctionDeclaration) -> FunctionSymbol:
        if node not in self.signatures:
            param_types: list[TypeTerm] = [
                self.scopes.lookup_type(param.type_annotation.name) for param in node.params
            ]
            if node.resolved_return_type is not None:
                return_type: TypeTerm = node.resolved_return_type
            elif node.return_type is not None:
                return_type = self.scopes.lookup_type(node.return_type.name)
            else:
                return_type = VOID
            self.signatures[node] = FunctionSymbol(node.name.name, param_types, return_type)
        return self.signatures[node]

    def check_block(self, body: list[Expression]) -> None:
        with self.scopes.scoped():
            for statement in body:
                self.check_node(statement)

    def check_node(self, node: Expression) -> Optional[ConcreteType]:
        """Check a node and return its type, or None if it has no usable type."""
        match node:
            case NumberLiteral():
                return FLOAT if node.is_float else INT
            case StringLiteral():
                return STRING
            case BooleanLiteral():
                return BOOL
            case NullLiteral():
                return NULL
            case Identifier():
                return self.check_name(node.name)
            case MemberAccess():
                qualified = node.qualified_name()
                if qualified is None:
                    self.check_node(node.object)
                    self.report(TypeCheckError(f"member '{node.member.name}' can only be accessed on a module namespace"))
                    return None
                return self.check_name(qualified)
            case FunctionCall():
                return self.check_call(node)
            case Binary():
                return self.check_binary(node)
            case PreUnary():
                return self.check_pre_unary(node)
            case PostUnary():
                return self.check_post_unary(node)
            case VariableDeclaration():
                self.check_variable_declaration(node)
                return None
            case FunctionDeclaration():
                self.check_function_declaration(node)
                return None
            case Return():
                self.check_return(node)
                return None
            case If():
                self.check_condition("if", node.condition)
                self.check_block(node.body)
                if node.alternate is not None:
                    self.check_node(node.alternate)
                return None
            case Else():
                self.check_block(node.body)
                return None
            case While():
                self.check_condition("while", node.condition)
                self.check_block(node.body)
                return None
            case Switch():
                self.check_switch(node)
                return None
            case Import() | Comment():
                return None
            case Program() | FunctionParam() | Case():
                raise TypeCheckError(f"unexpected {node.node_type.value} in expression position")
            case _:
                assert_never(node)

    def check_name(self, name: str) -> Optional[ConcreteType]:
        symbol = self.scopes.lookup(name)
        if isinstance(symbol, VariableSymbol):
            return concrete(symbol.type)
        if isinstance(symbol, FunctionSymbol):
            self.report(TypeCheckError(f"function '{name}' cannot be used as a value"))
        elif isinstance(symbol, TypeSymbol):
            self.report(TypeCheckError(f"type '{name}' cannot be used as a value"))
        return None

    def check_call(self, node: FunctionCall) -> Optional[ConcreteType]:
        callee = node.callee
        if isinstance(callee, Identifier):
            name: Optional[str] = callee.name
        elif isinstance(callee, MemberAccess):
            name = callee.qualified_name()
        else:
            name = None

        argument_types = [self.check_node(argument) for argument in node.arguments]

        if name is None:
            self.check_node(callee)
            self.report(TypeCheckError("expression is not callable"))
            return None

        symbol = self.scopes.lookup(name)
        if not isinstance(symbol, FunctionSymbol):
            self.report(TypeCheckError(f"'{name}' is not a function"))
            return None

        if len(argument_types) != len(symbol.param_types):
            self.report(
                TypeCheckError(
                    f"function '{name}' expects {len(symbol.param_types)} arguments, got {len(argument_types)}"
                )
            )
        else:
            for position, (argument, param) in enumerate(zip(argument_types, symbol.param_types), start=1):
                expected = concrete(param)
                if argument is not None and expected is not None and not assignable(expected, argument):
                    self.report(
                        TypeCheckError(
                            f"argument {position} of '{name}': expected {expected}, got {argument}"
                        )
                    )
        return concrete(symbol.return_type)

    def check_binary(self, node: Binary) -> Optional[ConcreteType]:
        left = self.check_node(node.left)
        right = self.check_node(node.right)
        operator = node.operator

        if operator in ARITHMETIC_OPERATORS:
            result = FLOAT if operator == "/" else None
            if left is None or right is None:
                return result
            if not left.is_numeric or not right.is_numeric:
                self.report(
                    TypeCheckError(f"operator '{operator}' requires numeric operands, got {left} and {right}")
                )
                return result
            if operator == "/":
                return FLOAT
            if left != right:
                self.report(
                    TypeCheckError(f"operator '{operator}' requires operands of the same type, got {left} and {right}")
                )
                return None
            return left

        if operator in COMPARISON_OPERATORS:
            if left is None or right is None:
                return BOOL
            if left.kind == TypeKind.NULL or right.kind == TypeKind.NULL:
                self.report(TypeCheckError(f"operator '{operator}' cannot be applied to null"))
            elif left != right:
                self.report(TypeCheckError(f"cannot compare {left} with {right} using '{operator}'"))
            return BOOL

        if operator in LOGICAL_OPERATORS:
            if left is None or right is None:
                return BOOL
            if left != BOOL or right != BOOL:
                self.report(
                    TypeCheckError(f"operator '{operator}' requires bool operands, got {left} and {right}")
                )
            return BOOL

        self.report(TypeCheckError(f"unknown operator '{operator}'"))
        return None

    def check_pre_unary(self, node: PreUnary) -> Optional[ConcreteType]:
        operand = self.check_node(node.operand)
        if node.operator == "!":
            if operand is not None and operand != BOOL:
                self.report(TypeCheckError(f"operator '!' requires a bool operand, got {operand}"))
            return BOOL
        if operand is not None and not operand.is_numeric:
            self.report(TypeCheckError(f"operator '{node.operator}' requires a numeric operand, got {operand}"))
            return None
        return operand

    def check_post_unary(self, node: PostUnary) -> Optional[ConcreteType]:
        operand = self.check_node(node.operand)
        if not isinstance(node.operand, Identifier):
            self.report(TypeCheckError(f"operator '{node.operator}' requires a variable operand"))
        else:
            symbol = self.scopes.lookup(node.operand.name)
            if isinstance(symbol, VariableSymbol) and not symbol.mutable:
                self.report(TypeCheckError(f"cannot apply '{node.operator}' to constant '{node.operand.name}'"))
        if operand is not None and not operand.is_numeric:
            self.report(TypeCheckError(f"operator '{node.operator}' requires a numeric operand, got {operand}"))
            return None
        return operand

    def check_variable_declaration(self, node: VariableDeclaration) -> None:
        name = node.name.name
        if node.type_annotation is None and node.value is None:
            raise TypeCheckError(f"variable '{name}' needs a type annotation or an initializer")

        annotated = None
        if node.type_annotation is not None:
            annotated = self.scopes.lookup_type(node.type_annotation.name)

        value_type = self.check_node(node.value) if node.value is not None else None

        if annotated is not None and value_type is not None and not assignable(annotated, value_type):
            self.report(
                TypeCheckError(f"type mismatch for variable '{name}': expected {annotated}, got {value_type}")
            )

        if isinstance(node.resolved_type, Placeholder):
            self.report(UnresolvedTypeError(f"could not infer a type for variable '{name}'"))

        if node not in self.predeclared:
            declared: Optional[TypeTerm] = annotated or node.resolved_type or value_type
            self.scopes.define(name, VariableSymbol(name, declared, node.mutable))

    def check_function_declaration(self, node: FunctionDeclaration) -> None:
        name = node.name.name
        signature = self._signature(node)
        if node not in self.predeclared:
            self.scopes.define(name, signature)

        if isinstance(node.resolved_return_type, Placeholder):
            self.report(UnresolvedTypeError(f"could not infer the return type of function '{name}'"))

        if node.body is None:
            return

        with self.scopes.scoped():
            for param, param_type in zip(node.params, signature.param_types):
                self.scopes.define(param.name.name, VariableSymbol(param.name.name, param_type))
            self.functions.append((name, signature.return_type))
            try:
                for statement in node.body:
                    self.check_node(statement)
            finally:
                self.functions.pop()

    def check_return(self, node: Return) -> None:
        value_type = self.check_node(node.value) if node.value is not None else VOID
        if not self.functions:
            self.report(TypeCheckError("return outside of a function"))
            return

        name, return_type = self.functions[-1]
        expected = concrete(return_type)
        if expected is not None and value_type is not None and not assignable(expected, value_type):
            self.report(TypeCheckError(f"function '{name}' should return {expected}, got {value_type}"))

    def check_condition(self, construct: str, condition: Expression) -> None:
        condition_type = self.check_node(condition)
        if condition_type is not None and condition_type != BOOL:
            self.report(TypeCheckError(f"{construct} condition must be bool, got {condition_type}"))

    def check_switch(self, node: Switch) -> None:
        value_type = self.check_node(node.value)
        if value_type == NULL:
            self.report(TypeCheckError("cannot switch on null"))
            value_type = None

        for case in node.cases:
            if not case.is_default:
                case_type = self.check_node(case.value)
                if case_type is not None and value_type is not None and case_type != value_type:
                    self.report(
                        TypeCheckError(f"case value of type {case_type} does not match switch value of type {value_type}")
                    )
            self.check_block(case.body)


def check(program: Program) -> List[CompilerError]:
    return TypeChecker(program).check()
