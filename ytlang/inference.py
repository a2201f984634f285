"""
Type inference over the parsed AST.

Concrete types are assigned wherever they follow directly from literals,
annotations and operators. Anything that cannot be decided on the spot (a
reference to a name defined further down, a function whose return depends on
such a reference) gets a placeholder plus equality constraints. After the walk
the constraints are swept once, in order, binding placeholders in the arena;
declarations are then annotated with whatever their terms resolved to.
"""
import logging
from typing import Optional, assert_never

from ytlang.errors import ScopeError, TypeCheckError
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
from ytlang.scope import FunctionSymbol, ScopeStack, Symbol, TypeSymbol, VariableSymbol
from ytlang.typesys import (
    BOOL,
    FLOAT,
    INT,
    NULL,
    STRING,
    VOID,
    ConcreteType,
    Constraint,
    Placeholder,
    TypeArena,
    TypeTerm,
)
from ytlang.utils.type_utils import ARITHMETIC_OPERATORS, is_boolean_result


class TypeInferrer:
    def __init__(self, program: Program):
        self.program = program
        self.scopes = ScopeStack()
        self.arena = TypeArena()
        self.constraints: list[Constraint] = []

        # Inferred term of every visited expression, keyed by node identity
        self.expression_types: dict[ASTNode, TypeTerm] = {}

        # Declarations and the term to write back into them after unification
        self.declarations: list[tuple[ASTNode, TypeTerm]] = []

        # Declarations whose type was still a placeholder after unification
        self.unresolved: list[ASTNode] = []

        # Forward references: name -> [(placeholder, referenced as a call)]
        self.pending: dict[str, list[tuple[Placeholder, bool]]] = {}

        # Return terms collected for each enclosing function body
        self.returns: list[list[TypeTerm]] = []

        self.signatures: dict[FunctionDeclaration, FunctionSymbol] = {}
        self.predeclared: set[ASTNode] = set()

    def infer(self) -> Program:
        logging.debug("Inferring types...")
        self._predeclare(self.program.body)

        for statement in self.program.body:
            self.visit(statement)

        if self.pending:
            name = next(iter(self.pending))
            raise ScopeError(f"undefined symbol '{name}'")

        self.unify()
        self._annotate()
        logging.debug(
            f"Inference finished: {len(self.arena)} placeholders, {len(self.unresolved)} unresolved"
        )
        return self.program

    def type_of(self, node: ASTNode) -> Optional[TypeTerm]:
        """Resolved type of an expression visited by the last run, if any."""
        term = self.expression_types.get(node)
        return None if term is None else self.arena.resolve(term)

    def constrain(self, left: TypeTerm, right: TypeTerm) -> None:
        self.constraints.append(Constraint(left, right))

    def unify(self) -> None:
        """Single forward sweep over the collected constraints.

        A placeholder meeting a concrete type is bound to it; two placeholders
        are merged. Two concrete types are left alone.
        """
        logging.debug(f"Unifying {len(self.constraints)} constraints")
        for constraint in self.constraints:
            left = self.arena.resolve(constraint.left)
            right = self.arena.resolve(constraint.right)
            if isinstance(left, Placeholder):
                self.arena.bind(left, right)
            elif isinstance(right, Placeholder):
                self.arena.bind(right, left)
        self.constraints.clear()

    def _annotate(self) -> None:
        for node, term in self.declarations:
            resolved = self.arena.resolve(term)
            if isinstance(node, FunctionDeclaration):
                node.resolved_return_type = resolved
            elif isinstance(node, VariableDeclaration):
                node.resolved_type = resolved
            if isinstance(resolved, Placeholder):
                self.unresolved.append(node)

    def _predeclare(self, body: list[Expression]) -> None:
        """Declare top-level names whose types are already known so they can be used before their definition."""
        for node in body:
            if isinstance(node, FunctionDeclaration):
                known = node.return_type is not None or isinstance(node.resolved_return_type, ConcreteType)
                if known:
                    self._declare(node.name.name, self._signature(node))
                    self.predeclared.add(node)
            elif isinstance(node, VariableDeclaration):
                known = self._known_type(node.type_annotation)
                if known is None and isinstance(node.resolved_type, ConcreteType):
                    known = node.resolved_type
                if known is not None:
                    self._declare(node.name.name, VariableSymbol(node.name.name, known, node.mutable))
                    self.predeclared.add(node)

    def _known_type(self, annotation: Optional[Identifier]) -> Optional[ConcreteType]:
        if annotation is None:
            return None
        symbol = self.scopes.find(annotation.name)
        return symbol.type if isinstance(symbol, TypeSymbol) else None

    def _annotation_type(self, annotation: Identifier) -> TypeTerm:
        # Unknown names are left for the checker to reject
        return self._known_type(annotation) or self.arena.fresh()

    def _signature(self, node: FunctionDeclaration) -> FunctionSymbol:
        if node not in self.signatures:
            param_types = [self._annotation_type(p.type_annotation) for p in node.params]
            if node.return_type is not None:
                return_type: Optional[TypeTerm] = self._annotation_type(node.return_type)
            elif isinstance(node.resolved_return_type, ConcreteType):
                return_type = node.resolved_return_type
            else:
                return_type = None
            self.signatures[node] = FunctionSymbol(node.name.name, param_types, return_type)
        return self.signatures[node]

    def _declare(self, name: str, symbol: Symbol) -> None:
        self.scopes.define(name, symbol)
        if self.scopes.at_root:
            self._resolve_pending(name, symbol)

    def _resolve_pending(self, name: str, symbol: Symbol) -> None:
        for placeholder, is_call in self.pending.pop(name, []):
            if isinstance(symbol, FunctionSymbol) and is_call and symbol.return_type is not None:
                self.constrain(placeholder, symbol.return_type)
            elif isinstance(symbol, VariableSymbol) and not is_call and symbol.type is not None:
                self.constrain(placeholder, symbol.type)

    def _forward_reference(self, name: str, is_call: bool) -> Placeholder:
        placeholder = self.arena.fresh()
        logging.debug(f"forward reference to '{name}' typed as {placeholder}")
        self.pending.setdefault(name, []).append((placeholder, is_call))
        return placeholder

    def visit(self, node: Expression) -> TypeTerm:
        term = self._visit(node)
        self.expression_types[node] = term
        return term

    def _visit(self, node: Expression) -> TypeTerm:
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
                return self._reference(node.name, is_call=False)
            case MemberAccess():
                qualified = node.qualified_name()
                if qualified is None:
                    self.visit(node.object)
                    return self.arena.fresh()
                return self._reference(qualified, is_call=False)
            case FunctionCall():
                return self._visit_call(node)
            case Binary():
                return self._visit_binary(node)
            case PreUnary():
                operand = self.visit(node.operand)
                if node.operator == "!":
                    if isinstance(operand, Placeholder):
                        self.constrain(operand, BOOL)
                    return BOOL
                return operand
            case PostUnary():
                return self.visit(node.operand)
            case VariableDeclaration():
                self._visit_variable_declaration(node)
                return VOID
            case FunctionDeclaration():
                self._visit_function_declaration(node)
                return VOID
            case Return():
                value = self.visit(node.value) if node.value is not None else VOID
                if self.returns:
                    self.returns[-1].append(value)
                return value
            case If():
                self.visit(node.condition)
                self._visit_block(node.body)
                if node.alternate is not None:
                    self.visit(node.alternate)
                return VOID
            case Else():
                self._visit_block(node.body)
                return VOID
            case While():
                self.visit(node.condition)
                self._visit_block(node.body)
                return VOID
            case Switch():
                self.visit(node.value)
                for case in node.cases:
                    self.visit(case)
                return VOID
            case Case():
                if not node.is_default:
                    self.visit(node.value)
                self._visit_block(node.body)
                return VOID
            case Import() | Comment():
                return VOID
            case Program() | FunctionParam():
                raise TypeCheckError(f"unexpected {node.node_type.value} in expression position")
            case _:
                assert_never(node)

    def _visit_block(self, body: list[Expression]) -> None:
        with self.scopes.scoped():
            for statement in body:
                self.visit(statement)

    def _reference(self, name: str, is_call: bool) -> TypeTerm:
        symbol = self.scopes.find(name)
        if symbol is None:
            return self._forward_reference(name, is_call)
        if isinstance(symbol, VariableSymbol) and not is_call and symbol.type is not None:
            return symbol.type
        if isinstance(symbol, FunctionSymbol) and is_call and symbol.return_type is not None:
            return symbol.return_type
        # Not usable here; the checker reports why
        return self.arena.fresh()

    def _visit_call(self, node: FunctionCall) -> TypeTerm:
        callee = node.callee
        if isinstance(callee, Identifier):
            name: Optional[str] = callee.name
        elif isinstance(callee, MemberAccess):
            name = callee.qualified_name()
        else:
            name = None

        argument_types = [self.visit(argument) for argument in node.arguments]

        if name is None:
            self.visit(callee)
            return self.arena.fresh()

        symbol = self.scopes.find(name)
        if isinstance(symbol, FunctionSymbol):
            for argument, param in zip(argument_types, symbol.param_types):
                if isinstance(argument, Placeholder):
                    self.constrain(argument, param)
        return self._reference(name, is_call=True)

    def _visit_binary(self, node: Binary) -> TypeTerm:
        left = self.visit(node.left)
        right = self.visit(node.right)
        operator = node.operator

        if isinstance(left, ConcreteType) and isinstance(right, ConcreteType):
            if operator == "/":
                return FLOAT
            if is_boolean_result(operator):
                return BOOL
            if left.kind != right.kind:
                raise TypeCheckError(
                    f"operator '{operator}' cannot combine {left} and {right}"
                )
            return left

        self.constrain(left, right)
        result = self.arena.fresh()
        if operator == "/":
            self.constrain(result, FLOAT)
        elif is_boolean_result(operator):
            self.constrain(result, BOOL)
        elif operator in ARITHMETIC_OPERATORS:
            self.constrain(result, left)
        return result

    def _visit_variable_declaration(self, node: VariableDeclaration) -> None:
        value = self.visit(node.value) if node.value is not None else None

        if node.type_annotation is not None:
            term = self._annotation_type(node.type_annotation)
            if isinstance(value, Placeholder):
                self.constrain(value, term)
        elif value is not None:
            term = value
        elif isinstance(node.resolved_type, ConcreteType):
            term = node.resolved_type
        else:
            term = self.arena.fresh()

        if node not in self.predeclared:
            self._declare(node.name.name, VariableSymbol(node.name.name, term, node.mutable))
        else:
            symbol = self.scopes.find(node.name.name)
            if isinstance(symbol, VariableSymbol) and symbol.type is not None:
                term = symbol.type
        self.declarations.append((node, term))

    def _visit_function_declaration(self, node: FunctionDeclaration) -> None:
        name = node.name.name
        signature = self._signature(node)

        # Known signatures are visible inside their own body for recursion
        declared = node in self.predeclared
        if not declared and signature.return_type is not None:
            self._declare(name, signature)
            declared = True

        returns: list[TypeTerm] = []
        if node.body is not None:
            with self.scopes.scoped():
                for param, param_type in zip(node.params, signature.param_types):
                    self.scopes.define(param.name.name, VariableSymbol(param.name.name, param_type))
                self.returns.append(returns)
                try:
                    for statement in node.body:
                        self.visit(statement)
                finally:
                    self.returns.pop()

        if signature.return_type is None:
            signature.return_type = self._combine_returns(name, returns)
        if not declared:
            self._declare(name, signature)
        self.declarations.append((node, signature.return_type))

    def _combine_returns(self, name: str, returns: list[TypeTerm]) -> TypeTerm:
        if not returns:
            return VOID

        placeholders = [term for term in returns if isinstance(term, Placeholder)]
        if placeholders:
            first = placeholders[0]
            for term in returns:
                if term is not first:
                    self.constrain(first, term)
            return first

        first = returns[0]
        for term in returns[1:]:
            if term != first:
                raise TypeCheckError(
                    f"function '{name}' returns both {first} and {term}"
                )
        return first


def infer(program: Program) -> Program:
    return TypeInferrer(program).infer()
