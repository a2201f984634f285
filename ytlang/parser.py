import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Optional, Union

from ytlang.enums import NodeTypes, TokenKind
from ytlang.errors import ParseError
from ytlang.lexer import Token

if TYPE_CHECKING:
    from ytlang.typesys import TypeTerm


class ASTNode:
    node_type: ClassVar[NodeTypes]

    def label(self) -> str:
        return ""

    def children(self) -> list["ASTNode"]:
        return []

    def tree(self, prefix: str = "", is_last: bool = True) -> str:
        label = self.label()
        line_content = f"{self.node_type.value} {label}" if label else self.node_type.value

        lines = []
        if prefix == "":
            lines.append(line_content)
        else:
            connector = "└── " if is_last else "├── "
            lines.append(prefix + connector + line_content)
        new_prefix = prefix + ("    " if is_last else "│   ")
        childs = self.children()
        for i, child in enumerate(childs):
            is_last_child = i == (len(childs) - 1)
            lines.append(child.tree(new_prefix, is_last_child))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.tree()

    def __repr__(self):
        return self.__str__()


@dataclass(eq=False, repr=False)
class Program(ASTNode):
    node_type = NodeTypes.PROGRAM
    body: list["Expression"] = field(default_factory=list)

    def children(self):
        return list(self.body)


@dataclass(eq=False, repr=False)
class Identifier(ASTNode):
    node_type = NodeTypes.IDENTIFIER
    name: str

    def label(self):
        return self.name


@dataclass(eq=False, repr=False)
class MemberAccess(ASTNode):
    node_type = NodeTypes.MEMBER_ACCESS
    object: "Expression"
    member: Identifier

    def qualified_name(self) -> Optional[str]:
        """Dotted name for chains of plain identifiers (``io.puts``), else None."""
        if isinstance(self.object, Identifier):
            return f"{self.object.name}.{self.member.name}"
        if isinstance(self.object, MemberAccess):
            prefix = self.object.qualified_name()
            return f"{prefix}.{self.member.name}" if prefix else None
        return None

    def label(self):
        return f".{self.member.name}"

    def children(self):
        return [self.object]


@dataclass(eq=False, repr=False)
class Import(ASTNode):
    node_type = NodeTypes.IMPORT
    path: str
    alias: Optional[str] = None

    @property
    def namespace(self) -> str:
        return self.alias or self.path.split("/")[-1]

    def label(self):
        return f"{self.path} as {self.alias}" if self.alias else self.path


@dataclass(eq=False, repr=False)
class FunctionParam(ASTNode):
    node_type = NodeTypes.FUNCTION_PARAM
    name: Identifier
    type_annotation: Identifier

    def label(self):
        return f"{self.name.name}: {self.type_annotation.name}"


@dataclass(eq=False, repr=False)
class FunctionDeclaration(ASTNode):
    node_type = NodeTypes.FUNCTION_DECLARATION
    name: Identifier
    params: list[FunctionParam]
    body: Optional[list["Expression"]]
    return_type: Optional[Identifier] = None
    modifiers: list[str] = field(default_factory=list)
    resolved_return_type: Optional["TypeTerm"] = None

    @property
    def is_extern(self) -> bool:
        return "extern" in self.modifiers

    @property
    def is_pub(self) -> bool:
        return "pub" in self.modifiers

    def label(self):
        pre = " ".join(self.modifiers)
        ret = self.return_type.name if self.return_type else "?"
        if self.resolved_return_type is not None:
            ret = str(self.resolved_return_type)
        return f"{pre + ' ' if pre else ''}{self.name.name} -> {ret}"

    def children(self):
        return list(self.params) + list(self.body or [])


@dataclass(eq=False, repr=False)
class FunctionCall(ASTNode):
    node_type = NodeTypes.FUNCTION_CALL
    callee: "Expression"
    arguments: list["Expression"] = field(default_factory=list)

    def children(self):
        return [self.callee] + list(self.arguments)


@dataclass(eq=False, repr=False)
class Return(ASTNode):
    node_type = NodeTypes.RETURN
    value: Optional["Expression"] = None

    def children(self):
        return [self.value] if self.value is not None else []


@dataclass(eq=False, repr=False)
class Else(ASTNode):
    node_type = NodeTypes.ELSE
    body: list["Expression"] = field(default_factory=list)

    def children(self):
        return list(self.body)


@dataclass(eq=False, repr=False)
class If(ASTNode):
    node_type = NodeTypes.IF
    condition: "Expression"
    body: list["Expression"] = field(default_factory=list)
    alternate: Optional[Union["If", Else]] = None

    def children(self):
        nodes = [self.condition] + list(self.body)
        if self.alternate is not None:
            nodes.append(self.alternate)
        return nodes


@dataclass(eq=False, repr=False)
class While(ASTNode):
    node_type = NodeTypes.WHILE
    condition: "Expression"
    body: list["Expression"] = field(default_factory=list)

    def children(self):
        return [self.condition] + list(self.body)


class DefaultCase:
    """Match value of a ``default -> { ... }`` switch arm."""

    def __repr__(self):
        return "default"


DEFAULT = DefaultCase()


@dataclass(eq=False, repr=False)
class Case(ASTNode):
    node_type = NodeTypes.CASE
    value: Union["Expression", DefaultCase]
    body: list["Expression"] = field(default_factory=list)

    @property
    def is_default(self) -> bool:
        return isinstance(self.value, DefaultCase)

    def label(self):
        return "default" if self.is_default else ""

    def children(self):
        nodes = [] if self.is_default else [self.value]
        return nodes + list(self.body)


@dataclass(eq=False, repr=False)
class Switch(ASTNode):
    node_type = NodeTypes.SWITCH
    value: "Expression"
    cases: list[Case] = field(default_factory=list)

    def children(self):
        return [self.value] + list(self.cases)


@dataclass(eq=False, repr=False)
class Binary(ASTNode):
    node_type = NodeTypes.BINARY
    operator: str
    left: "Expression"
    right: "Expression"

    def label(self):
        return self.operator

    def children(self):
        return [self.left, self.right]


@dataclass(eq=False, repr=False)
class PreUnary(ASTNode):
    node_type = NodeTypes.PRE_UNARY
    operator: str
    operand: "Expression"

    def label(self):
        return self.operator

    def children(self):
        return [self.operand]


@dataclass(eq=False, repr=False)
class PostUnary(ASTNode):
    node_type = NodeTypes.POST_UNARY
    operator: str
    operand: "Expression"

    def label(self):
        return self.operator

    def children(self):
        return [self.operand]


@dataclass(eq=False, repr=False)
class VariableDeclaration(ASTNode):
    node_type = NodeTypes.VARIABLE_DECLARATION
    name: Identifier
    value: Optional["Expression"] = None
    type_annotation: Optional[Identifier] = None
    mutable: bool = True
    resolved_type: Optional["TypeTerm"] = None

    def label(self):
        pre = ["let" if self.mutable else "const"]
        if self.resolved_type is not None:
            pre.append(str(self.resolved_type))
        elif self.type_annotation is not None:
            pre.append(self.type_annotation.name)
        return f"{' '.join(pre)} {self.name.name}"

    def children(self):
        return [self.value] if self.value is not None else []


@dataclass(eq=False, repr=False)
class NumberLiteral(ASTNode):
    node_type = NodeTypes.NUMBER_LITERAL
    literal: str

    @property
    def is_float(self) -> bool:
        return "." in self.literal

    def label(self):
        return self.literal


@dataclass(eq=False, repr=False)
class StringLiteral(ASTNode):
    node_type = NodeTypes.STRING_LITERAL
    value: str

    def label(self):
        return repr(self.value)


@dataclass(eq=False, repr=False)
class BooleanLiteral(ASTNode):
    node_type = NodeTypes.BOOLEAN_LITERAL
    value: bool

    def label(self):
        return "true" if self.value else "false"


@dataclass(eq=False, repr=False)
class NullLiteral(ASTNode):
    node_type = NodeTypes.NULL_LITERAL

    def label(self):
        return "null"


@dataclass(eq=False, repr=False)
class Comment(ASTNode):
    node_type = NodeTypes.COMMENT
    text: str

    def label(self):
        return self.text


Expression = Union[
    Program,
    Identifier,
    MemberAccess,
    Import,
    FunctionDeclaration,
    FunctionParam,
    FunctionCall,
    Return,
    If,
    Else,
    While,
    Switch,
    Case,
    Binary,
    PreUnary,
    PostUnary,
    VariableDeclaration,
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    NullLiteral,
    Comment,
]


def describe(token: Token) -> str:
    if token.kind == TokenKind.EOF:
        return "end of input"
    if token.kind == TokenKind.EOL:
        return "end of line"
    return f"'{token.literal}'"


class Parser:
    # Binding power of infix operators; higher binds tighter.
    PRECEDENCE: dict[str, int] = {
        "||": 1,
        "&&": 2,
        "==": 3,
        "!=": 3,
        "<": 4,
        ">": 4,
        "<=": 4,
        ">=": 4,
        "+": 5,
        "-": 5,
        "*": 6,
        "/": 6,
    }

    UNARY_PRECEDENCE = 100
    PREFIX_OPERATORS = {"-", "!"}
    POSTFIX_OPERATORS = {"++", "--"}
    MODIFIERS = {"pub", "extern"}

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = list(tokens)
        if not self.tokens or self.tokens[-1].kind != TokenKind.EOF:
            end = self.tokens[-1].index + len(self.tokens[-1].literal) if self.tokens else 1
            self.tokens.append(Token(TokenKind.EOF, "", end))
        self.position = 0
        # Modifiers seen before the declaration they apply to
        self.modifiers: list[str] = []
        # Open parentheses and argument lists; line breaks inside them do not end an expression
        self.paren_depth = 0

    @property
    def current_token(self) -> Token:
        return self.tokens[min(self.position, len(self.tokens) - 1)]

    @property
    def previous_token(self) -> Optional[Token]:
        return self.tokens[self.position - 1] if self.position > 0 else None

    def advance(self) -> Token:
        token = self.current_token
        if token.kind != TokenKind.EOF:
            self.position += 1
        return token

    def check(self, kind: TokenKind, literal: Optional[str] = None) -> bool:
        return self.current_token.is_(kind, literal)

    def consume(self, kind: TokenKind, literal: Optional[str] = None) -> Optional[Token]:
        """Consume the current token if it matches, else leave it in place."""
        if self.check(kind, literal):
            return self.advance()
        return None

    def expect(self, kind: TokenKind, literal: Optional[str] = None, what: Optional[str] = None) -> Token:
        """Consume the current token or fail with "expected X, got Y"."""
        token = self.consume(kind, literal)
        if token is None:
            raise self.error(
                f"expected {what or repr(literal or kind.value)}, got {describe(self.current_token)}"
            )
        return token

    def expect_identifier(self, what: str) -> Identifier:
        token = self.expect(TokenKind.IDENTIFIER, what=what)
        return Identifier(token.literal)

    def error(self, text: str, token: Optional[Token] = None) -> ParseError:
        token = token or self.current_token
        logging.debug(f"parse error at token {token}: {text}")
        return ParseError(text, token.index)

    def skip_separators(self):
        """Skip blank lines and ';' between statements."""
        while self.check(TokenKind.EOL) or self.check(TokenKind.DELIMITER, ";"):
            self.advance()

    def skip_newlines(self):
        """Skip line breaks and comments inside an unfinished expression."""
        while self.current_token.kind in (TokenKind.EOL, TokenKind.COMMENT):
            self.advance()

    def at_statement_end(self) -> bool:
        token = self.current_token
        return (
            token.kind in (TokenKind.EOL, TokenKind.EOF, TokenKind.COMMENT)
            or token.is_(TokenKind.DELIMITER, ";")
            or token.is_(TokenKind.DELIMITER, "}")
        )

    def expect_statement_end(self):
        if self.at_statement_end():
            return
        previous = self.previous_token
        # Block-bodied statements may be followed directly by the next one
        if previous is not None and previous.is_(TokenKind.DELIMITER, "}"):
            return
        raise self.error(f"expected end of statement, got {describe(self.current_token)}")

    def parse(self) -> Program:
        logging.debug("Parsing tokens...")
        body: list[Expression] = []
        while True:
            self.skip_separators()
            if self.check(TokenKind.EOF):
                break
            body.append(self.parse_statement())
            self.expect_statement_end()
        logging.debug(f"Parsed {len(body)} top-level statements")
        return Program(body)

    def parse_statement(self) -> Expression:
        token = self.current_token
        if token.kind == TokenKind.COMMENT:
            self.advance()
            return Comment(token.literal)
        return self.parse_expression()

    def parse_expression(self, min_precedence: int = 0) -> Expression:
        """Precedence climbing over a primary expression and its postfix forms."""
        if self.current_token.kind == TokenKind.KEYWORD:
            return self.parse_keyword()
        left = self.parse_primary()
        return self.parse_postfix(left, min_precedence)

    def parse_postfix(self, left: Expression, min_precedence: int) -> Expression:
        while True:
            if self.paren_depth > 0:
                self.skip_newlines()
            token = self.current_token
            if token.kind == TokenKind.OPERATOR and token.literal in self.POSTFIX_OPERATORS:
                self.advance()
                left = PostUnary(token.literal, left)
            elif token.is_(TokenKind.DELIMITER, "."):
                self.advance()
                left = MemberAccess(left, self.expect_identifier("member name after '.'"))
            elif token.is_(TokenKind.DELIMITER, "("):
                left = FunctionCall(left, self.parse_arguments())
            elif token.kind == TokenKind.OPERATOR and token.literal in self.PRECEDENCE:
                precedence = self.PRECEDENCE[token.literal]
                if precedence <= min_precedence:
                    break
                self.advance()
                self.skip_newlines()
                right = self.parse_expression(precedence)
                left = Binary(token.literal, left, right)
            else:
                break
        return left

    def parse_primary(self) -> Expression:
        token = self.current_token
        match token.kind:
            case TokenKind.DELIMITER if token.literal == "(":
                self.advance()
                self.paren_depth += 1
                self.skip_newlines()
                expr = self.parse_expression()
                self.paren_depth -= 1
                self.skip_newlines()
                self.expect(TokenKind.DELIMITER, ")", "')' to close parenthesized expression")
                return expr
            case TokenKind.OPERATOR if token.literal in self.PREFIX_OPERATORS:
                self.advance()
                operand = self.parse_expression(self.UNARY_PRECEDENCE)
                return PreUnary(token.literal, operand)
            case TokenKind.NUMBER:
                self.advance()
                return NumberLiteral(token.literal)
            case TokenKind.STRING:
                self.advance()
                return StringLiteral(token.literal)
            case TokenKind.BOOLEAN:
                self.advance()
                return BooleanLiteral(token.literal == "true")
            case TokenKind.NULL:
                self.advance()
                return NullLiteral()
            case TokenKind.IDENTIFIER:
                self.advance()
                return Identifier(token.literal)
            case _:
                raise self.error(f"expected expression, got {describe(token)}", token)

    def parse_keyword(self) -> Expression:
        token = self.current_token
        match token.literal:
            case "pub" | "extern":
                while self.current_token.kind == TokenKind.KEYWORD and self.current_token.literal in self.MODIFIERS:
                    self.modifiers.append(self.advance().literal)
                if not self.check(TokenKind.KEYWORD, "fn"):
                    raise self.error(f"expected 'fn' after modifiers, got {describe(self.current_token)}")
                return self.parse_function_declaration()
            case "fn":
                return self.parse_function_declaration()
            case "let":
                return self.parse_variable_declaration(mutable=True)
            case "const":
                return self.parse_variable_declaration(mutable=False)
            case "if":
                return self.parse_if_expression()
            case "while":
                return self.parse_while_expression()
            case "switch":
                return self.parse_switch_expression()
            case "return":
                return self.parse_return_expression()
            case "use":
                return self.parse_import_expression()
            case _:
                raise self.error(f"expected expression, got keyword '{token.literal}'", token)

    def parse_type_name(self, what: str) -> Identifier:
        # "null" lexes as a literal but is also a type name
        token = self.consume(TokenKind.NULL)
        if token is not None:
            return Identifier(token.literal)
        return self.expect_identifier(what)

    def parse_block(self) -> list[Expression]:
        self.expect(TokenKind.DELIMITER, "{", "'{' to open block")
        body: list[Expression] = []
        # Statements inside a block end at line breaks even within parentheses
        paren_depth, self.paren_depth = self.paren_depth, 0
        while True:
            self.skip_separators()
            token = self.current_token
            if token.is_(TokenKind.DELIMITER, "}"):
                self.advance()
                self.paren_depth = paren_depth
                return body
            if token.kind == TokenKind.EOF:
                raise self.error("expected '}' to close block, got end of input", token)
            body.append(self.parse_statement())
            self.expect_statement_end()

    def parse_arguments(self) -> list[Expression]:
        self.expect(TokenKind.DELIMITER, "(")
        arguments: list[Expression] = []
        self.paren_depth += 1
        self.skip_newlines()
        if not self.check(TokenKind.DELIMITER, ")"):
            while True:
                self.skip_newlines()
                arguments.append(self.parse_expression())
                self.skip_newlines()
                if self.consume(TokenKind.DELIMITER, ","):
                    continue
                break
        self.paren_depth -= 1
        self.expect(TokenKind.DELIMITER, ")", "')' after function arguments")
        return arguments

    def parse_function_declaration(self) -> FunctionDeclaration:
        self.expect(TokenKind.KEYWORD, "fn")
        # Modifiers belong to this declaration only
        modifiers, self.modifiers = self.modifiers, []
        name = self.expect_identifier("function name")

        self.expect(TokenKind.DELIMITER, "(", "'(' after function name")
        params: list[FunctionParam] = []
        self.skip_newlines()
        if not self.check(TokenKind.DELIMITER, ")"):
            while True:
                self.skip_newlines()
                param_name = self.expect_identifier("parameter name")
                self.expect(TokenKind.DELIMITER, ":", f"':' after parameter '{param_name.name}'")
                param_type = self.parse_type_name("parameter type")
                params.append(FunctionParam(param_name, param_type))
                self.skip_newlines()
                if self.consume(TokenKind.DELIMITER, ","):
                    continue
                break
        self.expect(TokenKind.DELIMITER, ")", "')' after parameters")

        return_type = None
        if self.consume(TokenKind.OPERATOR, "->"):
            return_type = self.parse_type_name("return type after '->'")

        body = None
        if "extern" in modifiers:
            if self.check(TokenKind.DELIMITER, "{"):
                raise self.error(f"extern function '{name.name}' cannot have a body")
        else:
            body = self.parse_block()

        return FunctionDeclaration(name, params, body, return_type, modifiers)

    def parse_variable_declaration(self, mutable: bool) -> VariableDeclaration:
        self.advance()  # let / const
        name = self.expect_identifier("variable name")

        type_annotation = None
        value = None
        if self.consume(TokenKind.OPERATOR, ":="):
            self.skip_newlines()
            value = self.parse_expression()
        elif self.consume(TokenKind.DELIMITER, ":"):
            type_annotation = self.parse_type_name(f"type of '{name.name}'")
            if self.consume(TokenKind.OPERATOR, "="):
                self.skip_newlines()
                value = self.parse_expression()

        return VariableDeclaration(name, value, type_annotation, mutable)

    def parse_if_expression(self) -> If:
        self.expect(TokenKind.KEYWORD, "if")
        condition = self.parse_expression()
        body = self.parse_block()

        alternate: Optional[Union[If, Else]] = None
        checkpoint = self.position
        self.skip_newlines()
        if self.consume(TokenKind.KEYWORD, "else"):
            if self.check(TokenKind.KEYWORD, "if"):
                alternate = self.parse_if_expression()
            else:
                alternate = Else(self.parse_block())
        else:
            # No else: leave line breaks and comments for the enclosing block
            self.position = checkpoint

        return If(condition, body, alternate)

    def parse_while_expression(self) -> While:
        self.expect(TokenKind.KEYWORD, "while")
        condition = self.parse_expression()
        return While(condition, self.parse_block())

    def parse_switch_expression(self) -> Switch:
        self.expect(TokenKind.KEYWORD, "switch")
        value = self.parse_expression()
        self.expect(TokenKind.DELIMITER, "{", "'{' after switch value")

        cases: list[Case] = []
        while True:
            self.skip_separators()
            self.skip_newlines()
            token = self.current_token
            if token.is_(TokenKind.DELIMITER, "}"):
                self.advance()
                break
            if token.kind == TokenKind.EOF:
                raise self.error("expected '}' to close switch, got end of input", token)

            self.consume(TokenKind.KEYWORD, "case")
            if self.consume(TokenKind.KEYWORD, "default"):
                case_value: Union[Expression, DefaultCase] = DEFAULT
            else:
                case_value = self.parse_expression()
            self.expect(TokenKind.OPERATOR, "->", "'->' after case value")
            cases.append(Case(case_value, self.parse_block()))

        return Switch(value, cases)

    def parse_return_expression(self) -> Return:
        self.expect(TokenKind.KEYWORD, "return")
        if self.at_statement_end():
            return Return(None)
        return Return(self.parse_expression())

    def parse_import_expression(self) -> Import:
        self.expect(TokenKind.KEYWORD, "use")
        segments = [self.expect_identifier("module path after 'use'").name]
        while self.consume(TokenKind.OPERATOR, "/"):
            segments.append(self.expect_identifier("module path segment after '/'").name)

        alias = None
        if self.consume(TokenKind.KEYWORD, "as"):
            alias = self.expect_identifier("alias after 'as'").name
        return Import("/".join(segments), alias)


def parse_program(tokens: list[Token]) -> Program:
    return Parser(tokens).parse()
