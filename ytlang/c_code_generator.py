import logging
import textwrap
from typing import Callable, Optional

from ytlang.enums import TypeKind
from ytlang.errors import CodegenError
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
from ytlang.typesys import BUILTIN_TYPES, ConcreteType, TypeTerm

# Mapping from source type names to C types.
YT_TO_C: dict[str, str] = {
    "int": "int32_t",
    "i8": "int8_t",
    "i16": "int16_t",
    "i32": "int32_t",
    "i64": "int64_t",
    "float": "double",
    "bool": "bool",
    "string": "const char*",
    "void": "void",
    "null": "void*",
}

C_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\0": "\\0",
}


def indent(code: str) -> str:
    return textwrap.indent(code, "    ")


class CCodeGenerator:
    def __init__(
        self,
        program: Program,
        type_of: Optional[Callable[[ASTNode], Optional[TypeTerm]]] = None,
    ):
        self.program = program
        # Resolved type of an expression, as computed by inference
        self.type_of = type_of
        self.temp_counter = 0

        # Source function name -> C symbol
        self.function_names: dict[str, str] = {}
        self.has_main = False
        self.main_returns_int = False
        for node in program.body:
            if isinstance(node, FunctionDeclaration):
                self.function_names[node.name.name] = self._function_symbol(node)
                if node.name.name == "main":
                    self.has_main = True
                    self.main_returns_int = self._is_int(node.resolved_return_type)

    def generate(self) -> str:
        """Generate one C translation unit for the program."""
        logging.debug("Generating C code...")
        header = "#include <stdbool.h>\n#include <stdint.h>\n#include <string.h>\n\n"

        prototypes: list[str] = []
        globals_: list[str] = []
        function_defs: list[str] = []
        init_lines: list[str] = []

        for node in self.program.body:
            if isinstance(node, FunctionDeclaration):
                prototypes.append(self._emit_prototype(node))
                if not node.is_extern:
                    function_defs.append(self._emit_function_definition(node))
            elif isinstance(node, VariableDeclaration):
                ctype = self._map_type_to_c(node.resolved_type, node.name.name)
                globals_.append(f"static {ctype} {self.c_name(node.name.name)};")
                if node.value is not None:
                    init_lines.append(f"{self.c_name(node.name.name)} = {self._visit(node.value)};")
            else:
                code = self.emit_statement(node)
                if code:
                    init_lines.append(code)

        sections = [header]
        if prototypes:
            sections.append("\n".join(prototypes) + "\n\n")
        if globals_:
            sections.append("\n".join(globals_) + "\n\n")
        if function_defs:
            sections.append("\n\n".join(function_defs) + "\n\n")

        init_body = indent("\n".join(init_lines)) + "\n" if init_lines else ""
        sections.append("static void yt_init(void) {\n" + init_body + "}\n\n")

        main_code = "int main(void) {\n    yt_init();\n"
        if self.has_main and self.main_returns_int:
            main_code += "    return (int)yt_main();\n"
        elif self.has_main:
            main_code += "    yt_main();\n    return 0;\n"
        else:
            main_code += "    return 0;\n"
        main_code += "}\n"
        sections.append(main_code)
        return "".join(sections)

    def c_name(self, name: str) -> str:
        return name.replace(".", "__")

    def _function_symbol(self, node: FunctionDeclaration) -> str:
        name = node.name.name
        if node.is_extern:
            # Link against the C symbol, not the namespaced source name
            return name.rsplit(".", 1)[-1]
        if name == "main":
            return "yt_main"
        return self.c_name(name)

    def _is_int(self, term: Optional[TypeTerm]) -> bool:
        return isinstance(term, ConcreteType) and term.kind == TypeKind.INT

    def _is_string(self, node: Expression) -> bool:
        if isinstance(node, StringLiteral):
            return True
        if self.type_of is None:
            return False
        term = self.type_of(node)
        return isinstance(term, ConcreteType) and term.kind == TypeKind.STRING

    def _map_type_to_c(self, term: Optional[TypeTerm], what: str) -> str:
        if not isinstance(term, ConcreteType):
            raise CodegenError(f"cannot generate code for '{what}': its type is unresolved")
        return YT_TO_C[str(term)]

    def _map_annotation_to_c(self, annotation: Identifier) -> str:
        if annotation.name not in BUILTIN_TYPES:
            raise CodegenError(f"unknown type '{annotation.name}'")
        return YT_TO_C[annotation.name]

    def _signature(self, node: FunctionDeclaration) -> str:
        ret_c = self._map_type_to_c(node.resolved_return_type, node.name.name)
        params = [
            f"{self._map_annotation_to_c(param.type_annotation)} {param.name.name}"
            for param in node.params
        ]
        params_sig = ", ".join(params) if params else "void"
        return f"{ret_c} {self.function_names[node.name.name]}({params_sig})"

    def _emit_prototype(self, node: FunctionDeclaration) -> str:
        if node.is_extern:
            return f"extern {self._signature(node)};"
        linkage = "" if node.is_pub or node.name.name == "main" else "static "
        return f"{linkage}{self._signature(node)};"

    def _emit_function_definition(self, node: FunctionDeclaration) -> str:
        linkage = "" if node.is_pub or node.name.name == "main" else "static "
        body_code = self._emit_block(node.body or [])
        return f"{linkage}{self._signature(node)} {body_code}"

    def _emit_block(self, body: list[Expression]) -> str:
        lines = []
        for statement in body:
            code = self.emit_statement(statement)
            if code:
                lines.append(code)
        if not lines:
            return "{\n}"
        return "{\n" + indent("\n".join(lines)) + "\n}"

    def emit_statement(self, node: Expression) -> str:
        """
        Generate code for a node in statement position.
        Appends a semicolon unless the code already ends a block or a comment.
        """
        match node:
            case VariableDeclaration():
                ctype = self._map_type_to_c(node.resolved_type, node.name.name)
                if node.value is None:
                    return f"{ctype} {self.c_name(node.name.name)};"
                return f"{ctype} {self.c_name(node.name.name)} = {self._visit(node.value)};"
            case Return():
                if node.value is None:
                    return "return;"
                return f"return {self._visit(node.value)};"
            case If():
                return self._emit_if(node)
            case Else():
                return self._emit_block(node.body)
            case While():
                return f"while ({self._visit(node.condition)}) {self._emit_block(node.body)}"
            case Switch():
                return self._emit_switch(node)
            case Comment():
                return "/* " + node.text.replace("*/", "* /") + " */"
            case FunctionDeclaration():
                raise CodegenError(f"nested function '{node.name.name}' is not supported by the C backend")
            case Import():
                raise CodegenError(f"module '{node.path}' was not resolved before code generation")
            case _:
                code = self._visit(node)
                return code + ";" if code else ""

    def _emit_if(self, node: If) -> str:
        code = f"if ({self._visit(node.condition)}) {self._emit_block(node.body)}"
        if isinstance(node.alternate, If):
            code += f" else {self._emit_if(node.alternate)}"
        elif isinstance(node.alternate, Else):
            code += f" else {self._emit_block(node.alternate.body)}"
        return code

    def _emit_switch(self, node: Switch) -> str:
        """Lower a switch to an if/else chain over a temporary holding the value."""
        temp = f"__switch_{self.temp_counter}"
        self.temp_counter += 1

        value_type = self.type_of(node.value) if self.type_of is not None else None
        ctype = self._map_type_to_c(value_type, "switch value")
        is_string = self._is_string(node.value)

        branches = []
        default: Optional[Case] = None
        for case in node.cases:
            if case.is_default:
                default = case
                continue
            value = self._visit(case.value)
            condition = f"strcmp({temp}, {value}) == 0" if is_string else f"{temp} == {value}"
            branches.append(f"if ({condition}) {self._emit_block(case.body)}")

        chain = " else ".join(branches)
        if default is not None:
            default_block = self._emit_block(default.body)
            chain = f"{chain} else {default_block}" if chain else default_block

        lines = [f"{ctype} {temp} = {self._visit(node.value)};"]
        if chain:
            lines.append(chain)
        return "{\n" + indent("\n".join(lines)) + "\n}"

    def _string_literal(self, value: str) -> str:
        return '"' + "".join(C_ESCAPES.get(ch, ch) for ch in value) + '"'

    def _callee_name(self, callee: Expression) -> str:
        if isinstance(callee, Identifier):
            name: Optional[str] = callee.name
        elif isinstance(callee, MemberAccess):
            name = callee.qualified_name()
        else:
            name = None
        if name is None:
            raise CodegenError("only named functions can be called")
        return self.function_names.get(name, self.c_name(name))

    def _visit(self, node: Expression) -> str:
        match node:
            case NumberLiteral():
                return node.literal
            case StringLiteral():
                return self._string_literal(node.value)
            case BooleanLiteral():
                return "true" if node.value else "false"
            case NullLiteral():
                return "NULL"
            case Identifier():
                return self.c_name(node.name)
            case MemberAccess():
                qualified = node.qualified_name()
                if qualified is None:
                    raise CodegenError(f"member access '.{node.member.name}' is not supported by the C backend")
                return self.c_name(qualified)
            case FunctionCall():
                args = ", ".join(self._visit(argument) for argument in node.arguments)
                return f"{self._callee_name(node.callee)}({args})"
            case Binary():
                left = self._visit(node.left)
                right = self._visit(node.right)
                if node.operator == "/":
                    # Division always produces a float
                    return f"((double)({left}) / (double)({right}))"
                if node.operator in ("==", "!=") and self._is_string(node.left):
                    return f"(strcmp({left}, {right}) {node.operator} 0)"
                return f"({left} {node.operator} {right})"
            case PreUnary():
                return f"({node.operator}{self._visit(node.operand)})"
            case PostUnary():
                return f"({self._visit(node.operand)}{node.operator})"
            case Comment():
                return ""
            case (
                VariableDeclaration()
                | Return()
                | If()
                | Else()
                | While()
                | Switch()
                | FunctionDeclaration()
                | Import()
                | Program()
                | FunctionParam()
                | Case()
            ):
                raise CodegenError(f"{node.node_type.value} cannot be used as a value by the C backend")
