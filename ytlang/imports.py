import os
import logging
from typing import Dict, List, Optional, Set

from ytlang.errors import ModuleResolutionError, ParseError
from ytlang.lexer import Lexer
from ytlang.parser import (
    Binary,
    Case,
    Else,
    Expression,
    FunctionCall,
    FunctionDeclaration,
    Identifier,
    If,
    Import,
    MemberAccess,
    Parser,
    PostUnary,
    PreUnary,
    Program,
    Return,
    Switch,
    VariableDeclaration,
    While,
)
from ytlang.utils.file_utils import get_line_and_column_from_index

SOURCE_EXTENSION = ".yt"
STD_PREFIX = "std/"
DEFAULT_STD_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "std")


def collect_exports(program: Program) -> Set[str]:
    """Names declared at the top level of a module."""
    exports: Set[str] = set()
    for node in program.body:
        if isinstance(node, (FunctionDeclaration, VariableDeclaration)):
            exports.add(node.name.name)
    return exports


def rename_references(body: List[Expression], renames: Dict[str, str], locals_: Optional[Set[str]] = None) -> None:
    """
    Rewrite identifiers named in ``renames`` throughout ``body``.
    Locals and parameters that shadow a renamed name are left alone.
    """

    def rename_block(block: List[Expression], outer: Set[str]) -> None:
        block_locals = set(outer)
        for statement in block:
            rename(statement, block_locals)

    def rename(node, scope: Set[str]) -> None:
        match node:
            case Identifier():
                if node.name in renames and node.name not in scope:
                    node.name = renames[node.name]
            case MemberAccess():
                rename(node.object, scope)
            case FunctionCall():
                rename(node.callee, scope)
                for argument in node.arguments:
                    rename(argument, scope)
            case Binary():
                rename(node.left, scope)
                rename(node.right, scope)
            case PreUnary() | PostUnary():
                rename(node.operand, scope)
            case Return():
                if node.value is not None:
                    rename(node.value, scope)
            case VariableDeclaration():
                if node.value is not None:
                    rename(node.value, scope)
                scope.add(node.name.name)
            case FunctionDeclaration():
                scope.add(node.name.name)
                if node.body is not None:
                    rename_block(node.body, scope | {param.name.name for param in node.params})
            case If():
                rename(node.condition, scope)
                rename_block(node.body, scope)
                if node.alternate is not None:
                    rename(node.alternate, scope)
            case Else():
                rename_block(node.body, scope)
            case While():
                rename(node.condition, scope)
                rename_block(node.body, scope)
            case Switch():
                rename(node.value, scope)
                for case in node.cases:
                    rename(case, scope)
            case Case():
                if not node.is_default:
                    rename(node.value, scope)
                rename_block(node.body, scope)
            case _:
                # Literals, comments and imports hold no references
                pass

    rename_block(body, locals_ or set())


def namespace_module(program: Program, namespace: str) -> Set[str]:
    """
    Prefix every top-level declaration of a module with ``namespace.`` and
    rewrite the module's own references to those declarations to match.
    Locals and parameters that shadow a top-level name are left alone.

    Returns the original (unqualified) export names.
    """
    exports = collect_exports(program)
    renames = {name: f"{namespace}.{name}" for name in exports}

    for node in program.body:
        if isinstance(node, FunctionDeclaration):
            node.name.name = renames[node.name.name]
            if node.body is not None:
                rename_references(node.body, renames, {param.name.name for param in node.params})
        elif isinstance(node, VariableDeclaration):
            node.name.name = renames[node.name.name]
            if node.value is not None:
                rename_references([node.value], renames)
        else:
            rename_references([node], renames)

    return exports


class ModuleResolver:
    """
    Replaces ``use`` declarations with the namespaced declarations of the
    modules they name.

    ``use std/...`` paths are looked up under the standard library root; any
    other path is relative to the project root. Each module file is merged at
    most once, under the namespace of its first import; later imports under
    another alias are rewritten to that namespace. Import cycles stop at the
    first repeat.
    """

    def __init__(self, project_root: Optional[str] = None, std_root: Optional[str] = None) -> None:
        self.project_root = os.path.abspath(project_root or os.getcwd())
        self.std_root = os.path.abspath(std_root or DEFAULT_STD_ROOT)
        self.loaded: Set[str] = set()
        # Module file -> namespace it was merged under
        self.modules: Dict[str, str] = {}

    def candidate_path(self, path: str) -> str:
        if path.startswith(STD_PREFIX):
            base, relative = self.std_root, path[len(STD_PREFIX):]
        else:
            base, relative = self.project_root, path
        return os.path.join(base, *relative.split("/")) + SOURCE_EXTENSION

    def resolve_import(self, path: str) -> Optional[str]:
        candidate = self.candidate_path(path)
        return candidate if os.path.isfile(candidate) else None

    def parse_file(self, file_path: str) -> Program:
        with open(file_path, "r", encoding="utf-8") as f:
            file_content = f.read()
        try:
            tokens = Lexer(file_content).tokenize()
            return Parser(tokens).parse()
        except ParseError as e:
            # The offset refers to another file; keep the location in the message instead
            location = ""
            if e.index is not None:
                line, column = get_line_and_column_from_index(file_content, e.index)
                location = f" at {line}:{column}"
            raise ParseError(f"in module {os.path.relpath(file_path)}{location}: {e.message}") from e

    def module_path(self, node: Import) -> str:
        file_path = self.resolve_import(node.path)
        if file_path is None:
            raise ModuleResolutionError(
                f"module '{node.path}' not found (looked for {self.candidate_path(node.path)})"
            )
        return os.path.abspath(file_path)

    def load_module(self, node: Import) -> List[Expression]:
        file_path = self.module_path(node)
        if file_path in self.loaded:
            logging.debug(f"module '{node.path}' already merged")
            return []
        self.loaded.add(file_path)

        logging.debug(f"loading module '{node.path}' from {file_path} as '{node.namespace}'")
        program = self.parse_file(file_path)
        namespace_module(program, node.namespace)
        self.modules[file_path] = node.namespace
        return self.merge_body(program.body)

    def merge_body(self, body: List[Expression]) -> List[Expression]:
        """
        Splice imported modules into ``body``. A module merged earlier under
        another namespace is not merged again; the importer's references to
        its own alias are rewritten to that namespace instead.
        """
        merged: List[Expression] = []
        own: List[Expression] = []
        aliases: Dict[str, str] = {}
        for node in body:
            if isinstance(node, Import):
                merged.extend(self.load_module(node))
                # Absent only for a cycle back to the entry file
                namespace = self.modules.get(self.module_path(node))
                if namespace is not None and namespace != node.namespace:
                    logging.debug(f"'{node.namespace}' refers to module '{node.path}' merged as '{namespace}'")
                    aliases[node.namespace] = namespace
            else:
                merged.append(node)
                own.append(node)
        if aliases:
            rename_references(own, aliases)
        return merged

    def merge(self, program: Program, entry_path: Optional[str] = None) -> Program:
        """Splice imported modules into ``program`` in place of its ``use`` declarations."""
        if entry_path is not None:
            self.loaded.add(os.path.abspath(entry_path))
        program.body = self.merge_body(program.body)
        return program
