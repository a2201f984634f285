#!/usr/bin/env python3
"""
Module resolution tests: builds tiny temp projects, merges their imports and
checks the namespaced result.

Run with:
  python3 -m pytest tests/imports_test.py
  python3 tests/imports_test.py
"""
from __future__ import annotations
import os
import sys
import tempfile
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from ytlang.errors import ModuleResolutionError, ParseError
from ytlang.imports import ModuleResolver, namespace_module
from ytlang.inference import infer
from ytlang.lexer import Lexer
from ytlang.parser import FunctionCall, FunctionDeclaration, Identifier, Import, Program, VariableDeclaration, parse_program
from ytlang.type_checker import check
from ytlang.typesys import INT

MATH_MODULE = """
// module math: a function, a constant and an internal helper call
pub fn add(x: int, y: int) -> int {
    return x + y
}

const TEN := 10

fn add_ten(x: int) -> int {
    return add(x, TEN)
}
"""

ENTRY = """
use lib/math

fn main() -> int {
    return math.add_ten(math.add(1, 2))
}
"""


def parse(src: str) -> Program:
    return parse_program(Lexer(src).tokenize())


def top_level_names(program: Program) -> list[str]:
    return [
        node.name.name
        for node in program.body
        if isinstance(node, (FunctionDeclaration, VariableDeclaration))
    ]


def test_namespace_module_prefixes_declarations_and_references():
    program = parse(MATH_MODULE)
    exports = namespace_module(program, "math")
    assert exports == {"add", "TEN", "add_ten"}
    assert top_level_names(program) == ["math.add", "math.TEN", "math.add_ten"]

    add_ten = program.body[-1]
    call = add_ten.body[0].value
    assert isinstance(call, FunctionCall)
    assert call.callee.name == "math.add"
    assert [arg.name for arg in call.arguments] == ["x", "math.TEN"]


def test_locals_shadowing_exports_are_not_renamed():
    program = parse("fn f() -> int { return 1 }\nfn g(f: int) -> int { return f }")
    namespace_module(program, "m")
    g = program.body[1]
    assert isinstance(g.body[0].value, Identifier)
    assert g.body[0].value.name == "f"


def test_merge_replaces_use_with_module_declarations():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "lib").mkdir()
        (root / "lib" / "math.yt").write_text(MATH_MODULE, encoding="utf-8")

        program = parse(ENTRY)
        ModuleResolver(str(root)).merge(program)

        assert not any(isinstance(node, Import) for node in program.body)
        assert top_level_names(program) == ["math.add", "math.TEN", "math.add_ten", "main"]

        infer(program)
        assert check(program) == []
        assert program.body[-1].resolved_return_type == INT


def test_alias_becomes_namespace():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "util.yt").write_text("fn one() -> int { return 1 }\n", encoding="utf-8")

        program = parse("use util as u\nlet x := u.one()")
        ModuleResolver(str(root)).merge(program)
        assert top_level_names(program) == ["u.one", "x"]
        infer(program)
        assert check(program) == []


def test_std_paths_resolve_under_std_root():
    with tempfile.TemporaryDirectory() as project, tempfile.TemporaryDirectory() as std:
        (Path(std) / "text.yt").write_text("pub fn hello() -> string { return \"hi\" }\n", encoding="utf-8")
        resolver = ModuleResolver(project, std)
        assert resolver.resolve_import("std/text") == os.path.join(os.path.abspath(std), "text.yt")
        assert resolver.resolve_import("text") is None


def test_bundled_std_library_is_default():
    resolver = ModuleResolver()
    assert resolver.resolve_import("std/io") is not None
    assert resolver.resolve_import("std/math") is not None


def test_each_module_is_merged_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.yt").write_text("use b\nfn fa() -> int { return 1 }\n", encoding="utf-8")
        (root / "b.yt").write_text("use a\nfn fb() -> int { return 2 }\n", encoding="utf-8")

        program = parse("use a\nuse b")
        ModuleResolver(str(root)).merge(program)
        assert sorted(top_level_names(program)) == ["a.fa", "b.fb"]


def test_module_imported_under_two_aliases_uses_first_namespace():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "greet.yt").write_text(
            "use std/io\npub fn greet() { io.println(\"hi\") }\n", encoding="utf-8"
        )

        program = parse("use std/io as out\nuse greet\nfn main() {\n    out.println(\"x\")\n    greet.greet()\n}")
        ModuleResolver(str(root)).merge(program)

        names = top_level_names(program)
        assert names.count("out.println") == 1
        assert not any(name.startswith("io.") for name in names)

        greet = next(node for node in program.body if isinstance(node, FunctionDeclaration) and node.name.name == "greet.greet")
        call = greet.body[0]
        assert call.callee.qualified_name() == "out.println"

        infer(program)
        assert check(program) == []


def test_alias_rewrite_leaves_shadowing_locals_alone():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "util.yt").write_text("pub fn one() -> int { return 1 }\n", encoding="utf-8")
        (root / "user.yt").write_text(
            "use util\npub fn twice(util: int) -> int { return util + util }\npub fn two() -> int { return util.one() + 1 }\n",
            encoding="utf-8",
        )

        program = parse("use util as u\nuse user\nlet x := user.two() + user.twice(u.one())")
        ModuleResolver(str(root)).merge(program)

        twice, two = [node for node in program.body if isinstance(node, FunctionDeclaration) and node.name.name.startswith("user.")]
        assert twice.body[0].value.left.name == "util"
        assert two.body[0].value.left.callee.qualified_name() == "u.one"

        infer(program)
        assert check(program) == []

def test_missing_module_is_an_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        program = parse("use nowhere/thing")
        with pytest.raises(ModuleResolutionError) as info:
            ModuleResolver(tmpdir).merge(program)
        assert "nowhere/thing" in str(info.value)


def test_parse_error_in_module_names_the_module():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "broken.yt").write_text("fn f( {\n", encoding="utf-8")
        program = parse("use broken")
        with pytest.raises(ParseError) as info:
            ModuleResolver(tmpdir).merge(program)
        assert "broken.yt" in str(info.value)


def main():
    failures = 0
    for name, fn in sorted(globals().items()):
        if name.startswith("test_") and callable(fn):
            try:
                fn()
                print(f"[PASS] {name}")
            except AssertionError as e:
                failures += 1
                print(f"[FAIL] {name}: {e}")
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
