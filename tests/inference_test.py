#!/usr/bin/env python3
"""
Type inference tests: literal and operator rules, forward references,
placeholder unification and re-running inference on an annotated tree.

Run with:
  python3 -m pytest tests/inference_test.py
  python3 tests/inference_test.py
"""
from __future__ import annotations
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from ytlang.errors import ScopeError, TypeCheckError
from ytlang.inference import TypeInferrer, infer
from ytlang.lexer import Lexer
from ytlang.parser import FunctionDeclaration, Program, VariableDeclaration, parse_program
from ytlang.typesys import BOOL, FLOAT, INT, STRING, VOID, ConcreteType, Placeholder
from ytlang.enums import TypeKind


def parse(src: str) -> Program:
    return parse_program(Lexer(src).tokenize())


def run(src: str) -> tuple[Program, TypeInferrer]:
    program = parse(src)
    inferrer = TypeInferrer(program)
    assert inferrer.infer() is program
    return program, inferrer


def declarations(program: Program) -> dict[str, object]:
    """Resolved type of every top-level declaration, by name."""
    types = {}
    for node in program.body:
        if isinstance(node, VariableDeclaration):
            types[node.name.name] = node.resolved_type
        elif isinstance(node, FunctionDeclaration):
            types[node.name.name] = node.resolved_return_type
    return types


DIVISIONS = ["43 / 2", "2 / 43", "0 / 1", "1 / 1", "100000 / 3", "3 / 100000", "7 / 0"]


def test_integer_division_is_float():
    for expression in DIVISIONS:
        program, _ = run(f"let x := {expression}")
        assert declarations(program)["x"] == FLOAT, expression


def test_division_of_int_variables_is_float():
    program, _ = run("let a := 2\nlet b := 43\nlet x := a / b\nlet y := b / a")
    types = declarations(program)
    assert types["x"] == FLOAT
    assert types["y"] == FLOAT


def test_number_literals():
    program, _ = run("let a := 4\nlet b := 4.5")
    assert declarations(program) == {"a": INT, "b": FLOAT}


def test_fixed_literal_types():
    program, _ = run("let s := \"hi\"\nlet t := true\nlet n := null")
    types = declarations(program)
    assert types["s"] == STRING
    assert types["t"] == BOOL
    assert types["n"].kind == TypeKind.NULL


def test_arithmetic_keeps_operand_type():
    program, _ = run("let x := 4\nlet y := 3\nlet z := x + y * 2")
    assert declarations(program)["z"] == INT


def test_comparison_and_logical_results_are_bool():
    program, _ = run("let a := 1 < 2\nlet b := a && true\nlet c := !b")
    assert declarations(program) == {"a": BOOL, "b": BOOL, "c": BOOL}


def test_unary_minus_keeps_operand_type():
    program, _ = run("let a := -2.5")
    assert declarations(program)["a"] == FLOAT


def test_annotation_is_authoritative():
    program, _ = run("let z: string = 4 + 3\nlet b: i8 = 1")
    types = declarations(program)
    assert types["z"] == STRING
    assert types["b"] == ConcreteType(TypeKind.INT, 8)
    assert str(types["b"]) == "i8"


def test_mismatched_concrete_operands_abort_inference():
    with pytest.raises(TypeCheckError):
        run("let x := 1 + \"a\"")


def test_annotated_return_type():
    program, _ = run("fn main() -> int { return 5 }")
    assert declarations(program)["main"] == INT


def test_return_type_from_body():
    program, _ = run("fn five() { return 5 }\nfn nothing() { }\nfn bare() { return }")
    assert declarations(program) == {"five": INT, "nothing": VOID, "bare": VOID}


def test_conflicting_concrete_returns_abort_inference():
    with pytest.raises(TypeCheckError):
        run("fn f(a: bool) {\n    if a {\n        return 1\n    }\n    return 2.5\n}")


def test_forward_reference_to_function_is_deferred():
    program, inferrer = run("fn f() { return g() }\nfn g() { return 1 }")
    assert declarations(program)["f"] == INT
    assert len(inferrer.arena) > 0
    assert inferrer.unresolved == []


def test_forward_reference_to_global_variable():
    program, _ = run("fn f() { return limit }\nlet limit := 10")
    assert declarations(program)["f"] == INT


def test_placeholders_merge_before_binding():
    program, _ = run("fn a() { return b() + c() }\nfn b() { return 1 }\nfn c() { return 2 }")
    assert declarations(program)["a"] == INT


def test_recursive_function_without_annotation():
    src = """
fn fact(n: int) {
    if n < 2 {
        return 1
    }
    return n * fact(n - 1)
}
"""
    program, _ = run(src)
    assert declarations(program)["fact"] == INT


def test_call_to_annotated_function_before_definition():
    program, inferrer = run("let x := twice(2)\nfn twice(n: int) -> int { return n * 2 }")
    assert declarations(program)["x"] == INT
    assert len(inferrer.arena) == 0


def test_undefined_symbol_is_a_scope_error():
    with pytest.raises(ScopeError):
        run("let x := y")


def test_redeclaration_in_same_scope_is_a_scope_error():
    with pytest.raises(ScopeError):
        run("let x := 1\nlet x := 2")


def test_shadowing_in_nested_scope_is_allowed():
    program, _ = run("let x := 1\nfn f() {\n    let x := \"s\"\n    return x\n}")
    assert declarations(program)["f"] == STRING


def test_unresolvable_declaration_keeps_placeholder():
    program, inferrer = run("let n := 5\nlet v := n()")
    v = program.body[1]
    assert isinstance(v.resolved_type, Placeholder)
    assert inferrer.unresolved == [v]


def test_constraints_are_consumed_once():
    _, inferrer = run("fn f() { return g() }\nfn g() { return 1 }")
    assert inferrer.constraints == []


def test_expression_types_are_recorded():
    program, inferrer = run("let x := 1 < 2")
    assert inferrer.type_of(program.body[0].value) == BOOL


def test_second_run_is_idempotent():
    src = """
fn f() { return g() + limit }
fn g() { return 1 }
let limit := 10
let ratio := f() / 3
fn main() -> int { return f() }
"""
    program = infer(parse(src))
    before = declarations(program)
    assert all(isinstance(t, ConcreteType) for t in before.values())

    again = TypeInferrer(program)
    again.infer()
    assert declarations(program) == before
    assert len(again.arena) == 0


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
