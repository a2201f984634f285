#!/usr/bin/env python3
"""
C backend tests: inspects the generated translation unit and, when a C
compiler is installed, builds and runs it.

Run with:
  python3 -m pytest tests/codegen_test.py
  python3 tests/codegen_test.py
"""
from __future__ import annotations
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from ytlang.c_code_generator import YT_TO_C, CCodeGenerator
from ytlang.errors import CodegenError
from ytlang.imports import ModuleResolver
from ytlang.inference import TypeInferrer
from ytlang.lexer import Lexer
from ytlang.parser import parse_program
from ytlang.type_checker import check

PROGRAM = """
use std/io

fn square(n: int) -> int {
    return n * n
}

let greeting := "hello"

fn main() -> int {
    io.println(greeting)
    let total := square(3)
    if greeting == "hello" {
        total++
    }
    switch total {
        10 -> { return 0 }
        default -> { return 1 }
    }
    return 2
}
"""


def generate(src: str) -> str:
    program = parse_program(Lexer(src).tokenize())
    ModuleResolver().merge(program)
    inferrer = TypeInferrer(program)
    inferrer.infer()
    assert check(program) == []
    return CCodeGenerator(program, inferrer.type_of).generate()


def test_type_mapping_covers_builtin_types():
    assert YT_TO_C["int"] == "int32_t"
    assert YT_TO_C["i8"] == "int8_t"
    assert YT_TO_C["i64"] == "int64_t"
    assert YT_TO_C["float"] == "double"
    assert YT_TO_C["string"] == "const char*"
    assert YT_TO_C["bool"] == "bool"


def test_functions_globals_and_entry_point():
    code = generate(PROGRAM)
    assert "extern int32_t puts(const char* text);" in code
    assert "static int32_t square(int32_t n) {" in code
    assert "void io__println(const char* text) {" in code
    assert "static const char* greeting;" in code
    assert 'greeting = "hello";' in code
    assert "int32_t yt_main(void) {" in code
    assert "return (int)yt_main();" in code


def test_string_equality_uses_strcmp():
    code = generate(PROGRAM)
    assert '(strcmp(greeting, "hello") == 0)' in code


def test_switch_lowers_to_if_chain():
    code = generate(PROGRAM)
    assert "int32_t __switch_0 = total;" in code
    assert "if (__switch_0 == 10) {" in code


def test_division_is_floating_point():
    code = generate("let r := 7 / 2")
    assert "static double r;" in code
    assert "r = ((double)(7) / (double)(2));" in code


def test_program_without_main_still_has_entry_point():
    code = generate("let x := 1")
    assert "int main(void) {\n    yt_init();\n    return 0;\n}" in code


def test_unresolved_types_cannot_be_generated():
    program = parse_program(Lexer("let n := 5\nlet v := n()").tokenize())
    inferrer = TypeInferrer(program)
    inferrer.infer()
    with pytest.raises(CodegenError):
        CCodeGenerator(program, inferrer.type_of).generate()


@pytest.mark.skipif(shutil.which(os.environ.get("CC", "cc")) is None, reason="no C compiler available")
def test_generated_code_compiles_and_runs():
    code = generate(PROGRAM)
    with tempfile.TemporaryDirectory() as tmpdir:
        c_file = Path(tmpdir) / "program.c"
        binary = Path(tmpdir) / "program"
        c_file.write_text(code, encoding="utf-8")
        compiler = os.environ.get("CC", "cc")
        build = subprocess.run(
            [compiler, "-std=c11", str(c_file), "-o", str(binary), "-lm"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        assert build.returncode == 0, build.stderr

        run = subprocess.run([str(binary)], stdout=subprocess.PIPE, text=True, timeout=10)
        assert run.returncode == 0
        assert run.stdout == "hello\n"


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
