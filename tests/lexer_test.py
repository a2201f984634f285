#!/usr/bin/env python3
"""
Tokenizer tests.

Run with:
  python3 -m pytest tests/lexer_test.py
  python3 tests/lexer_test.py
"""
from __future__ import annotations
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from ytlang.enums import TokenKind
from ytlang.errors import ParseError
from ytlang.lexer import Lexer


def kinds_and_literals(src: str) -> list[tuple[TokenKind, str]]:
    return [(t.kind, t.literal) for t in Lexer(src).tokenize()]


def test_declaration_tokens():
    tokens = kinds_and_literals("let x := 4")
    assert tokens == [
        (TokenKind.KEYWORD, "let"),
        (TokenKind.IDENTIFIER, "x"),
        (TokenKind.OPERATOR, ":="),
        (TokenKind.NUMBER, "4"),
        (TokenKind.EOF, ""),
    ]


def test_eof_is_always_last():
    assert kinds_and_literals("")[-1] == (TokenKind.EOF, "")
    assert kinds_and_literals("a\n")[-1][0] == TokenKind.EOF


def test_newlines_become_eol_tokens():
    kinds = [kind for kind, _ in kinds_and_literals("a\nb\n")]
    assert kinds == [
        TokenKind.IDENTIFIER,
        TokenKind.EOL,
        TokenKind.IDENTIFIER,
        TokenKind.EOL,
        TokenKind.EOF,
    ]


def test_multi_character_operators_win():
    literals = [lit for kind, lit in kinds_and_literals("-> == != <= >= && || ++ -- := - =") if kind == TokenKind.OPERATOR]
    assert literals == ["->", "==", "!=", "<=", ">=", "&&", "||", "++", "--", ":=", "-", "="]


def test_numbers_with_fraction():
    tokens = kinds_and_literals("43 2.5")
    assert tokens[0] == (TokenKind.NUMBER, "43")
    assert tokens[1] == (TokenKind.NUMBER, "2.5")


def test_strings_drop_quotes_and_decode_escapes():
    tokens = kinds_and_literals("\"hi\\n\" 'single'")
    assert tokens[0] == (TokenKind.STRING, "hi\n")
    assert tokens[1] == (TokenKind.STRING, "single")


def test_unterminated_string_is_a_parse_error():
    with pytest.raises(ParseError):
        Lexer("let s := \"oops").tokenize()


def test_literal_words():
    tokens = kinds_and_literals("true false null nothing")
    assert tokens[0] == (TokenKind.BOOLEAN, "true")
    assert tokens[1] == (TokenKind.BOOLEAN, "false")
    assert tokens[2] == (TokenKind.NULL, "null")
    assert tokens[3] == (TokenKind.IDENTIFIER, "nothing")


def test_keywords_and_modifiers():
    kinds = {lit: kind for kind, lit in kinds_and_literals("pub extern fn use as switch default main")}
    for word in ("pub", "extern", "fn", "use", "as", "switch", "default"):
        assert kinds[word] == TokenKind.KEYWORD
    assert kinds["main"] == TokenKind.IDENTIFIER


def test_comment_styles():
    src = "// line\n# hash\n/* block\ncomment */ [| bracket |]"
    comments = [lit for kind, lit in kinds_and_literals(src) if kind == TokenKind.COMMENT]
    assert comments == ["line", "hash", "block\ncomment", "bracket"]


def test_division_is_not_a_comment():
    tokens = kinds_and_literals("43 / 2")
    assert tokens[1] == (TokenKind.OPERATOR, "/")


def test_token_index_is_one_based_offset():
    tokens = Lexer("let  x").tokenize()
    assert tokens[0].index == 1
    assert tokens[1].index == 6


def test_unknown_characters_pass_through():
    tokens = kinds_and_literals("@")
    assert tokens[0] == (TokenKind.UNKNOWN, "@")


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
