import logging
import re

from ytlang.enums import TokenKind
from ytlang.errors import ParseError


class Token:
    kind: TokenKind
    literal: str
    index: int

    def __init__(self, kind: TokenKind, literal: str, index: int) -> None:
        self.kind = kind
        self.literal = literal
        self.index = index

    def is_(self, kind: TokenKind, literal: str | None = None) -> bool:
        """True if the token has the given kind (and literal, when one is given)."""
        return self.kind == kind and (literal is None or self.literal == literal)

    def __str__(self):
        return f"Token('{self.kind.value}', '{self.literal}', {self.index})"

    def __repr__(self):
        return self.__str__()


ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


def unescape(body: str) -> str:
    return re.sub(r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), body)


class Lexer:
    identifier: str = r"[a-zA-Z_][a-zA-Z0-9_]*"

    keywords: set[str] = {
        "fn",
        "return",
        "switch",
        "case",
        "default",
        "if",
        "else",
        "while",
        "for",
        "break",
        "continue",
        "let",
        "const",
        "use",
        "as",
        "pub",
        "extern",
    }

    comments: dict[str, str] = {
        "LINE_COMMENT": r"\/\/[^\n]*",
        "HASH_COMMENT": r"#[^\n]*",
        "BLOCK_COMMENT": r"\/\*[\s\S]*?\*\/",
        "BRACKET_COMMENT": r"\[\|[\s\S]*?\|\]",
    }

    strings: dict[str, str] = {
        "DOUBLE_QUOTED": r"\"(?:\\.|[^\\\"\n])*\"",
        "SINGLE_QUOTED": r"'(?:\\.|[^\\'\n])*'",
    }

    numbers: dict[str, str] = {
        "NUMBER": r"[0-9]+(?:\.[0-9]+)?",
    }

    # Longest operators first so "->" never lexes as "-" ">".
    operators: dict[str, str] = {
        "DECLARE_ASSIGN": r":=",
        "ARROW": r"\->",
        "FAT_ARROW": r"=>",
        "EQUALS": r"==",
        "NOT_EQUALS": r"!=",
        "LESS_THAN_OR_EQUAL": r"<=",
        "GREATER_THAN_OR_EQUAL": r">=",
        "AND": r"&&",
        "OR": r"\|\|",
        "INCREMENT": r"\+\+",
        "DECREMENT": r"\-\-",
        "ADD_ASSIGN": r"\+=",
        "SUBTRACT_ASSIGN": r"\-=",
        "MULTIPLY_ASSIGN": r"\*=",
        "DIVIDE_ASSIGN": r"\/=",
        "LESS_THAN": r"<",
        "GREATER_THAN": r">",
        "NOT": r"!",
        "ASSIGN": r"=",
        "ADD": r"\+",
        "SUBTRACT": r"\-",
        "MULTIPLY": r"\*",
        "DIVIDE": r"\/",
        "MODULO": r"%",
        "BIT_AND": r"&",
        "BIT_OR": r"\|",
    }

    seperators: dict[str, str] = {
        "OPEN_PAREN": r"\(",
        "CLOSE_PAREN": r"\)",
        "OPEN_BRACE": r"\{",
        "CLOSE_BRACE": r"\}",
        "OPEN_BRACKET": r"\[",
        "CLOSE_BRACKET": r"\]",
        "COMMA": r",",
        "SEMICOLON": r";",
        "COLON": r":",
        "DOT": r"\.",
    }

    def __init__(self, file: str) -> None:
        self.file: str = file
        # Order matters: comments before operators ("//" vs "/"), "[|" before "[".
        self.token_tables: list[tuple[TokenKind, dict[str, str]]] = [
            (TokenKind.COMMENT, self.comments),
            (TokenKind.STRING, self.strings),
            (TokenKind.NUMBER, self.numbers),
            (TokenKind.OPERATOR, self.operators),
            (TokenKind.DELIMITER, self.seperators),
        ]
        self.patterns: list[tuple[TokenKind, re.Pattern]] = [
            (kind, re.compile(regex))
            for kind, table in self.token_tables
            for regex in table.values()
        ]
        self.identifier_pattern = re.compile(self.identifier)

    def word_kind(self, word: str) -> TokenKind:
        if word in ("true", "false"):
            return TokenKind.BOOLEAN
        if word == "null":
            return TokenKind.NULL
        if word in self.keywords:
            return TokenKind.KEYWORD
        return TokenKind.IDENTIFIER

    def tokenize(self) -> list[Token]:
        logging.debug("tokenizing file")

        tokens: list[Token] = []
        index = 0

        while index < len(self.file):
            ch = self.file[index]

            if ch in (" ", "\t", "\r"):
                index += 1
                continue

            if ch == "\n":
                tokens.append(Token(TokenKind.EOL, "\n", index + 1))
                index += 1
                continue

            token = None
            for kind, pattern in self.patterns:
                match = pattern.match(self.file, index)
                if match:
                    token = self.make_token(kind, match.group(), index + 1)
                    index = match.end()
                    break

            if token is None:
                match = self.identifier_pattern.match(self.file, index)
                if match:
                    word = match.group()
                    token = Token(self.word_kind(word), word, index + 1)
                    index = match.end()
                elif ch in ("\"", "'"):
                    raise ParseError("unterminated string literal", index + 1)
                else:
                    # Unexpected characters are passed through for the parser to reject
                    token = Token(TokenKind.UNKNOWN, ch, index + 1)
                    index += 1

            tokens.append(token)

        tokens.append(Token(TokenKind.EOF, "", len(self.file) + 1))
        logging.debug(f"produced {len(tokens)} tokens")
        return tokens

    def make_token(self, kind: TokenKind, text: str, index: int) -> Token:
        if kind == TokenKind.STRING:
            return Token(kind, unescape(text[1:-1]), index)
        if kind == TokenKind.COMMENT:
            if text.startswith("#"):
                body = text[1:]
            else:
                body = text[2:-2] if text.startswith(("/*", "[|")) else text[2:]
            return Token(kind, body.strip(), index)
        return Token(kind, text, index)


def tokenize(source: str) -> list[Token]:
    return Lexer(source).tokenize()
