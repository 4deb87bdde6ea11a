# -*- coding: utf-8 -*-
"""
Hand-written lexer for the protocol language.

Skips whitespace and comments, recognises keywords (case-insensitively),
identifiers and punctuation, and produces the token stream consumed by
protoknow.parser. Every token carries its 1-based line and column.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from .errors import LexError


class TokenType(Enum):
    # keywords
    ROLES = "roles"
    SHARED = "shared"
    PUBLIC = "public"
    PRIVATE = "private"
    KEY = "key"
    NONCE = "nonce"
    ENC = "Enc"
    DEC = "Dec"
    MAC = "Mac"
    SIGN = "Sign"
    VRFY = "Vrfy"
    HASH = "Hash"
    ASSERT = "assert"
    SECRET = "secret"

    # punctuation
    ARROW = "->"
    COLON = ":"
    COMMA = ","
    EQUAL = "="
    LPAREN = "("
    RPAREN = ")"
    CONCAT = "||"

    IDENTIFIER = "identifier"
    EOF = "end of input"


KEYWORDS: Dict[str, TokenType] = {
    "roles": TokenType.ROLES,
    "shared": TokenType.SHARED,
    "public": TokenType.PUBLIC,
    "private": TokenType.PRIVATE,
    "key": TokenType.KEY,
    "nonce": TokenType.NONCE,
    "enc": TokenType.ENC,
    "dec": TokenType.DEC,
    "mac": TokenType.MAC,
    "sign": TokenType.SIGN,
    "vrfy": TokenType.VRFY,
    "verify": TokenType.VRFY,
    "hash": TokenType.HASH,
    "assert": TokenType.ASSERT,
    "secret": TokenType.SECRET,
}

_SINGLE_CHAR: Dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "=": TokenType.EQUAL,
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.type.name}({self.text!r}) @ {self.line}:{self.column}"


class Lexer:
    def __init__(self, source: str):
        self.s = source
        self.n = len(source)
        self.i = 0
        self.line = 1
        self.column = 1

    # ---------------- helpers ----------------

    def _at_end(self) -> bool:
        return self.i >= self.n

    def _peek(self, ahead: int = 0) -> str:
        j = self.i + ahead
        return self.s[j] if j < self.n else ""

    def _advance(self) -> str:
        ch = self.s[self.i]
        self.i += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _skip_line(self) -> None:
        while not self._at_end() and self._peek() != "\n":
            self._advance()

    def _read_word(self) -> str:
        start = self.i
        while not self._at_end() and (self._peek().isalnum() or self._peek() == "_"):
            self._advance()
        return self.s[start:self.i]

    # ---------------- main loop ----------------

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while not self._at_end():
            ch = self._peek()
            if ch.isspace():
                self._advance()
                continue
            if ch == "#" or (ch == "/" and self._peek(1) == "/"):
                self._skip_line()
                continue

            line, col = self.line, self.column

            if ch.isalpha():
                word = self._read_word()
                ttype = KEYWORDS.get(word.lower(), TokenType.IDENTIFIER)
                tokens.append(Token(ttype, word, line, col))
                continue

            if ch in _SINGLE_CHAR:
                self._advance()
                tokens.append(Token(_SINGLE_CHAR[ch], ch, line, col))
                continue

            if ch == "|":
                self._advance()
                if self._peek() != "|":
                    raise LexError("Expected '|' to complete '||'", line, col)
                self._advance()
                tokens.append(Token(TokenType.CONCAT, "||", line, col))
                continue

            if ch == "-":
                self._advance()
                if self._peek() != ">":
                    raise LexError("Expected '>' after '-'", line, col)
                self._advance()
                tokens.append(Token(TokenType.ARROW, "->", line, col))
                continue

            raise LexError(f"Unexpected character '{ch}'", line, col)

        tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return tokens


def tokenize(source: str) -> List[Token]:
    return Lexer(source).tokenize()
