# -*- coding: utf-8 -*-
"""Diagnostics raised by the protocol front end (lexer + parser)."""

from __future__ import annotations

from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .lexer import Token


class ProtocolSyntaxError(ValueError):
    """Base class: a protocol source text could not be turned into an AST."""

    def __init__(self, message: str, line: int, column: int):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(self.render())

    def render(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "column": self.column, "message": str(self)}


class LexError(ProtocolSyntaxError):
    def render(self) -> str:
        return f"Lexer error at line {self.line}, column {self.column}: {self.message}"


class ParseError(ProtocolSyntaxError):
    """Grammar violation; ``token`` is the offending token."""

    def __init__(self, message: str, token: Optional["Token"]):
        self.token = token
        line = token.line if token is not None else 0
        column = token.column if token is not None else 0
        super().__init__(message, line, column)

    def render(self) -> str:
        if self.token is None:
            return self.message
        return (
            f"Syntax error at line {self.line}, column {self.column}: "
            f"{self.message} (found '{self.token.text}')"
        )
