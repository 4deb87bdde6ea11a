# -*- coding: utf-8 -*-
"""
Recursive-descent parser for the protocol language.

    protocol   := rolesDecl decl* message* EOF
    rolesDecl  := "roles" ":" IDENT ("," IDENT)*
    decl       := ("shared"|"private") "key" IDENT ":" IDENT ("," IDENT)*
                | "public" "key" IDENT ":" IDENT
                | "nonce" IDENT ":" IDENT
    message    := IDENT "->" IDENT ":" stmt
    stmt       := IDENT "=" expr | expr
    expr       := crypto ("||" crypto)*
    crypto     := "Enc" "(" expr "," expr ")"
                | "Mac" "(" IDENT "," expr ")"
                | "Sign" "(" IDENT "," expr ")"
                | "Vrfy" "(" IDENT "," expr "," expr ")"
                | "Hash" "(" expr ")"
                | IDENT

Parsing stops at the first error (ParseError carrying the offending token).
"""

from __future__ import annotations

from typing import List

from .ast_nodes import (
    Assign,
    Concat,
    Encrypt,
    Expr,
    Hash,
    Identifier,
    KeyDecl,
    KeyKind,
    Mac,
    MessageSend,
    NonceDecl,
    Protocol,
    RoleDecl,
    Sign,
    Stmt,
    Verify,
)
from .errors import ParseError
from .lexer import Token, TokenType, tokenize


SYNTAX_HELP = """\
Protocol syntax
===============

roles: Alice, Bob                      principals, in display order
shared key K_AB: Alice, Bob            symmetric key and its owners
public key pkB: Bob                    public half of Bob's key pair
private key skB: Bob                   private half (pkX pairs with skX)
nonce N_A: Alice                       fresh value generated by Alice

Alice -> Bob: N_A                      a message: sender -> receiver: body
Alice -> Bob: c = Enc(K_AB, M1)        name the value that goes on the wire

Expressions
  x || y                               concatenation (left-associative)
  Enc(key, msg)                        encryption (key must be an identifier)
  Mac(key, msg)                        message authentication code
  Sign(sk, msg)                        signature
  Vrfy(pk, msg, sig)                   signature verification (also: Verify)
  Hash(msg)                            cryptographic hash

Keywords are case-insensitive. Comments start with '#' or '//'.
All declarations must come before the first message.
"""

_DECL_START = (TokenType.SHARED, TokenType.PUBLIC, TokenType.PRIVATE, TokenType.NONCE)


class ProtocolParser:
    def __init__(self, tokens: List[Token]):
        if not tokens or tokens[-1].type != TokenType.EOF:
            raise ValueError("token stream must end with an EOF token")
        self.tokens = tokens
        self.current = 0

    # -------------------------
    # Entry point
    # -------------------------

    def parse(self) -> Protocol:
        proto = Protocol(self._roles_decl())

        while self._peek().type in _DECL_START:
            if self._match(TokenType.SHARED):
                proto.add_key_decl(self._key_decl(KeyKind.SHARED, "shared", "Kab", "Alice, Bob", many=True))
            elif self._match(TokenType.PRIVATE):
                proto.add_key_decl(self._key_decl(KeyKind.PRIVATE, "private", "skA", "Alice", many=True))
            elif self._match(TokenType.PUBLIC):
                proto.add_key_decl(self._key_decl(KeyKind.PUBLIC, "public", "pkA", "Alice", many=False))
            else:
                self._advance()
                proto.add_nonce_decl(self._nonce_decl())

        while self._check(TokenType.IDENTIFIER):
            proto.add_message(self._message())

        if self._peek().type in _DECL_START and proto.messages:
            raise self._error(self._peek(), "Declarations must appear before the first message.")
        self._consume(TokenType.EOF, "Expected end of input.")
        return proto

    # -------------------------
    # Declarations
    # -------------------------

    def _roles_decl(self) -> RoleDecl:
        self._consume(TokenType.ROLES, "Expected 'roles' declaration (example: roles: Alice, Bob).")
        self._consume(TokenType.COLON, "Expected ':' after 'roles' (example: roles: Alice, Bob).")
        roles = [self._consume(TokenType.IDENTIFIER, "Expected role name after 'roles:'.").text]
        while self._match(TokenType.COMMA):
            roles.append(self._consume(TokenType.IDENTIFIER, "Expected role name after ','.").text)
        return RoleDecl(tuple(roles))

    def _key_decl(self, kind: KeyKind, word: str, example_key: str, example_owners: str, many: bool) -> KeyDecl:
        example = f"{word} key {example_key}: {example_owners}"
        self._consume(TokenType.KEY, f"Expected 'key' after '{word}' (example: {example}).")
        name = self._consume(TokenType.IDENTIFIER, f"Expected key name after '{word} key'.").text
        self._consume(TokenType.COLON, f"Expected ':' after {word} key name.")
        owners = [self._consume(TokenType.IDENTIFIER, "Expected owner role after ':'.").text]
        if many:
            while self._match(TokenType.COMMA):
                owners.append(self._consume(TokenType.IDENTIFIER, "Expected owner role after ','.").text)
        elif self._check(TokenType.COMMA):
            raise self._error(self._peek(), f"A {word} key has exactly one owner (example: {example}).")
        return KeyDecl(kind, name, tuple(owners))

    def _nonce_decl(self) -> NonceDecl:
        name = self._consume(TokenType.IDENTIFIER, "Expected nonce name after 'nonce' (example: nonce N_A: Alice).").text
        self._consume(TokenType.COLON, "Expected ':' after nonce name.")
        owner = self._consume(TokenType.IDENTIFIER, "Expected owner role after ':'.").text
        return NonceDecl(name, owner)

    # -------------------------
    # Messages, statements, expressions
    # -------------------------

    def _message(self) -> MessageSend:
        sender = self._identifier("Expected sender identifier at start of message.")
        self._consume(TokenType.ARROW, "Expected '->' after sender (example: Alice -> Bob: ...).")
        receiver = self._identifier("Expected receiver identifier after '->'.")
        self._consume(TokenType.COLON, "Expected ':' after receiver (example: Alice -> Bob: stmt).")
        return MessageSend(sender, receiver, self._stmt())

    def _stmt(self) -> Stmt:
        if self._check(TokenType.IDENTIFIER) and self._check_next(TokenType.EQUAL):
            target = self._identifier("Expected variable name before '='.")
            self._consume(TokenType.EQUAL, "Expected '=' after variable.")
            return Assign(target, self._expr())
        return self._expr()

    def _expr(self) -> Expr:
        left = self._crypto()
        while self._match(TokenType.CONCAT):
            left = Concat(left, self._crypto())
        return left

    def _crypto(self) -> Expr:
        if self._match(TokenType.ENC):
            return self._enc()
        if self._match(TokenType.MAC):
            return self._mac()
        if self._match(TokenType.SIGN):
            return self._sign()
        if self._match(TokenType.VRFY):
            return self._verify()
        if self._match(TokenType.HASH):
            return self._hash()
        if self._check(TokenType.IDENTIFIER):
            return self._identifier("Expected identifier in expression.")
        raise self._error(
            self._peek(),
            "Expected expression (identifier, Enc(...), Mac(...), Sign(...), Vrfy(...), Hash(...)).",
        )

    def _enc(self) -> Encrypt:
        self._consume(TokenType.LPAREN, "Expected '(' after 'Enc'.")
        key_start = self._peek()
        key = self._expr()
        if not isinstance(key, Identifier):
            raise self._error(key_start, "Encryption key must be an identifier (example: Enc(Kab, m)).")
        self._consume(TokenType.COMMA, "Expected ',' between key and message inside Enc(key, msg).")
        msg = self._expr()
        self._consume(TokenType.RPAREN, "Expected ')' after Enc(...).")
        return Encrypt(key, msg)

    def _mac(self) -> Mac:
        self._consume(TokenType.LPAREN, "Expected '(' after 'Mac'.")
        key = self._identifier("Expected MAC key identifier (example: Mac(Kab, m)).")
        self._consume(TokenType.COMMA, "Expected ',' between key and message inside Mac(key, msg).")
        msg = self._expr()
        self._consume(TokenType.RPAREN, "Expected ')' after Mac(...).")
        return Mac(key, msg)

    def _sign(self) -> Sign:
        self._consume(TokenType.LPAREN, "Expected '(' after 'Sign'.")
        sk = self._identifier("Expected signing key identifier (example: Sign(skA, m)).")
        self._consume(TokenType.COMMA, "Expected ',' between signing key and message inside Sign(key, msg).")
        msg = self._expr()
        self._consume(TokenType.RPAREN, "Expected ')' after Sign(...).")
        return Sign(sk, msg)

    def _verify(self) -> Verify:
        self._consume(TokenType.LPAREN, "Expected '(' after 'Vrfy'.")
        pk = self._identifier("Expected public key identifier (example: Vrfy(pkA, m, sig)).")
        self._consume(TokenType.COMMA, "Expected ',' after public key in Vrfy(key, msg, sig).")
        msg = self._expr()
        self._consume(TokenType.COMMA, "Expected ',' after message in Vrfy(key, msg, sig).")
        sig = self._expr()
        self._consume(TokenType.RPAREN, "Expected ')' after Vrfy(...).")
        return Verify(pk, msg, sig)

    def _hash(self) -> Hash:
        self._consume(TokenType.LPAREN, "Expected '(' after 'Hash'.")
        inner = self._expr()
        self._consume(TokenType.RPAREN, "Expected ')' after Hash(...).")
        return Hash(inner)

    # -------------------------
    # Token helpers
    # -------------------------

    def _identifier(self, err: str) -> Identifier:
        return Identifier(self._consume(TokenType.IDENTIFIER, err).text)

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _check(self, ttype: TokenType) -> bool:
        return self._peek().type == ttype

    def _check_next(self, ttype: TokenType) -> bool:
        nxt = self.current + 1
        return nxt < len(self.tokens) and self.tokens[nxt].type == ttype

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.type != TokenType.EOF:
            self.current += 1
        return tok

    def _match(self, ttype: TokenType) -> bool:
        if self._check(ttype):
            self._advance()
            return True
        return False

    def _consume(self, ttype: TokenType, message: str) -> Token:
        if self._check(ttype):
            return self._advance()
        raise self._error(self._peek(), message)

    @staticmethod
    def _error(token: Token, message: str) -> ParseError:
        return ParseError(message, token)


def parse(source: str) -> Protocol:
    """Lex and parse ``source``; raises LexError / ParseError."""
    return ProtocolParser(tokenize(source)).parse()
