# -*- coding: utf-8 -*-
"""
AST for the protocol language.

Expression nodes are frozen dataclasses: hashable, so a subtree can sit inside
a set (pending decryptions) and compare structurally. ``label()`` is the
canonical rendering used for display and as the identity of a term.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Union


class Node:
    def label(self) -> str:
        raise NotImplementedError

    def children(self) -> Tuple["Node", ...]:
        return ()


# -------------------------
# Expressions
# -------------------------


@dataclass(frozen=True)
class Identifier(Node):
    name: str

    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Concat(Node):
    left: "Expr"
    right: "Expr"

    def label(self) -> str:
        return f"({self.left.label()} || {self.right.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Encrypt(Node):
    key: Identifier
    message: "Expr"

    def label(self) -> str:
        return f"Enc({self.key.name}, {self.message.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.key, self.message)


@dataclass(frozen=True)
class Mac(Node):
    key: Identifier
    message: "Expr"

    def label(self) -> str:
        return f"Mac({self.key.name}, {self.message.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.key, self.message)


@dataclass(frozen=True)
class Hash(Node):
    inner: "Expr"

    def label(self) -> str:
        return f"Hash({self.inner.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.inner,)


@dataclass(frozen=True)
class Sign(Node):
    signing_key: Identifier
    message: "Expr"

    def label(self) -> str:
        return f"Sign({self.signing_key.name}, {self.message.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.signing_key, self.message)


@dataclass(frozen=True)
class Verify(Node):
    public_key: Identifier
    message: "Expr"
    signature: "Expr"

    def label(self) -> str:
        return f"Vrfy({self.public_key.name}, {self.message.label()}, {self.signature.label()})"

    def children(self) -> Tuple[Node, ...]:
        return (self.public_key, self.message, self.signature)


Expr = Union[Identifier, Concat, Encrypt, Mac, Hash, Sign, Verify]

# constructors whose output is an opaque cryptographic object
CRYPTO_NODES = (Encrypt, Mac, Hash, Sign, Verify, Concat)


@dataclass(frozen=True)
class Assign(Node):
    target: Identifier
    value: Expr

    def label(self) -> str:
        return f"{self.target.name} = {self.value.label()}"

    def children(self) -> Tuple[Node, ...]:
        return (self.target, self.value)


Stmt = Union[Assign, Expr]


# -------------------------
# Declarations and messages
# -------------------------


class KeyKind(Enum):
    SHARED = "shared"
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True)
class RoleDecl(Node):
    roles: Tuple[str, ...]

    def label(self) -> str:
        return "roles: " + ", ".join(self.roles)


@dataclass(frozen=True)
class KeyDecl(Node):
    kind: KeyKind
    name: str
    owners: Tuple[str, ...]

    def label(self) -> str:
        return f"{self.kind.value} key {self.name}: {', '.join(self.owners)}"


@dataclass(frozen=True)
class NonceDecl(Node):
    name: str
    owner: str

    def label(self) -> str:
        return f"nonce {self.name}: {self.owner}"


@dataclass(frozen=True)
class MessageSend(Node):
    sender: Identifier
    receiver: Identifier
    body: Stmt

    def label(self) -> str:
        return f"{self.sender.name} -> {self.receiver.name}: {self.body.label()}"

    def children(self) -> Tuple[Node, ...]:
        return (self.sender, self.receiver, self.body)


@dataclass
class Protocol(Node):
    roles: RoleDecl
    key_decls: List[KeyDecl] = field(default_factory=list)
    nonce_decls: List[NonceDecl] = field(default_factory=list)
    messages: List[MessageSend] = field(default_factory=list)

    def add_key_decl(self, decl: KeyDecl) -> None:
        self.key_decls.append(decl)

    def add_nonce_decl(self, decl: NonceDecl) -> None:
        self.nonce_decls.append(decl)

    def add_message(self, msg: MessageSend) -> None:
        self.messages.append(msg)

    def label(self) -> str:
        return "Protocol"

    def children(self) -> Tuple[Node, ...]:
        return (self.roles, *self.key_decls, *self.nonce_decls, *self.messages)

    def key_kinds(self) -> Dict[str, KeyKind]:
        return {kd.name: kd.kind for kd in self.key_decls}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roles": list(self.roles.roles),
            "keys": [
                {"kind": kd.kind.value, "name": kd.name, "owners": list(kd.owners)}
                for kd in self.key_decls
            ],
            "nonces": [{"name": nd.name, "owner": nd.owner} for nd in self.nonce_decls],
            "messages": [
                {
                    "sender": m.sender.name,
                    "receiver": m.receiver.name,
                    "body": m.body.label(),
                }
                for m in self.messages
            ],
        }


def pretty(node: Node, indent: int = 0) -> str:
    """Indented tree of node labels, one node per line."""
    lines = ["  " * indent + node.label()]
    for child in node.children():
        lines.append(pretty(child, indent + 1))
    return "\n".join(lines)
