# -*- coding: utf-8 -*-
"""
Signature-consistency checks.

Purely structural, in message order:
  1. every ``sig = Sign(...)`` records a created signature and where;
  2. every ``Vrfy(pk, m, sig)`` with a bare identifier ``sig`` marks it
     verified, and warns when no ``sig = Sign(...)`` exists anywhere;
  3. every created signature never verified gets a warning.
Does not check that a signature is verified under the matching key.
"""

from __future__ import annotations

from typing import Dict, List, Set

from .ast_nodes import Assign, Identifier, MessageSend, Node, Protocol, Sign, Verify

NO_WARNINGS = "No warnings."


def message_context(msg: MessageSend, index: int) -> str:
    return f"message {index + 1}: {msg.sender.name} -> {msg.receiver.name}"


def _collect_creations(node: Node, ctx: str, created: Dict[str, str]) -> None:
    if isinstance(node, Assign) and isinstance(node.value, Sign):
        created.setdefault(node.target.name, ctx)
    for child in node.children():
        _collect_creations(child, ctx, created)


def _collect_verifications(node: Node, created: Dict[str, str],
                           verified: Set[str], warnings: List[str]) -> None:
    if isinstance(node, Verify) and isinstance(node.signature, Identifier):
        name = node.signature.name
        verified.add(name)
        if name not in created:
            warnings.append(
                f"Verification uses signature '{name}', but no earlier assignment "
                f"like '{name} = Sign(...)' was found."
            )
    for child in node.children():
        _collect_verifications(child, created, verified, warnings)


def analyze(protocol: Protocol) -> List[str]:
    created: Dict[str, str] = {}
    for i, msg in enumerate(protocol.messages):
        _collect_creations(msg.body, message_context(msg, i), created)

    verified: Set[str] = set()
    warnings: List[str] = []
    for msg in protocol.messages:
        _collect_verifications(msg.body, created, verified, warnings)

    for name, ctx in created.items():
        if name not in verified:
            warnings.append(
                f"Missing verification: signature '{name}' was created ({ctx}) "
                f"but is never verified with Vrfy(...)."
            )

    return warnings or [NO_WARNINGS]
