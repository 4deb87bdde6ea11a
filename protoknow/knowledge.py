# -*- coding: utf-8 -*-
"""
Knowledge analysis: what each principal, and a passive eavesdropper, knows
after one run of the protocol.

Model (symbolic, passive Dolev-Yao style):
  - every principal starts with the keys/nonces declared for it; public keys
    are known to everybody, including the adversary;
  - sender, receiver and the adversary see each message on the wire:
      * identifiers and assignment targets are visible in the clear,
      * concatenation is transparent (both operands are visible),
      * Enc(k, m) is opaque: it is remembered as a pending decryption,
      * Mac/Hash/Sign/Vrfy are opaque terms, visible only as a whole;
  - the sender also knows everything it needed to build the message;
  - decryption rule, applied until a fixed point: a principal holding the
    decryption key of a pending ciphertext learns the plaintext's contents.
    For Enc(pkX, m) the decryption key is the paired private key skX; a
    public key alone never decrypts anything.

Sets only grow during the analysis, and every term comes from the finite set
of labels in the AST, so the fixed-point loop terminates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Set, Tuple

from .ast_nodes import (
    CRYPTO_NODES,
    Assign,
    Concat,
    Encrypt,
    Expr,
    Hash,
    Identifier,
    KeyKind,
    Mac,
    Node,
    Protocol,
    Sign,
    Verify,
)
from .policy import DEFAULT_POLICY, NamingPolicy
from .report import render_report

logger = logging.getLogger(__name__)

ADVERSARY = "Adversary"

DECRYPTING_KINDS = (KeyKind.SHARED, KeyKind.PRIVATE)


def _unhandled(node: Node) -> TypeError:
    return TypeError(f"unhandled AST node: {type(node).__name__}")


# -------------------------
# Knowledge state
# -------------------------


@dataclass(frozen=True)
class PendingEncryption:
    """An observed ciphertext Enc(key_name, plaintext), not necessarily opened."""
    key_name: str
    plaintext: Expr

    def label(self) -> str:
        return f"Enc({self.key_name}, {self.plaintext.label()})"


@dataclass
class KnowledgeState:
    principals: List[str]
    knows: Dict[str, Set[str]]
    pending: Dict[str, Set[PendingEncryption]]
    rounds: int = 0
    # snapshot of ``knows`` after each fixed-point round
    history: List[Dict[str, FrozenSet[str]]] = field(default_factory=list)

    def snapshot(self) -> Dict[str, FrozenSet[str]]:
        return {p: frozenset(terms) for p, terms in self.knows.items()}


# -------------------------
# Structural traversals
# -------------------------


def collect_wire_terms(node: Node, visible: Set[str], encs: Set[PendingEncryption]) -> None:
    """What an observer of ``node`` on the wire learns."""
    if isinstance(node, Identifier):
        visible.add(node.name)
    elif isinstance(node, Assign):
        visible.add(node.target.name)
        collect_wire_terms(node.value, visible, encs)
    elif isinstance(node, Concat):
        visible.add(node.label())
        collect_wire_terms(node.left, visible, encs)
        collect_wire_terms(node.right, visible, encs)
    elif isinstance(node, Encrypt):
        encs.add(PendingEncryption(node.key.name, node.message))
    elif isinstance(node, (Mac, Hash, Sign, Verify)):
        visible.add(node.label())
    else:
        raise _unhandled(node)


def collect_author_terms(node: Node, out: Set[str]) -> None:
    """Identifiers the sender must already hold to build ``node``."""
    if isinstance(node, Identifier):
        out.add(node.name)
    elif isinstance(node, (Assign, Concat, Encrypt, Mac, Hash, Sign, Verify)):
        for child in node.children():
            collect_author_terms(child, out)
    else:
        raise _unhandled(node)


def unwrap_plaintext(node: Expr, known: Set[str]) -> bool:
    """Add the contents of a decrypted plaintext; True if anything was new.

    Only concatenations are opened; any other node, a nested ciphertext
    included, is learned as a single opaque label.
    """
    if isinstance(node, Identifier):
        if node.name in known:
            return False
        known.add(node.name)
        return True
    if isinstance(node, Concat):
        left = unwrap_plaintext(node.left, known)
        right = unwrap_plaintext(node.right, known)
        return left or right
    if isinstance(node, (Encrypt, Mac, Hash, Sign, Verify)):
        if node.label() in known:
            return False
        known.add(node.label())
        return True
    raise _unhandled(node)


# -------------------------
# Derivation
# -------------------------


def seed_knowledge(protocol: Protocol) -> KnowledgeState:
    principals = list(dict.fromkeys(protocol.roles.roles))
    if ADVERSARY not in principals:
        principals.append(ADVERSARY)
    knows: Dict[str, Set[str]] = {p: set() for p in principals}
    pending: Dict[str, Set[PendingEncryption]] = {p: set() for p in principals}

    for kd in protocol.key_decls:
        if kd.kind == KeyKind.PUBLIC:
            for p in principals:
                knows[p].add(kd.name)
        else:
            for owner in kd.owners:
                if owner in knows:
                    knows[owner].add(kd.name)
                else:
                    logger.debug("Key %s: owner %s is not a declared role", kd.name, owner)

    for nd in protocol.nonce_decls:
        if nd.owner in knows:
            knows[nd.owner].add(nd.name)
        else:
            logger.debug("Nonce %s: owner %s is not a declared role", nd.name, nd.owner)

    return KnowledgeState(principals=principals, knows=knows, pending=pending)


def observe_messages(state: KnowledgeState, protocol: Protocol) -> None:
    for i, msg in enumerate(protocol.messages, start=1):
        sender = msg.sender.name
        visible: Set[str] = set()
        encs: Set[PendingEncryption] = set()
        collect_wire_terms(msg.body, visible, encs)

        built: Set[str] = set()
        collect_author_terms(msg.body, built)

        for p in dict.fromkeys((sender, msg.receiver.name, ADVERSARY)):
            if p not in state.knows:
                logger.debug("Message %d: %s is not a declared role, skipped", i, p)
                continue
            state.knows[p] |= visible
            state.pending[p] |= encs

        if sender in state.knows:
            state.knows[sender] |= built


def required_key(enc: PendingEncryption, key_kinds: Dict[str, KeyKind], policy: NamingPolicy) -> str:
    if key_kinds.get(enc.key_name) == KeyKind.PUBLIC:
        paired = policy.private_key_for(enc.key_name)
        if paired is not None:
            return paired
    return enc.key_name


def can_decrypt(known: Set[str], key_name: str, key_kinds: Dict[str, KeyKind]) -> bool:
    return key_name in known and key_kinds.get(key_name) in DECRYPTING_KINDS


def saturate(state: KnowledgeState, key_kinds: Dict[str, KeyKind], policy: NamingPolicy) -> None:
    """Apply the decryption rule until a full pass adds nothing."""
    opened: Dict[str, Set[PendingEncryption]] = {p: set() for p in state.principals}
    while True:
        state.rounds += 1
        changed = False
        for p in state.principals:
            known = state.knows[p]
            for enc in list(state.pending[p]):
                if enc in opened[p]:
                    continue
                if not can_decrypt(known, required_key(enc, key_kinds, policy), key_kinds):
                    continue
                opened[p].add(enc)
                if unwrap_plaintext(enc.plaintext, known):
                    logger.debug("Round %d: %s opened %s", state.rounds, p, enc.label())
                    changed = True
        state.history.append(state.snapshot())
        if not changed:
            break
    logger.debug("Fixed point reached after %d round(s)", state.rounds)


def derive_knowledge(protocol: Protocol, policy: NamingPolicy = DEFAULT_POLICY) -> KnowledgeState:
    state = seed_knowledge(protocol)
    state.history.append(state.snapshot())
    observe_messages(state, protocol)
    saturate(state, protocol.key_kinds(), policy)
    return state


# -------------------------
# Classification
# -------------------------


@dataclass(frozen=True)
class Classification:
    secrets: Tuple[str, ...]
    plaintext: Tuple[str, ...]
    observed: Tuple[str, ...]


def is_structured(term: str) -> bool:
    return "(" in term or "||" in term


def is_bare_identifier(term: str) -> bool:
    return bool(term) and all(ch.isalnum() or ch == "_" for ch in term)


def crypto_variables(protocol: Protocol) -> Set[str]:
    """Names assigned from a cryptographic constructor anywhere in the protocol."""
    out: Set[str] = set()
    for msg in protocol.messages:
        body = msg.body
        if isinstance(body, Assign) and isinstance(body.value, CRYPTO_NODES):
            out.add(body.target.name)
    return out


def classify(terms: Set[str], key_kinds: Dict[str, KeyKind], crypto_vars: Set[str]) -> Classification:
    """Split terms into secrets, plaintext and observed objects.

    Names assigned from a cryptographic constructor are matched without regard
    to case.
    """
    secrets: List[str] = []
    plaintext: List[str] = []
    observed: List[str] = []
    crypto_lower = {v.lower() for v in crypto_vars}
    for term in sorted(terms):
        if key_kinds.get(term) in DECRYPTING_KINDS:
            secrets.append(term)
        elif is_structured(term) or term.lower() in crypto_lower:
            observed.append(term)
        elif is_bare_identifier(term) and term not in key_kinds:
            plaintext.append(term)
        else:
            observed.append(term)
    return Classification(tuple(secrets), tuple(plaintext), tuple(observed))


# -------------------------
# Report
# -------------------------


@dataclass(frozen=True)
class PrincipalKnowledge:
    name: str
    secrets: Tuple[str, ...]
    plaintext: Tuple[str, ...]
    observed: Tuple[str, ...]

    @property
    def is_adversary(self) -> bool:
        return self.name == ADVERSARY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "secrets": list(self.secrets),
            "plaintext": list(self.plaintext),
            "observed": list(self.observed),
        }


@dataclass(frozen=True)
class Verdict:
    leaked: Tuple[str, ...]

    @property
    def catastrophic(self) -> bool:
        return bool(self.leaked)

    def summary(self) -> str:
        if self.catastrophic:
            return "Potentially catastrophic leak detected."
        return "No catastrophic leaks detected under this simple model."


@dataclass(frozen=True)
class KnowledgeReport:
    principals: Tuple[PrincipalKnowledge, ...]
    verdict: Verdict

    def principal(self, name: str) -> PrincipalKnowledge:
        for pk in self.principals:
            if pk.name == name:
                return pk
        raise KeyError(name)

    @property
    def adversary(self) -> PrincipalKnowledge:
        return self.principal(ADVERSARY)

    def format(self) -> str:
        return render_report(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principals": [pk.to_dict() for pk in self.principals],
            "verdict": {
                "catastrophic": self.verdict.catastrophic,
                "summary": self.verdict.summary(),
                "leaked": list(self.verdict.leaked),
            },
        }


def judge(adversary: PrincipalKnowledge, policy: NamingPolicy = DEFAULT_POLICY) -> Verdict:
    leaked = [t for t in adversary.secrets + adversary.plaintext if policy.is_catastrophic(t)]
    return Verdict(tuple(leaked))


def analyze(protocol: Protocol, policy: NamingPolicy = DEFAULT_POLICY) -> KnowledgeReport:
    state = derive_knowledge(protocol, policy)
    key_kinds = protocol.key_kinds()
    crypto_vars = crypto_variables(protocol)

    principals = []
    for p in state.principals:
        c = classify(state.knows[p], key_kinds, crypto_vars)
        principals.append(PrincipalKnowledge(p, c.secrets, c.plaintext, c.observed))

    # adversary is always reported last
    principals.sort(key=lambda pk: pk.is_adversary)
    verdict = judge(principals[-1], policy)
    logger.info("Knowledge analysis: %d principal(s), %d round(s), leaked=%s",
                len(principals), state.rounds, list(verdict.leaked) or "-")
    return KnowledgeReport(tuple(principals), verdict)
