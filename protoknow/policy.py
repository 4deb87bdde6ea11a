# -*- coding: utf-8 -*-
"""
Naming conventions the knowledge analyzer relies on.

These are modeling assumptions, not protocol semantics:
  - a public key ``pkX`` is paired with the private key ``skX``;
  - a term the adversary learns is a catastrophic leak when its name starts
    with one of ``leak_prefixes`` (``K_`` shared keys, ``M`` plaintexts,
    ``sk`` private keys).
Protocols that name things differently get incomplete verdicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class NamingPolicy:
    public_prefix: str = "pk"
    private_prefix: str = "sk"
    leak_prefixes: Tuple[str, ...] = ("K_", "M", "sk")

    def private_key_for(self, public_name: str) -> Optional[str]:
        """pkX -> skX; None when ``public_name`` does not follow the convention."""
        if public_name.startswith(self.public_prefix) and len(public_name) > len(self.public_prefix):
            return self.private_prefix + public_name[len(self.public_prefix):]
        return None

    def is_catastrophic(self, term: str) -> bool:
        return term.startswith(self.leak_prefixes)


DEFAULT_POLICY = NamingPolicy()
