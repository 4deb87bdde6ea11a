# -*- coding: utf-8 -*-
"""Plain-text rendering of a knowledge report."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:
    from .knowledge import KnowledgeReport

RULE = "=" * 50
THIN = "-" * 50
NONE_MARKER = "(none)"


def _bucket(out: List[str], title: str, terms: Iterable[str]) -> None:
    out.append(f"{title}:")
    items = list(terms)
    if not items:
        out.append(f"  {NONE_MARKER}")
    for t in items:
        out.append(f"  - {t}")
    out.append("")


def render_report(report: "KnowledgeReport") -> str:
    out: List[str] = [RULE, "PROTOCOL KNOWLEDGE ANALYSIS", RULE, ""]

    out.append("Principals:")
    for pk in report.principals:
        suffix = " (Passive Eavesdropper)" if pk.is_adversary else ""
        out.append(f"  - {pk.name}{suffix}")
    out.append("")

    for pk in report.principals:
        out.append(THIN)
        out.append("Adversary (Passive Eavesdropper)" if pk.is_adversary else pk.name)
        out.append(THIN)
        if pk.is_adversary:
            _bucket(out, "Observed Messages / Objects", pk.observed)
            _bucket(out, "Secrets Learned", pk.secrets)
            _bucket(out, "Plaintext Learned", pk.plaintext)
        else:
            _bucket(out, "Secrets Known", pk.secrets)
            _bucket(out, "Plaintext Data", pk.plaintext)
            _bucket(out, "Observed Crypto Objects", pk.observed)

    out.append(THIN)
    out.append("SECURITY VERDICT")
    out.append(THIN)
    out.append(report.verdict.summary())
    if report.verdict.catastrophic:
        out.append("Adversary learned:")
        for t in report.verdict.leaked:
            out.append(f"  - {t}")
    out.append("")
    out.append(RULE)
    return "\n".join(out) + "\n"
