#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
protoknow command line.

    protoknow analyze protocol.txt [--policy naming.json] [--json] [--ast]
    protoknow check protocol.txt
    protoknow syntax
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import knowledge, verification
from .ast_nodes import Protocol, pretty
from .config import load_policy
from .errors import ProtocolSyntaxError
from .logging_utils import setup_logging
from .parser import SYNTAX_HELP, parse

logger = logging.getLogger(__name__)


def read_source(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def load_protocol(path: str) -> Protocol:
    try:
        return parse(read_source(path))
    except OSError as e:
        raise SystemExit(f"Cannot read {path}: {e.strerror}")
    except ProtocolSyntaxError as e:
        logger.debug("Rejected %s: %s", path, e)
        raise SystemExit(f"{path}: {e}")


def cmd_analyze(args: argparse.Namespace) -> int:
    try:
        policy = load_policy(args.policy)
    except (OSError, ValueError) as e:
        raise SystemExit(f"Bad policy file: {e}")

    proto = load_protocol(args.protocol_file)
    report = knowledge.analyze(proto, policy)
    warnings = [] if args.no_warnings else verification.analyze(proto)

    if args.json:
        payload = {
            "protocol": proto.to_dict(),
            "knowledge": report.to_dict(),
            "warnings": warnings,
        }
        print(json.dumps(payload, indent=2))
        return 0

    if args.ast:
        print("=== AST ===")
        print(pretty(proto))
        print()
    sys.stdout.write(report.format())
    if not args.no_warnings:
        print()
        print("Verification Warnings:")
        for w in warnings:
            print(f"  - {w}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    proto = load_protocol(args.protocol_file)
    logger.info("Parsed %s: %d role(s), %d message(s)",
                args.protocol_file, len(proto.roles.roles), len(proto.messages))
    print("No errors detected.")
    return 0


def cmd_syntax(args: argparse.Namespace) -> int:
    sys.stdout.write(SYNTAX_HELP)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="protoknow", description="Knowledge and signature analysis of protocol descriptions")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    ap.add_argument("--log-file", default=None, help="also write a debug log to this file")
    sub = ap.add_subparsers(dest="command", required=True)

    a = sub.add_parser("analyze", help="knowledge report + verification warnings")
    a.add_argument("protocol_file")
    a.add_argument("--policy", default=None, help="JSON naming policy (default: $PROTOKNOW_POLICY or built-in)")
    a.add_argument("--json", action="store_true", help="emit JSON instead of the text report")
    a.add_argument("--ast", action="store_true", help="print the parsed AST before the report")
    a.add_argument("--no-warnings", action="store_true", help="skip the signature checks")
    a.set_defaults(func=cmd_analyze)

    c = sub.add_parser("check", help="parse only")
    c.add_argument("protocol_file")
    c.set_defaults(func=cmd_check)

    s = sub.add_parser("syntax", help="print the language reference")
    s.set_defaults(func=cmd_syntax)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING,
                  file_path=args.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
