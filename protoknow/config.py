# -*- coding: utf-8 -*-
"""
Loading a NamingPolicy from JSON.

    {
      "naming": {
        "public_prefix": "pk",
        "private_prefix": "sk",
        "leak_prefixes": ["K_", "M", "sk"]
      }
    }

``PROTOKNOW_POLICY`` names the file used when no explicit path is given.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .policy import DEFAULT_POLICY, NamingPolicy

logger = logging.getLogger(__name__)

POLICY_ENV = "PROTOKNOW_POLICY"

_NAMING_KEYS = {"public_prefix", "private_prefix", "leak_prefixes"}


def policy_from_dict(obj: Dict[str, Any]) -> NamingPolicy:
    if not isinstance(obj, dict):
        raise ValueError("policy config must be a JSON object")
    naming = obj.get("naming", {})
    if not isinstance(naming, dict):
        raise ValueError("'naming' must be a JSON object")
    unknown = set(naming) - _NAMING_KEYS
    if unknown:
        raise ValueError(f"unknown naming option(s): {', '.join(sorted(unknown))}")

    kwargs: Dict[str, Any] = {}
    for key in ("public_prefix", "private_prefix"):
        if key in naming:
            val = naming[key]
            if not isinstance(val, str) or not val:
                raise ValueError(f"'{key}' must be a non-empty string")
            kwargs[key] = val
    if "leak_prefixes" in naming:
        prefixes = naming["leak_prefixes"]
        if not isinstance(prefixes, list) or not all(isinstance(p, str) and p for p in prefixes):
            raise ValueError("'leak_prefixes' must be a list of non-empty strings")
        kwargs["leak_prefixes"] = tuple(prefixes)
    return NamingPolicy(**kwargs)


def load_policy(path: Optional[Union[str, Path]] = None) -> NamingPolicy:
    """Policy from ``path``, else from $PROTOKNOW_POLICY, else the defaults."""
    if path is None:
        path = os.environ.get(POLICY_ENV) or None
    if path is None:
        return DEFAULT_POLICY
    p = Path(path).expanduser()
    with p.open("r", encoding="utf-8") as f:
        obj = json.load(f)
    policy = policy_from_dict(obj)
    logger.info("Loaded naming policy from %s: %s", p, policy)
    return policy
