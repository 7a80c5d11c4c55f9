# src/cache/fingerprint.py — v1
"""Deterministic cache key generation."""

from __future__ import annotations

import hashlib
import json
from typing import Any

KEY_LENGTH = 16


def canonical(value: Any) -> str:
    """Serialize one key input. Strings are used verbatim, everything else as
    compact JSON with sorted keys."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def generate_key(*inputs: Any) -> str:
    """SHA-256 over the canonical, ``|``-joined inputs, truncated to 16 hex chars.

    Equal inputs always give equal keys, regardless of dict key order.
    """
    if not inputs:
        raise ValueError("generate_key requires at least one input")
    content = "|".join(canonical(i) for i in inputs)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:KEY_LENGTH]
